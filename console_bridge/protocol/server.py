"""WebSocket receiver for the browser extension capture path.

This module provides the ExtensionServer that accepts extension connections
on ws://localhost:9223, validates each wire message and turns console events
into RawConsoleCall observations. Messages of one connection are handled in
arrival order, and one bad message never drops the connection.
"""

import errno
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import aiohttp
from aiohttp import web

from ..models.events import RawConsoleCall
from .messages import (
    ConnectionStatusPayload,
    ConsoleEventPayload,
    Envelope,
    MessageType,
    ProtocolError,
    UnknownMessageTypeError,
    UnsupportedVersionError,
    build_error,
    build_pong,
    build_welcome,
    encode,
    parse_message,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 9223

CallHandler = Callable[[RawConsoleCall], Union[None, Awaitable[None]]]


class ExtensionServer:
    """aiohttp WebSocket server receiving console events from the extension."""

    def __init__(
        self,
        on_call: CallHandler,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        announce: Optional[Callable[[str], None]] = None
    ):
        """Initialize extension server.

        Args:
            on_call: Called with every console event as a RawConsoleCall
            host: Interface to bind
            port: Port to listen on
            announce: Receives connect/disconnect notices, logged when omitted
        """
        self.on_call = on_call
        self.host = host
        self.port = port
        self.announce = announce or logger.info

        self._runner: Optional[web.AppRunner] = None
        self._clients: Dict[Any, Dict[str, Any]] = {}
        self.messages_received = 0
        self.messages_rejected = 0

    def create_app(self) -> web.Application:
        app = web.Application()
        app.add_routes([web.get("/", self._handle_websocket)])
        return app

    async def start(self) -> None:
        """Bind and start accepting connections.

        Raises:
            RuntimeError: If the port is already in use
        """
        if self._runner is not None:
            logger.warning("Extension server already started")
            return

        runner = web.AppRunner(self.create_app())
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            if e.errno == errno.EADDRINUSE:
                raise RuntimeError(
                    f"Port {self.port} already in use. Is another console-bridge instance running?"
                ) from e
            raise

        self._runner = runner
        logger.info(f"Extension server listening on ws://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Close all connections and stop listening."""
        for ws in list(self._clients):
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing extension connection: {e}")
        self._clients.clear()

        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Extension server stopped")

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        self._clients[ws] = {}
        logger.debug(f"Extension socket opened from {request.remote}")

        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self.handle_message(ws, msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Extension socket error: {ws.exception()}")
        finally:
            metadata = self._clients.pop(ws, None)
            if metadata:
                self.announce(f"❌ Extension disconnected (Tab {metadata.get('tab_id')}: {metadata.get('url')})")

        return ws

    async def handle_message(self, ws: Any, data: Union[str, bytes]) -> None:
        """Validate and route one message from a connection.

        Args:
            ws: Connection the message arrived on
            data: Raw message text
        """
        self.messages_received += 1
        try:
            envelope = parse_message(data)
        except (UnsupportedVersionError, UnknownMessageTypeError) as e:
            self.messages_rejected += 1
            logger.warning(f"Ignoring message: {e}")
            return
        except ProtocolError as e:
            self.messages_rejected += 1
            logger.warning(f"Rejecting malformed message: {e}")
            await self._send(ws, build_error(e.code, str(e)))
            return
        except Exception as e:
            self.messages_rejected += 1
            logger.error(f"Unexpected error parsing message: {e}")
            await self._send(ws, build_error(ProtocolError.code, f"Could not parse message: {e}"))
            return

        try:
            if envelope.type is MessageType.CONSOLE_EVENT:
                await self._handle_console_event(envelope)
            elif envelope.type is MessageType.CONNECTION_STATUS:
                await self._handle_connection_status(ws, envelope)
            elif envelope.type is MessageType.PING:
                await self._send(ws, build_pong(envelope.payload.id))
            else:
                logger.debug(f"Ignoring {envelope.type.value} message from extension")
        except Exception as e:
            logger.error(f"Error handling {envelope.type.value} message: {e}")

    async def _handle_console_event(self, envelope: Envelope) -> None:
        payload: ConsoleEventPayload = envelope.payload
        source = envelope.source
        call = RawConsoleCall(
            method=payload.method,
            args=payload.args,
            source_id=envelope.source_id,
            timestamp=envelope.timestamp,
            location=payload.location,
            preserialized=True,
            metadata={
                'origin': 'extension',
                'tab_id': source.tab_id if source else None,
                'title': source.title if source else None,
            },
        )

        result = self.on_call(call)
        if inspect.isawaitable(result):
            await result

    async def _handle_connection_status(self, ws: Any, envelope: Envelope) -> None:
        payload: ConnectionStatusPayload = envelope.payload
        source = envelope.source
        metadata = {
            'tab_id': source.tab_id if source else None,
            'url': source.url if source else None,
            'title': source.title if source else None,
        }

        if payload.status == "connected":
            self._clients[ws] = metadata
            self.announce(f"✓ Extension connected (Tab {metadata['tab_id']}: {metadata['url']})")
            await self._send(ws, build_welcome())
        elif payload.status == "disconnected":
            self._clients[ws] = {}
            self.announce(f"❌ Extension disconnected (Tab {metadata['tab_id']}: {metadata['url']})")

    @staticmethod
    async def _send(ws: Any, message: Dict[str, Any]) -> None:
        try:
            await ws.send_str(encode(message))
        except Exception as e:
            logger.error(f"Failed to send {message.get('type')} message: {e}")

    def __repr__(self) -> str:
        return f"ExtensionServer(host={self.host!r}, port={self.port}, clients={self.client_count})"

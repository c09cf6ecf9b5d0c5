"""In-process capture of console activity from Playwright pages.

This module provides the ConsoleObserver that subscribes to a page's
console, page error and failed request events and turns them into
RawConsoleCall observations. Playwright invokes listeners synchronously, so
the handlers only enqueue; a single consumer task per page drains the queue
in arrival order, resolves argument handles, and hands each call to the
registered callbacks.
"""

import asyncio
import inspect
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from playwright.async_api import ConsoleMessage, Page, Request

from ..models.events import ConsoleMethod, RawConsoleCall

logger = logging.getLogger(__name__)

CallCallback = Callable[[RawConsoleCall], Union[None, Awaitable[None]]]

# (kind, payload, capture timestamp in epoch millis)
_QueueItem = Tuple[str, Any, float]

# count and timeEnd arrive pre-rendered as "label: value"
_LABELED_TEXT = re.compile(r"^(?P<label>.*): [\d.]+\s?(?:ms)?$")
_LABELED_METHODS = frozenset({ConsoleMethod.COUNT.value, ConsoleMethod.TIME_END.value})


class ConsoleObserver:
    """Observer for console calls, page errors and failed requests of one page."""

    def __init__(
        self,
        page: Page,
        source_id: str,
        capture_page_errors: bool = True,
        capture_network_failures: bool = True,
        clock: Callable[[], float] = time.time
    ):
        """Initialize console observer for a page.

        Args:
            page: Playwright page to observe
            source_id: Identifier stamped on every captured call
            capture_page_errors: Whether uncaught page errors are reported
            capture_network_failures: Whether failed requests are reported
            clock: Seconds-since-epoch clock for capture timestamps
        """
        self.page = page
        self.source_id = source_id
        self.capture_page_errors = capture_page_errors
        self.capture_network_failures = capture_network_failures
        self.clock = clock

        self._queue: "asyncio.Queue[_QueueItem]" = asyncio.Queue()
        self._callbacks: List[CallCallback] = []
        self._consumer: Optional[asyncio.Task] = None

        self._stats: Dict[str, int] = {
            'console_messages': 0,
            'page_errors': 0,
            'failed_requests': 0,
            'dispatched_calls': 0,
            'failed_arguments': 0,
        }

        self._setup_listener()

    def _setup_listener(self) -> None:
        """Setup Playwright event listeners."""
        self.page.on("console", self._on_console_message)
        if self.capture_page_errors:
            self.page.on("pageerror", self._on_page_error)
        if self.capture_network_failures:
            self.page.on("requestfailed", self._on_request_failed)
        logger.debug(f"Console observer listeners set up for {self.source_id}")

    def _remove_listeners(self) -> None:
        self.page.remove_listener("console", self._on_console_message)
        if self.capture_page_errors:
            self.page.remove_listener("pageerror", self._on_page_error)
        if self.capture_network_failures:
            self.page.remove_listener("requestfailed", self._on_request_failed)

    def add_callback(self, callback: CallCallback) -> None:
        """Add callback to be called for every captured console call.

        Args:
            callback: Function (sync or async) called with RawConsoleCall
        """
        self._callbacks.append(callback)

    def start(self) -> None:
        """Start the consumer task that drains captured events in order."""
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(
                self._drain(), name=f"console-observer:{self.source_id}"
            )

    async def flush(self) -> None:
        """Wait until every event captured so far has been dispatched."""
        await self._queue.join()

    async def stop(self, timeout: float = 2.0) -> None:
        """Detach from the page and stop the consumer task.

        Args:
            timeout: Seconds to wait for already captured events to drain
        """
        try:
            self._remove_listeners()
        except Exception as e:
            logger.debug(f"Failed to remove listeners for {self.source_id}: {e}")

        if self._consumer is None:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping {self._queue.qsize()} pending events for {self.source_id}")

        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None

    def _now(self) -> float:
        return self.clock() * 1000.0

    def _on_console_message(self, message: ConsoleMessage) -> None:
        """Handle console message event.

        Args:
            message: Playwright console message
        """
        try:
            self._stats['console_messages'] += 1
            self._queue.put_nowait(("console", message, self._now()))
        except Exception as e:
            logger.error(f"Error queueing console message: {e}")

    def _on_page_error(self, error: Exception) -> None:
        """Handle uncaught page error event.

        Args:
            error: JavaScript error exception
        """
        try:
            self._stats['page_errors'] += 1
            self._queue.put_nowait(("pageerror", error, self._now()))
        except Exception as e:
            logger.error(f"Error queueing page error: {e}")

    def _on_request_failed(self, request: Request) -> None:
        """Handle failed network request event.

        Args:
            request: Playwright request that failed
        """
        try:
            self._stats['failed_requests'] += 1
            self._queue.put_nowait(("requestfailed", request, self._now()))
        except Exception as e:
            logger.error(f"Error queueing failed request: {e}")

    async def _drain(self) -> None:
        while True:
            kind, payload, timestamp = await self._queue.get()
            try:
                call = await self._build_call(kind, payload, timestamp)
                await self._dispatch(call)
            except Exception as e:
                logger.error(f"Error processing {kind} event from {self.source_id}: {e}")
            finally:
                self._queue.task_done()

    async def _build_call(self, kind: str, payload: Any, timestamp: float) -> RawConsoleCall:
        if kind == "console":
            return await self._build_console_call(payload, timestamp)

        if kind == "pageerror":
            message = getattr(payload, "message", None) or str(payload)
            return RawConsoleCall(
                method=ConsoleMethod.ERROR.value,
                args=[f"Uncaught Exception: {message}"],
                source_id=self.source_id,
                timestamp=timestamp,
                metadata={'origin': 'pageerror'},
            )

        failure = payload.failure or "unknown error"
        return RawConsoleCall(
            method=ConsoleMethod.ERROR.value,
            args=[f"Request failed: {payload.url} - {failure}"],
            source_id=self.source_id,
            timestamp=timestamp,
            metadata={'origin': 'requestfailed', 'resource_type': payload.resource_type},
        )

    async def _build_console_call(self, message: ConsoleMessage, timestamp: float) -> RawConsoleCall:
        args: List[Any] = []
        for handle in message.args:
            try:
                args.append(await handle.json_value())
            except Exception as e:
                # The handle may belong to a navigated-away context
                self._stats['failed_arguments'] += 1
                args.append(e)

        if not args and message.text:
            args.append(message.text)

        if message.type in _LABELED_METHODS and len(args) == 1 and isinstance(args[0], str):
            match = _LABELED_TEXT.match(args[0])
            if match:
                args = [match.group("label")]

        return RawConsoleCall(
            method=message.type,
            args=args,
            source_id=self.source_id,
            timestamp=timestamp,
            location=message.location,
            metadata={'origin': 'console'},
        )

    async def _dispatch(self, call: RawConsoleCall) -> None:
        self._stats['dispatched_calls'] += 1
        for callback in self._callbacks:
            try:
                result = callback(call)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in console callback: {e}")

    def get_stats(self) -> Dict[str, int]:
        """Get capture statistics.

        Returns:
            Dictionary with capture counters
        """
        return {**self._stats, 'pending': self._queue.qsize()}

    def __repr__(self) -> str:
        """String representation of console observer."""
        stats = self.get_stats()
        return (
            f"ConsoleObserver(source={self.source_id!r}, "
            f"messages={stats['console_messages']}, "
            f"page_errors={stats['page_errors']}, "
            f"pending={stats['pending']})"
        )

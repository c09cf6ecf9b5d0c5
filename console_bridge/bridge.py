"""Console bridge orchestrator.

This module provides the ConsoleBridge that wires capture paths (Playwright
pages and the extension server) to the normalize -> format -> sink pipeline.
Each stage is fault isolated: a call that cannot be normalized is dropped, a
formatter failure is logged, and the stream continues with the next event.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from playwright.async_api import Page

from .capture.browser_factory import BrowserFactory
from .capture.console_observer import ConsoleObserver
from .capture.normalizer import EventNormalizer
from .formatting.formatter import Formatter, FormatterOptions, LogFormatter
from .formatting.registry import FormatterRegistry
from .models.events import RawConsoleCall
from .output.sinks import OutputSink, TerminalSink
from .protocol.server import DEFAULT_HOST, DEFAULT_PORT, ExtensionServer
from .utils.url import SourceUrlError, normalize_url

logger = logging.getLogger(__name__)


class BridgeError(Exception):
    """Raised when a page cannot be monitored."""
    pass


class ConsoleBridge:
    """Routes captured console calls from pages to an output sink."""

    def __init__(
        self,
        sink: Optional[OutputSink] = None,
        formatter: Optional[Formatter] = None,
        formatter_options: Optional[Union[FormatterOptions, Mapping[str, Any]]] = None,
        normalizer: Optional[EventNormalizer] = None,
        browser_factory: Optional[BrowserFactory] = None,
        per_source_formatters: bool = True,
        max_instances: int = 10,
        navigation_timeout: float = 30000,
        capture_page_errors: bool = True,
        capture_network_failures: bool = True
    ):
        """Initialize bridge.

        Args:
            sink: Destination for formatted lines, the terminal by default
            formatter: Explicit formatter; overrides the options below
            formatter_options: Options for the default LogFormatter
            normalizer: Event normalizer (level filter, serializer limits)
            browser_factory: Browser owner for the in-process capture path
            per_source_formatters: Give every source its own formatter state
            max_instances: Maximum number of monitored pages
            navigation_timeout: Page load timeout in milliseconds
            capture_page_errors: Report uncaught page errors as error calls
            capture_network_failures: Report failed requests as error calls
        """
        self.sink = sink or TerminalSink()
        self.normalizer = normalizer or EventNormalizer()
        self.browser_factory = browser_factory or BrowserFactory()
        self.max_instances = max_instances
        self.navigation_timeout = navigation_timeout
        self.capture_page_errors = capture_page_errors
        self.capture_network_failures = capture_network_failures

        if formatter is not None:
            self.formatter: Formatter = formatter
        else:
            options = FormatterOptions.from_mapping(formatter_options)
            if per_source_formatters:
                self.formatter = FormatterRegistry(lambda: LogFormatter(options))
            else:
                self.formatter = LogFormatter(options)

        self._sources: Dict[str, Tuple[Page, ConsoleObserver]] = {}
        self._server: Optional[ExtensionServer] = None

        self._stats: Dict[str, int] = {
            'events': 0,
            'lines': 0,
            'dropped_calls': 0,
            'format_errors': 0,
            'sink_errors': 0,
        }

    def handle_call(self, call: RawConsoleCall) -> Optional[str]:
        """Run one captured call through normalize, format and sink.

        Args:
            call: Raw observation from any capture path

        Returns:
            The line written to the sink, or None when nothing was written
        """
        try:
            event = self.normalizer.normalize(call)
        except Exception as e:
            logger.error(f"Error normalizing {call.method!r} call from {call.source_id}: {e}")
            event = None
        if event is None:
            self._stats['dropped_calls'] += 1
            return None

        self._stats['events'] += 1
        try:
            line = self.formatter.format(event)
        except Exception as e:
            self._stats['format_errors'] += 1
            logger.error(f"Error formatting {event.method.value} event from {event.source}: {e}")
            return None

        if line is None:
            return None

        try:
            self.sink.write(line)
        except Exception as e:
            self._stats['sink_errors'] += 1
            logger.error(f"Error writing console line: {e}")
            return None

        self._stats['lines'] += 1
        return line

    async def add_url(self, url: str) -> str:
        """Start monitoring a local page.

        Args:
            url: Page URL, scheme optional

        Returns:
            Normalized source id

        Raises:
            SourceUrlError: If the URL is invalid or not local
            BridgeError: If the page cannot be opened
        """
        source = normalize_url(url)
        if source in self._sources:
            logger.debug(f"Already monitoring {source}")
            return source

        if len(self._sources) >= self.max_instances:
            raise BridgeError(f"Maximum of {self.max_instances} monitored pages reached")

        if not self.browser_factory.is_running:
            await self.browser_factory.start()

        page: Optional[Page] = None
        observer: Optional[ConsoleObserver] = None
        try:
            page = await self.browser_factory.new_page()
            observer = ConsoleObserver(
                page,
                source,
                capture_page_errors=self.capture_page_errors,
                capture_network_failures=self.capture_network_failures,
            )
            observer.add_callback(self.handle_call)
            observer.start()
            await page.goto(source, wait_until="domcontentloaded", timeout=self.navigation_timeout)
        except Exception as e:
            if observer is not None:
                await observer.stop(timeout=0)
            if page is not None:
                await self.browser_factory.close_page(page)
            raise BridgeError(f"Failed to add URL {source}: {e}") from e

        self._sources[source] = (page, observer)
        logger.info(f"Monitoring {source}")
        return source

    async def remove_url(self, url: str) -> None:
        """Stop monitoring a page and forget its formatter state."""
        source = normalize_url(url)
        entry = self._sources.pop(source, None)
        if entry is None:
            return

        page, observer = entry
        await observer.stop()
        await self.browser_factory.close_page(page)

        if isinstance(self.formatter, FormatterRegistry):
            self.formatter.reset(source)
        logger.info(f"Stopped monitoring {source}")

    async def start(self, urls: Iterable[str]) -> List[str]:
        """Start monitoring several pages concurrently.

        Failures are logged per URL; the others are still monitored.

        Returns:
            Source ids that are being monitored
        """
        urls = list(urls)
        # Launch once up front so concurrent add_url calls share the browser
        if urls and not self.browser_factory.is_running:
            await self.browser_factory.start()

        results = await asyncio.gather(*(self.add_url(url) for url in urls), return_exceptions=True)

        for url, result in zip(urls, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to start monitoring {url}: {result}")

        return self.active_sources()

    async def serve_extension(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> ExtensionServer:
        """Start receiving console events from the browser extension.

        Raises:
            RuntimeError: If the port is already in use
        """
        if self._server is None:
            server = ExtensionServer(self.handle_call, host=host, port=port, announce=self.sink.write)
            await server.start()
            self._server = server
        return self._server

    async def stop(self) -> None:
        """Stop every capture path and close the browser."""
        for source in list(self._sources):
            try:
                await self.remove_url(source)
            except Exception as e:
                logger.error(f"Error stopping {source}: {e}")

        if self._server is not None:
            await self._server.stop()
            self._server = None

        await self.browser_factory.stop()

    def active_sources(self) -> List[str]:
        return list(self._sources)

    def is_active(self, url: str) -> bool:
        try:
            return normalize_url(url) in self._sources
        except SourceUrlError:
            return False

    def get_stats(self) -> Dict[str, int]:
        """Get pipeline statistics."""
        return {**self._stats, 'sources': len(self._sources)}

    def __repr__(self) -> str:
        return (
            f"ConsoleBridge(sources={len(self._sources)}, "
            f"extension={'on' if self._server else 'off'}, "
            f"lines={self._stats['lines']})"
        )

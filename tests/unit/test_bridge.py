"""Unit tests for the console bridge orchestrator."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from console_bridge.bridge import BridgeError, ConsoleBridge
from console_bridge.formatting.registry import FormatterRegistry
from console_bridge.models import RawConsoleCall
from console_bridge.output.sinks import CallbackSink
from console_bridge.utils.url import SourceUrlError


def make_page():
    page = AsyncMock()
    page.on = MagicMock()
    page.remove_listener = MagicMock()
    return page


@pytest.fixture
def mock_factory():
    """Mock browser factory handing out mock pages."""
    factory = MagicMock()
    factory.is_running = False

    async def start():
        factory.is_running = True

    factory.start = AsyncMock(side_effect=start)
    factory.stop = AsyncMock()
    factory.new_page = AsyncMock(side_effect=lambda: make_page())
    factory.close_page = AsyncMock()
    return factory


@pytest.fixture
def lines():
    return []


@pytest.fixture
def bridge(mock_factory, lines):
    return ConsoleBridge(
        sink=CallbackSink(lines.append),
        formatter_options={"showTimestamp": False, "colors": False},
        browser_factory=mock_factory,
    )


class TestHandleCall:
    """Tests for the normalize -> format -> sink pipeline."""

    def test_call_written_to_sink(self, bridge, lines):
        line = bridge.handle_call(RawConsoleCall(method="log", args=["hi", 1], source_id="localhost:3000"))

        assert line == "[localhost:3000] log: hi 1"
        assert lines == [line]
        assert bridge.get_stats()['lines'] == 1

    def test_unknown_method_dropped(self, bridge, lines):
        assert bridge.handle_call(RawConsoleCall(method="timeLog", args=[], source_id="s")) is None
        assert lines == []
        assert bridge.get_stats()['dropped_calls'] == 1

    def test_suppressed_line_not_written(self, bridge, lines):
        bridge.handle_call(RawConsoleCall(method="timeEnd", args=["t"], source_id="s", timestamp=0))
        assert lines == []
        bridge.handle_call(RawConsoleCall(method="timeEnd", args=["t"], source_id="s", timestamp=5))
        assert lines == ["[s] timeEnd: t: 5.000ms"]

    def test_per_source_state(self, bridge, lines):
        """Groups opened by one source do not indent another."""
        assert isinstance(bridge.formatter, FormatterRegistry)
        bridge.handle_call(RawConsoleCall(method="group", args=["A"], source_id="a"))
        bridge.handle_call(RawConsoleCall(method="log", args=["x"], source_id="b"))
        assert lines[-1] == "[b] log: x"

    def test_formatter_failure_contained(self, mock_factory, lines):
        formatter = MagicMock()
        formatter.format.side_effect = [RuntimeError("boom"), "ok"]
        bridge = ConsoleBridge(sink=CallbackSink(lines.append), formatter=formatter, browser_factory=mock_factory)

        bridge.handle_call(RawConsoleCall(method="log", args=[], source_id="s"))
        bridge.handle_call(RawConsoleCall(method="log", args=[], source_id="s"))

        assert lines == ["ok"]
        assert bridge.get_stats()['format_errors'] == 1

    def test_sink_failure_contained(self, mock_factory):
        sink = MagicMock()
        sink.write.side_effect = OSError("closed")
        bridge = ConsoleBridge(sink=sink, browser_factory=mock_factory)

        assert bridge.handle_call(RawConsoleCall(method="log", args=["x"], source_id="s")) is None
        assert bridge.get_stats()['sink_errors'] == 1


class TestSources:
    """Tests for adding and removing monitored pages."""

    @pytest.mark.asyncio
    async def test_add_url(self, bridge, mock_factory):
        source = await bridge.add_url("localhost:3000")

        assert source == "http://localhost:3000/"
        assert bridge.active_sources() == ["http://localhost:3000/"]
        assert bridge.is_active("LOCALHOST:3000")
        mock_factory.start.assert_awaited_once()

        await bridge.stop()
        mock_factory.stop.assert_awaited_once()
        assert bridge.active_sources() == []

    @pytest.mark.asyncio
    async def test_add_url_navigates(self, bridge, mock_factory):
        page = make_page()
        mock_factory.new_page = AsyncMock(return_value=page)

        await bridge.add_url("http://127.0.0.1:8080/app")

        page.goto.assert_awaited_once_with(
            "http://127.0.0.1:8080/app", wait_until="domcontentloaded", timeout=30000
        )
        await bridge.stop()

    @pytest.mark.asyncio
    async def test_duplicate_url_ignored(self, bridge, mock_factory):
        await bridge.add_url("localhost:3000")
        await bridge.add_url("http://localhost:3000/")

        assert mock_factory.new_page.await_count == 1
        await bridge.stop()

    @pytest.mark.asyncio
    async def test_remote_url_rejected(self, bridge):
        with pytest.raises(SourceUrlError):
            await bridge.add_url("https://example.com")
        assert not bridge.is_active("https://example.com")

    @pytest.mark.asyncio
    async def test_max_instances(self, mock_factory):
        bridge = ConsoleBridge(browser_factory=mock_factory, max_instances=1)
        await bridge.add_url("localhost:3000")

        with pytest.raises(BridgeError, match="Maximum"):
            await bridge.add_url("localhost:3001")
        await bridge.stop()

    @pytest.mark.asyncio
    async def test_navigation_failure_cleans_up(self, bridge, mock_factory):
        page = make_page()
        page.goto.side_effect = RuntimeError("net::ERR_CONNECTION_REFUSED")
        mock_factory.new_page = AsyncMock(return_value=page)

        with pytest.raises(BridgeError, match="ERR_CONNECTION_REFUSED"):
            await bridge.add_url("localhost:3000")

        mock_factory.close_page.assert_awaited_once_with(page)
        assert bridge.active_sources() == []

    @pytest.mark.asyncio
    async def test_start_reports_partial_failures(self, bridge, mock_factory):
        """One bad URL does not prevent the others from being monitored."""
        sources = await bridge.start(["localhost:3000", "example.com", "localhost:4000"])

        assert sorted(sources) == ["http://localhost:3000/", "http://localhost:4000/"]
        mock_factory.start.assert_awaited_once()
        await bridge.stop()

    @pytest.mark.asyncio
    async def test_remove_url_resets_formatter(self, bridge, mock_factory):
        source = await bridge.add_url("localhost:3000")
        bridge.handle_call(RawConsoleCall(method="count", args=["x"], source_id=source))
        assert source in bridge.formatter

        await bridge.remove_url(source)

        assert source not in bridge.formatter
        mock_factory.close_page.assert_awaited_once()
        await bridge.remove_url(source)


class TestExtensionMode:
    """Tests for the extension capture path."""

    @pytest.mark.asyncio
    async def test_serve_extension_starts_server_once(self, bridge):
        with patch("console_bridge.bridge.ExtensionServer") as server_class:
            server = server_class.return_value
            server.start = AsyncMock()
            server.stop = AsyncMock()

            first = await bridge.serve_extension(port=9300)
            second = await bridge.serve_extension(port=9300)

            assert first is second
            server_class.assert_called_once_with(
                bridge.handle_call, host="localhost", port=9300, announce=bridge.sink.write
            )
            server.start.assert_awaited_once()

            await bridge.stop()
            server.stop.assert_awaited_once()
            assert "extension=off" in repr(bridge)

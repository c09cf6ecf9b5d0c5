"""Unit tests for output sinks."""

from unittest.mock import MagicMock, patch

import pytest
import typer

from console_bridge.output.sinks import CallbackSink, FileSink, MultiplexSink, TerminalSink


class TestTerminalSink:
    """Tests for TerminalSink."""

    def test_write_uses_echo(self):
        sink = TerminalSink(err=True, color=False)
        with patch("console_bridge.output.sinks.typer.echo") as echo:
            sink.write("hello")
        echo.assert_called_once_with("hello", err=True, color=False)


class TestFileSink:
    """Tests for FileSink."""

    def test_appends_unstyled_lines(self, tmp_path):
        path = tmp_path / "logs" / "console.log"
        sink = FileSink(path)
        sink.write(typer.style("error: boom", fg="red"))
        sink.write("plain")
        sink.close()

        assert path.read_text(encoding="utf-8") == "error: boom\nplain\n"

    def test_multiplexed_file_receives_styled_lines(self, tmp_path):
        """A file behind a multiplexer gets every line, styles stripped."""
        path = tmp_path / "console.log"
        terminal = []
        sink = MultiplexSink([CallbackSink(terminal.append), FileSink(path)])

        sink.write(typer.style("warning: slow", fg=typer.colors.YELLOW, bold=True))
        assert sink.failures == 0
        sink.close()

        assert len(terminal) == 1
        assert path.read_text(encoding="utf-8") == "warning: slow\n"

    def test_appends_to_existing_file(self, tmp_path):
        path = tmp_path / "console.log"
        path.write_text("old\n", encoding="utf-8")

        sink = FileSink(path)
        sink.write("new")
        sink.close()

        assert path.read_text(encoding="utf-8") == "old\nnew\n"

    def test_write_after_close(self, tmp_path):
        sink = FileSink(tmp_path / "console.log")
        sink.close()
        sink.close()
        with pytest.raises(ValueError):
            sink.write("late")


class TestMultiplexSink:
    """Tests for MultiplexSink."""

    def test_fan_out(self):
        received_a, received_b = [], []
        sink = MultiplexSink([CallbackSink(received_a.append)])
        sink.add(CallbackSink(received_b.append))

        sink.write("line")

        assert received_a == ["line"]
        assert received_b == ["line"]
        assert len(sink) == 2

    def test_failing_sink_isolated(self):
        """One failing sink does not keep the line from the others."""
        broken = MagicMock()
        broken.write.side_effect = OSError("disk full")
        received = []
        sink = MultiplexSink([broken, CallbackSink(received.append)])

        sink.write("line")

        assert received == ["line"]
        assert sink.failures == 1

    def test_remove_and_close(self):
        first, second = MagicMock(), MagicMock()
        second.close.side_effect = RuntimeError("boom")
        sink = MultiplexSink([first, second])

        sink.remove(first)
        sink.remove(first)
        sink.close()

        assert len(sink) == 1
        first.close.assert_not_called()
        second.close.assert_called_once()

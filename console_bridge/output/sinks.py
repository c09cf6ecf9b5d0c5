"""Output sinks for formatted console lines.

A sink receives finished lines. MultiplexSink fans one line out to several
sinks; a failing sink is logged and skipped so the others still receive it.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol, TextIO, Union

import click
import typer

logger = logging.getLogger(__name__)


class OutputSink(Protocol):
    """Destination for formatted lines."""

    def write(self, line: str) -> None:
        ...

    def close(self) -> None:
        ...


class TerminalSink:
    """Writes lines to stdout (or stderr) through typer.echo."""

    def __init__(self, err: bool = False, color: Optional[bool] = None):
        """Initialize terminal sink.

        Args:
            err: Write to stderr instead of stdout
            color: Force (True) or strip (False) ANSI styles; auto-detect when None
        """
        self.err = err
        self.color = color

    def write(self, line: str) -> None:
        typer.echo(line, err=self.err, color=self.color)

    def close(self) -> None:
        pass


class FileSink:
    """Appends lines to a file with ANSI styles stripped."""

    def __init__(self, path: Union[str, Path]):
        """Initialize file sink, creating parent directories as needed.

        Args:
            path: File to append to
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[TextIO] = open(self.path, "a", encoding="utf-8", buffering=1)
        logger.debug(f"Writing console output to {self.path}")

    def write(self, line: str) -> None:
        if self._handle is None:
            raise ValueError(f"File sink {self.path} is closed")
        self._handle.write(click.unstyle(line) + "\n")

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __repr__(self) -> str:
        return f"FileSink(path={str(self.path)!r})"


class CallbackSink:
    """Hands lines to a callable."""

    def __init__(self, callback: Callable[[str], None]):
        self.callback = callback

    def write(self, line: str) -> None:
        self.callback(line)

    def close(self) -> None:
        pass


class MultiplexSink:
    """Fans each line out to every registered sink."""

    def __init__(self, sinks: Optional[List[OutputSink]] = None):
        self.sinks: List[OutputSink] = list(sinks or [])
        self.failures = 0

    def add(self, sink: OutputSink) -> None:
        self.sinks.append(sink)

    def remove(self, sink: OutputSink) -> None:
        if sink in self.sinks:
            self.sinks.remove(sink)

    def write(self, line: str) -> None:
        for sink in self.sinks:
            try:
                sink.write(line)
            except Exception as e:
                self.failures += 1
                logger.error(f"Error writing to {sink!r}: {e}")

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                logger.error(f"Error closing {sink!r}: {e}")

    def __len__(self) -> int:
        return len(self.sinks)

    def __repr__(self) -> str:
        return f"MultiplexSink(sinks={len(self.sinks)}, failures={self.failures})"

"""Output sinks for formatted lines."""

from .sinks import CallbackSink, FileSink, MultiplexSink, OutputSink, TerminalSink

__all__ = [
    'OutputSink',
    'TerminalSink',
    'FileSink',
    'CallbackSink',
    'MultiplexSink',
]

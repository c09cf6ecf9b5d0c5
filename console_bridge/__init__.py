"""Console Bridge - stream browser console output to the terminal.

Captures console calls from locally served pages (or from the browser
extension), serializes their arguments into a bounded JSON-safe form, and
formats them with group, counter, timer and table semantics preserved.
"""

__version__ = "1.0.0"

from .bridge import BridgeError, ConsoleBridge
from .capture import EventNormalizer, SerializerLimits, ValueSerializer, serialize
from .formatting import FormatterOptions, FormatterRegistry, LogFormatter
from .models import ConsoleMethod, LogEvent, RawConsoleCall, SourceLocation

__all__ = [
    '__version__',

    # Orchestration
    'ConsoleBridge',
    'BridgeError',

    # Pipeline
    'ValueSerializer',
    'SerializerLimits',
    'serialize',
    'EventNormalizer',
    'LogFormatter',
    'FormatterOptions',
    'FormatterRegistry',

    # Models
    'ConsoleMethod',
    'LogEvent',
    'RawConsoleCall',
    'SourceLocation',
]

"""Capture layer: value serialization, normalization and page observation."""

from .serializer import SerializerLimits, ValueSerializer, serialize
from .normalizer import EventNormalizer, normalize_timestamp
from .console_observer import ConsoleObserver
from .browser_factory import BrowserConfig, BrowserEngineType, BrowserFactory

__all__ = [
    # Serialization
    'SerializerLimits',
    'ValueSerializer',
    'serialize',

    # Normalization
    'EventNormalizer',
    'normalize_timestamp',

    # Playwright capture
    'ConsoleObserver',
    'BrowserConfig',
    'BrowserEngineType',
    'BrowserFactory',
]

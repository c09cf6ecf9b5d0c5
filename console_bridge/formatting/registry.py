"""Per-source formatter instances.

Group depth, counters and timers belong to one page's event stream. The
registry keeps one formatter per source id so that concurrent pages never
share that state.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..models.events import LogEvent
from .formatter import Formatter, LogFormatter

logger = logging.getLogger(__name__)


class FormatterRegistry:
    """Arena of formatters keyed by source id, created lazily."""

    def __init__(self, factory: Optional[Callable[[], Formatter]] = None):
        """Initialize registry.

        Args:
            factory: Creates the formatter for a newly seen source
        """
        self.factory = factory or LogFormatter
        self._formatters: Dict[str, Formatter] = {}

    def get(self, source: str) -> Formatter:
        """Get (or create) the formatter owning a source's state."""
        formatter = self._formatters.get(source)
        if formatter is None:
            formatter = self.factory()
            self._formatters[source] = formatter
            logger.debug(f"Created formatter for source {source}")
        return formatter

    def format(self, event: LogEvent) -> Optional[str]:
        """Format an event with its source's formatter."""
        return self.get(event.source).format(event)

    def reset(self, source: str) -> None:
        """Drop a source's formatter and with it all of its state."""
        if self._formatters.pop(source, None) is not None:
            logger.debug(f"Dropped formatter for source {source}")

    def clear(self) -> None:
        self._formatters.clear()

    @property
    def sources(self) -> List[str]:
        return list(self._formatters)

    def __contains__(self, source: object) -> bool:
        return source in self._formatters

    def __len__(self) -> int:
        return len(self._formatters)

    def __repr__(self) -> str:
        return f"FormatterRegistry(sources={len(self._formatters)})"

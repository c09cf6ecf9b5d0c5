"""Normalization of raw console observations into LogEvent records."""

import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from pydantic import ValidationError

from ..models.events import ConsoleMethod, LogEvent, RawConsoleCall, SourceLocation
from ..models.serialized import SerializedValue, UnknownValue, parse_serialized
from .serializer import ValueSerializer

logger = logging.getLogger(__name__)


def normalize_timestamp(
    raw: Optional[Union[float, int, str, datetime]],
    clock: Callable[[], float] = time.time
) -> float:
    """Normalize a capture timestamp to epoch milliseconds.

    Args:
        raw: Epoch millis, datetime, ISO-8601 string, or None
        clock: Seconds-since-epoch clock used when ``raw`` is missing or unusable

    Returns:
        Milliseconds since the Unix epoch as float
    """
    if isinstance(raw, bool):
        raw = None

    if isinstance(raw, (int, float)):
        return float(raw)

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=timezone.utc)
        return raw.timestamp() * 1000.0

    if isinstance(raw, str) and raw:
        try:
            # fromisoformat() rejects the trailing Z before Python 3.11
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp {raw!r}, using clock")
        else:
            return normalize_timestamp(parsed, clock)

    return clock() * 1000.0


def upgrade_legacy_value(raw: Any, path: str = "root") -> Optional[Dict[str, Any]]:
    """Translate the value-wrapped argument shape of older extension builds.

    Older builds send every argument as ``{type, value}``: arrays carry their
    items in ``value``, objects their fields, DOM nodes their outer HTML, and
    serialization failures arrive as ``error`` with a message string. The
    result is a wire dict in the current shape, or None when ``raw`` is not a
    value-wrapped argument.
    """
    if not isinstance(raw, Mapping) or not isinstance(raw.get('type'), str):
        return None

    kind = raw['type']
    value = raw.get('value')

    if kind in ('null', 'undefined'):
        return {'type': kind}
    if kind in ('string', 'number', 'boolean') and 'value' in raw:
        return {'type': kind, 'value': value}
    if kind == 'function':
        name = raw.get('name')
        if not isinstance(name, str) or not name or name == "(anonymous)":
            name = "anonymous"
        return {'type': 'function', 'name': name}
    if kind == 'circular':
        return {'type': 'circular', 'path': path}
    if kind == 'dom' and isinstance(raw.get('tagName'), str):
        return {'type': 'dom', 'tagName': raw['tagName']}
    if kind == 'array' and isinstance(value, list):
        return {
            'type': 'array',
            'items': [
                _upgrade_or_unknown(item, f"{path}[{index}]")
                for index, item in enumerate(value)
            ],
        }
    if kind == 'object' and isinstance(value, Mapping):
        return {
            'type': 'object',
            'fields': {
                str(key): _upgrade_or_unknown(item, f"{path}.{key}")
                for key, item in value.items()
            },
        }
    if kind in ('error', 'unknown') and 'value' in raw:
        return {'type': 'unknown', 'stringified': str(value)}
    return None


def _upgrade_or_unknown(raw: Any, path: str) -> Dict[str, Any]:
    upgraded = upgrade_legacy_value(raw, path)
    if upgraded is None:
        return {'type': 'unknown', 'stringified': str(raw)}
    return upgraded


class EventNormalizer:
    """Turns RawConsoleCall observations into immutable LogEvents.

    The normalizer is a pure transform: it drops calls whose method is not in
    the closed vocabulary (or not in ``levels`` when set), serializes each
    argument independently, and never raises for argument content.
    """

    def __init__(
        self,
        serializer: Optional[ValueSerializer] = None,
        levels: Optional[Iterable[Union[str, ConsoleMethod]]] = None,
        clock: Callable[[], float] = time.time
    ):
        """Initialize normalizer.

        Args:
            serializer: Serializer for live arguments
            levels: Optional allow-list of methods, by name or enum member
            clock: Seconds-since-epoch clock for missing timestamps
        """
        self.serializer = serializer or ValueSerializer()
        self.clock = clock
        self.levels: Optional[Set[ConsoleMethod]] = None
        if levels is not None:
            self.levels = set()
            for level in levels:
                method = level if isinstance(level, ConsoleMethod) else ConsoleMethod.resolve(level)
                if method is None:
                    logger.warning(f"Ignoring unknown level in filter: {level!r}")
                    continue
                self.levels.add(method)

        self.dropped_count = 0

    def normalize(self, call: RawConsoleCall) -> Optional[LogEvent]:
        """Normalize one observed console call.

        Args:
            call: Raw observation from a capture path

        Returns:
            LogEvent, or None when the call is filtered out
        """
        method = ConsoleMethod.resolve(call.method)
        if method is None:
            self.dropped_count += 1
            logger.debug(f"Dropping console call with unsupported method {call.method!r} from {call.source_id}")
            return None

        if self.levels is not None and method not in self.levels:
            self.dropped_count += 1
            logger.debug(f"Dropping {method.value} call from {call.source_id} (level filtered)")
            return None

        if call.preserialized:
            args = self._validate_arguments(call.args)
        else:
            args = self.serializer.serialize_arguments(call.args)

        return LogEvent(
            method=method,
            args=args,
            source=call.source_id,
            timestamp=normalize_timestamp(call.timestamp, self.clock),
            location=self._normalize_location(call.location),
        )

    def _validate_arguments(self, raw_args: List[Any]) -> List[SerializedValue]:
        """Validate already-serialized wire arguments one by one."""
        args: List[SerializedValue] = []
        for index, raw in enumerate(raw_args):
            try:
                args.append(parse_serialized(raw))
                continue
            except ValidationError as e:
                error = e

            upgraded = upgrade_legacy_value(raw)
            if upgraded is not None:
                try:
                    args.append(parse_serialized(upgraded))
                    continue
                except ValidationError as e:
                    error = e

            logger.debug(f"Argument {index} failed validation: {error.error_count()} errors")
            args.append(UnknownValue(stringified=self._stringify(raw)))
        return args

    @staticmethod
    def _normalize_location(raw: Any) -> Optional[SourceLocation]:
        try:
            return SourceLocation.from_raw(raw)
        except ValidationError as e:
            logger.debug(f"Discarding malformed location: {e}")
            return None

    def _stringify(self, raw: Any) -> str:
        limit = self.serializer.limits.max_string_length
        try:
            text = str(raw)
        except Exception:
            text = f"<{type(raw).__name__}>"
        return text[:limit]

    def __repr__(self) -> str:
        levels = sorted(m.value for m in self.levels) if self.levels is not None else "all"
        return f"EventNormalizer(levels={levels}, dropped={self.dropped_count})"

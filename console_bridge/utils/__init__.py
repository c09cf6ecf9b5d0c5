"""Utility helpers for console bridge."""

from .url import SourceUrlError, display_name, normalize_url, parse_urls, validate_url

__all__ = [
    'SourceUrlError',
    'display_name',
    'normalize_url',
    'parse_urls',
    'validate_url',
]

""" Filter listing views by a search query """
import re
from typing import Any, Dict, List

_WHITESPACE = re.compile(r'\s+')

def _strip_spaces(text: str) -> str:
    return _WHITESPACE.sub('', text)

def matches(name: str, query: str) -> bool:
    """Check whether a listing name matches a search query.

    Matching is case-insensitive and tolerant of spacing: "blue cat" matches
    "Blue Cat", "bluecat" and "blue  cat". A name that is itself contained in
    the query also matches, so "cat" is found by "catnip".

    Args:
        name: Listing name
        query: Raw query text

    Returns:
        True if the name matches. An empty or whitespace-only query matches everything.
    """
    raw = query.lower().strip()
    compact = _strip_spaces(raw)
    if not compact:
        return True

    lowered = (name or '').lower()
    if raw in lowered:
        return True

    compact_name = _strip_spaces(lowered)
    if compact in compact_name:
        return True
    return bool(compact_name) and compact_name in compact

def filter_items(items: List[Dict[str, Any]], query: str) -> List[Dict[str, Any]]:
    """Filter listing views by name, preserving their order."""
    if not _strip_spaces(query or ''):
        return list(items)
    return [item for item in items if matches(item.get('name', ''), query)]

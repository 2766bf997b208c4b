"""
Dot-notation access to nested documents.

A key such as ``"address.city"`` addresses ``document["address"]["city"]``.
Reads resolve the nested path first and fall back to a flat key holding the
whole dotted string, so documents that were stored with literal dotted keys
stay readable.

Version: 1.0
"""

from typing import Any, Dict, List


class _Missing:
    """Sentinel type for attributes that are not present."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def is_dotted(key: str) -> bool:
    return "." in key


def _segments(key: str) -> List[str]:
    return key.split(".")


def has_path(document: Dict[str, Any], key: str) -> bool:
    """Returns True when every segment of the key resolves to a mapping entry."""
    current: Any = document
    for segment in _segments(key):
        if not isinstance(current, dict) or segment not in current:
            return False
        current = current[segment]
    return True


def get_path(document: Dict[str, Any], key: str) -> Any:
    """Returns the nested value for a dotted key, or MISSING."""
    current: Any = document
    for segment in _segments(key):
        if not isinstance(current, dict) or segment not in current:
            return MISSING
        current = current[segment]
    return current


def get(document: Dict[str, Any], key: str) -> Any:
    """
    Resolves a possibly dotted key against a document.

    Args:
        document: Mapping of attribute keys to values
        key: Flat or dot-separated attribute key

    Returns:
        The stored value, or MISSING if neither the nested path nor the flat
        key exists
    """
    if not is_dotted(key):
        return document.get(key, MISSING)

    if has_path(document, key):
        return get_path(document, key)

    return document.get(key, MISSING)


def has(document: Dict[str, Any], key: str) -> bool:
    """Returns True when ``get`` would find a value for the key."""
    if is_dotted(key) and has_path(document, key):
        return True
    return key in document


def set(document: Dict[str, Any], key: str, value: Any) -> Dict[str, Any]:
    """
    Writes a value through a dotted path, creating intermediate mappings.

    Intermediate values that are not mappings are replaced by empty ones.
    """
    segments = _segments(key)
    current = document
    for segment in segments[:-1]:
        if not isinstance(current.get(segment), dict):
            current[segment] = {}
        current = current[segment]
    current[segments[-1]] = value
    return document


def forget(document: Dict[str, Any], key: str) -> None:
    """Removes the value for a key, nested path first, then the flat key."""
    if is_dotted(key) and has_path(document, key):
        segments = _segments(key)
        parent = get_path(document, ".".join(segments[:-1]))
        del parent[segments[-1]]
        return

    document.pop(key, None)


__all__ = ["MISSING", "is_dotted", "has_path", "get_path", "get", "has", "set", "forget"]

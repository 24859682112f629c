"""
Dotted-path field access on decoded JSON bodies
"""

from typing import Any, List

_MISSING = object()


def _walk(body: Any, path: str) -> Any:
    current = body
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            return _MISSING
        if current is _MISSING:
            return _MISSING
    return current


def extract_field(body: Any, path: str, default: Any = None) -> Any:
    """Value at ``path`` (e.g. ``cve.id``), or ``default`` when absent."""
    value = _walk(body, path)
    return default if value is _MISSING else value


def extract_array(body: Any, path: str) -> List[Any]:
    """
    List at ``path``.

    Raises:
        KeyError: the path does not exist
        TypeError: the value at the path is not a list
    """
    value = _walk(body, path)
    if value is _MISSING:
        raise KeyError(path)
    if not isinstance(value, list):
        raise TypeError(f"{path} is {type(value).__name__}, not a list")
    return value

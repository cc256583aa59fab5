"""Sub-path extraction for condition ``path`` expressions.

Supports the dotted subset used by rules: ``$.a.b``, ``$.items[0].name``
and the same without the leading ``$``. A segment that does not resolve
raises ``PathExtractionError`` rather than yielding ``None``.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from rulesim.errors import PathExtractionError

_ROOT_RE = re.compile(r"^\$\.?")
_SPLIT_RE = re.compile(r"[.\[\]]")


def split_path(path: str) -> list[str]:
    """Split a path expression into its key/index segments."""
    clean = _ROOT_RE.sub("", path.strip())
    return [segment.strip("'\"") for segment in _SPLIT_RE.split(clean) if segment]


def extract(value: Any, path: str | None) -> Any:
    """Return the value at ``path`` inside ``value``."""
    if not path:
        return value

    current = value
    walked: list[str] = []
    for segment in split_path(path):
        walked.append(segment)
        if isinstance(current, Mapping):
            if segment not in current:
                raise PathExtractionError(
                    f"Path '{path}' not found: no key '{segment}' at '{'.'.join(walked[:-1]) or '$'}'"
                )
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                index = int(segment)
            except ValueError:
                raise PathExtractionError(
                    f"Path '{path}' not found: '{segment}' is not a list index"
                ) from None
            if not 0 <= index < len(current):
                raise PathExtractionError(
                    f"Path '{path}' not found: index {index} out of range ({len(current)} items)"
                )
            current = current[index]
        else:
            raise PathExtractionError(
                f"Path '{path}' not found: cannot descend into {type(current).__name__} at '{segment}'"
            )
    return current

"""Resolve dotted paths against nested template data.

Data is made of plain Python values: ``None``, ``bool``, numbers, ``str``,
lists/tuples and mappings. Mapping keys come in two flavours that are both
matched case-insensitively: textual keys (ordinary strings) and symbolic keys
(:class:`Symbol`). Two textual keys that differ only by case make a lookup
ambiguous; a textual and a symbolic key for the same name conflict. Neither
situation is resolved silently.
"""

from __future__ import annotations

# Standard Libraries
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

# Wordmerge Libraries
from wordmerge.errors import (
    AmbiguousKey,
    ConflictingKeyTypes,
    IndexOutOfBounds,
    InvalidIndex,
    NilValue,
    PathNotFound,
    ResolutionError,
    UnsupportedType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
    """A symbolic mapping key, e.g. a field name rather than a user string."""

    name: str

    def __str__(self) -> str:
        return self.name


def _key_text(key) -> str:
    if isinstance(key, Symbol):
        return key.name
    return str(key)


def _is_list(value) -> bool:
    return isinstance(value, (list, tuple))


def find_matches(mapping: Mapping, segment: str) -> tuple[list, list]:
    """Return the symbolic and textual keys of ``mapping`` matching ``segment``."""

    wanted = segment.casefold()
    symbolic = []
    textual = []
    for key in mapping.keys():
        if _key_text(key).casefold() != wanted:
            continue
        if isinstance(key, Symbol):
            symbolic.append(key)
        else:
            textual.append(key)
    return symbolic, textual


def lookup_key(mapping: Mapping, segment: str, path: Sequence[str] | None = None):
    """Return the single key of ``mapping`` that matches ``segment``.

    Raises :class:`ResolutionError` when no key, several keys of one kind, or
    keys of both kinds match.
    """

    symbolic, textual = find_matches(mapping, segment)
    if symbolic and textual:
        raise ResolutionError(
            ConflictingKeyTypes(
                segment,
                sorted(_key_text(key) for key in symbolic)[0],
                sorted(_key_text(key) for key in textual)[0],
            )
        )
    matches = symbolic or textual
    if not matches:
        raise ResolutionError(PathNotFound(tuple(path if path is not None else (segment,))))
    if len(matches) > 1:
        raise ResolutionError(AmbiguousKey(segment, tuple(sorted(_key_text(key) for key in matches))))
    return matches[0]


def find_key(mapping: Mapping, segment: str):
    """Return the key matching ``segment`` or ``None`` if it is missing or unclear."""

    symbolic, textual = find_matches(mapping, segment)
    matches = symbolic + textual
    if len(matches) == 1:
        return matches[0]
    return None


def _parse_index(segment: str) -> int:
    if not segment.isascii() or not segment.isdigit():
        raise ResolutionError(InvalidIndex(segment))
    return int(segment)


def traverse(data: Any, path: Sequence[str]) -> Any:
    """Walk ``path`` through ``data`` and return the raw value it names."""

    current = data
    for segment in path:
        if isinstance(current, Mapping):
            key = lookup_key(current, segment, path)
            current = current[key]
        elif _is_list(current):
            index = _parse_index(segment)
            if index >= len(current):
                raise ResolutionError(IndexOutOfBounds(index, len(current)))
            current = current[index]
        else:
            raise ResolutionError(PathNotFound(tuple(path)))
    return current


def format_value(value: Any) -> str:
    """Return the display text of a scalar value."""

    if value is None:
        raise ResolutionError(NilValue())
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    raise ResolutionError(UnsupportedType(type(value).__name__))


def get_value(data: Any, path: Sequence[str]) -> str:
    """Return the display text for ``path`` in ``data``.

    >>> get_value({"customer": {"Name": "Jane"}}, ["customer", "name"])
    'Jane'
    >>> get_value({"items": [{"price": 9.5}]}, ["items", "0", "price"])
    '9.5'
    """

    if not path:
        raise ResolutionError(UnsupportedType(type(data).__name__))
    return format_value(traverse(data, path))


def is_truthy(data: Any, path: Sequence[str]) -> bool:
    """Return the truthiness of the scalar named by ``path``.

    ``None``, ``False``, zero and the empty string are false. Lists and
    mappings cannot be used as conditions.
    """

    value = traverse(data, path)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        return value != ""
    raise ResolutionError(UnsupportedType(type(value).__name__))


def is_list_key(data: Any, key: str) -> bool:
    """Return ``True`` if ``key`` names a list at the top level of ``data``."""

    if not isinstance(data, Mapping):
        return False
    match = find_key(data, key)
    if match is None:
        return False
    return _is_list(data[match])

"""Lexing of ``@path@`` placeholders and ``@if:path@``/``@else@``/``@endif@`` markers.

A path is a dot separated list of segments. The first segment must be an
identifier (``[A-Za-z_][A-Za-z0-9_]*``); later segments may also be plain
list indexes such as ``0``. Tokens that do not fit the grammar (no closing
``@``, an empty path, a segment like ``1st``) are simply not reported.

``@else@`` and ``@endif@`` are always conditional markers and are never
treated as placeholders.
"""

from __future__ import annotations

# Standard Libraries
import re
from dataclasses import dataclass
from typing import Callable, Iterator

# Wordmerge Libraries
from wordmerge.errors import MarkerPairingError

_SEGMENT = r"[A-Za-z_][A-Za-z0-9_]*"
_PATH = rf"{_SEGMENT}(?:\.(?:{_SEGMENT}|[0-9]+))*"

# Alternation order matters: keywords must win over the placeholder branch.
_TOKEN_RE = re.compile(
    rf"@(?:"
    rf"(?P<if>[iI][fF]:(?P<condition>{_PATH}))"
    rf"|(?P<else>[eE][lL][sS][eE])"
    rf"|(?P<endif>[eE][nN][dD][iI][fF])"
    rf"|(?P<path>{_PATH})"
    rf")@"
)

# A marker that may still be completed by text from a following run.
_PARTIAL_TOKEN_RE = re.compile(r"@(?:[iI][fF]:)?(?:[A-Za-z0-9_.]*)\Z")

IF = "if"
ELSE = "else"
ENDIF = "endif"


@dataclass(frozen=True)
class Placeholder:
    original: str
    path: tuple[str, ...]
    position: int

    @property
    def variable(self) -> str:
        return ".".join(self.path)


@dataclass(frozen=True)
class ConditionalMarker:
    """An ``@if:...@``, ``@else@`` or ``@endif@`` marker found in text."""

    type: str
    position: int
    original: str
    condition: str | None = None
    path: tuple[str, ...] | None = None

    @property
    def end(self) -> int:
        return self.position + len(self.original)


@dataclass(frozen=True)
class ConditionalBlock:
    """A validated ``@if@`` ... [``@else@``] ... ``@endif@`` pairing."""

    if_marker: ConditionalMarker
    endif_marker: ConditionalMarker
    else_marker: ConditionalMarker | None = None


def iter_tokens(text: str) -> Iterator[re.Match]:
    return _TOKEN_RE.finditer(text)


def detect_placeholders(text: str) -> list[Placeholder]:
    """Return the placeholders in ``text`` ordered by position."""

    placeholders = []
    for match in _TOKEN_RE.finditer(text):
        path = match.group("path")
        if path is None:
            continue
        placeholders.append(Placeholder(match.group(0), tuple(path.split(".")), match.start()))
    return placeholders


def replace_placeholders(text: str, replacement: Callable[[Placeholder], str]) -> str:
    """Return ``text`` with each placeholder replaced by ``replacement(placeholder)``.

    Conditional markers are left untouched.
    """

    def substitute(match: re.Match) -> str:
        path = match.group("path")
        if path is None:
            return match.group(0)
        return replacement(Placeholder(match.group(0), tuple(path.split(".")), match.start()))

    return _TOKEN_RE.sub(substitute, text)


def detect_conditionals(text: str) -> list[ConditionalMarker]:
    """Return the conditional markers in ``text`` ordered by position."""

    markers = []
    for match in _TOKEN_RE.finditer(text):
        if match.group(IF):
            condition = match.group("condition")
            markers.append(
                ConditionalMarker(
                    IF, match.start(), match.group(0), condition, tuple(condition.split("."))
                )
            )
        elif match.group(ELSE):
            markers.append(ConditionalMarker(ELSE, match.start(), match.group(0)))
        elif match.group(ENDIF):
            markers.append(ConditionalMarker(ENDIF, match.start(), match.group(0)))
    return markers


def has_partial_token(text: str) -> bool:
    """Return ``True`` if ``text`` ends with an unfinished marker.

    Complete tokens are consumed first, so the closing ``@`` of a finished
    placeholder never counts as the start of a new one.
    """

    tail_start = 0
    for match in _TOKEN_RE.finditer(text):
        tail_start = match.end()
    return _PARTIAL_TOKEN_RE.search(text, tail_start) is not None


def _if_label(marker: ConditionalMarker) -> str:
    return f"@if:{marker.condition}@"


class _Frame:
    __slots__ = ("if_marker", "else_marker")

    def __init__(self, if_marker: ConditionalMarker):
        self.if_marker = if_marker
        self.else_marker: ConditionalMarker | None = None


def pair_conditionals(markers: list[ConditionalMarker]) -> list[ConditionalBlock]:
    """Validate marker pairing and return the outermost blocks in order.

    Raises :class:`MarkerPairingError` for the first problem encountered.
    Blocks nested inside another block are validated but not returned; they
    are resolved once their enclosing block has been kept.
    """

    stack: list[_Frame] = []
    blocks: list[ConditionalBlock] = []

    for marker in markers:
        if marker.type == IF:
            stack.append(_Frame(marker))
        elif marker.type == ELSE:
            if not stack:
                raise MarkerPairingError(
                    "orphan_else",
                    f"Orphan @else@ at position {marker.position} (no matching @if@)",
                    marker.position,
                )
            frame = stack[-1]
            if frame.else_marker is not None:
                raise MarkerPairingError(
                    "multiple_else",
                    f"Multiple @else@ in block {_if_label(frame.if_marker)} "
                    f"at position {frame.if_marker.position}",
                    frame.if_marker.position,
                )
            frame.else_marker = marker
        else:
            if not stack:
                raise MarkerPairingError(
                    "orphan_endif",
                    f"Orphan @endif@ at position {marker.position} (no matching @if@)",
                    marker.position,
                )
            frame = stack.pop()
            if not stack:
                blocks.append(ConditionalBlock(frame.if_marker, marker, frame.else_marker))

    if stack:
        unclosed = stack[0].if_marker
        raise MarkerPairingError(
            "unmatched_if",
            f"Unmatched {_if_label(unclosed)} at position {unclosed.position}",
            unclosed.position,
        )

    return blocks


def validate_pairs(markers: list[ConditionalMarker]) -> None:
    pair_conditionals(markers)

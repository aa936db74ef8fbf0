"""Resolve ``@if:path@`` ... [``@else@``] ... ``@endif@`` sections.

A block is bounded by the paragraphs holding its ``@if@`` and ``@endif@``
markers. Both paragraphs must be children of the same parent (the body, a
table cell, ...); whatever sits between them at that level, tables
included, belongs to the block. The condition is evaluated against the data
and the branch that loses is removed element by element, boundary
paragraphs included: a discarded span takes the paragraphs holding its
markers with it. Paragraphs that survive only lose their marker text, and
one left with no text and no other content is removed too. A branch that
starts and ends inside a single paragraph is cut from the text alone.

All top-level blocks found in a tree are resolved in one rewrite computed
against the unmodified tree. Blocks nested inside a kept branch are
resolved by the following pass.
"""

from __future__ import annotations

# Standard Libraries
import bisect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

# Wordmerge Libraries
from wordmerge.data_access import is_truthy
from wordmerge.errors import BoundaryError, ConditionEvaluationError, ResolutionError
from wordmerge.markers import ConditionalBlock, ConditionalMarker, detect_conditionals, pair_conditionals
from wordmerge.tree import W_NS, W_P, Element, Node, Text, iter_elements, text_content

logger = logging.getLogger(__name__)

# Content that keeps an otherwise empty paragraph alive.
_CONTENT_TAGS = frozenset(
    f"{{{W_NS}}}{name}"
    for name in ("drawing", "pict", "object", "sym", "fldSimple", "fldChar", "br", "sectPr")
)

_SEPARATOR = "\n"


@dataclass(frozen=True)
class _Segment:
    """A paragraph (or loose text) in the flattened text of a tree."""

    path: tuple[int, ...] | None
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class _Edits:
    removed: set = field(default_factory=set)
    cuts: dict = field(default_factory=lambda: defaultdict(list))

    def ancestors(self) -> set:
        paths = set()
        for path in list(self.removed) + list(self.cuts):
            for depth in range(len(path)):
                paths.add(path[:depth])
        return paths


def flatten(tree: Node) -> tuple[str, list[_Segment]]:
    """Return the text of every paragraph in ``tree`` and where each one sits.

    Paragraph texts are joined by a newline, which markers can never
    contain, so a marker is always found inside a single paragraph.
    """

    pieces: list[str] = []
    segments: list[_Segment] = []
    offset = 0

    def add(text: str, path):
        nonlocal offset
        if pieces:
            pieces.append(_SEPARATOR)
            offset += len(_SEPARATOR)
        pieces.append(text)
        segments.append(_Segment(path, offset, offset + len(text)))
        offset += len(text)

    def visit(node: Node, path: tuple[int, ...]):
        if isinstance(node, Text):
            if node.value:
                add(node.value, None)
        elif node.tag == W_P:
            add(text_content(node), path)
        else:
            for index, child in enumerate(node.children):
                visit(child, path + (index,))

    visit(tree, ())
    return "".join(pieces), segments


def _find_segment(segments: list[_Segment], starts: list[int], marker: ConditionalMarker):
    index = bisect.bisect_right(starts, marker.position) - 1
    if index < 0:
        return None
    segment = segments[index]
    if segment.path is None or marker.end > segment.end:
        return None
    return segment


def _evaluate(block: ConditionalBlock, data: Any) -> bool:
    try:
        return is_truthy(data, block.if_marker.path)
    except ResolutionError as exc:
        raise ConditionEvaluationError(block.if_marker.condition, exc.reason) from exc


def _selection(block: ConditionalBlock, truthy: bool):
    """Return the discarded ``(first, last)`` marker span and the markers to strip."""

    if_marker, else_marker, endif_marker = block.if_marker, block.else_marker, block.endif_marker
    if truthy:
        if else_marker is None:
            return None, (if_marker, endif_marker)
        return (else_marker, endif_marker), (if_marker,)
    if else_marker is None:
        return (if_marker, endif_marker), ()
    return (if_marker, else_marker), (endif_marker,)


def _plan_block(block: ConditionalBlock, data: Any, segments, starts, edits: _Edits) -> None:
    condition = block.if_marker.condition
    start = _find_segment(segments, starts, block.if_marker)
    if start is None:
        raise BoundaryError(
            "if_marker_not_found",
            f"Paragraph holding {block.if_marker.original} not found",
            condition,
        )
    end = _find_segment(segments, starts, block.endif_marker)
    if end is None:
        raise BoundaryError(
            "endif_marker_not_found",
            f"Paragraph holding @endif@ for @if:{condition}@ not found",
            condition,
        )

    located = {block.if_marker: start, block.endif_marker: end}
    if block.else_marker is not None:
        middle = _find_segment(segments, starts, block.else_marker)
        if middle is None:
            raise BoundaryError(
                "boundaries_not_found",
                f"Paragraph holding @else@ for @if:{condition}@ not found",
                condition,
            )
        located[block.else_marker] = middle

    paths = {segment.path for segment in located.values()}
    if len(paths) > 1 and (() in paths or len({path[:-1] for path in paths}) > 1):
        raise BoundaryError(
            "boundaries_not_found",
            f"Markers of @if:{condition}@ are not in sibling paragraphs",
            condition,
        )
    parent = start.path[:-1]

    truthy = _evaluate(block, data)
    discarded, stripped = _selection(block, truthy)
    for marker in stripped:
        segment = located[marker]
        edits.cuts[segment.path].append((marker.position - segment.start, marker.end - segment.start))
    if discarded is not None:
        first, last = discarded
        first_segment, last_segment = located[first], located[last]
        low = first.position - first_segment.start
        high = last.end - last_segment.start
        if first_segment.path == last_segment.path:
            edits.cuts[first_segment.path].append((low, high))
        else:
            # A boundary paragraph goes with the span unless the kept branch shares it.
            kept = {located[marker].path for marker in stripped}
            if first_segment.path in kept:
                edits.cuts[first_segment.path].append((low, first_segment.length))
            else:
                edits.removed.add(first_segment.path)
            if last_segment.path in kept:
                edits.cuts[last_segment.path].append((0, high))
            else:
                edits.removed.add(last_segment.path)
            for index in range(first_segment.path[-1] + 1, last_segment.path[-1]):
                edits.removed.add(parent + (index,))

    logger.debug("Conditional @if:%s@ evaluated to %s", condition, truthy)


def _cut_text(node: Node, ranges: list[tuple[int, int]], offset: int) -> tuple[Node, int]:
    if isinstance(node, Text):
        start = offset
        end = offset + len(node.value)
        kept: list[str] = []
        cursor = start
        for low, high in ranges:
            low, high = max(low, start), min(high, end)
            if low >= high:
                continue
            if low > cursor:
                kept.append(node.value[cursor - start : low - start])
            cursor = max(cursor, high)
        if cursor == start:
            return node, end
        kept.append(node.value[cursor - start :])
        return Text("".join(kept)), end

    children = []
    for child in node.children:
        child, offset = _cut_text(child, ranges, offset)
        children.append(child)
    if tuple(children) == node.children:
        return node, offset
    return node.with_children(children), offset


def _is_blank(paragraph: Element) -> bool:
    if text_content(paragraph).strip():
        return False
    return not any(element.tag in _CONTENT_TAGS for element in iter_elements(paragraph))


def _apply(node: Element, path: tuple[int, ...], edits: _Edits, ancestors: set) -> Element | None:
    if path in edits.cuts:
        node, _ = _cut_text(node, sorted(edits.cuts[path]), 0)
        if path and _is_blank(node):
            return None
        return node

    children: list[Node] = []
    for index, child in enumerate(node.children):
        child_path = path + (index,)
        if child_path in edits.removed:
            continue
        if child_path in ancestors or child_path in edits.cuts:
            child = _apply(child, child_path, edits, ancestors)
            if child is None:
                continue
        children.append(child)
    return node.with_children(children)


def resolve_pass(tree: Element, data: Any) -> tuple[Element, int]:
    """Resolve the top-level blocks of ``tree``; return the tree and block count."""

    text, segments = flatten(tree)
    markers = detect_conditionals(text)
    if not markers:
        return tree, 0

    blocks = pair_conditionals(markers)
    starts = [segment.start for segment in segments]
    edits = _Edits()
    for block in blocks:
        _plan_block(block, data, segments, starts, edits)

    return _apply(tree, (), edits, edits.ancestors()), len(blocks)


def resolve_conditionals(tree: Element, data: Any) -> Element:
    """Return ``tree`` with every conditional block resolved against ``data``."""

    total = 0
    while True:
        tree, resolved = resolve_pass(tree, data)
        if not resolved:
            break
        total += resolved
    if total:
        logger.debug("Resolved %d conditional blocks", total)
    return tree

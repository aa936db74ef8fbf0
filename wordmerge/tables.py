"""Expand table rows bound to list data.

A row is a template row when one of its placeholders starts with a key that
holds a list at the top level of the data, e.g. ``@claims.amount@`` with
``{"claims": [...]}``. Consecutive template rows bound to the same list form
a group that is repeated once per list item, item by item::

    | @claims.id@ | @claims.amount@ |      | 1 | 10.00 |
                                     ->     | 2 | 25.50 |

Rows are not filled in here. Every placeholder of a copied row is rewritten
to an indexed path from the root of the data instead (``@claims.id@``
becomes ``@claims.1.id@`` in the second copy), and the substitution stage
resolves it like any other placeholder. Inside a copy the item's own keys
take precedence: ``@id@`` becomes ``@claims.1.id@`` when the item has an
``id`` key and stays ``@id@`` otherwise. An item holding both ``name`` and
``Name`` still claims ``@name@``, and substitution reports the ambiguity.
"""

from __future__ import annotations

# Standard Libraries
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# Wordmerge Libraries
from wordmerge.data_access import find_key, find_matches, is_list_key
from wordmerge.errors import MultipleListsError
from wordmerge.markers import Placeholder, detect_placeholders, replace_placeholders
from wordmerge.tree import W_TBL, W_TR, Element, Node, Text, map_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowAnalysis:
    row: Element
    list_key: Any = None
    segment: str | None = None
    placeholders: tuple[Placeholder, ...] = ()

    @property
    def is_template(self) -> bool:
        return self.list_key is not None


def extract_rows(table: Element) -> list[Element]:
    return table.find_children(W_TR)


def _own_text(node: Element):
    """Yield the text of ``node`` that is not inside a nested table."""

    for child in node.children:
        if isinstance(child, Text):
            yield child
        elif child.tag != W_TBL:
            yield from _own_text(child)


def analyze_row(row: Element, data: Any, index: int = 0) -> RowAnalysis:
    """Find the list, if any, that ``row`` is bound to.

    Raises :class:`MultipleListsError` if placeholders in the row start with
    two different list keys.
    """

    placeholders: list[Placeholder] = []
    for text in _own_text(row):
        placeholders.extend(detect_placeholders(text.value))

    bound: dict = {}
    if isinstance(data, Mapping):
        for placeholder in placeholders:
            segment = placeholder.path[0]
            if not is_list_key(data, segment):
                continue
            bound.setdefault(find_key(data, segment), segment)

    if len(bound) > 1:
        raise MultipleListsError(index, sorted(str(key) for key in bound))
    if not bound:
        return RowAnalysis(row, placeholders=tuple(placeholders))
    key, segment = next(iter(bound.items()))
    return RowAnalysis(row, key, segment, tuple(placeholders))


def _scoped_path(placeholder: Placeholder, segment: str, item: Any, index: int) -> tuple[str, ...]:
    path = placeholder.path
    head = path[0]
    if head.casefold() == segment.casefold():
        return (segment, str(index)) + path[1:]
    if isinstance(item, Mapping) and any(find_matches(item, head)):
        return (segment, str(index)) + path
    return path


def bind_row(row: Element, segment: str, item: Any, index: int, aliases: dict | None = None) -> Element:
    """Return a copy of ``row`` whose placeholders address list item ``index``.

    When ``aliases`` is given, each rewritten token is recorded in it against
    the token the template row holds.
    """

    def rewrite(placeholder: Placeholder) -> str:
        token = "@" + ".".join(_scoped_path(placeholder, segment, item, index)) + "@"
        if aliases is not None:
            aliases.setdefault(token, placeholder.original)
        return token

    return map_text(row, lambda value: replace_placeholders(value, rewrite))


def duplicate_rows(rows: list[Element], segment: str, items: list, aliases: dict | None = None) -> list[Element]:
    """Repeat ``rows`` once per entry of ``items``, keeping row order within an item."""

    return [
        bind_row(row, segment, item, index, aliases)
        for index, item in enumerate(items)
        for row in rows
    ]


def _group_rows(table: Element, data: Any):
    """Yield ``(analysis | None, nodes)`` runs over the children of ``table``."""

    group: list[Element] = []
    current: RowAnalysis | None = None
    row_index = 0
    for child in table.children:
        if not isinstance(child, Element) or child.tag != W_TR:
            if group:
                yield current, group
                group, current = [], None
            yield None, [child]
            continue

        analysis = analyze_row(child, data, row_index)
        row_index += 1
        if not analysis.is_template:
            if group:
                yield current, group
                group, current = [], None
            yield None, [child]
        elif current is not None and analysis.list_key == current.list_key:
            group.append(child)
        else:
            if group:
                yield current, group
            group, current = [child], analysis
    if group:
        yield current, group


def expand_table(table: Element, data: Any, aliases: dict | None = None) -> Element:
    children: list[Node] = []
    for analysis, nodes in _group_rows(table, data):
        if analysis is None:
            children.extend(expand_tables(node, data, aliases) for node in nodes)
            continue
        items = data[analysis.list_key]
        logger.debug(
            "Expanding %d template rows for %r over %d items",
            len(nodes),
            analysis.segment,
            len(items),
        )
        children.extend(duplicate_rows(nodes, analysis.segment, items, aliases))
    return table.with_children(children)


def expand_tables(tree: Node, data: Any, aliases: dict | None = None) -> Node:
    """Return ``tree`` with every list-bound row group of every table expanded."""

    if not isinstance(tree, Element):
        return tree
    if tree.tag == W_TBL:
        return expand_table(tree, data, aliases)
    children = tuple(expand_tables(child, data, aliases) for child in tree.children)
    if children == tree.children:
        return tree
    return tree.with_children(children)

"""Replace ``@path@`` placeholders with values from the data."""

from __future__ import annotations

# Standard Libraries
import logging
from typing import Any

# Wordmerge Libraries
from wordmerge.data_access import get_value
from wordmerge.errors import PlaceholderError, PlaceholderFailure, ResolutionError
from wordmerge.markers import detect_placeholders
from wordmerge.tree import Element, Node, Text

logger = logging.getLogger(__name__)

# ``&`` goes first so the entities added afterwards are not escaped again.
_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_value(value: str) -> str:
    for char, entity in _ESCAPES:
        value = value.replace(char, entity)
    return value


def replace_in_text(value: str, data: Any) -> tuple[str, list[PlaceholderFailure]]:
    """Substitute every placeholder in ``value``.

    If any placeholder fails, ``value`` is returned unchanged together with
    all of the failures.
    """

    placeholders = detect_placeholders(value)
    if not placeholders:
        return value, []

    pieces: list[str] = []
    failures: list[PlaceholderFailure] = []
    cursor = 0
    for placeholder in placeholders:
        try:
            resolved = get_value(data, placeholder.path)
        except ResolutionError as exc:
            failures.append(
                PlaceholderFailure(placeholder.original, placeholder.path, exc.reason, placeholder.original)
            )
            continue
        pieces.append(value[cursor : placeholder.position])
        pieces.append(escape_value(resolved))
        cursor = placeholder.position + len(placeholder.original)

    if failures:
        return value, failures
    pieces.append(value[cursor:])
    return "".join(pieces), []


class _Substitution:
    def __init__(self, data: Any):
        self.data = data
        self.failures: list[PlaceholderFailure] = []
        self.replaced = 0

    def visit(self, node: Node) -> Node:
        if isinstance(node, Text):
            value, failures = replace_in_text(node.value, self.data)
            if failures:
                self.failures.extend(failures)
                return node
            if value == node.value:
                return node
            self.replaced += 1
            return Text(value)

        children = tuple(self.visit(child) for child in node.children)
        if children == node.children:
            return node
        return node.with_children(children)


def replace_in_document(tree: Element, data: Any) -> Element:
    """Return ``tree`` with every placeholder substituted.

    Failures from the whole tree are collected first and raised together as
    one :class:`PlaceholderError`, so no partially substituted tree escapes.
    """

    substitution = _Substitution(data)
    result = substitution.visit(tree)
    if substitution.failures:
        raise PlaceholderError(substitution.failures)
    logger.debug("Substituted placeholders in %d text nodes", substitution.replaced)
    return result

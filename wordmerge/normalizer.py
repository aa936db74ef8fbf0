"""Collapse markers that Word split across several runs.

Word freely fragments a paragraph into runs (spell checking, editing
history, formatting changes), so ``@customer.name@`` may be stored as::

    <w:r><w:t>Hello @cust</w:t></w:r>
    <w:proofErr w:type="spellStart"/>
    <w:r><w:t>omer.name@</w:t></w:r>

Normalization merges such runs into one run holding ``Hello @customer.name@``
so later stages only ever look at a single text node per marker. Runs are
merged only when a marker actually spans them; everything else is left as it
was, which makes the operation idempotent.
"""

from __future__ import annotations

# Standard Libraries
import logging

# Wordmerge Libraries
from wordmerge.markers import has_partial_token, iter_tokens
from wordmerge.tree import (
    W_P,
    W_PROOF_ERR,
    W_R,
    W_RPR,
    W_T,
    Element,
    Node,
    Text,
    make_run,
    text_content,
)

logger = logging.getLogger(__name__)

# Elements without text that Word sprinkles between runs.
_ANNOTATION_TAGS = frozenset({W_PROOF_ERR})


def normalize(node: Node) -> Node:
    """Return ``node`` with every paragraph in it normalized."""

    if not isinstance(node, Element):
        return node
    if node.tag == W_P:
        return normalize_paragraph(node)
    children = tuple(normalize(child) for child in node.children)
    if children == node.children:
        return node
    return node.with_children(children)


def _is_text_run(node: Node) -> bool:
    """A run holding nothing but optional properties and ``w:t`` text."""

    if not isinstance(node, Element) or node.tag != W_R:
        return False
    return all(
        isinstance(child, Element) and child.tag in (W_RPR, W_T) for child in node.children
    )


def _run_text(run: Element) -> str:
    return "".join(text_content(child) for child in run.children if child.tag == W_T)


class _Accumulator:
    """Runs collected while a marker may still be in progress."""

    def __init__(self):
        self.runs: list[Element] = []
        self.text = ""
        self.boundaries: list[int] = []

    def __bool__(self) -> bool:
        return bool(self.runs)

    def add(self, run: Element) -> None:
        if self.runs:
            self.boundaries.append(len(self.text))
        self.runs.append(run)
        self.text += _run_text(run)

    def _marker_spans_runs(self) -> bool:
        for match in iter_tokens(self.text):
            for boundary in self.boundaries:
                if match.start() < boundary < match.end():
                    return True
        return False

    def flush(self) -> list[Element]:
        runs = self.runs
        text = self.text
        spans = len(runs) > 1 and self._marker_spans_runs()
        self.runs = []
        self.text = ""
        self.boundaries = []
        if not spans:
            return runs
        return [make_run(text, _shared_properties(runs))]


def _shared_properties(runs: list[Element]) -> Element | None:
    """Return the run properties if every run agrees on them, else ``None``."""

    properties = [run.find_child(W_RPR) for run in runs]
    first = properties[0]
    if all(candidate == first for candidate in properties[1:]):
        return first
    return None


def normalize_paragraph(paragraph: Element) -> Element:
    """Merge runs of ``paragraph`` that together hold a complete marker."""

    output: list[Node] = []
    pending = _Accumulator()
    merged = 0

    def flush():
        nonlocal merged
        if not pending:
            return
        count = len(pending.runs)
        runs = pending.flush()
        if len(runs) != count:
            merged += count
        output.extend(runs)

    for child in paragraph.children:
        if _is_text_run(child):
            if not pending and "@" not in _run_text(child):
                output.append(child)
                continue
            pending.add(child)
            if not has_partial_token(pending.text):
                flush()
        elif pending and isinstance(child, Element) and child.tag in _ANNOTATION_TAGS:
            continue
        else:
            flush()
            output.append(normalize(child))
    flush()

    if merged:
        logger.debug("Merged %d fragmented runs in paragraph", merged)

    children = tuple(output)
    if children == paragraph.children:
        return paragraph
    return paragraph.with_children(children)

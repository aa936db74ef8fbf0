"""Immutable document tree used by every rendering stage.

Word parts are parsed with lxml and converted into :class:`Element` and
:class:`Text` values. Nodes never change after construction: a stage that
rewrites part of a tree builds new nodes bottom-up and shares everything it
did not touch, so the input of a stage is always safe to reuse.

``Text.value`` keeps character data in its markup-escaped form, exactly as it
appears between tags. Values spliced in by the substitution stage are escaped
before insertion and come out of :func:`serialize` unchanged.
"""

from __future__ import annotations

# Standard Libraries
import html
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Union

# 3rd Party Libraries
from lxml import etree

# Wordmerge Libraries
from wordmerge.errors import MalformedXMLError

logger = logging.getLogger(__name__)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
XML_NS = "http://www.w3.org/XML/1998/namespace"

W_BODY = f"{{{W_NS}}}body"
W_P = f"{{{W_NS}}}p"
W_R = f"{{{W_NS}}}r"
W_RPR = f"{{{W_NS}}}rPr"
W_T = f"{{{W_NS}}}t"
W_TBL = f"{{{W_NS}}}tbl"
W_TR = f"{{{W_NS}}}tr"
W_TC = f"{{{W_NS}}}tc"
W_PROOF_ERR = f"{{{W_NS}}}proofErr"
XML_SPACE = f"{{{XML_NS}}}space"

_PARSER = etree.XMLParser(resolve_entities=False, remove_blank_text=False)


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Element:
    """An element with ordered attributes and children.

    ``nsmap`` holds the namespace declarations introduced on this element. It
    only matters when serializing and is ignored when comparing trees.
    """

    tag: str
    attributes: tuple[tuple[str, str], ...] = ()
    children: tuple["Node", ...] = ()
    nsmap: tuple[tuple[str | None, str], ...] = field(default=(), compare=False)

    def get(self, name: str, default: str | None = None) -> str | None:
        for key, value in self.attributes:
            if key == name:
                return value
        return default

    def find_children(self, tag: str) -> list["Element"]:
        return [child for child in self.children if isinstance(child, Element) and child.tag == tag]

    def find_child(self, tag: str) -> "Element" | None:
        for child in self.children:
            if isinstance(child, Element) and child.tag == tag:
                return child
        return None

    def with_children(self, children: Iterable["Node"]) -> "Element":
        return replace(self, children=tuple(children))


Node = Union[Element, Text]


def get_attribute(element: Element, name: str, default: str | None = None) -> str | None:
    return element.get(name, default)


def replace_children(element: Element, children: Iterable[Node]) -> Element:
    return element.with_children(children)


def local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag


def escape_text(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def text_content(node: Node) -> str:
    """Return the concatenated text of ``node`` and all of its descendants."""

    if isinstance(node, Text):
        return node.value
    return "".join(text_content(child) for child in node.children)


def iter_text(node: Node) -> Iterator[Text]:
    """Yield every text node under ``node`` in document order."""

    if isinstance(node, Text):
        yield node
        return
    for child in node.children:
        yield from iter_text(child)


def map_text(node: Node, func) -> Node:
    """Return ``node`` with ``func`` applied to the value of every text node.

    Subtrees whose text does not change are shared with the input.
    """

    if isinstance(node, Text):
        value = func(node.value)
        return node if value == node.value else Text(value)
    children = tuple(map_text(child, func) for child in node.children)
    if children == node.children:
        return node
    return node.with_children(children)


def iter_elements(node: Node) -> Iterator[Element]:
    """Yield ``node`` and every descendant element in document order."""

    if not isinstance(node, Element):
        return
    yield node
    for child in node.children:
        yield from iter_elements(child)


def make_run(text: str, properties: Element | None = None) -> Element:
    """Build a ``w:r`` holding ``text`` (already escaped) in a single ``w:t``."""

    text_element = Element(W_T, ((XML_SPACE, "preserve"),), (Text(text),))
    children: tuple[Node, ...] = (text_element,)
    if properties is not None:
        children = (properties, text_element)
    return Element(W_R, (), children)


# ------------------------------------------------------------------
# lxml conversion


def from_etree(element, parent_nsmap: dict | None = None) -> Element:
    """Convert an lxml element (including python-docx oxml elements)."""

    children: list[Node] = []
    if element.text:
        children.append(Text(escape_text(element.text)))

    nsmap = dict(element.nsmap)
    for child in element:
        # Comments and processing instructions have non-string tags.
        if isinstance(child.tag, str):
            children.append(from_etree(child, nsmap))
        if child.tail:
            children.append(Text(escape_text(child.tail)))

    inherited = parent_nsmap or {}
    declared = sorted(
        ((prefix, uri) for prefix, uri in nsmap.items() if inherited.get(prefix) != uri),
        key=lambda item: item[0] or "",
    )
    return Element(
        tag=element.tag,
        attributes=tuple(element.attrib.items()),
        children=tuple(children),
        nsmap=tuple(declared),
    )


def to_etree(element: Element, parent=None):
    nsmap = dict(element.nsmap) or None
    if parent is None:
        node = etree.Element(element.tag, nsmap=nsmap)
    else:
        node = etree.SubElement(parent, element.tag, nsmap=nsmap)
    for name, value in element.attributes:
        node.set(name, value)

    last = None
    for child in element.children:
        if isinstance(child, Text):
            value = html.unescape(child.value)
            if last is None:
                node.text = (node.text or "") + value
            else:
                last.tail = (last.tail or "") + value
        else:
            last = to_etree(child, node)
    return node


def parse(xml: str | bytes, *, part: str | None = None) -> Element:
    """Parse ``xml`` into an immutable tree."""

    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    try:
        root = etree.fromstring(xml, _PARSER)
    except etree.XMLSyntaxError as exc:
        raise MalformedXMLError(f"Malformed XML: {exc}", part=part) from exc
    return from_etree(root)


def serialize(tree: Element) -> bytes:
    return etree.tostring(
        to_etree(tree),
        xml_declaration=True,
        encoding="UTF-8",
        standalone=True,
    )

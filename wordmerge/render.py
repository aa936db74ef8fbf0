"""Run the rendering stages over a parsed document part."""

from __future__ import annotations

# Standard Libraries
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

# Wordmerge Libraries
from wordmerge.conditionals import flatten, resolve_conditionals
from wordmerge.errors import MarkerPairingError, PlaceholderError, RenderError
from wordmerge.markers import detect_conditionals, detect_placeholders, pair_conditionals
from wordmerge.normalizer import normalize
from wordmerge.replacement import replace_in_document
from wordmerge.tables import expand_tables
from wordmerge.tree import Element, iter_text

logger = logging.getLogger(__name__)


def _attach_part(exc: RenderError, part: str | None) -> None:
    if exc.part is None:
        exc.part = part


def render_tree(tree: Element, data: Any, *, part: str | None = None) -> Element:
    """Render one document part.

    The stages run in order: run normalization, conditional sections, table
    rows, placeholder substitution. The first failure aborts the render and
    ``tree`` is never modified, so a caller can simply discard the attempt.

    :raises RenderError: with ``part`` set to the given part name
    """

    aliases: dict[str, str] = {}
    try:
        tree = normalize(tree)
        tree = resolve_conditionals(tree, data)
        tree = expand_tables(tree, data, aliases)
        return replace_in_document(tree, data)
    except PlaceholderError as exc:
        # Tokens rewritten by table expansion point back at the template row.
        exc.failures = [
            failure._replace(template_token=aliases.get(failure.token, failure.template_token))
            for failure in exc.failures
        ]
        _attach_part(exc, part)
        raise
    except RenderError as exc:
        _attach_part(exc, part)
        raise


def render_properties_tree(tree: Element, data: Any, *, part: str | None = None) -> Element:
    """Render a document property part, which only supports placeholders."""

    try:
        return replace_in_document(normalize(tree), data)
    except RenderError as exc:
        _attach_part(exc, part)
        raise


# ------------------------------------------------------------------
# Inspection


@dataclass
class PlaceholderInfo:
    original: str
    path: tuple[str, ...]
    locations: list[str] = field(default_factory=list)


@dataclass
class ConditionalInfo:
    condition: str
    path: tuple[str, ...]
    locations: list[str] = field(default_factory=list)


@dataclass
class TemplateInfo:
    """What a template expects from its data, and what is wrong with it."""

    placeholders: list[PlaceholderInfo] = field(default_factory=list)
    conditionals: list[ConditionalInfo] = field(default_factory=list)
    required_keys: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _add_location(locations: list[str], location: str) -> None:
    if location not in locations:
        locations.append(location)


def merge_info(infos: Iterable[TemplateInfo]) -> TemplateInfo:
    """Combine the inspection results of several parts into one."""

    placeholders: dict[str, PlaceholderInfo] = {}
    conditionals: dict[str, ConditionalInfo] = {}
    errors: list[dict] = []
    for info in infos:
        for placeholder in info.placeholders:
            merged = placeholders.setdefault(
                placeholder.original, PlaceholderInfo(placeholder.original, placeholder.path)
            )
            for location in placeholder.locations:
                _add_location(merged.locations, location)
        for conditional in info.conditionals:
            merged = conditionals.setdefault(
                conditional.condition, ConditionalInfo(conditional.condition, conditional.path)
            )
            for location in conditional.locations:
                _add_location(merged.locations, location)
        errors.extend(info.errors)

    required = {item.path[0].lower() for item in placeholders.values()}
    required.update(item.path[0].lower() for item in conditionals.values())
    return TemplateInfo(
        placeholders=list(placeholders.values()),
        conditionals=list(conditionals.values()),
        required_keys=sorted(required),
        errors=errors,
    )


def inspect_tree(tree: Element, location: str = "document") -> TemplateInfo:
    """Report the placeholders and conditionals used in ``tree``.

    Pairing problems are reported in ``errors`` instead of being raised.
    """

    tree = normalize(tree)
    info = TemplateInfo()

    for text in iter_text(tree):
        for placeholder in detect_placeholders(text.value):
            info.placeholders.append(
                PlaceholderInfo(placeholder.original, placeholder.path, [location])
            )

    flat, _ = flatten(tree)
    markers = detect_conditionals(flat)
    for marker in markers:
        if marker.condition is not None:
            info.conditionals.append(ConditionalInfo(marker.condition, marker.path, [location]))
    try:
        pair_conditionals(markers)
    except MarkerPairingError as exc:
        info.errors.append(
            {"type": exc.kind, "message": exc.message, "position": exc.position, "location": location}
        )

    return merge_info([info])

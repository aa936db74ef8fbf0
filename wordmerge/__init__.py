"""Render Word templates that use ``@path@`` placeholders and ``@if:path@`` sections."""

# Wordmerge Libraries
from wordmerge.data_access import Symbol
from wordmerge.docx_template import WordTemplate, inspect, render
from wordmerge.errors import (
    BoundaryError,
    ConditionalError,
    ConditionEvaluationError,
    MalformedXMLError,
    MarkerPairingError,
    MissingPartError,
    MultipleListsError,
    PlaceholderError,
    PlaceholderFailure,
    RenderError,
    ResolutionError,
    TableExpansionError,
    TemplateValidationError,
)
from wordmerge.render import TemplateInfo, inspect_tree, render_tree
from wordmerge.tree import Element, Text, parse, serialize

__all__ = [
    "BoundaryError",
    "ConditionEvaluationError",
    "ConditionalError",
    "Element",
    "MalformedXMLError",
    "MarkerPairingError",
    "MissingPartError",
    "MultipleListsError",
    "PlaceholderError",
    "PlaceholderFailure",
    "RenderError",
    "ResolutionError",
    "Symbol",
    "TableExpansionError",
    "TemplateInfo",
    "TemplateValidationError",
    "Text",
    "WordTemplate",
    "inspect",
    "inspect_tree",
    "parse",
    "render",
    "render_tree",
    "serialize",
]

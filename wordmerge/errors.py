"""Exceptions and failure reasons raised while rendering Word templates."""

from __future__ import annotations

# Standard Libraries
from dataclasses import dataclass
from typing import NamedTuple


# ------------------------------------------------------------------
# Data resolution reasons


@dataclass(frozen=True)
class PathNotFound:
    path: tuple[str, ...]

    def __str__(self) -> str:
        return f"path {'.'.join(self.path)!r} not found"


@dataclass(frozen=True)
class InvalidIndex:
    segment: str

    def __str__(self) -> str:
        return f"invalid list index {self.segment!r}"


@dataclass(frozen=True)
class IndexOutOfBounds:
    requested: int
    length: int

    def __str__(self) -> str:
        return f"index {self.requested} out of bounds for list of length {self.length}"


@dataclass(frozen=True)
class NilValue:
    def __str__(self) -> str:
        return "value is null"


@dataclass(frozen=True)
class UnsupportedType:
    type_name: str

    def __str__(self) -> str:
        return f"unsupported value type {self.type_name}"


@dataclass(frozen=True)
class AmbiguousKey:
    segment: str
    matches: tuple[str, ...]

    def __str__(self) -> str:
        return f"key {self.segment!r} is ambiguous between {', '.join(self.matches)}"


@dataclass(frozen=True)
class ConflictingKeyTypes:
    segment: str
    symbolic_key: str
    textual_key: str

    def __str__(self) -> str:
        return (
            f"key {self.segment!r} matches both symbolic key {self.symbolic_key!r} "
            f"and textual key {self.textual_key!r}"
        )


class ResolutionError(Exception):
    """A path could not be resolved against the data context."""

    def __init__(self, reason):
        super().__init__(str(reason))
        self.reason = reason


# ------------------------------------------------------------------
# Render errors


class RenderError(Exception):
    """Base class for every failure that aborts a render."""

    def __init__(self, message: str, *, part: str | None = None):
        super().__init__(message)
        self.message = message
        self.part = part

    def __str__(self) -> str:
        if self.part:
            return f"{self.message} (in {self.part})"
        return self.message


class ConditionalError(RenderError):
    """A conditional block is malformed or cannot be evaluated."""

    kind = "conditional"


class MarkerPairingError(ConditionalError):
    """``@if@``/``@else@``/``@endif@`` markers are not properly paired."""

    def __init__(self, kind: str, message: str, position: int, **kwargs):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.position = position


class BoundaryError(ConditionalError):
    """The paragraphs bounding a conditional block cannot be located."""

    def __init__(self, kind: str, message: str, condition: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.condition = condition


class ConditionEvaluationError(ConditionalError):
    """The data path named by a condition could not be evaluated."""

    kind = "condition_failed"

    def __init__(self, condition: str, reason, **kwargs):
        super().__init__(f"Condition @if:{condition}@ could not be evaluated: {reason}", **kwargs)
        self.condition = condition
        self.reason = reason


class TableExpansionError(RenderError):
    """A table template row cannot be expanded."""


class MultipleListsError(TableExpansionError):
    kind = "multiple_lists"

    def __init__(self, row_index: int, list_keys: list[str], **kwargs):
        super().__init__(
            f"Table row {row_index} references multiple lists: {', '.join(list_keys)}",
            **kwargs,
        )
        self.row_index = row_index
        self.list_keys = list_keys


class PlaceholderFailure(NamedTuple):
    """A placeholder that could not be resolved.

    ``token`` is the placeholder as resolved. Inside an expanded table row it
    names the list item (``@claims.2.missing@``) and ``template_token`` keeps
    the text of the template row (``@claims.missing@``).
    """

    token: str
    path: tuple[str, ...]
    reason: object
    template_token: str | None = None


class PlaceholderError(RenderError):
    """One or more placeholders could not be resolved.

    Every failure found anywhere in the rendered part is collected before this
    is raised, so callers can report all missing data at once.
    """

    SAMPLE_SIZE = 5

    def __init__(self, failures: list[PlaceholderFailure], **kwargs):
        self.failures = list(failures)
        super().__init__(self._build_message(self.failures), **kwargs)

    @classmethod
    def _build_message(cls, failures: list[PlaceholderFailure]) -> str:
        if not failures:
            return "No placeholders could be resolved"
        if len(failures) == 1:
            failure = failures[0]
            return f"Placeholder {failure.token} could not be resolved: {failure.reason}"
        sample = [failure.token for failure in failures[: cls.SAMPLE_SIZE]]
        message = f"{len(failures)} placeholders could not be resolved: {', '.join(sample)}"
        remaining = len(failures) - len(sample)
        if remaining:
            message += f" and {remaining} more"
        return message


# ------------------------------------------------------------------
# Package layer


class TemplateValidationError(RenderError):
    """The template or output path is unusable."""


class MalformedXMLError(RenderError):
    """A document part is not well-formed XML."""


class MissingPartError(RenderError):
    """A part every Word document needs is absent from the package."""

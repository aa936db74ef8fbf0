"""Word (.docx) templates rendered with ``@path@`` markers."""

from __future__ import annotations

# Standard Libraries
import fnmatch
import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Union

# 3rd Party Libraries
import docx
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml import parse_xml
from lxml import etree

# Wordmerge Libraries
from wordmerge.errors import (
    MalformedXMLError,
    MissingPartError,
    RenderError,
    TemplateValidationError,
)
from wordmerge.normalizer import normalize
from wordmerge.render import TemplateInfo, inspect_tree, merge_info, render_properties_tree, render_tree
from wordmerge.tree import Element, parse, serialize

_DOCUMENT_PARTNAME = "word/document.xml"

logger = logging.getLogger(__name__)

PathOrStream = Union[str, os.PathLike, BinaryIO]


class WordTemplate:
    """A ``.docx`` file whose document parts contain template markers.

    The template is read once. The parts that may hold markers are parsed and
    normalized up front and shared by every later render, each of which works
    on a fresh copy of the package, so one template can be rendered any number
    of times with different data.

    The body, headers, footers, footnotes and endnotes go through the full
    pipeline (conditional sections, table rows, placeholders). Document
    properties such as the title only support placeholders.
    """

    _TEMPLATED_PATTERNS: tuple[str, ...] = (
        "word/document.xml",
        "word/header*.xml",
        "word/footer*.xml",
        "word/footnotes.xml",
        "word/endnotes.xml",
    )

    _PROPERTY_PARTS: tuple[str, ...] = (
        "docProps/core.xml",
        "docProps/app.xml",
    )

    def __init__(self, template_file: PathOrStream):
        if isinstance(template_file, (str, os.PathLike)):
            with open(template_file, "rb") as stream:
                self._source = stream.read()
        else:
            self._source = template_file.read()

        document = self._open()
        self._trees: dict[str, Element] = {}
        for part in self._iter_package_parts(document):
            partname = self._normalise_partname(part)
            if not self._is_templated(partname):
                continue
            self._trees[partname] = normalize(parse(part.blob, part=partname))

        if _DOCUMENT_PARTNAME not in self._trees:
            raise MissingPartError(f"Template has no {_DOCUMENT_PARTNAME} part")

    @property
    def partnames(self) -> list[str]:
        return list(self._trees)

    def _open(self):
        try:
            return docx.Document(io.BytesIO(self._source))
        except (PackageNotFoundError, zipfile.BadZipFile) as exc:
            raise TemplateValidationError(f"Not a valid .docx package: {exc}") from exc
        except etree.XMLSyntaxError as exc:
            raise MalformedXMLError(f"Malformed XML: {exc}") from exc
        except (KeyError, ValueError) as exc:
            raise MissingPartError(f"Template has no Word document part: {exc}") from exc

    def _iter_package_parts(self, document) -> Iterator:
        return document.part.package.iter_parts()

    def _normalise_partname(self, part) -> str:
        return str(part.partname).lstrip("/")

    def _is_templated(self, partname: str) -> bool:
        return partname in self._PROPERTY_PARTS or any(
            fnmatch.fnmatch(partname, pattern) for pattern in self._TEMPLATED_PATTERNS
        )

    def render_part(self, partname: str, data: Any) -> Element:
        """Render the cached tree of ``partname`` against ``data``."""

        tree = self._trees[partname]
        try:
            if partname in self._PROPERTY_PARTS:
                return render_properties_tree(tree, data, part=partname)
            return render_tree(tree, data, part=partname)
        except RenderError as exc:
            logger.exception(
                "Failed to render DOCX template part %s: %s",
                partname,
                exc.message,
                extra={
                    "docx_template_part": partname,
                    "docx_template_error": type(exc).__name__,
                },
            )
            raise

    def render(self, data: Any) -> bytes:
        """Render every templated part and return the resulting ``.docx`` bytes.

        Nothing is produced unless every part renders successfully.
        """

        rendered = {partname: self.render_part(partname, data) for partname in self._trees}

        document = self._open()
        for part in self._iter_package_parts(document):
            partname = self._normalise_partname(part)
            if partname not in rendered:
                continue
            output = serialize(rendered[partname])
            if hasattr(part, "_element"):
                part._element = parse_xml(output)
            else:
                part._blob = output

        stream = io.BytesIO()
        document.save(stream)
        logger.debug("Rendered %d template parts", len(rendered))
        return stream.getvalue()

    def save(self, data: Any, output: PathOrStream) -> None:
        content = self.render(data)
        if isinstance(output, (str, os.PathLike)):
            with open(output, "wb") as stream:
                stream.write(content)
        else:
            output.write(content)

    def inspect(self) -> TemplateInfo:
        """Report the placeholders, conditionals and marker errors of every part."""

        return merge_info(
            inspect_tree(tree, location_name(partname)) for partname, tree in self._trees.items()
        )


def location_name(partname: str) -> str:
    """Return the short name used to report where a marker was found.

    >>> location_name("word/header2.xml")
    'header2'
    """

    if partname == _DOCUMENT_PARTNAME:
        return "document"
    if partname.startswith("docProps/"):
        return "properties"
    return partname.rsplit("/", 1)[-1].rsplit(".", 1)[0]


def _validate_template_path(template_path) -> Path:
    path = Path(template_path)
    if not path.exists():
        raise TemplateValidationError(f"Template file not found: {path}")
    if not path.is_file():
        raise TemplateValidationError(f"Template path is not a file: {path}")
    return path


def render(template_path, data: Any, output_path) -> None:
    """Render the template at ``template_path`` and write it to ``output_path``.

    :raises TemplateValidationError: if either path is unusable
    :raises RenderError: if the template cannot be rendered with ``data``
    """

    template = _validate_template_path(template_path)
    output = Path(output_path)
    if not output.parent.is_dir():
        raise TemplateValidationError(f"Output directory does not exist: {output.parent}")
    if output.resolve() == template.resolve():
        raise TemplateValidationError("Output path must differ from the template path")

    WordTemplate(template).save(data, output)


def inspect(template_path) -> TemplateInfo:
    return WordTemplate(_validate_template_path(template_path)).inspect()

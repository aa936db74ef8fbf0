"""Tests for rendering whole ``.docx`` packages."""

from __future__ import annotations

import io

import docx
import pytest

from wordmerge import docx_template
from wordmerge.docx_template import WordTemplate, location_name
from wordmerge.errors import PlaceholderError, RenderError, TemplateValidationError

DATA = {
    "number": 42,
    "customer": {"name": "Jane"},
    "vip": True,
    "items": [{"name": "Pen", "price": 1.5}, {"name": "Ink", "price": 3}],
}


def _build_template() -> io.BytesIO:
    document = docx.Document()
    document.add_paragraph("Dear @customer.name@,")
    document.add_paragraph("@if:vip@")
    document.add_paragraph("Thank you for being a VIP.")
    document.add_paragraph("@endif@")

    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Item"
    table.cell(0, 1).text = "Price"
    table.cell(1, 0).text = "@items.name@"
    table.cell(1, 1).text = "@items.price@"

    document.sections[0].header.paragraphs[0].text = "Invoice @number@"
    document.core_properties.title = "Invoice @number@"

    stream = io.BytesIO()
    document.save(stream)
    stream.seek(0)
    return stream


def _open(content: bytes):
    return docx.Document(io.BytesIO(content))


def _paragraphs(document) -> list[str]:
    return [paragraph.text for paragraph in document.paragraphs if paragraph.text]


def test_templated_parts_are_discovered():
    template = WordTemplate(_build_template())

    assert "word/document.xml" in template.partnames
    assert "docProps/core.xml" in template.partnames
    assert any(name.startswith("word/header") for name in template.partnames)
    assert "word/styles.xml" not in template.partnames


def test_render_fills_body_table_header_and_properties():
    rendered = _open(WordTemplate(_build_template()).render(DATA))

    assert _paragraphs(rendered) == ["Dear Jane,", "Thank you for being a VIP."]
    assert [[cell.text for cell in row.cells] for row in rendered.tables[0].rows] == [
        ["Item", "Price"],
        ["Pen", "1.5"],
        ["Ink", "3"],
    ]
    assert rendered.sections[0].header.paragraphs[0].text == "Invoice 42"
    assert rendered.core_properties.title == "Invoice 42"


def test_template_can_be_rendered_repeatedly():
    template = WordTemplate(_build_template())

    first = _open(template.render({**DATA, "vip": False, "items": []}))
    second = _open(template.render(DATA))

    assert _paragraphs(first) == ["Dear Jane,"]
    assert len(first.tables[0].rows) == 1
    assert _paragraphs(second) == ["Dear Jane,", "Thank you for being a VIP."]
    assert len(second.tables[0].rows) == 3


def test_missing_data_names_the_failing_part():
    template = WordTemplate(_build_template())
    data = {key: value for key, value in DATA.items() if key != "customer"}

    with pytest.raises(PlaceholderError) as excinfo:
        template.render(data)

    assert excinfo.value.part == "word/document.xml"
    assert excinfo.value.failures[0].token == "@customer.name@"


def test_failed_render_is_logged(caplog):
    template = WordTemplate(_build_template())

    with caplog.at_level("ERROR", logger=docx_template.logger.name):
        with pytest.raises(RenderError):
            template.render({})

    assert any("Failed to render DOCX template part" in record.getMessage() for record in caplog.records)


def test_save_to_stream():
    output = io.BytesIO()

    WordTemplate(_build_template()).save(DATA, output)

    assert _paragraphs(_open(output.getvalue()))[0] == "Dear Jane,"


def test_inspect_reports_every_part():
    info = WordTemplate(_build_template()).inspect()

    placeholders = {placeholder.original: placeholder for placeholder in info.placeholders}
    assert set(placeholders) == {"@customer.name@", "@items.name@", "@items.price@", "@number@"}
    assert "properties" in placeholders["@number@"].locations
    assert any(location.startswith("header") for location in placeholders["@number@"].locations)
    assert placeholders["@customer.name@"].locations == ["document"]
    assert info.required_keys == ["customer", "items", "number", "vip"]
    assert info.valid


def test_not_a_docx():
    with pytest.raises(TemplateValidationError):
        WordTemplate(io.BytesIO(b"definitely not a zip file"))


@pytest.mark.parametrize(
    "partname, expected",
    [
        ("word/document.xml", "document"),
        ("word/header2.xml", "header2"),
        ("word/footer1.xml", "footer1"),
        ("word/footnotes.xml", "footnotes"),
        ("docProps/core.xml", "properties"),
    ],
)
def test_location_name(partname, expected):
    assert location_name(partname) == expected


def test_render_file(tmp_path):
    template_path = tmp_path / "template.docx"
    template_path.write_bytes(_build_template().getvalue())
    output_path = tmp_path / "out.docx"

    docx_template.render(template_path, DATA, output_path)

    assert _paragraphs(docx.Document(str(output_path)))[0] == "Dear Jane,"


def test_inspect_file(tmp_path):
    template_path = tmp_path / "template.docx"
    template_path.write_bytes(_build_template().getvalue())

    assert docx_template.inspect(template_path).valid


def test_render_file_validates_paths(tmp_path):
    template_path = tmp_path / "template.docx"
    template_path.write_bytes(_build_template().getvalue())

    with pytest.raises(TemplateValidationError, match="not found"):
        docx_template.render(tmp_path / "missing.docx", DATA, tmp_path / "out.docx")
    with pytest.raises(TemplateValidationError, match="not a file"):
        docx_template.render(tmp_path, DATA, tmp_path / "out.docx")
    with pytest.raises(TemplateValidationError, match="Output directory"):
        docx_template.render(template_path, DATA, tmp_path / "nowhere" / "out.docx")
    with pytest.raises(TemplateValidationError, match="must differ"):
        docx_template.render(template_path, DATA, template_path)

"""Tests for resolving @if@/@else@/@endif@ sections."""

from __future__ import annotations

import pytest

from wordmerge.conditionals import flatten, resolve_conditionals, resolve_pass
from wordmerge.errors import (
    BoundaryError,
    ConditionEvaluationError,
    MarkerPairingError,
    PathNotFound,
    UnsupportedType,
)
from wordmerge.tree import W_BODY, W_P, W_TBL, parse, text_content

W_NAMESPACE = 'xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main"'


def _p(text: str) -> str:
    return f'<w:p><w:r><w:t xml:space="preserve">{text}</w:t></w:r></w:p>'


def _table(*cells: str) -> str:
    return "<w:tbl><w:tr>" + "".join(f"<w:tc>{cell}</w:tc>" for cell in cells) + "</w:tr></w:tbl>"


def _document(*blocks: str):
    return parse(f"<w:document {W_NAMESPACE}><w:body>{''.join(blocks)}</w:body></w:document>")


def _body(tree):
    return tree.find_child(W_BODY)


def _texts(tree) -> list[str]:
    return [text_content(paragraph) for paragraph in _body(tree).find_children(W_P)]


SIMPLE = (_p("@if:active@"), _p("Shown"), _p("@endif@"), _p("After"))
WITH_ELSE = (_p("@if:paid@"), _p("Thanks"), _p("@else@"), _p("Please pay"), _p("@endif@"))


def test_true_condition_keeps_content_and_drops_markers():
    result = resolve_conditionals(_document(*SIMPLE), {"active": True})

    assert _texts(result) == ["Shown", "After"]


def test_false_condition_removes_block():
    result = resolve_conditionals(_document(*SIMPLE), {"active": False})

    assert _texts(result) == ["After"]


def test_zero_is_falsy():
    result = resolve_conditionals(_document(*SIMPLE), {"active": 0})

    assert _texts(result) == ["After"]


@pytest.mark.parametrize(
    "paid, expected",
    [(True, ["Thanks"]), ("yes", ["Thanks"]), (False, ["Please pay"]), (None, ["Please pay"])],
)
def test_else_branch(paid, expected):
    result = resolve_conditionals(_document(*WITH_ELSE), {"paid": paid})

    assert _texts(result) == expected


@pytest.mark.parametrize(
    "vip, expected",
    [(True, "Dear valued customer"), (False, "Dear customer")],
)
def test_inline_block(vip, expected):
    tree = _document(_p("Dear @if:vip@valued @endif@customer"))

    result = resolve_conditionals(tree, {"vip": vip})

    assert _texts(result) == [expected]


def test_inline_block_with_else():
    tree = _document(_p("Status: @IF:open@open@ELSE@closed@ENDIF@."))

    assert _texts(resolve_conditionals(tree, {"open": False})) == ["Status: closed."]
    assert _texts(resolve_conditionals(tree, {"open": True})) == ["Status: open."]


def test_discarded_block_takes_its_boundary_paragraphs():
    tree = _document(_p("Intro @if:a@"), _p("body"), _p("@endif@ outro"), _p("After"))

    result = resolve_conditionals(tree, {"a": False})

    assert _texts(result) == ["After"]


def test_kept_block_only_loses_its_markers():
    tree = _document(_p("Intro @if:a@"), _p("body"), _p("@endif@ outro"), _p("After"))

    result = resolve_conditionals(tree, {"a": True})

    assert _texts(result) == ["Intro ", "body", " outro", "After"]


@pytest.mark.parametrize(
    "a, expected",
    [(True, ["yes", "After"]), (False, ["no", "After"])],
)
def test_else_paragraph_is_always_dropped(a, expected):
    tree = _document(_p("@if:a@"), _p("yes"), _p("tail @else@"), _p("no"), _p("@endif@"), _p("After"))

    result = resolve_conditionals(tree, {"a": a})

    assert _texts(result) == expected


def test_false_branch_drops_the_if_paragraph():
    tree = _document(_p("lead @if:a@"), _p("yes"), _p("@else@"), _p("no"), _p("@endif@ end"))

    result = resolve_conditionals(tree, {"a": False})

    assert _texts(result) == ["no", " end"]


def test_else_sharing_the_if_paragraph():
    tree = _document(_p("@if:a@yes @else@"), _p("no"), _p("@endif@ end"), _p("After"))

    assert _texts(resolve_conditionals(tree, {"a": True})) == ["yes ", "After"]
    assert _texts(resolve_conditionals(tree, {"a": False})) == ["no", " end", "After"]


def test_tables_inside_a_block_follow_the_condition():
    blocks = (_p("@if:show@"), _table(_p("cell")), _p("@endif@"))

    hidden = resolve_conditionals(_document(*blocks), {"show": False})
    shown = resolve_conditionals(_document(*blocks), {"show": True})

    assert _body(hidden).find_children(W_TBL) == []
    assert len(_body(shown).find_children(W_TBL)) == 1
    assert _texts(shown) == []


def test_block_inside_a_table_cell():
    tree = _document(_table(_p("@if:a@") + _p("x") + _p("@endif@") + _p("keep")))

    result = resolve_conditionals(tree, {"a": False})

    assert text_content(result) == "keep"


def test_multiple_blocks_in_one_pass():
    tree = _document(
        _p("@if:a@"), _p("A"), _p("@endif@"), _p("middle"), _p("@if:b@"), _p("B"), _p("@endif@")
    )

    result, resolved = resolve_pass(tree, {"a": False, "b": True})

    assert resolved == 2
    assert _texts(result) == ["middle", "B"]


def test_nested_blocks_are_resolved():
    tree = _document(
        _p("@if:a@"), _p("@if:b@"), _p("inner"), _p("@endif@"), _p("outer"), _p("@endif@")
    )

    assert _texts(resolve_conditionals(tree, {"a": True, "b": False})) == ["outer"]
    assert _texts(resolve_conditionals(tree, {"a": True, "b": True})) == ["inner", "outer"]
    assert _texts(resolve_conditionals(tree, {"a": False, "b": True})) == []


def test_input_tree_is_not_modified():
    tree = _document(*SIMPLE)

    resolve_conditionals(tree, {"active": False})

    assert tree == _document(*SIMPLE)


def test_tree_without_markers_is_returned_as_is():
    tree = _document(_p("plain"), _p("@name@"))

    assert resolve_conditionals(tree, {}) is tree


def test_unmatched_if_aborts():
    with pytest.raises(MarkerPairingError) as excinfo:
        resolve_conditionals(_document(_p("@if:a@"), _p("x")), {"a": True})

    assert excinfo.value.kind == "unmatched_if"


def test_missing_condition_data():
    with pytest.raises(ConditionEvaluationError) as excinfo:
        resolve_conditionals(_document(*SIMPLE), {"other": 1})

    assert excinfo.value.reason == PathNotFound(("active",))
    assert excinfo.value.message.startswith("Condition @if:active@ could not be evaluated")


def test_list_condition_is_rejected():
    with pytest.raises(ConditionEvaluationError) as excinfo:
        resolve_conditionals(_document(*SIMPLE), {"active": [1]})

    assert excinfo.value.reason == UnsupportedType("list")


def test_markers_under_different_parents():
    tree = _document(_p("@if:a@"), _table(_p("@endif@")))

    with pytest.raises(BoundaryError) as excinfo:
        resolve_conditionals(tree, {"a": True})

    assert excinfo.value.kind == "boundaries_not_found"
    assert excinfo.value.condition == "a"


def test_marker_outside_a_paragraph():
    tree = parse(
        f"<w:document {W_NAMESPACE}><w:body>"
        f"<w:customXml>@if:a@</w:customXml>{_p('@endif@')}"
        "</w:body></w:document>"
    )

    with pytest.raises(BoundaryError) as excinfo:
        resolve_conditionals(tree, {"a": True})

    assert excinfo.value.kind == "if_marker_not_found"


def test_flatten_separates_paragraphs():
    text, segments = flatten(_document(_p("one"), _table(_p("two")), _p("three")))

    assert text == "one\ntwo\nthree"
    assert [segment.path for segment in segments] == [(0, 0), (0, 1, 0, 0, 0), (0, 2)]

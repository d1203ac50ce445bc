import pytest

from ompextractor.nodes import ClauseKind, DirectiveKind, MapType, NodeKind
from ompextractor.pragma import (
    normalize_pragma,
    parse_clause,
    parse_expr,
    parse_pragma,
    split_top_level,
    tokenize,
)
from ompextractor.printer import expr_text


def test_normalize_joins_continuations():
    text = "#pragma omp parallel for \\\n    private(i)"
    assert normalize_pragma(text) == "parallel for private(i)"


def test_tokenize_groups_arguments():
    assert tokenize("for private(a, b) nowait") == [("for", None), ("private", "a, b"), ("nowait", None)]


def test_split_top_level_respects_brackets():
    assert split_top_level("to: a[0:n]", ":") == ["to", "a[0:n]"]
    assert split_top_level("f(a, b), c", ",") == ["f(a, b)", "c"]


@pytest.mark.parametrize(
    "text,kind",
    [
        ("#pragma omp parallel", DirectiveKind.PARALLEL),
        ("#pragma omp parallel for", DirectiveKind.PARALLEL_FOR),
        ("#pragma omp for ordered", DirectiveKind.FOR),
        ("#pragma omp target teams distribute parallel for simd", DirectiveKind.TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR_SIMD),
        ("#pragma omp target data map(to: a)", DirectiveKind.TARGET_DATA),
        ("#pragma omp target enter data map(to: a)", DirectiveKind.TARGET_ENTER_DATA),
        ("#pragma omp atomic capture", DirectiveKind.ATOMIC),
        ("#pragma omp barrier", DirectiveKind.OTHER),
    ],
)
def test_directive_names(text, kind):
    assert parse_pragma(text)[0] == kind


def test_clauses_follow_directive_name():
    kind, clauses = parse_pragma("#pragma omp parallel for private(i, j) if(n > 100) collapse(2)")
    assert kind == DirectiveKind.PARALLEL_FOR
    assert [c.kind for c in clauses] == [ClauseKind.PRIVATE, ClauseKind.IF, ClauseKind.COLLAPSE]
    assert [expr_text(e) for e in clauses[0].operands] == ["i", "j"]
    assert expr_text(clauses[2].count) == "2"
    assert not any(c.implicit for c in clauses)


def test_reduction_operator_and_modifier():
    c = parse_clause("reduction", "+:sum")
    assert c.reduction_op == "+"
    assert [expr_text(e) for e in c.operands] == ["sum"]

    c = parse_clause("reduction", "inscan, max: hi, lo")
    assert c.reduction_op == "max"
    assert [expr_text(e) for e in c.operands] == ["hi", "lo"]


def test_map_types():
    c = parse_clause("map", "always, from: b[0:n]")
    assert c.map_type == MapType.FROM
    assert [expr_text(e) for e in c.operands] == ["b[0:n]"]

    c = parse_clause("map", "x, y")
    assert c.map_type is None
    assert [expr_text(e) for e in c.operands] == ["x", "y"]


def test_linear_strips_step_and_modifier():
    assert [expr_text(e) for e in parse_clause("linear", "j:2").operands] == ["j"]
    assert [expr_text(e) for e in parse_clause("linear", "val(k)").operands] == ["k"]


def test_lastprivate_conditional():
    c = parse_clause("lastprivate", "conditional: x")
    assert [expr_text(e) for e in c.operands] == ["x"]


def test_parse_expr_shapes():
    assert parse_expr("a").kind == NodeKind.DECL_REF
    assert parse_expr("a[i]").kind == NodeKind.ARRAY_SUBSCRIPT
    assert parse_expr("a[1:n]").kind == NodeKind.ARRAY_SECTION
    assert parse_expr("0x10").kind == NodeKind.INTEGER_LITERAL
    assert expr_text(parse_expr("0x10")) == "16"
    assert expr_text(parse_expr("m[i][0:4]")) == "m[i][0:4]"
    assert expr_text(parse_expr("a + b")) == ""

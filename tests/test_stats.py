from ompextractor.stats import COUNTER_FIELDS, Statistics
from ompextractor.nodes import flatten

from treebuild import binop, lit, ref, unop


def test_counts_by_operator():
    tree = binop(
        "=",
        ref("x"),
        binop("&&", binop("<", ref("a"), lit("1")), binop("!=", ref("b"), lit("2.5"))),
    )
    st = Statistics()
    st.collect(flatten(tree))
    f = st.as_fields()
    assert f["Assigncount"] == "1"
    assert f["Logcount"] == "1"
    assert f["Cmpcount"] == "2"
    assert f["Constcount"] == "2"
    assert f["TotalDeclRefcount"] == "3"
    assert f["DediDeclRefcount"] == "3"


def test_unary_operators_are_not_counted():
    st = Statistics()
    st.collect(flatten(unop("-", ref("x"))))
    assert st.add == st.sub == 0
    assert st.total_refs == 1


def test_counts_are_cumulative():
    st = Statistics()
    st.collect(flatten(binop("+=", ref("s"), ref("v"))))
    st.collect(flatten(binop("+=", ref("s"), ref("w"))))
    assert st.comb == 2
    assert st.total_refs == 4
    assert st.distinct_refs == 3


def test_field_order():
    assert list(Statistics().as_fields()) == [name for name, _ in COUNTER_FIELDS]
    assert all(v == "0" for v in Statistics().as_fields().values())

# -*- coding: utf-8 -*-
import pytest

from pyrecipe.calibration.rules import RulePredicate, literal, parse_rules
from pyrecipe.errors import RuleEvalError

pytestmark = pytest.mark.unit


def test_empty_rule_passes():
    rule = RulePredicate("ORACTIME", "")
    assert rule.empty
    assert rule.evaluate("anything", {})
    assert RulePredicate("ORACTIME", None).evaluate(1, {})


@pytest.mark.parametrize(
    "rule, value, expected",
    [
        ("== 10", "10", True),
        ("== 10", 10.5, False),
        ("> 5", "10.0", True),
        ("<= 5", 10, False),
        ("!= 3", 4, True),
        ("value > 1 and value < 3", 2, True),
        ("value > 1 and value < 3", 3, False),
    ],
)
def test_comparison(rule, value, expected):
    assert RulePredicate("FIELD", rule).evaluate(value, {}) == expected


def test_header_placeholder():
    header = {"ORAC_EXPOSURE_TIME": 10.0, "ORAC_FILTER": "J"}
    rule = RulePredicate("ORAC_EXPOSURE_TIME", "== {ORAC_EXPOSURE_TIME}")
    assert rule.placeholders == ["ORAC_EXPOSURE_TIME"]
    assert rule.expression(header) == "value == 10.0"
    assert rule.evaluate("10", header)
    assert not rule.evaluate("5", header)

    rule = RulePredicate("ORAC_FILTER", "== {ORAC_FILTER}")
    assert rule.expression(header) == "value == 'J'"
    assert rule.evaluate("J", header)
    assert not rule.evaluate("H", header)


def test_missing_header_value():
    rule = RulePredicate("ORAC_FILTER", "== {ORAC_FILTER}")
    with pytest.raises(RuleEvalError) as info:
        rule.evaluate("J", {})
    assert info.value.field == "ORAC_FILTER"


@pytest.mark.parametrize("rule", ["== (3", "3 > 2"])
def test_malformed_rule(rule):
    with pytest.raises(RuleEvalError) as info:
        RulePredicate("FIELD", rule).evaluate(1, {})
    assert info.value.rule == rule
    assert "FIELD" in str(info.value)


def test_literal():
    assert literal(3) == "3.0"
    assert literal("2.5") == "2.5"
    assert literal("J") == "'J'"
    assert literal("O'Neil") == '"O\'Neil"'


def test_parse_rules():
    lines = [
        "# rules for darks",
        "",
        "ORAC_READOUT_MODE == {ORAC_READOUT_MODE}",
        "ORACTIME",
        "ORAC_EXPOSURE_TIME   ==   {ORAC_EXPOSURE_TIME}",
    ]
    rules = parse_rules(lines)
    assert list(rules) == ["ORACTIME", "ORAC_EXPOSURE_TIME", "ORAC_READOUT_MODE"]
    assert rules["ORACTIME"].empty
    assert rules["ORAC_EXPOSURE_TIME"].rule == "==   {ORAC_EXPOSURE_TIME}"


def test_value_with_both_quotes():
    with pytest.raises(ValueError):
        literal("""it's "odd\"""")

    rule = RulePredicate("ORAC_OBJECT", "== {ORAC_OBJECT}")
    with pytest.raises(RuleEvalError) as info:
        rule.evaluate("x", {"ORAC_OBJECT": """it's "odd\""""})
    assert "both quote characters" in str(info.value)

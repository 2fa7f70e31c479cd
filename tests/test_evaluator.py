"""ConditionEvaluator unit tests — operators, tree nodes and failure handling.

Operator reference (from evaluator._compare):
    eq, ne              — equality / inequality
    lt, le, gt, ge      — numeric comparisons (auto-coerces strings to float)
    between             — inclusive range check, value = [lo, hi]
    in, not_in          — enumerated membership
    contains            — substring (str) or element (list) membership
    not_contains        — inverse of contains
    contains_any        — any of value items in answer (list or str)
    contains_all        — all of value items in answer (list or str)
    matches             — regex match (re.search)
    exists, not_exists  — answered / unanswered
    truthy, falsy       — Python truthiness of the answer
"""

import pytest
from pydantic import ValidationError

from eligibility_flow.evaluator import parse_condition
from eligibility_flow.models.condition import (
    AllOf,
    AnyOf,
    Constant,
    NotCondition,
    Predicate,
)


# =====================================================================
# Predicate operator tests — one test per operator
# =====================================================================


class TestPredicateOperators:
    """Unit tests for each predicate comparison operator."""

    def test_eq(self, evaluator):
        """eq returns True when answer matches value exactly."""
        pred = Predicate(field="state", op="eq", value="CA")
        assert evaluator._eval_predicate(pred, {"state": "CA"}) is True
        assert evaluator._eval_predicate(pred, {"state": "NY"}) is False

    def test_eq_is_default_op(self):
        assert Predicate(field="x", value=1).op == "eq"

    def test_ne(self, evaluator):
        pred = Predicate(field="state", op="ne", value="CA")
        assert evaluator._eval_predicate(pred, {"state": "NY"}) is True
        assert evaluator._eval_predicate(pred, {"state": "CA"}) is False

    def test_lt_le(self, evaluator):
        lt = Predicate(field="age", op="lt", value=18)
        le = Predicate(field="age", op="le", value=18)
        assert evaluator._eval_predicate(lt, {"age": 17}) is True
        assert evaluator._eval_predicate(lt, {"age": 18}) is False
        assert evaluator._eval_predicate(le, {"age": 18}) is True
        assert evaluator._eval_predicate(le, {"age": 19}) is False

    def test_gt_ge(self, evaluator):
        gt = Predicate(field="income", op="gt", value=5000)
        ge = Predicate(field="income", op="ge", value=5000)
        assert evaluator._eval_predicate(gt, {"income": 6000}) is True
        assert evaluator._eval_predicate(gt, {"income": 5000}) is False
        assert evaluator._eval_predicate(ge, {"income": 5000}) is True
        assert evaluator._eval_predicate(ge, {"income": 4999}) is False

    def test_numeric_coerces_strings(self, evaluator):
        """Form inputs arrive as strings; numeric ops coerce them."""
        pred = Predicate(field="income", op="gt", value=5000)
        assert evaluator._eval_predicate(pred, {"income": "6000"}) is True

    def test_numeric_non_number_is_false(self, evaluator):
        pred = Predicate(field="income", op="gt", value=5000)
        assert evaluator._eval_predicate(pred, {"income": "lots"}) is False

    def test_between(self, evaluator):
        pred = Predicate(field="size", op="between", value=[2, 4])
        assert evaluator._eval_predicate(pred, {"size": 2}) is True, "lo boundary"
        assert evaluator._eval_predicate(pred, {"size": 4}) is True, "hi boundary"
        assert evaluator._eval_predicate(pred, {"size": 5}) is False

    def test_in_not_in(self, evaluator):
        in_ = Predicate(field="state", op="in", value=["CA", "NV"])
        not_in = Predicate(field="state", op="not_in", value=["CA", "NV"])
        assert evaluator._eval_predicate(in_, {"state": "NV"}) is True
        assert evaluator._eval_predicate(in_, {"state": "TX"}) is False
        assert evaluator._eval_predicate(not_in, {"state": "TX"}) is True
        assert evaluator._eval_predicate(not_in, {"state": "CA"}) is False

    def test_contains(self, evaluator):
        pred = Predicate(field="programs", op="contains", value="snap")
        assert evaluator._eval_predicate(pred, {"programs": ["snap", "wic"]}) is True
        assert evaluator._eval_predicate(pred, {"programs": ["wic"]}) is False
        assert evaluator._eval_predicate(pred, {"programs": "snap-benefits"}) is True

    def test_not_contains(self, evaluator):
        pred = Predicate(field="programs", op="not_contains", value="snap")
        assert evaluator._eval_predicate(pred, {"programs": ["wic"]}) is True
        assert evaluator._eval_predicate(pred, {"programs": ["snap"]}) is False

    def test_contains_any_all(self, evaluator):
        any_ = Predicate(field="programs", op="contains_any", value=["snap", "tanf"])
        all_ = Predicate(field="programs", op="contains_all", value=["snap", "wic"])
        ctx = {"programs": ["snap", "wic"]}
        assert evaluator._eval_predicate(any_, ctx) is True
        assert evaluator._eval_predicate(all_, ctx) is True
        assert evaluator._eval_predicate(all_, {"programs": ["snap"]}) is False
        assert evaluator._eval_predicate(any_, {"programs": ["medicaid"]}) is False

    def test_matches(self, evaluator):
        pred = Predicate(field="zip", op="matches", value=r"^9\d{4}$")
        assert evaluator._eval_predicate(pred, {"zip": "94103"}) is True
        assert evaluator._eval_predicate(pred, {"zip": "10001"}) is False

    def test_exists_and_not_exists(self, evaluator):
        exists = Predicate(field="income", op="exists")
        missing = Predicate(field="income", op="not_exists")
        assert evaluator._eval_predicate(exists, {"income": 0}) is True
        assert evaluator._eval_predicate(exists, {}) is False
        assert evaluator._eval_predicate(missing, {}) is True
        assert evaluator._eval_predicate(missing, {"income": 0}) is False

    def test_truthy_falsy(self, evaluator):
        truthy = Predicate(field="hasChildren", op="truthy")
        falsy = Predicate(field="hasChildren", op="falsy")
        assert evaluator._eval_predicate(truthy, {"hasChildren": True}) is True
        assert evaluator._eval_predicate(truthy, {"hasChildren": False}) is False
        assert evaluator._eval_predicate(falsy, {"hasChildren": False}) is True
        assert evaluator._eval_predicate(falsy, {}) is True

    def test_dotted_path(self, evaluator):
        pred = Predicate(field="address", path="state", value="CA")
        assert evaluator._eval_predicate(pred, {"address": {"state": "CA"}}) is True
        assert evaluator._eval_predicate(pred, {"address": {"city": "LA"}}) is False


# =====================================================================
# Unanswered fields
# =====================================================================


class TestMissingAnswers:
    """An unanswered field only satisfies the negative operators."""

    @pytest.mark.parametrize("op", ["eq", "lt", "gt", "in", "contains", "exists", "truthy"])
    def test_positive_ops_false_when_missing(self, evaluator, op):
        pred = Predicate(field="income", op=op, value=[1] if op == "in" else 1)
        assert evaluator._eval_predicate(pred, {}) is False
        assert evaluator._eval_predicate(pred, {"income": None}) is False

    @pytest.mark.parametrize("op", ["ne", "not_in", "not_contains", "not_exists", "falsy"])
    def test_negative_ops_true_when_missing(self, evaluator, op):
        pred = Predicate(field="income", op=op, value=[1] if op == "not_in" else 1)
        assert evaluator._eval_predicate(pred, {}) is True


# =====================================================================
# Tree nodes and parsing
# =====================================================================


class TestConditionTree:
    def test_all_of(self, evaluator):
        cond = {"all": [
            {"field": "state", "value": "CA"},
            {"field": "income", "op": "lt", "value": 3000},
        ]}
        assert evaluator.evaluate(cond, {"state": "CA", "income": 2000}).result is True
        assert evaluator.evaluate(cond, {"state": "CA", "income": 4000}).result is False

    def test_any_of(self, evaluator):
        cond = {"any": [{"field": "a", "value": 1}, {"field": "b", "value": 1}]}
        assert evaluator.evaluate(cond, {"b": 1}).result is True
        assert evaluator.evaluate(cond, {"a": 2, "b": 2}).result is False

    def test_empty_all_true_empty_any_false(self, evaluator):
        assert evaluator.evaluate({"all": []}, {}).result is True
        assert evaluator.evaluate({"any": []}, {}).result is False

    def test_not(self, evaluator):
        cond = {"not": {"field": "hasChildren", "value": True}}
        assert evaluator.evaluate(cond, {"hasChildren": False}).result is True
        assert evaluator.evaluate(cond, {"hasChildren": True}).result is False

    def test_const(self, evaluator):
        assert evaluator.evaluate({"const": True}, {}).result is True
        assert evaluator.evaluate({"const": False}, {}).result is False

    def test_parse_condition_variants(self):
        assert isinstance(parse_condition({"field": "x"}), Predicate)
        assert isinstance(parse_condition({"all": []}), AllOf)
        assert isinstance(parse_condition({"any": []}), AnyOf)
        assert isinstance(parse_condition({"not": {"const": True}}), NotCondition)
        assert isinstance(parse_condition({"const": False}), Constant)

    def test_parse_condition_passes_models_through(self):
        pred = Predicate(field="x")
        assert parse_condition(pred) is pred

    def test_parse_condition_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            parse_condition({"field": "x", "operator": "eq"})


# =====================================================================
# Failure handling — evaluate() never raises
# =====================================================================


class TestEvaluationErrors:
    def test_malformed_rule_reports_error(self, evaluator):
        result = evaluator.evaluate({"bogus": 1}, {})
        assert result.result is False
        assert result.error

    def test_bad_between_bounds_reports_error(self, evaluator):
        result = evaluator.evaluate({"field": "x", "op": "between", "value": [1]}, {"x": 1})
        assert result.result is False
        assert result.error is not None

    def test_invalid_regex_reports_error(self, evaluator):
        result = evaluator.evaluate({"field": "x", "op": "matches", "value": "("}, {"x": "a"})
        assert result.result is False
        assert result.error is not None

    def test_success_has_no_error(self, evaluator):
        result = evaluator.evaluate({"field": "x", "value": 1}, {"x": 1})
        assert result.result is True
        assert result.error is None

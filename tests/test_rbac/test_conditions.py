"""Tests for condition evaluation on role grants."""

import pytest

from fixer_rbac.rbac.conditions import MISSING, Condition, conditions_hold, evaluate_condition, resolve_field


class TestResolveField:
    def test_top_level(self) -> None:
        assert resolve_field({"resource_owner_id": "u1"}, "resource_owner_id") == "u1"

    def test_dot_path(self) -> None:
        ctx = {"resource_data": {"booking": {"status": "pending"}}}
        assert resolve_field(ctx, "resource_data.booking.status") == "pending"

    def test_missing_intermediate_key(self) -> None:
        assert resolve_field({"resource_data": {}}, "resource_data.booking.status") is MISSING

    def test_walk_through_non_mapping(self) -> None:
        assert resolve_field({"resource_data": "text"}, "resource_data.status") is MISSING

    def test_no_context(self) -> None:
        assert resolve_field(None, "user_id") is MISSING

    def test_explicit_none_is_not_missing(self) -> None:
        assert resolve_field({"resource_data": None}, "resource_data") is None


class TestEvaluateCondition:
    @pytest.mark.parametrize(
        ("value", "operator", "expected", "result"),
        [
            ("u1", "equals", "u1", True),
            ("u1", "equals", "u2", False),
            ("u1", "not_equals", "u2", True),
            ("u1", "not_equals", "u1", False),
            ("open", "in", ["open", "pending"], True),
            ("closed", "in", ["open", "pending"], False),
            ("closed", "not_in", ["open", "pending"], True),
            ("open", "not_in", ["open", "pending"], False),
            ("plumbing repair", "contains", "plumb", True),
            ("plumbing repair", "contains", "electric", False),
            ("booking-123", "starts_with", "booking-", True),
            ("booking-123", "starts_with", "quote-", False),
            ("photo.png", "ends_with", ".png", True),
            ("photo.png", "ends_with", ".jpg", False),
        ],
    )
    def test_operators(self, value: object, operator: str, expected: object, result: bool) -> None:
        assert evaluate_condition(value, operator, expected) is result

    def test_unknown_operator_is_false(self) -> None:
        assert evaluate_condition("u1", "matches", "u1") is False

    def test_equality_is_strict_across_types(self) -> None:
        assert evaluate_condition(1, "equals", "1") is False
        assert evaluate_condition(True, "equals", 1) is False
        assert evaluate_condition(0, "equals", False) is False
        assert evaluate_condition(1, "equals", 1.0) is True

    def test_in_requires_list(self) -> None:
        assert evaluate_condition("a", "in", "abc") is False
        assert evaluate_condition("a", "not_in", "xyz") is False

    def test_in_uses_strict_equality(self) -> None:
        assert evaluate_condition(1, "in", ["1", True]) is False

    def test_string_operators_need_strings(self) -> None:
        assert evaluate_condition(123, "contains", "1") is False
        assert evaluate_condition(["a", "b"], "contains", "a") is False
        assert evaluate_condition("abc", "starts_with", 1) is False


class TestMissingField:
    """A field absent from the context satisfies only the negative operators."""

    @pytest.mark.parametrize(
        ("operator", "expected"),
        [
            ("equals", "u1"),
            ("contains", "u"),
            ("in", ["u1", "u2"]),
            ("starts_with", "u"),
            ("ends_with", "1"),
        ],
    )
    def test_positive_operators_fail(self, operator: str, expected: object) -> None:
        assert Condition("resource_owner_id", operator, expected).is_satisfied_by({}) is False

    @pytest.mark.parametrize(("operator", "expected"), [("not_equals", "u1"), ("not_in", ["u1", "u2"])])
    def test_negative_operators_hold(self, operator: str, expected: object) -> None:
        assert Condition("resource_owner_id", operator, expected).is_satisfied_by({}) is True

    def test_missing_does_not_equal_none(self) -> None:
        assert Condition("resource_owner_id", "equals", None).is_satisfied_by({}) is False

    def test_no_context_at_all(self) -> None:
        assert Condition("resource_owner_id", "equals", "u1").is_satisfied_by(None) is False


class TestConditionsHold:
    def test_no_conditions_hold_vacuously(self) -> None:
        assert conditions_hold(None, None) is True
        assert conditions_hold([], {"user_id": 1}) is True

    def test_all_must_hold(self) -> None:
        conditions = [
            {"field": "resource_owner_id", "operator": "equals", "value": "u1"},
            {"field": "resource_data.status", "operator": "in", "value": ["pending", "confirmed"]},
        ]
        both = {"resource_owner_id": "u1", "resource_data": {"status": "pending"}}
        one = {"resource_owner_id": "u1", "resource_data": {"status": "completed"}}
        assert conditions_hold(conditions, both) is True
        assert conditions_hold(conditions, one) is False

    def test_malformed_entries_fail_closed(self) -> None:
        assert conditions_hold(["resource_owner_id == u1"], {"resource_owner_id": "u1"}) is False
        assert conditions_hold([{"field": "resource_owner_id"}], {"resource_owner_id": "u1"}) is False

    def test_accepts_condition_objects(self) -> None:
        conditions = [Condition("user_type", "equals", "provider")]
        assert conditions_hold(conditions, {"user_type": "provider"}) is True

    def test_round_trips_through_dict(self) -> None:
        condition = Condition("resource_data.amount", "not_in", [0])
        assert Condition.from_dict(condition.to_dict()) == condition

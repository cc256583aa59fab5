"""Built-in comparison operators available to every rule."""
from __future__ import annotations

from typing import Any, Callable

OperatorFn = Callable[[Any, Any], bool]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def equal(fact_value: Any, compare_value: Any) -> bool:
    return fact_value == compare_value


def not_equal(fact_value: Any, compare_value: Any) -> bool:
    return fact_value != compare_value


def less_than(fact_value: Any, compare_value: Any) -> bool:
    return _is_number(fact_value) and _is_number(compare_value) and fact_value < compare_value


def less_than_inclusive(fact_value: Any, compare_value: Any) -> bool:
    return _is_number(fact_value) and _is_number(compare_value) and fact_value <= compare_value


def greater_than(fact_value: Any, compare_value: Any) -> bool:
    return _is_number(fact_value) and _is_number(compare_value) and fact_value > compare_value


def greater_than_inclusive(fact_value: Any, compare_value: Any) -> bool:
    return _is_number(fact_value) and _is_number(compare_value) and fact_value >= compare_value


def in_(fact_value: Any, compare_value: Any) -> bool:
    return _is_list(compare_value) and fact_value in compare_value


def not_in(fact_value: Any, compare_value: Any) -> bool:
    return _is_list(compare_value) and fact_value not in compare_value


def contains(fact_value: Any, compare_value: Any) -> bool:
    if isinstance(fact_value, str) and isinstance(compare_value, str):
        return compare_value in fact_value
    if _is_list(fact_value):
        return compare_value in fact_value
    return False


def does_not_contain(fact_value: Any, compare_value: Any) -> bool:
    if isinstance(fact_value, str) and isinstance(compare_value, str):
        return compare_value not in fact_value
    if _is_list(fact_value):
        return compare_value not in fact_value
    return True


STANDARD_OPERATORS: dict[str, OperatorFn] = {
    "equal": equal,
    "notEqual": not_equal,
    "lessThan": less_than,
    "lessThanInclusive": less_than_inclusive,
    "greaterThan": greater_than,
    "greaterThanInclusive": greater_than_inclusive,
    "in": in_,
    "notIn": not_in,
    "contains": contains,
    "doesNotContain": does_not_contain,
}

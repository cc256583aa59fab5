"""Tests for rulesim core models."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from rulesim.models import (
    ConditionResult,
    EventResult,
    EventType,
    FinalResult,
    RuleEvent,
    SimulationOptions,
    SimulationResult,
)


def _result(final: FinalResult, *condition_results: ConditionResult, **kwargs) -> SimulationResult:
    return SimulationResult(
        file_name="src/App.tsx",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        duration=1.5,
        final_result=final,
        condition_results=condition_results,
        **kwargs,
    )


class TestEventType:
    def test_values(self) -> None:
        assert [t.value for t in EventType] == ["warning", "fatality", "info"]

    def test_from_string(self) -> None:
        assert EventType.from_string("fatality") == EventType.FATALITY

    def test_from_string_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown event type"):
            EventType.from_string("error")


class TestRuleEvent:
    def test_message_property(self) -> None:
        assert RuleEvent(EventType.INFO, {"message": "hi"}).message == "hi"

    def test_message_missing(self) -> None:
        assert RuleEvent(EventType.INFO).message == ""


class TestSimulationResult:
    def test_flags(self) -> None:
        assert _result(FinalResult.TRIGGERED).triggered is True
        assert _result(FinalResult.NOT_TRIGGERED).success is True
        assert _result(FinalResult.ERROR, error="boom").success is False

    def test_condition_errors(self) -> None:
        ok = ConditionResult(path=("conditions", "all", "0"), fact_name="a", operator="equal",
                             compare_value=1, result=True, fact_value=1)
        bad = ConditionResult(path=("conditions", "all", "1"), fact_name="b", operator="equal",
                              compare_value=1, result=False, error="Unknown fact: b")
        assert _result(FinalResult.NOT_TRIGGERED, ok, bad).condition_errors == [bad]

    def test_to_dict(self) -> None:
        event = EventResult(type=EventType.WARNING, message="Matched", details={"n": 1})
        data = _result(FinalResult.TRIGGERED, event=event, rule_name="r").to_dict()

        assert data["final_result"] == "triggered"
        assert data["timestamp"] == "2024-01-01T00:00:00+00:00"
        assert data["event"] == {"type": "warning", "message": "Matched", "details": {"n": 1}}
        assert data["condition_results"] == []
        assert data["rule_name"] == "r"

    def test_is_immutable(self) -> None:
        result = _result(FinalResult.NOT_TRIGGERED)
        with pytest.raises(AttributeError):
            result.final_result = FinalResult.TRIGGERED


class TestSimulationOptions:
    def test_defaults_have_no_timeout(self) -> None:
        assert SimulationOptions().condition_timeout is None

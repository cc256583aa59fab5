"""Core models for rulesim."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


class EventType(Enum):
    """Kinds of event a rule can emit when it fires."""
    WARNING = "warning"
    FATALITY = "fatality"
    INFO = "info"

    @classmethod
    def from_string(cls, value: str) -> EventType:
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown event type: {value}")


class FinalResult(Enum):
    """Outcome of one simulation run."""
    TRIGGERED = "triggered"
    NOT_TRIGGERED = "not-triggered"
    ERROR = "error"


class Combinator(Enum):
    """Boolean grouping of a condition node."""
    ALL = "all"
    ANY = "any"


@dataclass(frozen=True)
class Condition:
    """A leaf condition: compare a (possibly sub-extracted) fact against a value."""
    fact: str
    operator: str
    value: Any
    path: str | None = None
    params: dict | None = None

    def to_dict(self) -> dict:
        data = {"fact": self.fact, "operator": self.operator, "value": self.value}
        if self.path is not None:
            data["path"] = self.path
        if self.params is not None:
            data["params"] = dict(self.params)
        return data


@dataclass(frozen=True)
class ConditionGroup:
    """An ``all``/``any`` node whose children are conditions or nested groups."""
    combinator: Combinator
    children: tuple[Union[Condition, ConditionGroup], ...] = ()

    def to_dict(self) -> dict:
        return {self.combinator.value: [child.to_dict() for child in self.children]}


@dataclass(frozen=True)
class RuleEvent:
    """Event descriptor emitted when a rule fires."""
    type: EventType
    params: dict = field(default_factory=dict)

    @property
    def message(self) -> str:
        return str(self.params.get("message", ""))


@dataclass(frozen=True)
class RuleDefinition:
    """A complete rule: name, condition tree and event."""
    name: str
    conditions: ConditionGroup
    event: RuleEvent
    priority: int | None = None

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "conditions": self.conditions.to_dict(),
            "event": {"type": self.event.type.value, "params": dict(self.event.params)},
        }
        if self.priority is not None:
            data["priority"] = self.priority
        return data


@dataclass(frozen=True)
class ConditionResult:
    """Trace entry for one evaluated leaf condition."""
    path: tuple[str, ...]
    fact_name: str
    operator: str
    compare_value: Any
    result: bool
    fact_value: Any = None
    json_path: str | None = None
    error: str | None = None
    duration: float = 0.0
    params: dict | None = None

    @property
    def address(self) -> str:
        return ".".join(self.path)

    def to_dict(self) -> dict:
        return {
            "path": list(self.path),
            "fact_name": self.fact_name,
            "json_path": self.json_path,
            "operator": self.operator,
            "compare_value": self.compare_value,
            "fact_value": self.fact_value,
            "result": self.result,
            "error": self.error,
            "duration": self.duration,
            "params": self.params,
        }


@dataclass(frozen=True)
class EventResult:
    """The event of a triggered rule, flattened for display."""
    type: EventType
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "message": self.message, "details": self.details}


@dataclass(frozen=True)
class SimulationResult:
    """Result of one engine invocation. Owned by the caller."""
    file_name: str
    timestamp: datetime
    duration: float
    final_result: FinalResult
    condition_results: tuple[ConditionResult, ...] = ()
    event: EventResult | None = None
    error: str | None = None
    rule_name: str | None = None

    @property
    def triggered(self) -> bool:
        return self.final_result == FinalResult.TRIGGERED

    @property
    def success(self) -> bool:
        return self.final_result != FinalResult.ERROR

    @property
    def condition_errors(self) -> list[ConditionResult]:
        return [r for r in self.condition_results if r.error is not None]

    def to_dict(self) -> dict:
        return {
            "rule_name": self.rule_name,
            "file_name": self.file_name,
            "timestamp": self.timestamp.isoformat(),
            "duration": self.duration,
            "final_result": self.final_result.value,
            "condition_results": [r.to_dict() for r in self.condition_results],
            "event": self.event.to_dict() if self.event else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class SimulationOptions:
    """Opt-in toggles for a simulation run. Defaults add no timeout."""
    condition_timeout: float | None = None

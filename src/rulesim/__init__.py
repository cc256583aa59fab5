"""rulesim - Simulate declarative code-analysis rules with a full evaluation trace."""

__version__ = "0.1.0"

from rulesim.engine import SimulationEngine
from rulesim.lifecycle import EngineState
from rulesim.models import (
    Condition,
    ConditionGroup,
    ConditionResult,
    EventType,
    FinalResult,
    RuleDefinition,
    SimulationOptions,
    SimulationResult,
)
from rulesim.registry import Plugin
from rulesim.rules import is_global_rule, parse_rule

__all__ = [
    "Condition",
    "ConditionGroup",
    "ConditionResult",
    "EngineState",
    "EventType",
    "FinalResult",
    "Plugin",
    "RuleDefinition",
    "SimulationEngine",
    "SimulationOptions",
    "SimulationResult",
    "is_global_rule",
    "parse_rule",
]

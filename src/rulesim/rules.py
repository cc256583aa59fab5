"""Rule parsing, structural validation and rule-tree queries."""
from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Union

import yaml

from rulesim.corpus import GLOBAL_CHECK
from rulesim.errors import RuleValidationError
from rulesim.models import (
    Combinator,
    Condition,
    ConditionGroup,
    EventResult,
    EventType,
    RuleDefinition,
    RuleEvent,
)

logger = logging.getLogger("rulesim")

_CONDITION_KEYS = {"fact", "operator", "value", "path", "params"}
_TEMPLATE_RE = re.compile(r"\{\{\s*([A-Za-z_][\w.]*)\s*\}\}")

Node = Union[Condition, ConditionGroup]


def load_rule_file(path: str | Path) -> RuleDefinition:
    """Load a rule from a YAML or JSON file."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RuleValidationError(f"Rule file is not valid YAML/JSON: {exc}") from exc
    return parse_rule(raw)


def parse_rule(raw: Any) -> RuleDefinition:
    """Build a RuleDefinition from its JSON-shaped form, validating structure."""
    if not isinstance(raw, Mapping):
        raise RuleValidationError("Rule must be an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise RuleValidationError("Rule is missing a name", "name")

    if "conditions" not in raw:
        raise RuleValidationError("Rule is missing conditions", "conditions")
    conditions = _parse_group(raw["conditions"], "conditions")

    priority = raw.get("priority")
    if priority is not None and (not isinstance(priority, int) or isinstance(priority, bool)):
        raise RuleValidationError("Priority must be an integer", "priority")

    return RuleDefinition(
        name=name,
        conditions=conditions,
        event=_parse_event(raw.get("event")),
        priority=priority,
    )


def _parse_group(raw: Any, path: str) -> ConditionGroup:
    if not isinstance(raw, Mapping):
        raise RuleValidationError("Condition group must be an object", path)

    present = [c for c in Combinator if c.value in raw]
    if not present:
        raise RuleValidationError("Condition group needs an 'all' or 'any' list", path)
    if len(present) > 1:
        raise RuleValidationError("Condition group has both 'all' and 'any'", path)
    extra = set(raw) - {c.value for c in Combinator}
    if extra:
        raise RuleValidationError(f"Unexpected keys in condition group: {sorted(extra)}", path)

    combinator = present[0]
    items = raw[combinator.value]
    if not isinstance(items, list) or not items:
        raise RuleValidationError(f"'{combinator.value}' must be a non-empty list", path)

    children: list[Node] = []
    for index, item in enumerate(items):
        child_path = f"{path}.{combinator.value}.{index}"
        if isinstance(item, Mapping) and "fact" in item:
            children.append(_parse_condition(item, child_path))
        else:
            children.append(_parse_group(item, child_path))
    return ConditionGroup(combinator=combinator, children=tuple(children))


def _parse_condition(raw: Mapping, path: str) -> Condition:
    extra = set(raw) - _CONDITION_KEYS
    if extra:
        raise RuleValidationError(f"Unexpected keys in condition: {sorted(extra)}", path)
    fact = raw.get("fact")
    if not isinstance(fact, str) or not fact:
        raise RuleValidationError("Condition 'fact' must be a non-empty string", path)
    operator = raw.get("operator")
    if not isinstance(operator, str) or not operator:
        raise RuleValidationError("Condition 'operator' must be a non-empty string", path)
    if "value" not in raw:
        raise RuleValidationError("Condition is missing 'value'", path)
    json_path = raw.get("path")
    if json_path is not None and not isinstance(json_path, str):
        raise RuleValidationError("Condition 'path' must be a string", path)
    params = raw.get("params")
    if params is not None and not isinstance(params, Mapping):
        raise RuleValidationError("Condition 'params' must be an object", path)

    return Condition(
        fact=fact,
        operator=operator,
        value=raw["value"],
        path=json_path,
        params=dict(params) if params is not None else None,
    )


def _parse_event(raw: Any) -> RuleEvent:
    if not isinstance(raw, Mapping):
        raise RuleValidationError("Rule is missing an event", "event")
    try:
        event_type = EventType.from_string(raw.get("type"))
    except ValueError:
        allowed = ", ".join(t.value for t in EventType)
        raise RuleValidationError(f"Event type must be one of: {allowed}", "event.type") from None
    params = raw.get("params")
    if not isinstance(params, Mapping):
        raise RuleValidationError("Event params must be an object", "event.params")
    if not isinstance(params.get("message"), str):
        raise RuleValidationError("Event params need a 'message' string", "event.params.message")
    return RuleEvent(type=event_type, params=dict(params))


def validate_group(group: Any, path: str = "conditions") -> None:
    """Check a condition node built in code; raises RuleValidationError."""
    if not isinstance(group, ConditionGroup) or not isinstance(group.combinator, Combinator):
        raise RuleValidationError("Condition node is neither 'all' nor 'any'", path)
    if not group.children:
        raise RuleValidationError(f"'{group.combinator.value}' must be a non-empty list", path)


def ensure_rule(rule: Any) -> RuleDefinition:
    """Accept a RuleDefinition or its dict form and return a validated RuleDefinition."""
    if isinstance(rule, RuleDefinition):
        validate_group(rule.conditions)
        return rule
    if rule is None:
        raise RuleValidationError("Rule is missing")
    return parse_rule(rule)


def iter_conditions(node: Node) -> Iterator[Condition]:
    """Leaf conditions in pre-order, left to right."""
    if isinstance(node, Condition):
        yield node
        return
    for child in node.children:
        yield from iter_conditions(child)


def collect_facts_used(rule: RuleDefinition) -> set[str]:
    return {condition.fact for condition in iter_conditions(rule.conditions)}


def is_global_rule(rule: RuleDefinition) -> bool:
    """True when the rule tree contains the repository-wide marker condition."""
    for condition in iter_conditions(rule.conditions):
        if (
            condition.fact == "fileData"
            and condition.operator == "equal"
            and condition.value == GLOBAL_CHECK
            and (condition.path or "").lstrip("$.") == "fileName"
        ):
            return True
    return False


def _lookup(params: Mapping, dotted: str) -> Any:
    current: Any = params
    for key in dotted.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def format_event(event: RuleEvent) -> EventResult:
    """Flatten an event: expand {{key}} placeholders in the message from the other params."""
    details = {k: v for k, v in event.params.items() if k != "message"}

    def _substitute(match: re.Match) -> str:
        value = _lookup(details, match.group(1))
        return match.group(0) if value is None else str(value)

    message = _TEMPLATE_RE.sub(_substitute, event.message)
    return EventResult(type=event.type, message=message, details=details)

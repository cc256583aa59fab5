"""Tests for rule parsing, validation and rule-tree queries."""
from __future__ import annotations

import json

import pytest
import yaml

from rulesim.errors import RuleValidationError
from rulesim.models import Combinator, Condition, ConditionGroup, EventType, RuleDefinition, RuleEvent
from rulesim.rules import (
    collect_facts_used,
    ensure_rule,
    format_event,
    is_global_rule,
    iter_conditions,
    load_rule_file,
    parse_rule,
)


def _raw(**overrides) -> dict:
    raw = {
        "name": "no-console",
        "conditions": {
            "all": [
                {"fact": "fileData", "operator": "contains", "value": "console.log", "path": "$.content"},
                {"any": [
                    {"fact": "fileData", "operator": "equal", "value": ".ts", "path": "$.extension"},
                    {"fact": "repoFileAnalysis", "operator": "fileContains", "value": True,
                     "params": {"checkPattern": "console\\.log"}},
                ]},
            ]
        },
        "event": {"type": "warning", "params": {"message": "Remove console.log"}},
    }
    raw.update(overrides)
    return raw


class TestParseRule:
    def test_parses_nested_tree(self) -> None:
        rule = parse_rule(_raw())

        assert rule.name == "no-console"
        assert rule.conditions.combinator == Combinator.ALL
        assert isinstance(rule.conditions.children[0], Condition)
        nested = rule.conditions.children[1]
        assert isinstance(nested, ConditionGroup)
        assert nested.combinator == Combinator.ANY
        assert nested.children[1].params == {"checkPattern": "console\\.log"}
        assert rule.event.type == EventType.WARNING
        assert rule.event.message == "Remove console.log"

    def test_round_trips_through_to_dict(self) -> None:
        raw = _raw(priority=5)
        assert parse_rule(raw).to_dict() == raw

    @pytest.mark.parametrize(
        "overrides, fragment",
        [
            ({"name": ""}, "name"),
            ({"conditions": {"all": [], "any": []}}, "both"),
            ({"conditions": {"all": []}}, "non-empty"),
            ({"conditions": {"none": [{"fact": "a", "operator": "equal", "value": 1}]}}, "'all' or 'any'"),
            ({"conditions": {"all": [{"fact": "a", "operator": "equal"}]}}, "missing 'value'"),
            ({"conditions": {"all": [{"fact": "a", "operator": "equal", "value": 1, "extra": 2}]}}, "Unexpected"),
            ({"conditions": {"all": [{"fact": "a", "operator": "equal", "value": 1, "path": 3}]}}, "'path'"),
            ({"event": {"type": "panic", "params": {"message": "x"}}}, "Event type"),
            ({"event": {"type": "info", "params": {}}}, "message"),
            ({"priority": "high"}, "Priority"),
        ],
    )
    def test_rejects_malformed(self, overrides, fragment) -> None:
        with pytest.raises(RuleValidationError, match=fragment):
            parse_rule(_raw(**overrides))

    def test_missing_conditions(self) -> None:
        raw = _raw()
        del raw["conditions"]
        with pytest.raises(RuleValidationError, match="missing conditions"):
            parse_rule(raw)

    def test_error_carries_tree_path(self) -> None:
        raw = _raw(conditions={"all": [{"any": [{"fact": "x", "operator": "equal"}]}]})
        with pytest.raises(RuleValidationError) as exc_info:
            parse_rule(raw)
        assert exc_info.value.path == "conditions.all.0.any.0"

    def test_not_a_mapping(self) -> None:
        with pytest.raises(RuleValidationError):
            parse_rule(["all"])


class TestLoadRuleFile:
    def test_yaml(self, tmp_path) -> None:
        path = tmp_path / "rule.yml"
        path.write_text(yaml.dump(_raw()))
        assert load_rule_file(path).name == "no-console"

    def test_json(self, tmp_path) -> None:
        path = tmp_path / "rule.json"
        path.write_text(json.dumps(_raw()))
        assert load_rule_file(str(path)).name == "no-console"

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "rule.yml"
        path.write_text("name: [unclosed")
        with pytest.raises(RuleValidationError, match="not valid"):
            load_rule_file(path)


class TestEnsureRule:
    def test_accepts_definition(self) -> None:
        rule = parse_rule(_raw())
        assert ensure_rule(rule) is rule

    def test_rejects_empty_code_built_root(self) -> None:
        rule = RuleDefinition(
            name="empty",
            conditions=ConditionGroup(Combinator.ALL, ()),
            event=RuleEvent(EventType.INFO, {"message": "x"}),
        )
        with pytest.raises(RuleValidationError):
            ensure_rule(rule)

    def test_rejects_none(self) -> None:
        with pytest.raises(RuleValidationError, match="missing"):
            ensure_rule(None)


class TestTreeQueries:
    def test_iter_conditions_preorder(self) -> None:
        facts = [c.fact for c in iter_conditions(parse_rule(_raw()).conditions)]
        assert facts == ["fileData", "fileData", "repoFileAnalysis"]

    def test_collect_facts_used(self) -> None:
        assert collect_facts_used(parse_rule(_raw())) == {"fileData", "repoFileAnalysis"}

    def test_global_marker_detected(self) -> None:
        marker = {"fact": "fileData", "operator": "equal", "value": "REPO_GLOBAL_CHECK", "path": "$.fileName"}
        rule = parse_rule(_raw(conditions={"all": [{"any": [marker]}]}))
        assert is_global_rule(rule) is True

    def test_per_file_rule_is_not_global(self) -> None:
        assert is_global_rule(parse_rule(_raw())) is False


class TestFormatEvent:
    def test_expands_placeholders(self) -> None:
        event = RuleEvent(EventType.FATALITY, {"message": "{{count}} hits in {{ scope.name }}",
                                               "count": 2, "scope": {"name": "src"}})
        result = format_event(event)

        assert result.type == EventType.FATALITY
        assert result.message == "2 hits in src"
        assert result.details == {"count": 2, "scope": {"name": "src"}}

    def test_unknown_placeholder_is_kept(self) -> None:
        result = format_event(RuleEvent(EventType.INFO, {"message": "see {{missing}}"}))
        assert result.message == "see {{missing}}"
        assert result.details == {}

"""Condition and combinator evaluation in full-trace mode.

Every child of every ``all``/``any`` node is evaluated, in tree order,
even when an earlier sibling already decided the node. The node's value
is computed afterwards from all child values, so the trace never hides a
condition. Production rule engines may stop early; this one does not.
"""
from __future__ import annotations

import asyncio
import logging
import time

from rulesim.corpus import ArtifactContext
from rulesim.errors import RuleValidationError
from rulesim.jsonpath import extract
from rulesim.models import Combinator, Condition, ConditionGroup, ConditionResult
from rulesim.registry import PluginRegistry
from rulesim.rules import validate_group

logger = logging.getLogger("rulesim")

ROOT_PATH = ("conditions",)


async def evaluate_condition(
    condition: Condition,
    context: ArtifactContext,
    registry: PluginRegistry,
    path: tuple[str, ...] = ROOT_PATH,
    timeout: float | None = None,
) -> ConditionResult:
    """Resolve, extract and compare one condition. Errors are captured, never raised."""
    started = time.perf_counter()
    fact_value = None
    result = False
    error: str | None = None

    try:
        resolving = registry.facts.resolve(condition.fact, dict(condition.params or {}), context)
        if timeout is not None:
            fact_value = await asyncio.wait_for(resolving, timeout)
        else:
            fact_value = await resolving
        compared = extract(fact_value, condition.path)
        fact_value = compared
        result = registry.operators.evaluate(condition.operator, compared, condition.value)
    except asyncio.TimeoutError as exc:
        error = f"Fact '{condition.fact}' timed out after {timeout}s" if timeout is not None else str(exc) or "TimeoutError"
    except Exception as exc:
        error = str(exc) or type(exc).__name__
        logger.debug("Condition %s failed: %s", ".".join(path), error, exc_info=True)

    if error is not None:
        result = False

    return ConditionResult(
        path=path,
        fact_name=condition.fact,
        json_path=condition.path,
        operator=condition.operator,
        compare_value=condition.value,
        fact_value=fact_value,
        result=result,
        error=error,
        duration=(time.perf_counter() - started) * 1000,
        params=dict(condition.params) if condition.params is not None else None,
    )


async def evaluate_node(
    node: ConditionGroup,
    context: ArtifactContext,
    registry: PluginRegistry,
    trace: list[ConditionResult],
    path: tuple[str, ...] = ROOT_PATH,
    timeout: float | None = None,
) -> bool:
    """Visit every child of ``node``, appending leaf results to ``trace``; return the node's value."""
    validate_group(node, ".".join(path))

    outcomes: list[bool] = []
    for index, child in enumerate(node.children):
        child_path = (*path, node.combinator.value, str(index))
        if isinstance(child, ConditionGroup):
            outcomes.append(await evaluate_node(child, context, registry, trace, child_path, timeout))
        elif isinstance(child, Condition):
            condition_result = await evaluate_condition(child, context, registry, child_path, timeout)
            trace.append(condition_result)
            outcomes.append(condition_result.result and condition_result.error is None)
        else:
            raise RuleValidationError("Condition node is neither a condition nor a group", ".".join(child_path))

    if node.combinator == Combinator.ALL:
        return all(outcomes)
    return any(outcomes)

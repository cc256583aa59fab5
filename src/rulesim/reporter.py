"""Output formatting for simulation results."""
from __future__ import annotations

import json
from typing import Any

from rulesim.models import ConditionResult, SimulationResult

FULL_TRACE_NOTE = "Simulation shows all conditions; production evaluation may stop early."

_MAX_VALUE_WIDTH = 80


def _short(value: Any) -> str:
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    if len(text) > _MAX_VALUE_WIDTH:
        text = text[: _MAX_VALUE_WIDTH - 3] + "..."
    return text


class Reporter:
    """Formats a SimulationResult as a readable trace or JSON."""

    def __init__(self, result: SimulationResult):
        self.result = result

    def exit_code(self) -> int:
        """0 = not triggered, 1 = triggered, 2 = error."""
        if not self.result.success:
            return 2
        if self.result.triggered:
            return 1
        return 0

    def format_json(self) -> str:
        return json.dumps(self.result.to_dict(), default=str, indent=2)

    @staticmethod
    def _format_condition(cr: ConditionResult) -> list[str]:
        badge = "ERROR" if cr.error else ("MATCH" if cr.result else "MISS ")
        fact = cr.fact_name + (f" {cr.json_path}" if cr.json_path else "")
        lines = [
            f"  [{badge}] {cr.address}: {fact} {cr.operator} {_short(cr.compare_value)}  ({cr.duration:.2f}ms)"
        ]
        if cr.params:
            lines.append(f"      params: {_short(cr.params)}")
        if cr.error:
            lines.append(f"      -> {cr.error}")
        else:
            lines.append(f"      fact value: {_short(cr.fact_value)}")
        return lines

    def format_text(self) -> str:
        r = self.result
        title = f"rule '{r.rule_name}'" if r.rule_name else "rule"
        lines = [
            f"Simulated {title} against {r.file_name}",
            f"Result: {r.final_result.value.upper()}  |  Conditions: {len(r.condition_results)}  |  "
            f"Duration: {r.duration:.2f}ms",
        ]

        if r.error:
            lines.append(f"Error: {r.error}")
        if r.condition_errors:
            lines.append(f"Condition errors: {len(r.condition_errors)} (counted as not matched)")

        if r.condition_results:
            lines.append("")
            lines.append("Conditions:")
            for cr in r.condition_results:
                lines.extend(self._format_condition(cr))
            lines.append("")
            lines.append(FULL_TRACE_NOTE)

        if r.event:
            lines.append("")
            lines.append(f"Event ({r.event.type.value}): {r.event.message}")
            if r.event.details:
                lines.append(f"  details: {_short(r.event.details)}")

        return "\n".join(lines)


def format_summary(results: dict[str, SimulationResult]) -> str:
    """One line per file for a simulate-all run."""
    triggered = [name for name, r in results.items() if r.triggered]
    errors = [name for name, r in results.items() if not r.success]

    lines = [f"{'File':<50} Result"]
    lines.append("-" * 65)
    for name, r in results.items():
        lines.append(f"{name:<50} {r.final_result.value}")
    lines.append("")
    lines.append(
        f"Files: {len(results)}  |  Triggered: {len(triggered)}  |  Errors: {len(errors)}"
    )
    return "\n".join(lines)

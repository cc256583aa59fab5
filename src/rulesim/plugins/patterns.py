"""Patterns plugin: regex operators and repository-wide pattern counts."""
from __future__ import annotations

import re
from typing import Any

from rulesim.corpus import ArtifactContext
from rulesim.registry import Plugin


def global_file_analysis(params: dict, context: ArtifactContext) -> dict:
    """Count ``params.patterns`` across every file in the aggregate view."""
    raw = params.get("patterns") or params.get("checkPattern") or []
    patterns = [raw] if isinstance(raw, str) else list(raw)
    compiled = [(p, re.compile(p)) for p in patterns]

    per_pattern = {p: 0 for p in patterns}
    per_file: dict[str, int] = {}
    for data in context.corpus.all_file_data():
        count = 0
        for pattern, regex in compiled:
            hits = len(regex.findall(data.content))
            per_pattern[pattern] += hits
            count += hits
        if count:
            per_file[data.file_path] = count

    return {
        "totalMatches": sum(per_pattern.values()),
        "patternCounts": per_pattern,
        "fileMatches": per_file,
        "filesScanned": len(context.corpus.file_list),
    }


def regex_match(fact_value: Any, compare_value: Any) -> bool:
    """True when the regex ``compare_value`` is found in ``fact_value``."""
    if fact_value is None or not isinstance(compare_value, str):
        return False
    return re.search(compare_value, str(fact_value)) is not None


def global_pattern_count(fact_value: Any, compare_value: Any) -> bool:
    """True when a globalFileAnalysis total reaches the threshold ``compare_value``."""
    if not isinstance(fact_value, dict):
        return False
    threshold = compare_value.get("threshold", 1) if isinstance(compare_value, dict) else compare_value
    return fact_value.get("totalMatches", 0) >= threshold


def create_plugin() -> Plugin:
    return Plugin(
        name="patterns",
        description="Regex matching and repository-wide pattern counts",
        facts={"globalFileAnalysis": global_file_analysis},
        operators={
            "regexMatch": regex_match,
            "globalPatternCount": global_pattern_count,
        },
    )

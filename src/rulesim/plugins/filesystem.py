"""Filesystem plugin: file data, repository file listing and pattern analysis."""
from __future__ import annotations

import fnmatch
import logging
import re
from typing import Any

from rulesim.corpus import ArtifactContext
from rulesim.registry import Plugin

logger = logging.getLogger("rulesim")

DEFAULT_CONTEXT_LENGTH = 50


def file_data(params: dict, context: ArtifactContext) -> dict:
    """Current file (or the global marker in repo-wide scope)."""
    return context.file.to_dict()


def repo_filesystem_facts(params: dict, context: ArtifactContext) -> list[dict]:
    """Every file in the aggregate view, in load order."""
    files = [f.to_dict() for f in context.corpus.all_file_data()]
    logger.debug("repoFilesystemFacts: collected %d files", len(files))
    return files


def _patterns(params: dict) -> list[str]:
    check = params.get("checkPattern")
    if check is None:
        return []
    return [check] if isinstance(check, str) else [str(p) for p in check]


def _clip(line: str, start: int, end: int, context_length: int) -> str:
    if context_length <= 0 or context_length >= len(line):
        return line
    half = context_length // 2
    lo = max(0, start - half)
    hi = min(len(line), end + half)
    snippet = line[lo:hi]
    if lo > 0:
        snippet = "..." + snippet
    if hi < len(line):
        snippet += "..."
    return snippet


def repo_file_analysis(params: dict, context: ArtifactContext) -> dict:
    """Regex matches of ``params.checkPattern`` in the current file, with positions."""
    patterns = _patterns(params)
    context_length = int(params.get("contextLength", DEFAULT_CONTEXT_LENGTH))
    capture_groups = bool(params.get("captureGroups", False))
    compiled = [(p, re.compile(p)) for p in patterns]

    matches: list[dict] = []
    for lineno, line in enumerate(context.file.content.splitlines(), start=1):
        for pattern, regex in compiled:
            for m in regex.finditer(line):
                entry = {
                    "pattern": pattern,
                    "match": m.group(0),
                    "range": {
                        "start": {"line": lineno, "column": m.start() + 1},
                        "end": {"line": lineno, "column": m.end() + 1},
                    },
                    "context": _clip(line, m.start(), m.end(), context_length),
                }
                if capture_groups and m.groups():
                    entry["groups"] = list(m.groups())
                matches.append(entry)

    return {
        "result": [
            {"match": m["pattern"], "lineNumber": m["range"]["start"]["line"], "line": m["context"]}
            for m in matches
        ],
        "matches": matches,
        "summary": {"totalMatches": len(matches), "patterns": patterns, "hasPositionData": True},
    }


def file_contains(fact_value: Any, compare_value: Any) -> bool:
    """True when a repoFileAnalysis result has matches and ``compare_value`` is truthy (or vice versa)."""
    if not isinstance(fact_value, dict):
        return False
    found = bool(fact_value.get("matches") or fact_value.get("result"))
    return found == bool(compare_value)


def has_files_matching(fact_value: Any, compare_value: Any) -> bool:
    """True when any file in a repoFilesystemFacts list matches the glob ``compare_value``."""
    if not isinstance(fact_value, list) or not isinstance(compare_value, str):
        return False
    for entry in fact_value:
        path = entry.get("filePath", "") if isinstance(entry, dict) else str(entry)
        if fnmatch.fnmatch(path, compare_value):
            return True
    return False


def create_plugin() -> Plugin:
    return Plugin(
        name="filesystem",
        description="File data, repository listing and in-file pattern analysis",
        facts={
            "fileData": file_data,
            "repoFilesystemFacts": repo_filesystem_facts,
            "repoFileAnalysis": repo_file_analysis,
        },
        operators={
            "fileContains": file_contains,
            "hasFilesMatching": has_files_matching,
        },
    )

"""AST plugin: function metrics for the current file."""
from __future__ import annotations

import ast
import asyncio
from typing import Any

from rulesim.corpus import ArtifactContext
from rulesim.parsers import parser_for
from rulesim.registry import Plugin


def _tree(context: ArtifactContext) -> ast.AST:
    file = context.file
    if context.parsers is not None:
        return context.parsers.parse(file.file_path, file.content)
    return parser_for(file.file_path)(file.content, file.file_path)


def _nesting_depth(node: ast.AST, depth: int = 0) -> int:
    deepest = depth
    for child in ast.iter_child_nodes(node):
        nested = isinstance(child, (ast.If, ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith, ast.Try))
        deepest = max(deepest, _nesting_depth(child, depth + 1 if nested else depth))
    return deepest


def _function_metrics(tree: ast.AST) -> list[dict]:
    functions = []
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            args = node.args
            functions.append({
                "name": node.name,
                "parameterCount": len(args.posonlyargs) + len(args.args) + len(args.kwonlyargs),
                "returnCount": sum(1 for n in ast.walk(node) if isinstance(n, ast.Return)),
                "nestingDepth": _nesting_depth(node),
                "lineCount": (node.end_lineno or node.lineno) - node.lineno + 1,
                "location": {"startLine": node.lineno, "endLine": node.end_lineno},
            })
    functions.sort(key=lambda f: f["location"]["startLine"])
    return functions


async def function_count(params: dict, context: ArtifactContext) -> dict:
    """Function definitions in the current file; the parser is picked by extension."""
    tree = await asyncio.to_thread(_tree, context)
    functions = _function_metrics(tree)
    return {
        "count": len(functions),
        "functions": functions,
        "maxNestingDepth": max((f["nestingDepth"] for f in functions), default=0),
    }


def function_count_above(fact_value: Any, compare_value: Any) -> bool:
    if not isinstance(fact_value, dict):
        return False
    return fact_value.get("count", 0) > compare_value


def create_plugin() -> Plugin:
    return Plugin(
        name="ast",
        description="Function metrics from parsed source files",
        facts={"functionCount": function_count},
        operators={"functionCountAbove": function_count_above},
    )

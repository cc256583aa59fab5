"""Source parser bootstrap and parse cache.

The parser is chosen by file extension. Only Python sources have a
parser; other files report ``UnsupportedLanguageError`` when an
AST-based fact asks for them.
"""
from __future__ import annotations

import ast
import asyncio
import logging
import posixpath
from dataclasses import dataclass
from typing import Callable

from rulesim.corpus import Corpus
from rulesim.errors import UnsupportedLanguageError

logger = logging.getLogger("rulesim")

Parser = Callable[[str, str], ast.AST]


def _parse_python(content: str, file_path: str) -> ast.AST:
    return ast.parse(content, filename=file_path)


PARSERS: dict[str, Parser] = {
    ".py": _parse_python,
    ".pyi": _parse_python,
}


def language_for(file_path: str) -> str | None:
    ext = posixpath.splitext(file_path)[1].lower()
    return "python" if ext in PARSERS else None


def parser_for(file_path: str) -> Parser:
    ext = posixpath.splitext(file_path)[1].lower()
    try:
        return PARSERS[ext]
    except KeyError:
        raise UnsupportedLanguageError(f"No parser available for '{file_path}'") from None


@dataclass(frozen=True)
class ParseOutcome:
    tree: ast.AST | None
    reason: str | None = None


class ParserCache:
    """Parses every supported corpus file once, at initialization."""

    def __init__(self) -> None:
        self._outcomes: dict[str, ParseOutcome] = {}
        self._content: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._outcomes)

    async def bootstrap(self, corpus: Corpus) -> None:
        outcomes = await asyncio.to_thread(self._parse_all, corpus)
        self._outcomes = outcomes
        self._content = {path: corpus.files[path] for path in outcomes}
        failed = sum(1 for o in outcomes.values() if o.tree is None)
        logger.info("Parsed %d source files (%d with syntax errors)", len(outcomes), failed)

    def _parse_all(self, corpus: Corpus) -> dict[str, ParseOutcome]:
        outcomes: dict[str, ParseOutcome] = {}
        for path in corpus.file_list:
            if language_for(path) is None:
                continue
            try:
                outcomes[path] = ParseOutcome(tree=parser_for(path)(corpus.files[path], path))
            except SyntaxError as exc:
                outcomes[path] = ParseOutcome(tree=None, reason=f"{exc.msg} (line {exc.lineno})")
        return outcomes

    def parse(self, file_path: str, content: str) -> ast.AST:
        """Return the tree for ``file_path``; content not seen at bootstrap is parsed uncached."""
        cached = self._outcomes.get(file_path)
        if cached is not None and self._content.get(file_path) == content:
            if cached.tree is None:
                raise SyntaxError(f"{file_path}: {cached.reason}")
            return cached.tree
        return parser_for(file_path)(content, file_path)

    def clear(self) -> None:
        self._outcomes = {}
        self._content = {}

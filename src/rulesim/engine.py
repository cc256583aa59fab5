"""rulesim simulation engine."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from rulesim.corpus import ArtifactContext, Corpus, FileData, FixtureLoader
from rulesim.errors import RuleValidationError, UnknownFileError
from rulesim.evaluator import evaluate_node
from rulesim.lifecycle import LifecycleController, ProgressCallback
from rulesim.models import ConditionResult, FinalResult, SimulationOptions, SimulationResult
from rulesim.parsers import ParserCache
from rulesim.plugins import load_plugins
from rulesim.registry import Plugin
from rulesim.rules import ensure_rule, format_event

logger = logging.getLogger("rulesim")

GLOBAL_FILE_NAME = "GLOBAL"
DEFAULT_SOURCE_SET = "."
DEFAULT_EXCLUDE_PATTERNS = (".gitignore",)

NOT_READY_MESSAGE = "Simulation engine not initialized. Please wait for initialization to complete."


class SimulationEngine:
    """Runs rules against a loaded corpus and returns a full evaluation trace."""

    def __init__(
        self,
        plugins: list[Plugin] | Callable[[], list[Plugin]] | None = None,
        loader: FixtureLoader | None = None,
        exclude_patterns: tuple[str, ...] | list[str] = DEFAULT_EXCLUDE_PATTERNS,
        parser_factory: Callable[[], ParserCache] = ParserCache,
    ):
        if plugins is None:
            plugin_factory = load_plugins
        elif callable(plugins):
            plugin_factory = plugins
        else:
            fixed = list(plugins)
            plugin_factory = lambda: list(fixed)  # noqa: E731
        self.exclude_patterns = tuple(exclude_patterns)
        self.lifecycle = LifecycleController(
            loader=loader or FixtureLoader(),
            plugin_factory=plugin_factory,
            parser_factory=parser_factory,
        )

    async def initialize(self, source_set_id: str = DEFAULT_SOURCE_SET, on_progress: ProgressCallback | None = None) -> None:
        await self.lifecycle.initialize(source_set_id, on_progress)

    def is_initialized(self) -> bool:
        return self.lifecycle.is_initialized()

    def get_available_files(self) -> list[str]:
        return self.lifecycle.get_available_files(self.exclude_patterns)

    @property
    def corpus(self):
        return self.lifecycle.corpus

    def reset(self) -> None:
        self.lifecycle.reset()

    async def simulate(self, rule: Any, file_name: str, options: SimulationOptions | None = None) -> SimulationResult:
        """Evaluate ``rule`` against one file of the loaded corpus."""
        if self.is_initialized() and not self.corpus.has_file(file_name):
            raise UnknownFileError(file_name)

        def build() -> ArtifactContext:
            corpus = self.corpus
            return ArtifactContext.for_file(corpus, corpus.file_data(file_name), self.lifecycle.parsers)

        return await self._run(rule, file_name, build, options)

    async def simulate_with_content(
        self, rule: Any, file_name: str, content: str, options: SimulationOptions | None = None
    ) -> SimulationResult:
        """Evaluate ``rule`` against inline content; ``file_name`` still selects the parser.

        The run sees a one-file corpus holding only the supplied content.
        """
        def build() -> ArtifactContext:
            corpus = Corpus.from_files({file_name: content}, name="manual")
            return ArtifactContext.for_file(corpus, FileData(file_path=file_name, content=content), self.lifecycle.parsers)

        return await self._run(rule, file_name, build, options)

    async def simulate_global(
        self,
        rule: Any,
        additional_files: Mapping[str, str] | None = None,
        options: SimulationOptions | None = None,
    ) -> SimulationResult:
        """Evaluate ``rule`` once against the whole corpus, plus any injected files."""
        def build() -> ArtifactContext:
            corpus = self.corpus.overlay(additional_files or {})
            return ArtifactContext.for_global(corpus, self.lifecycle.parsers)

        return await self._run(rule, GLOBAL_FILE_NAME, build, options)

    async def simulate_all(self, rule: Any, options: SimulationOptions | None = None) -> dict[str, SimulationResult]:
        """Per-file simulation over every available file, in listing order."""
        results: dict[str, SimulationResult] = {}
        for file_name in self.get_available_files():
            results[file_name] = await self.simulate(rule, file_name, options)
        return results

    async def _run(
        self,
        rule: Any,
        file_name: str,
        build_context: Callable[[], ArtifactContext],
        options: SimulationOptions | None,
    ) -> SimulationResult:
        options = options or SimulationOptions()
        timestamp = datetime.now(timezone.utc)
        started = time.perf_counter()
        trace: list[ConditionResult] = []
        rule_name = getattr(rule, "name", None) or (rule.get("name") if isinstance(rule, Mapping) else None)

        def finish(final: FinalResult, error: str | None = None, event=None) -> SimulationResult:
            return SimulationResult(
                rule_name=rule_name,
                file_name=file_name,
                timestamp=timestamp,
                duration=(time.perf_counter() - started) * 1000,
                final_result=final,
                condition_results=tuple(trace),
                event=event,
                error=error,
            )

        if not self.is_initialized():
            return finish(FinalResult.ERROR, NOT_READY_MESSAGE)

        try:
            definition = ensure_rule(rule)
        except RuleValidationError as exc:
            logger.info("Rule rejected: %s", exc)
            return finish(FinalResult.ERROR, f"Invalid rule: {exc}")

        try:
            context = build_context()
            triggered = await evaluate_node(
                definition.conditions,
                context,
                self.lifecycle.registry,
                trace,
                timeout=options.condition_timeout,
            )
        except RuleValidationError as exc:
            logger.info("Rule rejected during evaluation: %s", exc)
            return finish(FinalResult.ERROR, f"Invalid rule: {exc}")
        except Exception as exc:
            logger.exception("Simulation of %s against %s failed", definition.name, file_name)
            return finish(FinalResult.ERROR, f"Simulation failed: {exc}")

        if triggered:
            return finish(FinalResult.TRIGGERED, event=format_event(definition.event))
        return finish(FinalResult.NOT_TRIGGERED)

"""Engine lifecycle: staged initialization, progress reporting and reset.

States move ``uninitialized -> initializing -> ready``; a failing stage
moves to ``error``, from which a fresh ``initialize`` may be attempted.
``reset`` may be called at any time. An in-flight ``initialize`` then
stops at its next stage boundary with ``InitializationAborted``; it fires
no further progress callbacks and commits nothing.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from rulesim.corpus import Corpus, FixtureLoader
from rulesim.errors import EngineNotReadyError, InitializationAborted, InitializationError
from rulesim.parsers import ParserCache
from rulesim.registry import Plugin, PluginRegistry

logger = logging.getLogger("rulesim")

ProgressCallback = Callable[[str, int], None]
PluginFactory = Callable[[], list[Plugin]]

STAGE_LOAD = ("Loading fixture data", 10)
STAGE_PARSER = ("Initializing AST parser", 40)
STAGE_PLUGINS = ("Initializing plugins", 70)
STAGE_READY = ("Ready", 100)

STAGES = (STAGE_LOAD, STAGE_PARSER, STAGE_PLUGINS, STAGE_READY)


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    ERROR = "error"


class LifecycleController:
    """Owns the loaded corpus, parse cache and plugin registry."""

    def __init__(
        self,
        loader: FixtureLoader,
        plugin_factory: PluginFactory,
        parser_factory: Callable[[], ParserCache] = ParserCache,
    ):
        self._loader = loader
        self._plugin_factory = plugin_factory
        self._parser_factory = parser_factory
        self.state = EngineState.UNINITIALIZED
        self.error: str | None = None
        self.source_set_id: str | None = None
        self._generation = 0
        self._pending: asyncio.Future | None = None
        self._corpus: Corpus | None = None
        self._parsers: ParserCache | None = None
        self._registry: PluginRegistry | None = None

    def is_initialized(self) -> bool:
        return self.state == EngineState.READY

    async def initialize(self, source_set_id: str, on_progress: ProgressCallback | None = None) -> None:
        """Run the stages once. No-op when ready; joins a run already in flight."""
        if self.state == EngineState.READY:
            if source_set_id != self.source_set_id:
                logger.debug("Already initialized with %s; reset() before loading %s",
                             self.source_set_id, source_set_id)
            return

        if self._pending is None:
            self.state = EngineState.INITIALIZING
            self.error = None
            self._pending = asyncio.ensure_future(
                self._run(source_set_id, on_progress, self._generation)
            )
        pending = self._pending
        try:
            await pending
        finally:
            if self._pending is pending and pending.done():
                self._pending = None

    async def _run(self, source_set_id: str, on_progress: ProgressCallback | None, generation: int) -> None:
        self._check(generation)
        stage = STAGE_LOAD[0]

        try:
            stage = self._advance(STAGE_LOAD, on_progress, generation)
            corpus = await self._loader.load(source_set_id)
            self._check(generation)

            stage = self._advance(STAGE_PARSER, on_progress, generation)
            parsers = self._parser_factory()
            try:
                await parsers.bootstrap(corpus)
            except Exception:
                logger.warning("AST parser initialization failed, AST facts will be limited", exc_info=True)
            self._check(generation)

            stage = self._advance(STAGE_PLUGINS, on_progress, generation)
            registry = PluginRegistry(self._plugin_factory())
            await registry.initialize_all(corpus)
            self._check(generation)

            stage = self._advance(STAGE_READY, on_progress, generation)
            self._check(generation)
        except InitializationAborted:
            raise
        except Exception as exc:
            if generation != self._generation:
                raise InitializationAborted("Initialization aborted by reset()") from exc
            self.state = EngineState.ERROR
            self.error = f"Initialization failed during '{stage}': {exc}"
            logger.error(self.error)
            raise InitializationError(self.error) from exc

        self._corpus = corpus
        self._parsers = parsers
        self._registry = registry
        self.source_set_id = source_set_id
        self.state = EngineState.READY
        logger.info("Engine ready: %d files from %s", len(corpus.file_list), source_set_id)

    def _check(self, generation: int) -> None:
        if generation != self._generation:
            logger.info("Initialization aborted by reset()")
            raise InitializationAborted("Initialization aborted by reset()")

    def _advance(self, stage: tuple[str, int], on_progress: ProgressCallback | None, generation: int) -> str:
        self._check(generation)
        label, percent = stage
        logger.info("%s (%d%%)", label, percent)
        if on_progress is not None:
            on_progress(label, percent)
        return label

    def reset(self) -> None:
        """Drop all cached state and abort any in-flight initialization."""
        self._generation += 1
        self._pending = None
        if self._parsers is not None:
            self._parsers.clear()
        self._corpus = None
        self._parsers = None
        self._registry = None
        self.source_set_id = None
        self.error = None
        self.state = EngineState.UNINITIALIZED

    def _require_ready(self) -> None:
        if self.state != EngineState.READY:
            raise EngineNotReadyError(
                f"Simulation engine not initialized (state: {self.state.value}). "
                "Call initialize() and wait for it to complete."
            )

    @property
    def corpus(self) -> Corpus:
        self._require_ready()
        return self._corpus

    @property
    def registry(self) -> PluginRegistry:
        self._require_ready()
        return self._registry

    @property
    def parsers(self) -> ParserCache:
        self._require_ready()
        return self._parsers

    def get_available_files(self, exclude_patterns: list[str] | tuple[str, ...] = ()) -> list[str]:
        return self.corpus.list_files(exclude_patterns)

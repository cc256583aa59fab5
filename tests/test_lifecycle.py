"""Tests for staged engine initialization, progress and reset."""
from __future__ import annotations

import asyncio

import pytest

from rulesim.corpus import Corpus
from rulesim.errors import EngineNotReadyError, InitializationAborted, InitializationError
from rulesim.lifecycle import STAGES, EngineState, LifecycleController
from rulesim.registry import Plugin

FILES = {"app.py": "def main():\n    return 1\n", "README.md": "# demo\n"}


class CountingLoader:
    def __init__(self, files=FILES, failures: int = 0):
        self.files = files
        self.failures = failures
        self.loads = 0

    async def load(self, source_set_id: str) -> Corpus:
        self.loads += 1
        if self.failures:
            self.failures -= 1
            raise OSError(f"cannot read {source_set_id}")
        return Corpus.from_files(self.files, name=source_set_id)


class BlockingLoader:
    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def load(self, source_set_id: str) -> Corpus:
        self.started.set()
        await self.release.wait()
        return Corpus.from_files(FILES)


class BrokenParsers:
    async def bootstrap(self, corpus):
        raise RuntimeError("grammar missing")

    def clear(self):
        pass


def _controller(loader=None, plugins=(), **kwargs) -> LifecycleController:
    return LifecycleController(
        loader=loader or CountingLoader(),
        plugin_factory=lambda: list(plugins),
        **kwargs,
    )


class TestInitialize:
    @pytest.mark.asyncio
    async def test_progress_stages_in_order(self) -> None:
        calls: list[tuple[str, int]] = []
        lifecycle = _controller()

        await lifecycle.initialize("fixture", lambda step, pct: calls.append((step, pct)))

        assert calls == list(STAGES)
        assert [pct for _, pct in calls] == sorted(pct for _, pct in calls)
        assert calls[-1] == ("Ready", 100)
        assert lifecycle.state == EngineState.READY
        assert lifecycle.is_initialized() is True

    @pytest.mark.asyncio
    async def test_second_initialize_is_a_noop(self) -> None:
        loader = CountingLoader()
        calls: list[str] = []
        lifecycle = _controller(loader)

        await lifecycle.initialize("fixture")
        await lifecycle.initialize("fixture", lambda step, pct: calls.append(step))

        assert loader.loads == 1
        assert calls == []

    @pytest.mark.asyncio
    async def test_concurrent_initialize_shares_one_run(self) -> None:
        loader = CountingLoader()
        lifecycle = _controller(loader)

        await asyncio.gather(lifecycle.initialize("fixture"), lifecycle.initialize("fixture"))

        assert loader.loads == 1
        assert lifecycle.is_initialized()

    @pytest.mark.asyncio
    async def test_loader_failure_moves_to_error_and_allows_retry(self) -> None:
        loader = CountingLoader(failures=1)
        lifecycle = _controller(loader)

        with pytest.raises(InitializationError, match="Loading fixture data"):
            await lifecycle.initialize("fixture")
        assert lifecycle.state == EngineState.ERROR
        assert "cannot read fixture" in lifecycle.error

        await lifecycle.initialize("fixture")
        assert lifecycle.state == EngineState.READY
        assert lifecycle.error is None

    @pytest.mark.asyncio
    async def test_plugin_setup_failure_is_fatal(self) -> None:
        def setup(corpus):
            raise ValueError("bad plugin config")

        lifecycle = _controller(plugins=[Plugin(name="broken", setup=setup)])

        with pytest.raises(InitializationError, match="Initializing plugins"):
            await lifecycle.initialize("fixture")
        assert lifecycle.state == EngineState.ERROR

    @pytest.mark.asyncio
    async def test_async_plugin_setup_sees_corpus(self) -> None:
        seen = []

        async def setup(corpus):
            seen.extend(corpus.file_list)

        lifecycle = _controller(plugins=[Plugin(name="corpus-reader", setup=setup)])
        await lifecycle.initialize("fixture")

        assert seen == ["app.py", "README.md"]

    @pytest.mark.asyncio
    async def test_parser_bootstrap_failure_is_tolerated(self) -> None:
        lifecycle = _controller(parser_factory=BrokenParsers)
        await lifecycle.initialize("fixture")

        assert lifecycle.is_initialized()

    @pytest.mark.asyncio
    async def test_parsers_bootstrapped_from_corpus(self) -> None:
        lifecycle = _controller()
        await lifecycle.initialize("fixture")

        assert len(lifecycle.parsers) == 1


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_aborts_in_flight_initialize(self) -> None:
        loader = BlockingLoader()
        calls: list[str] = []
        lifecycle = _controller(loader)

        task = asyncio.create_task(lifecycle.initialize("fixture", lambda step, pct: calls.append(step)))
        await loader.started.wait()
        lifecycle.reset()
        loader.release.set()

        with pytest.raises(InitializationAborted):
            await task

        assert calls == ["Loading fixture data"]
        assert lifecycle.state == EngineState.UNINITIALIZED
        assert lifecycle.is_initialized() is False

    @pytest.mark.asyncio
    async def test_reset_before_run_starts_leaves_uninitialized(self) -> None:
        loader = CountingLoader()
        calls: list[str] = []
        lifecycle = _controller(loader)

        task = asyncio.create_task(lifecycle.initialize("fixture", lambda step, pct: calls.append(step)))
        await asyncio.sleep(0)
        assert lifecycle.state == EngineState.INITIALIZING
        lifecycle.reset()

        with pytest.raises(InitializationAborted):
            await task

        assert lifecycle.state == EngineState.UNINITIALIZED
        assert lifecycle.error is None
        assert calls == []
        assert loader.loads == 0

    @pytest.mark.asyncio
    async def test_reset_from_progress_callback_commits_nothing(self) -> None:
        lifecycle = _controller()

        def on_progress(step, pct):
            if pct == 100:
                lifecycle.reset()

        with pytest.raises(InitializationAborted):
            await lifecycle.initialize("fixture", on_progress)
        assert lifecycle.is_initialized() is False

    @pytest.mark.asyncio
    async def test_reinitialize_after_reset(self) -> None:
        loader = CountingLoader()
        lifecycle = _controller(loader)

        await lifecycle.initialize("first")
        lifecycle.reset()
        await lifecycle.initialize("second")

        assert loader.loads == 2
        assert lifecycle.source_set_id == "second"
        assert lifecycle.corpus.name == "second"

    def test_accessors_require_ready(self) -> None:
        lifecycle = _controller()

        with pytest.raises(EngineNotReadyError):
            lifecycle.corpus
        with pytest.raises(EngineNotReadyError):
            lifecycle.registry
        with pytest.raises(EngineNotReadyError):
            lifecycle.get_available_files()

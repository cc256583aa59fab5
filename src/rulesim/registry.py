"""Fact and operator registries, and the plugin unit that feeds them.

Facts and operators are looked up by name in explicit registries that are
built once per engine initialization. A fact provider is called as
``fn(params, context)`` and may return a value or an awaitable.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Union

from rulesim.corpus import ArtifactContext, Corpus
from rulesim.errors import UnknownFactError, UnknownOperatorError
from rulesim.operators import STANDARD_OPERATORS, OperatorFn

logger = logging.getLogger("rulesim")

FactFn = Callable[[dict, ArtifactContext], Union[Any, Awaitable[Any]]]
SetupFn = Callable[[Corpus], Union[None, Awaitable[None]]]


@dataclass
class Plugin:
    """A named bundle of facts and operators with an optional setup hook."""
    name: str
    facts: dict[str, FactFn] = field(default_factory=dict)
    operators: dict[str, OperatorFn] = field(default_factory=dict)
    description: str = ""
    setup: SetupFn | None = None

    async def initialize(self, corpus: Corpus) -> None:
        if self.setup is None:
            return
        outcome = self.setup(corpus)
        if inspect.isawaitable(outcome):
            await outcome


class FactRegistry:
    """Name -> fact provider mapping."""

    def __init__(self, facts: dict[str, FactFn] | None = None):
        self._facts: dict[str, FactFn] = dict(facts or {})

    def register(self, name: str, fn: FactFn) -> None:
        if name in self._facts:
            logger.debug("Fact %s re-registered; last registration wins", name)
        self._facts[name] = fn

    def names(self) -> list[str]:
        return sorted(self._facts)

    def __contains__(self, name: str) -> bool:
        return name in self._facts

    async def resolve(self, name: str, params: dict, context: ArtifactContext) -> Any:
        fn = self._facts.get(name)
        if fn is None:
            raise UnknownFactError(name)
        logger.debug("Resolving fact %s", name)
        value = fn(params, context)
        if inspect.isawaitable(value):
            value = await value
        return value


class OperatorRegistry:
    """Name -> operator mapping, seeded with the standard operators."""

    def __init__(self, operators: dict[str, OperatorFn] | None = None, include_standard: bool = True):
        self._operators: dict[str, OperatorFn] = dict(STANDARD_OPERATORS) if include_standard else {}
        self._operators.update(operators or {})

    def register(self, name: str, fn: OperatorFn) -> None:
        self._operators[name] = fn

    def names(self) -> list[str]:
        return sorted(self._operators)

    def __contains__(self, name: str) -> bool:
        return name in self._operators

    def evaluate(self, name: str, fact_value: Any, compare_value: Any) -> bool:
        fn = self._operators.get(name)
        if fn is None:
            raise UnknownOperatorError(name)
        result = bool(fn(fact_value, compare_value))
        logger.debug("Operator %s returned %s", name, result)
        return result


class PluginRegistry:
    """Registers plugins and exposes their merged facts and operators."""

    def __init__(self, plugins: Iterable[Plugin] = ()):
        self.plugins: dict[str, Plugin] = {}
        self.facts = FactRegistry()
        self.operators = OperatorRegistry()
        for plugin in plugins:
            self.register_plugin(plugin)

    def register_plugin(self, plugin: Plugin) -> None:
        logger.debug("Registering plugin %s", plugin.name)
        self.plugins[plugin.name] = plugin
        for name, fn in plugin.facts.items():
            self.facts.register(name, fn)
        for name, fn in plugin.operators.items():
            self.operators.register(name, fn)

    async def initialize_all(self, corpus: Corpus) -> None:
        logger.info("Initializing %d plugins", len(self.plugins))
        for name, plugin in self.plugins.items():
            try:
                await plugin.initialize(corpus)
            except Exception:
                logger.error("Failed to initialize plugin %s", name)
                raise

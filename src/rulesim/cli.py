"""rulesim CLI entry point."""
from __future__ import annotations

import asyncio
import logging
import os
import sys

import click

from rulesim.config import RuleSimConfig, load_config
from rulesim.corpus import FixtureLoader
from rulesim.engine import SimulationEngine
from rulesim.errors import InitializationError, RuleSimError, RuleValidationError
from rulesim.models import SimulationOptions
from rulesim.plugins import load_custom_plugins, load_plugins
from rulesim.registry import PluginRegistry
from rulesim.reporter import Reporter, format_summary
from rulesim.rules import collect_facts_used, is_global_rule, load_rule_file

logger = logging.getLogger("rulesim")


def _configure_logging() -> None:
    level = os.environ.get("RULESIM_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )


def _plugins_for(config: RuleSimConfig, project_dir: str):
    def factory():
        plugins = load_plugins(config.plugins)
        if config.custom_plugins_dir:
            plugins.extend(load_custom_plugins(config.custom_plugins_dir, project_dir))
        return plugins
    return factory


def _build_engine(config: RuleSimConfig, project_dir: str) -> SimulationEngine:
    return SimulationEngine(
        plugins=_plugins_for(config, project_dir),
        loader=FixtureLoader(max_file_size=config.max_file_size),
        exclude_patterns=config.exclude_patterns,
    )


def _progress(step: str, percent: int) -> None:
    click.echo(f"[{percent:>3}%] {step}", err=True)


def _ready_engine(project_dir: str | None, source_set: str | None, quiet: bool) -> tuple[SimulationEngine, RuleSimConfig]:
    project_dir = project_dir or os.getcwd()
    config = load_config(project_dir)
    if source_set:
        config.source_set = source_set
    engine = _build_engine(config, project_dir)
    try:
        asyncio.run(engine.initialize(config.resolve_source_set(project_dir), None if quiet else _progress))
    except InitializationError as exc:
        click.echo(f"Setup failed: {exc}", err=True)
        sys.exit(2)
    return engine, config


def _load_rule(rule_file: str):
    try:
        return load_rule_file(rule_file)
    except RuleValidationError as exc:
        click.echo(f"Invalid rule: {exc}", err=True)
        sys.exit(2)


def _parse_extra(values: tuple[str, ...]) -> dict[str, str]:
    extra: dict[str, str] = {}
    for item in values:
        name, sep, path = item.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=PATH, got '{item}'", param_hint="--extra")
        try:
            with open(path, encoding="utf-8") as f:
                extra[name] = f.read()
        except OSError as exc:
            raise click.BadParameter(f"cannot read '{path}' for {name}: {exc.strerror}", param_hint="--extra") from exc
    return extra


@click.group()
def main():
    """rulesim - Simulate declarative code-analysis rules with a full evaluation trace."""
    _configure_logging()


@main.command()
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--file", "file_name", default=None, help="Corpus file to evaluate against")
@click.option("--content-file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Evaluate against this file's content instead of a corpus file")
@click.option("--as", "as_name", default=None, help="File name to use for --content-file")
@click.option("--global", "global_scope", is_flag=True, help="Evaluate once against the whole corpus")
@click.option("--extra", multiple=True, help="NAME=PATH file injected into the global view (repeatable)")
@click.option("--source-set", default=None, help="Directory or fixture bundle to load")
@click.option("--project-dir", default=None, help="Project directory")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def simulate(
    rule_file: str,
    file_name: str | None,
    content_file: str | None,
    as_name: str | None,
    global_scope: bool,
    extra: tuple[str, ...],
    source_set: str | None,
    project_dir: str | None,
    as_json: bool,
):
    """Simulate RULE_FILE against one file, inline content, or the whole corpus."""
    rule = _load_rule(rule_file)
    engine, config = _ready_engine(project_dir, source_set, quiet=as_json)
    options = SimulationOptions(condition_timeout=config.condition_timeout)

    if not (file_name or content_file or global_scope):
        if not is_global_rule(rule):
            click.echo("Pass --file, --content-file or --global.", err=True)
            sys.exit(2)
        global_scope = True

    try:
        if content_file:
            with open(content_file, encoding="utf-8") as f:
                content = f.read()
            name = as_name or os.path.basename(content_file)
            result = asyncio.run(engine.simulate_with_content(rule, name, content, options))
        elif global_scope:
            result = asyncio.run(engine.simulate_global(rule, _parse_extra(extra), options))
        else:
            result = asyncio.run(engine.simulate(rule, file_name, options))
    except RuleSimError as exc:
        click.echo(str(exc), err=True)
        sys.exit(2)

    reporter = Reporter(result)
    click.echo(reporter.format_json() if as_json else reporter.format_text())
    sys.exit(reporter.exit_code())


@main.command("simulate-all")
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--source-set", default=None, help="Directory or fixture bundle to load")
@click.option("--project-dir", default=None, help="Project directory")
def simulate_all(rule_file: str, source_set: str | None, project_dir: str | None):
    """Simulate RULE_FILE against every available file."""
    rule = _load_rule(rule_file)
    engine, config = _ready_engine(project_dir, source_set, quiet=False)
    options = SimulationOptions(condition_timeout=config.condition_timeout)
    results = asyncio.run(engine.simulate_all(rule, options))
    click.echo(format_summary(results))


@main.command()
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False))
def validate(rule_file: str):
    """Check RULE_FILE for structural errors."""
    rule = _load_rule(rule_file)
    scope = "global" if is_global_rule(rule) else "per-file"
    facts = ", ".join(sorted(collect_facts_used(rule)))
    click.echo(f"Rule '{rule.name}' is valid ({scope}). Facts used: {facts}")


@main.command("list-files")
@click.option("--source-set", default=None, help="Directory or fixture bundle to load")
@click.option("--project-dir", default=None, help="Project directory")
def list_files(source_set: str | None, project_dir: str | None):
    """List the files available for simulation."""
    engine, _ = _ready_engine(project_dir, source_set, quiet=True)
    files = engine.get_available_files()
    for name in files:
        click.echo(name)
    click.echo(f"\n{len(files)} files total.")


@main.command("list-facts")
@click.option("--project-dir", default=None, help="Project directory")
def list_facts(project_dir: str | None):
    """List registered facts and operators by plugin."""
    project_dir = project_dir or os.getcwd()
    config = load_config(project_dir)
    registry = PluginRegistry(_plugins_for(config, project_dir)())

    click.echo(f"{'Name':<28} {'Kind':<10} {'Plugin':<12} Description")
    click.echo("-" * 80)
    for plugin in registry.plugins.values():
        for name in sorted(plugin.facts):
            click.echo(f"{name:<28} {'fact':<10} {plugin.name:<12} {plugin.description}")
        for name in sorted(plugin.operators):
            click.echo(f"{name:<28} {'operator':<10} {plugin.name:<12} {plugin.description}")
    click.echo(f"\n{len(registry.facts.names())} facts, {len(registry.operators.names())} operators "
               f"(including standard operators).")


@main.command()
@click.option("--project-dir", default=None, help="Project directory")
def init(project_dir: str | None):
    """Create a rulesim.yml config in the project."""
    project_dir = project_dir or os.getcwd()
    plugin_lines = "\n".join(f"  - {p}" for p in load_config(project_dir).plugins)
    config_content = f"""# rulesim configuration

source_set: .  # directory or fixture bundle (.yml/.json)

plugins:
{plugin_lines}

exclude_patterns:
  - .gitignore

# condition_timeout: 5  # seconds per fact resolution
# max_file_size: 1048576
# custom_plugins_dir: .rulesim/plugins/
"""
    config_path = os.path.join(project_dir, "rulesim.yml")
    with open(config_path, "w") as f:
        f.write(config_content)

    click.echo(f"Created {config_path}")


if __name__ == "__main__":
    main()

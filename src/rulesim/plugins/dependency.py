"""Dependency plugin: declared dependency versions from the corpus manifest."""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from rulesim.corpus import ArtifactContext, Corpus
from rulesim.registry import Plugin

logger = logging.getLogger("rulesim")

# "requests>=2.31", "click ==8.1.7", "pyyaml" (PEP 508, markers dropped)
_REQUIREMENT_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*([^;]*)")


def declared_dependencies(manifest: Mapping) -> dict[str, str]:
    """Map dependency name -> version spec for package.json or pyproject.toml manifests."""
    deps: dict[str, str] = {}
    for key in ("dependencies", "devDependencies", "peerDependencies"):
        section = manifest.get(key)
        if isinstance(section, Mapping):
            deps.update({str(k): str(v) for k, v in section.items()})

    project = manifest.get("project")
    if isinstance(project, Mapping):
        requirements = list(project.get("dependencies") or [])
        for extra in (project.get("optional-dependencies") or {}).values():
            requirements.extend(extra)
        for requirement in requirements:
            m = _REQUIREMENT_RE.match(str(requirement))
            if m:
                deps[m.group(1).lower()] = m.group(2).strip() or "*"
    return deps


def repo_dependency_versions(params: dict, context: ArtifactContext) -> dict[str, str]:
    deps = declared_dependencies(context.corpus.manifest)
    only = params.get("names")
    if only:
        return {name: deps[name] for name in only if name in deps}
    return deps


def _log_manifest(corpus: Corpus) -> None:
    logger.debug("dependency plugin: %d declared dependencies", len(declared_dependencies(corpus.manifest)))


def create_plugin() -> Plugin:
    return Plugin(
        name="dependency",
        description="Declared dependency versions from package.json or pyproject.toml",
        facts={"repoDependencyVersions": repo_dependency_versions},
        setup=_log_manifest,
    )

"""Tests for the dependency plugin."""
from __future__ import annotations

import json

from rulesim.corpus import ArtifactContext, Corpus
from rulesim.plugins.dependency import declared_dependencies, repo_dependency_versions

PACKAGE_JSON = json.dumps({
    "name": "web",
    "dependencies": {"react": "^18.2.0"},
    "devDependencies": {"typescript": "~5.3.0"},
})

PYPROJECT = """
[project]
name = "svc"
dependencies = ["Click>=8.1", "pyyaml", "requests[socks] ==2.31.0 ; python_version >= '3.8'"]

[project.optional-dependencies]
test = ["pytest>=7.4"]
"""


class TestDeclaredDependencies:
    def test_package_json(self) -> None:
        deps = declared_dependencies(json.loads(PACKAGE_JSON))
        assert deps == {"react": "^18.2.0", "typescript": "~5.3.0"}

    def test_pyproject(self) -> None:
        deps = declared_dependencies(Corpus.from_files({"pyproject.toml": PYPROJECT}).manifest)
        assert deps == {"click": ">=8.1", "pyyaml": "*", "requests": "==2.31.0", "pytest": ">=7.4"}

    def test_empty_manifest(self) -> None:
        assert declared_dependencies({}) == {}


class TestRepoDependencyVersions:
    def test_all_and_filtered(self) -> None:
        corpus = Corpus.from_files({"package.json": PACKAGE_JSON})
        context = ArtifactContext.for_global(corpus)

        assert repo_dependency_versions({}, context)["react"] == "^18.2.0"
        assert repo_dependency_versions({"names": ["react", "vue"]}, context) == {"react": "^18.2.0"}

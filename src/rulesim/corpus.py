"""Artifact source: the loaded corpus of files and the per-run evaluation context.

A source set is either a directory on disk or a fixture bundle file
(YAML or JSON) of the form::

    name: node-fullstack
    files:
      src/App.tsx: "export function App() {}"
      package.json:
        content: '{"name": "demo"}'
"""
from __future__ import annotations

import asyncio
import fnmatch
import json
import logging
import os
import posixpath
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

import yaml

from rulesim.errors import FixtureLoadError, UnknownFileError

if TYPE_CHECKING:
    from rulesim.parsers import ParserCache

logger = logging.getLogger("rulesim")

GLOBAL_CHECK = "REPO_GLOBAL_CHECK"

BUNDLE_SUFFIXES = {".yml", ".yaml", ".json"}
SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache", "dist"}
DEFAULT_MAX_FILE_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FileData:
    """One artifact as seen by fact providers."""
    file_path: str
    content: str

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.file_path) or self.file_path

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.file_name)[1].lower()

    def to_dict(self) -> dict:
        return {
            "fileName": self.file_name,
            "filePath": self.file_path,
            "relativePath": self.file_path,
            "content": self.content,
            "fileContent": self.content,
            "extension": self.extension,
        }


@dataclass(frozen=True)
class Corpus:
    """Read-only view of a loaded source set."""
    files: Mapping[str, str]
    manifest: Mapping = field(default_factory=dict)
    file_list: tuple[str, ...] = ()
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))
        object.__setattr__(self, "manifest", MappingProxyType(dict(self.manifest)))
        if not self.file_list:
            object.__setattr__(self, "file_list", tuple(self.files))

    @classmethod
    def from_files(cls, files: Mapping[str, str], name: str = "") -> Corpus:
        return cls(files=files, manifest=parse_manifest(files), name=name)

    def has_file(self, file_path: str) -> bool:
        return file_path in self.files

    def get_file(self, file_path: str) -> str:
        try:
            return self.files[file_path]
        except KeyError:
            raise UnknownFileError(file_path) from None

    def file_data(self, file_path: str) -> FileData:
        return FileData(file_path=file_path, content=self.get_file(file_path))

    def all_file_data(self) -> list[FileData]:
        return [FileData(file_path=p, content=self.files[p]) for p in self.file_list]

    def list_files(self, exclude_patterns: list[str] | tuple[str, ...] = ()) -> list[str]:
        """Sorted file paths, minus those matching any exclude glob (by name or path)."""
        paths = []
        for path in self.file_list:
            name = posixpath.basename(path)
            if any(fnmatch.fnmatch(name, pat) or fnmatch.fnmatch(path, pat) for pat in exclude_patterns):
                continue
            paths.append(path)
        return sorted(paths)

    def overlay(self, extra: Mapping[str, str]) -> Corpus:
        """Return a new corpus with ``extra`` layered on top (extra wins on collision)."""
        if not extra:
            return self
        files = dict(self.files)
        file_list = list(self.file_list)
        for path, content in extra.items():
            files[path] = content
            if path not in file_list:
                file_list.append(path)
        manifest = parse_manifest(files) if any(p in MANIFEST_FILES for p in extra) else self.manifest
        return Corpus(files=files, manifest=manifest, file_list=tuple(file_list), name=self.name)


@dataclass(frozen=True)
class ArtifactContext:
    """What a fact provider may inspect during one condition evaluation."""
    file: FileData
    corpus: Corpus
    is_global: bool = False
    parsers: ParserCache | None = None

    @classmethod
    def for_file(cls, corpus: Corpus, file: FileData, parsers: ParserCache | None = None) -> ArtifactContext:
        return cls(file=file, corpus=corpus, parsers=parsers)

    @classmethod
    def for_global(cls, corpus: Corpus, parsers: ParserCache | None = None) -> ArtifactContext:
        return cls(file=FileData(file_path=GLOBAL_CHECK, content=""), corpus=corpus, is_global=True, parsers=parsers)


MANIFEST_FILES = ("package.json", "pyproject.toml")


def parse_manifest(files: Mapping[str, str]) -> dict:
    """Parse the root project manifest (package.json, then pyproject.toml)."""
    if "package.json" in files:
        try:
            data = json.loads(files["package.json"])
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError:
            logger.warning("package.json is not valid JSON; manifest left empty")
            return {}
    if "pyproject.toml" in files:
        try:
            return tomllib.loads(files["pyproject.toml"])
        except tomllib.TOMLDecodeError:
            logger.warning("pyproject.toml is not valid TOML; manifest left empty")
            return {}
    return {}


class FixtureLoader:
    """Loads a source set into a ``Corpus``."""

    def __init__(self, max_file_size: int = DEFAULT_MAX_FILE_SIZE):
        self.max_file_size = max_file_size

    async def load(self, source_set_id: str) -> Corpus:
        return await asyncio.to_thread(self.load_sync, source_set_id)

    def load_sync(self, source_set_id: str) -> Corpus:
        path = Path(source_set_id).expanduser()
        if path.is_dir():
            return self._load_directory(path)
        if path.is_file() and path.suffix.lower() in BUNDLE_SUFFIXES:
            return self._load_bundle(path)
        raise FixtureLoadError(f"Failed to load source set \"{source_set_id}\": not a directory or bundle file")

    def _load_directory(self, root: Path) -> Corpus:
        files: dict[str, str] = {}
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                rel = full.relative_to(root).as_posix()
                try:
                    if full.stat().st_size > self.max_file_size:
                        logger.debug("Skipping %s: larger than %d bytes", rel, self.max_file_size)
                        continue
                    files[rel] = full.read_text(encoding="utf-8")
                except UnicodeDecodeError:
                    logger.debug("Skipping %s: not UTF-8 text", rel)
                except OSError:
                    logger.warning("Could not read %s", rel)

        logger.info("Loaded %d files from %s", len(files), root)
        return Corpus.from_files(files, name=root.name)

    def _load_bundle(self, path: Path) -> Corpus:
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (yaml.YAMLError, OSError) as exc:
            raise FixtureLoadError(f"Failed to load source set \"{path}\": {exc}") from exc

        if not isinstance(raw, dict) or not isinstance(raw.get("files"), dict):
            raise FixtureLoadError(f"Failed to load source set \"{path}\": bundle has no 'files' mapping")

        files: dict[str, str] = {}
        for file_path, entry in raw["files"].items():
            if isinstance(entry, dict):
                entry = entry.get("content", "")
            files[str(file_path)] = "" if entry is None else str(entry)

        corpus = Corpus.from_files(files, name=str(raw.get("name") or path.stem))
        if isinstance(raw.get("packageJson"), dict) and not corpus.manifest:
            corpus = Corpus(files=files, manifest=raw["packageJson"], name=corpus.name)

        logger.info("Loaded bundle %s with %d files", corpus.name, len(files))
        return corpus

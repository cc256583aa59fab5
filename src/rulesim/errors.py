"""Exception types raised by rulesim."""
from __future__ import annotations


class RuleSimError(Exception):
    """Base class for rulesim errors."""


class InitializationError(RuleSimError):
    """A stage of engine initialization failed. Retry with a fresh initialize()."""


class InitializationAborted(RuleSimError):
    """reset() was called while initialize() was in flight."""


class EngineNotReadyError(RuleSimError):
    """The engine was used before initialize() completed."""


class FixtureLoadError(RuleSimError):
    """A source set could not be loaded."""


class RuleValidationError(RuleSimError):
    """A rule definition is structurally malformed."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"{message} (at {path})" if path else message)


class UnknownFileError(RuleSimError):
    """A file name is not part of the loaded corpus."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"File not found in loaded corpus: {file_name}")


class UnknownFactError(RuleSimError):
    """No fact provider is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown fact: {name}")


class UnknownOperatorError(RuleSimError):
    """No operator is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown operator: {name}")


class PathExtractionError(RuleSimError):
    """A sub-path expression did not resolve against a fact value."""


class UnsupportedLanguageError(RuleSimError):
    """No parser is available for a file's extension."""

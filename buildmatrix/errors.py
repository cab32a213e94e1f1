"""Exception hierarchy shared by the build matrix tool."""
from __future__ import annotations

from pathlib import Path


class BuildMatrixError(RuntimeError):
    """Base class for errors that abort a run with a specific exit code."""

    exit_code = 1


class ConfigNotFound(BuildMatrixError):
    """Raised when the configuration directory or file cannot be read."""

    exit_code = 1


class ConfigParseError(BuildMatrixError):
    """Raised when a configuration field has an invalid value."""

    exit_code = 1

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class MissingBuildDescription(BuildMatrixError):
    exit_code = 2

    def __init__(self, path: Path):
        super().__init__(f"Build description not found: {path}")
        self.path = path


class CellExecutionFailure(BuildMatrixError):
    """Reported when at least one cell failed and strict mode is enabled."""

    exit_code = 3

    def __init__(self, labels: list[str]):
        super().__init__(f"Configuration failed for: {', '.join(labels)}")
        self.labels = labels


class DirectoryCreateError(BuildMatrixError):
    exit_code = 4

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Unable to create directory '{path}': {reason}")
        self.path = path


class LogWriteError(BuildMatrixError):
    exit_code = 5

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Unable to write run log '{path}': {reason}")
        self.path = path


__all__ = [
    "BuildMatrixError",
    "CellExecutionFailure",
    "ConfigNotFound",
    "ConfigParseError",
    "DirectoryCreateError",
    "LogWriteError",
    "MissingBuildDescription",
]

# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


class AssetflowError(Exception):
    """Base class for every error raised by assetflow."""


class ConfigurationError(AssetflowError):
    """The task graph is malformed (unknown name, clash, cycle)."""


class DuplicateTaskError(ConfigurationError):
    def __init__(self, name: str):
        super().__init__(f"Task or composite already registered: {name!r}")
        self.name = name


@dataclass(eq=False)
class TransformError(AssetflowError):
    """
    A single source file failed a transform.

    Recoverable for most tasks: the file is dropped and siblings continue.
    """
    transform: str
    path: Optional[Path]
    message: str
    line: int | None = None

    def __str__(self) -> str:
        where = str(self.path) if self.path is not None else "<stream>"
        if self.line is not None:
            where = f"{where}:{self.line}"
        return f"[{self.transform}] {where}: {self.message}"


@dataclass(eq=False)
class SequenceAbortError(AssetflowError):
    """Raised by a task to stop the sequence it belongs to."""
    task: str
    reason: str
    errors: list[TransformError] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"{self.task}: {self.reason}"]
        for e in self.errors:
            lines.append(f"  {e}")
        return "\n".join(lines)


@dataclass(eq=False)
class SyncError(AssetflowError):
    """A reconciliation task could not read, write or delete a file."""
    task: str
    path: Path
    action: str
    message: str

    def __str__(self) -> str:
        return f"[{self.task}] could not {self.action} {self.path}: {self.message}"


class WatchError(AssetflowError):
    """The filesystem subscription could not be established."""

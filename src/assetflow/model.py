# model.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional

from .errors import TransformError


SEQUENCE = "sequence"
BATCH = "batch"


@dataclass(frozen=True)
class SourceFile:
    """
    An in-memory file travelling through a transform chain.

    `path` is the output path relative to the destination directory; `origin`
    is the file it was read from (the first one, for concatenations).
    """
    path: PurePosixPath
    contents: bytes
    origin: Optional[Path] = None

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    def with_text(self, text: str) -> "SourceFile":
        return replace(self, contents=text.encode("utf-8"))

    def with_path(self, path: str | PurePosixPath) -> "SourceFile":
        return replace(self, path=PurePosixPath(path))


@dataclass
class TransformedFiles:
    """Result of one Transform.apply call."""
    files: List[SourceFile]
    errors: List[TransformError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)


@dataclass
class TaskReport:
    """What a task body hands back to the sequencer."""
    touched: List[Path] = field(default_factory=list)
    errors: List[TransformError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped: int = 0


TaskBody = Callable[[], Optional[TaskReport]]


@dataclass
class Task:
    """
    A named unit of work.

    `needs` are task or composite names run, in order, before `run`.
    """
    name: str
    run: TaskBody
    needs: list[str] = field(default_factory=list)
    description: str = ""


@dataclass(frozen=True)
class Composite:
    name: str
    members: tuple[str, ...]
    mode: str = SEQUENCE

    @property
    def is_batch(self) -> bool:
        return self.mode == BATCH


@dataclass
class BuildResult:
    """
    Outcome of one TaskGraph.run call.

    failed: direct members (or the task itself) that failed
    origin: leaf task where the first failure originated
    """
    name: str
    ok: bool
    failed: list[str] = field(default_factory=list)
    origin: str | None = None
    error: str | None = None
    touched: list[Path] = field(default_factory=list)
    children: list["BuildResult"] = field(default_factory=list)
    duration: float = 0.0
    skipped: bool = False

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

# tasks.py
from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Sequence, Tuple

from . import globs
from .cache import StalenessPredicate, mtime_newer
from .errors import SequenceAbortError, SyncError, TransformError
from .log import get_logger
from .model import SourceFile, TaskReport
from .transforms.files import Dest
from .transforms.registry import Transform


def _dedupe(paths: Iterable[Path]) -> List[Path]:
    return list(dict.fromkeys(paths))


class PipeTask:
    """
    Read sources, run them through a transform chain, write the result.

    Incremental mode asks `stale(src, dest)` before doing any work:
      - with `target` (a concatenated artifact) everything is rebuilt as soon
        as one source is stale against it, otherwise nothing runs
      - without it every source is checked against its own destination
        (`ext` replaces the suffix, e.g. ".css" for ".scss" sources)
    """

    def __init__(
        self,
        name: str,
        src: str | Path,
        patterns: Sequence[str],
        dest: str | Path,
        transforms: Sequence[Transform] = (),
        *,
        base: str | Path | None = None,
        incremental: bool = False,
        target: str | None = None,
        ext: str | None = None,
        stale: StalenessPredicate = mtime_newer,
        fail_fast: bool = False,
        write: bool = True,
    ):
        self.name = name
        self.src = Path(src)
        self.patterns = tuple(patterns)
        self.dest = Path(dest)
        self.transforms = list(transforms)
        self.base = Path(base) if base is not None else self.src
        self.incremental = incremental
        self.target = target
        self.ext = ext
        self.stale = stale
        self.fail_fast = fail_fast
        self.write = write
        self.log = get_logger(f"assetflow.task.{name}")

    def dest_for(self, src: Path) -> Path:
        rel = PurePosixPath(globs.relpath(src, self.base))
        if self.ext is not None:
            rel = rel.with_suffix(self.ext)
        return self.dest / Path(*rel.parts)

    def select(self, sources: List[Path]) -> List[Path]:
        """Sources that need work in incremental mode."""
        if not self.incremental:
            return sources
        if self.target is not None:
            target = self.dest / self.target
            if any(self.stale(s, target) for s in sources):
                return sources
            return []
        return [s for s in sources if self.stale(s, self.dest_for(s))]

    def _fail(self, reason: str, errors: List[TransformError]) -> SequenceAbortError:
        return SequenceAbortError(task=self.name, reason=reason, errors=errors)

    def __call__(self) -> TaskReport:
        report = TaskReport()
        sources = globs.resolve(self.src, self.patterns)
        if not sources:
            self.log.debug("No sources under %s matching %s", self.src, list(self.patterns))
            return report

        selected = self.select(sources)
        report.skipped = len(sources) - len(selected)
        if not selected:
            self.log.info("Up to date (%d file(s))", len(sources))
            return report

        files: List[SourceFile] = []
        for s in selected:
            try:
                data = s.read_bytes()
            except OSError as e:
                report.errors.append(TransformError("read", s, str(e)))
                continue
            files.append(SourceFile(path=PurePosixPath(globs.relpath(s, self.base)), contents=data, origin=s))
        if report.errors and self.fail_fast:
            raise self._fail("could not read sources", report.errors)

        for t in self.transforms:
            res = t.apply(files)
            report.warnings.extend(res.warnings)
            report.touched.extend(res.written)
            if res.errors:
                if self.fail_fast:
                    raise self._fail(f"{len(res.errors)} error(s) from {t.name}", res.errors)
                report.errors.extend(res.errors)
            files = res.files

        if self.write and files:
            res = Dest(self.dest).apply(files)
            report.touched.extend(res.written)
            if res.errors:
                if self.fail_fast:
                    raise self._fail("could not write output", res.errors)
                report.errors.extend(res.errors)

        report.touched = _dedupe(report.touched)
        self._record(selected, report.errors)
        return report

    def _record(self, processed: List[Path], errors: List[TransformError]) -> None:
        """Let fingerprint-style predicates remember what was built."""
        record = getattr(self.stale, "record", None)
        if record is None:
            return
        failed = {e.path.resolve() for e in errors if e.path is not None}
        for s in processed:
            if s.resolve() not in failed:
                record(s)
        save = getattr(self.stale, "save", None)
        if save is not None:
            save()


class SyncTask:
    """
    Mirror the files matching `patterns` under `src` into `dest`.

    - destination files without a source counterpart are deleted
    - sources newer than (or missing from) the destination are copied
    - destination paths matching `ignore_in_dest` are never touched
    """

    def __init__(
        self,
        name: str,
        src: str | Path,
        patterns: Sequence[str],
        dest: str | Path,
        *,
        ignore_in_dest: Sequence[str] = (),
        stale: StalenessPredicate = mtime_newer,
    ):
        self.name = name
        self.src = Path(src)
        self.patterns = tuple(patterns)
        self.dest = Path(dest)
        self.ignore_in_dest = tuple(ignore_in_dest)
        self.stale = stale
        self.log = get_logger(f"assetflow.task.{name}")

    def _ignored(self, rel: str) -> bool:
        return bool(self.ignore_in_dest) and globs.matches(rel, self.ignore_in_dest)

    def _walk_dest(self) -> Tuple[List[Path], List[Path]]:
        """(dirs, files) under dest, top-down, never entering ignored directories."""
        dirs: List[Path] = []
        files: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(self.dest):
            base = Path(dirpath)
            rel_base = base.relative_to(self.dest).as_posix()
            prefix = "" if rel_base == "." else rel_base + "/"
            dirnames[:] = sorted(d for d in dirnames if not self._ignored(prefix + d + "/"))
            dirs.extend(base / d for d in dirnames)
            files.extend(base / name for name in sorted(filenames))
        return dirs, files

    def __call__(self) -> TaskReport:
        report = TaskReport()
        wanted = {globs.relpath(s, self.src): s for s in globs.resolve(self.src, self.patterns)}

        if self.dest.is_dir():
            dirs, files = self._walk_dest()
            for p in files:
                rel = p.relative_to(self.dest).as_posix()
                if rel in wanted or self._ignored(rel):
                    continue
                try:
                    p.unlink()
                except OSError as e:
                    raise SyncError(task=self.name, path=p, action="delete", message=str(e)) from e
                self.log.info("Removed %s", p)
                report.touched.append(p)
            self._prune_empty_dirs(dirs)

        for rel, s in sorted(wanted.items()):
            target = self.dest / rel
            if not self.stale(s, target):
                report.skipped += 1
                continue
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(s, target)
            except OSError as e:
                raise SyncError(task=self.name, path=target, action="copy", message=str(e)) from e
            self.log.info("Copied %s", rel)
            report.touched.append(target)

        return report

    def _prune_empty_dirs(self, dirs: List[Path]) -> None:
        # deepest first, so parents emptied by their children go too
        for d in reversed(dirs):
            if d.is_symlink() or any(d.iterdir()):
                continue
            try:
                d.rmdir()
            except OSError as e:
                raise SyncError(task=self.name, path=d, action="delete", message=str(e)) from e


class CleanTask:
    """Empty the destination root; the root directory itself is kept."""

    def __init__(self, name: str, root: str | Path):
        self.name = name
        self.root = Path(root)
        self.log = get_logger(f"assetflow.task.{name}")

    def __call__(self) -> TaskReport:
        if self.root.exists():
            for child in sorted(self.root.iterdir()):
                try:
                    if child.is_dir() and not child.is_symlink():
                        shutil.rmtree(child)
                    else:
                        child.unlink()
                except OSError as e:
                    raise SyncError(task=self.name, path=child, action="delete", message=str(e)) from e
                self.log.debug("Removed %s", child)
        self.root.mkdir(parents=True, exist_ok=True)
        return TaskReport()

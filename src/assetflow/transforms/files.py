# transforms/files.py
from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import List

from ..errors import TransformError
from ..model import SourceFile, TransformedFiles
from .registry import FileTransform


class Concat:
    """Join every file of the stream into a single file."""

    name = "concat"

    def __init__(self, filename: str, separator: str = "\n"):
        self.filename = filename
        self.separator = separator.encode("utf-8")

    def apply(self, files: List[SourceFile]) -> TransformedFiles:
        if not files:
            return TransformedFiles(files=[])
        joined = self.separator.join(f.contents.rstrip(b"\n") for f in files) + b"\n"
        return TransformedFiles(
            files=[SourceFile(path=PurePosixPath(self.filename), contents=joined, origin=files[0].origin)]
        )


class Rename(FileTransform):
    name = "rename"

    def __init__(self, filename: str | None = None, *, suffix: str | None = None, extname: str | None = None):
        if not (filename or suffix or extname):
            raise ValueError("rename needs a filename, a suffix or an extname")
        self.filename = filename
        self.suffix = suffix
        self.extname = extname

    def transform_file(self, f: SourceFile) -> SourceFile:
        path = f.path
        if self.filename:
            return f.with_path(path.with_name(self.filename))
        stem = path.stem + (self.suffix or "")
        ext = self.extname if self.extname is not None else path.suffix
        return f.with_path(path.with_name(stem + ext))


class Dest:
    """Write the current file set under `directory` and pass it through."""

    name = "dest"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def apply(self, files: List[SourceFile]) -> TransformedFiles:
        written: List[Path] = []
        kept: List[SourceFile] = []
        errors: List[TransformError] = []
        for f in files:
            target = self.directory / Path(*f.path.parts)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(f.contents)
            except OSError as e:
                errors.append(TransformError(self.name, target, f"write failed: {e}"))
                continue
            written.append(target)
            kept.append(f)
        return TransformedFiles(files=kept, errors=errors, written=written)

# transforms/registry.py
from __future__ import annotations

import importlib
import threading
from pathlib import Path
from typing import Callable, Dict, List, Protocol, Union, runtime_checkable

from ..errors import ConfigurationError, TransformError
from ..model import SourceFile, TransformedFiles


@runtime_checkable
class Transform(Protocol):
    """Anything that turns a file set into a new file set."""
    name: str

    def apply(self, files: List[SourceFile]) -> TransformedFiles: ...


class FileTransform:
    """
    Base class for transforms that work one file at a time.

    A TransformError raised for one file drops that file and is reported;
    the remaining files keep going.
    """

    name = "file"

    def transform_file(self, f: SourceFile) -> SourceFile | None:
        raise NotImplementedError

    def apply(self, files: List[SourceFile]) -> TransformedFiles:
        out: List[SourceFile] = []
        errors: List[TransformError] = []
        for f in files:
            try:
                res = self.transform_file(f)
            except TransformError as e:
                errors.append(e)
                continue
            if res is not None:
                out.append(res)
        return TransformedFiles(files=out, errors=errors)

    def error(self, f: SourceFile, message: str, line: int | None = None) -> TransformError:
        return TransformError(self.name, f.origin or Path(f.path), message, line)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


Factory = Callable[..., Transform]

# name -> "module:attribute"; modules are imported on first use so that
# e.g. Pillow is only loaded by builds that optimize images
BUILTIN_TRANSFORMS: Dict[str, str] = {
    "sass": "assetflow.transforms.styles:SassCompile",
    "sass-lint": "assetflow.transforms.styles:SassLint",
    "clean-css": "assetflow.transforms.styles:CleanCss",
    "concat": "assetflow.transforms.files:Concat",
    "rename": "assetflow.transforms.files:Rename",
    "dest": "assetflow.transforms.files:Dest",
    "js-lint": "assetflow.transforms.scripts:JsLint",
    "strip-debug": "assetflow.transforms.scripts:StripDebug",
    "uglify": "assetflow.transforms.scripts:Uglify",
    "imagemin": "assetflow.transforms.images:ImageMin",
    "twig": "assetflow.transforms.views:TwigRender",
}


class TransformRegistry:
    """Named transform factories, resolved lazily."""

    def __init__(self, entries: Dict[str, Union[str, Factory]] | None = None):
        self._entries: Dict[str, Union[str, Factory]] = {}
        self._resolved: Dict[str, Factory] = {}
        self._lock = threading.Lock()
        for name, target in (entries or {}).items():
            self.register(name, target)

    def register(self, name: str, factory: Union[str, Factory], *, replace: bool = False) -> None:
        if name in self._entries and not replace:
            raise ConfigurationError(f"Transform already registered: {name!r}")
        self._entries[name] = factory
        self._resolved.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def names(self) -> List[str]:
        return sorted(self._entries)

    def target(self, name: str) -> str:
        entry = self._entries[name]
        if isinstance(entry, str):
            return entry
        return f"{getattr(entry, '__module__', '?')}:{getattr(entry, '__qualname__', repr(entry))}"

    def resolve(self, name: str) -> Factory:
        if name not in self._entries:
            raise ConfigurationError(f"Unknown transform {name!r}. Registered: {self.names()}")
        with self._lock:
            if name in self._resolved:
                return self._resolved[name]
            entry = self._entries[name]
            if isinstance(entry, str):
                module_name, _, attr = entry.partition(":")
                try:
                    module = importlib.import_module(module_name)
                    factory = getattr(module, attr)
                except (ImportError, AttributeError) as e:
                    raise ConfigurationError(f"Cannot load transform {name!r} from {entry}: {e}") from e
            else:
                factory = entry
            self._resolved[name] = factory
            return factory

    def create(self, name: str, **options) -> Transform:
        return self.resolve(name)(**options)


def default_registry() -> TransformRegistry:
    return TransformRegistry(BUILTIN_TRANSFORMS)

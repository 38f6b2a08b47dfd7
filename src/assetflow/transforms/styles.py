# transforms/styles.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Tuple

import rcssmin
import sass
import yaml

from ..errors import ConfigurationError, TransformError
from ..globs import matches
from ..model import SourceFile, TransformedFiles
from .registry import FileTransform


# ---------------------------------------------------------------------
# Compile
# ---------------------------------------------------------------------

class SassCompile(FileTransform):
    """Compile .scss files with libsass; partials (`_*.scss`) are not emitted."""

    name = "sass"

    def __init__(self, include_paths: Iterable[str | Path] = (), output_style: str = "expanded"):
        self.include_paths = [str(p) for p in include_paths]
        self.output_style = output_style

    def transform_file(self, f: SourceFile) -> SourceFile | None:
        if f.path.name.startswith("_"):
            return None
        include_paths = list(self.include_paths)
        if f.origin is not None:
            include_paths.insert(0, str(f.origin.parent))
        try:
            css = sass.compile(
                string=f.text,
                include_paths=include_paths,
                output_style=self.output_style,
            )
        except sass.CompileError as e:
            raise self.error(f, str(e).strip().splitlines()[0] if str(e).strip() else "compile error")
        except UnicodeDecodeError as e:
            raise self.error(f, f"not valid UTF-8: {e}")
        return f.with_path(f.path.with_suffix(".css")).with_text(css)


class CleanCss(FileTransform):
    name = "clean-css"

    def __init__(self, keep_bang_comments: bool = False):
        self.keep_bang_comments = keep_bang_comments

    def transform_file(self, f: SourceFile) -> SourceFile:
        try:
            text = f.text
        except UnicodeDecodeError as e:
            raise self.error(f, f"not valid UTF-8: {e}")
        return f.with_text(rcssmin.cssmin(text, keep_bang_comments=self.keep_bang_comments))


# ---------------------------------------------------------------------
# Lint
# ---------------------------------------------------------------------
# Configured the sass-lint way:
#
#   options:
#     merge-default-rules: true
#   files:
#     ignore: ["app/scss/vendor/**"]   # relative to this file's directory
#   rules:
#     no-important: 2            # 0 off, 1 warning, 2 error
#     max-line-length: [1, {length: 100}]
#
# Only severity 2 violations are errors; they are what fails the build.
# ---------------------------------------------------------------------

DEFAULT_RULES: Dict[str, Tuple[int, Dict]] = {
    "no-debug": (1, {}),
    "no-warn": (1, {}),
    "no-important": (1, {}),
    "no-ids": (1, {}),
    "no-trailing-whitespace": (1, {}),
    "final-newline": (1, {"include": True}),
    "indentation": (1, {"size": 2}),
    "max-line-length": (0, {"length": 80}),
}

_ID_SELECTOR = re.compile(r"#(?!\{)[A-Za-z_-][\w-]*")
_IMPORTANT = re.compile(r"!\s*important\b", re.I)


def _parse_rule(value) -> Tuple[int, Dict]:
    if isinstance(value, (list, tuple)):
        severity = int(value[0]) if value else 0
        opts = dict(value[1]) if len(value) > 1 and isinstance(value[1], Mapping) else {}
        return severity, opts
    return int(value), {}


def load_lint_config(path: str | Path | None) -> Tuple[Dict[str, Tuple[int, Dict]], List[str]]:
    """Return (rules, ignore_patterns) for a .sass-lint.yml file (or defaults)."""
    rules = dict(DEFAULT_RULES)
    ignore: List[str] = []
    if path is None or not Path(path).exists():
        return rules, ignore

    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid lint config {path}: {e}") from e
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Lint config {path} must be a mapping")

    options = data.get("options") or {}
    if options.get("merge-default-rules", True) is False:
        rules = {}
    for name, value in (data.get("rules") or {}).items():
        try:
            severity, opts = _parse_rule(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid setting for lint rule {name!r}: {value!r}") from e
        default_opts = DEFAULT_RULES.get(name, (0, {}))[1]
        rules[name] = (severity, {**default_opts, **opts})
    files = data.get("files") or {}
    ignore = list(files.get("ignore") or [])
    return rules, ignore


def _strip_comment(line: str, in_block: bool) -> Tuple[str, bool]:
    out = []
    i = 0
    while i < len(line):
        if in_block:
            end = line.find("*/", i)
            if end < 0:
                return "".join(out), True
            i = end + 2
            in_block = False
            continue
        if line.startswith("/*", i):
            in_block = True
            i += 2
            continue
        if line.startswith("//", i):
            break
        out.append(line[i])
        i += 1
    return "".join(out), in_block


def lint_scss(text: str, rules: Mapping[str, Tuple[int, Dict]]) -> List[Tuple[int, int, str, str]]:
    """Return (severity, line, rule, message) for every violation."""
    found: List[Tuple[int, int, str, str]] = []

    def hit(rule: str, line_no: int, message: str) -> None:
        severity = rules.get(rule, (0, {}))[0]
        if severity > 0:
            found.append((severity, line_no, rule, message))

    def opt(rule: str, key: str, default):
        return rules.get(rule, (0, {}))[1].get(key, default)

    in_block = False
    lines = text.split("\n")
    for idx, raw in enumerate(lines, start=1):
        code, in_block = _strip_comment(raw, in_block)
        stripped = code.strip()

        if raw != raw.rstrip() and raw.strip():
            hit("no-trailing-whitespace", idx, "Trailing whitespace")
        max_len = int(opt("max-line-length", "length", 80))
        if len(raw) > max_len:
            hit("max-line-length", idx, f"Line exceeds {max_len} characters")

        indent = raw[: len(raw) - len(raw.lstrip())]
        if stripped:
            size = int(opt("indentation", "size", 2))
            if "\t" in indent:
                hit("indentation", idx, "Indentation uses tabs")
            elif size and len(indent) % size:
                hit("indentation", idx, f"Indentation is not a multiple of {size}")

        if stripped.startswith("@debug"):
            hit("no-debug", idx, "@debug statement")
        if stripped.startswith("@warn"):
            hit("no-warn", idx, "@warn statement")
        if _IMPORTANT.search(code):
            hit("no-important", idx, "!important declaration")
        if "{" in code:
            selector = code.split("{", 1)[0]
            if not selector.lstrip().startswith("@") and _ID_SELECTOR.search(selector):
                hit("no-ids", idx, "ID selector")

    if opt("final-newline", "include", True) and text and not text.endswith("\n"):
        hit("final-newline", len(lines), "Files must end with a new line")
    return found


class SassLint:
    """
    Check .scss sources against the configured rules.

    Files pass through untouched; severity 2 violations come back as errors
    and severity 1 as warnings.
    """

    name = "sass-lint"

    def __init__(self, config: str | Path | None = ".sass-lint.yml", rules: Mapping[str, object] | None = None):
        self.config = config
        self.rules, self.ignore = load_lint_config(config)
        # ignore patterns are relative to the directory holding the config
        self.base = Path(config).resolve().parent if config is not None else Path.cwd().resolve()
        for rule, value in (rules or {}).items():
            self.rules[rule] = _parse_rule(value)

    def _ignored(self, where: Path) -> bool:
        if not self.ignore:
            return False
        try:
            rel = where.resolve().relative_to(self.base).as_posix()
        except ValueError:
            # outside the project: no ignore pattern applies
            return False
        return matches(rel, self.ignore)

    def apply(self, files: List[SourceFile]) -> TransformedFiles:
        errors: List[TransformError] = []
        warnings: List[str] = []
        for f in files:
            where = f.origin or Path(f.path)
            if self._ignored(where):
                continue
            try:
                text = f.text
            except UnicodeDecodeError as e:
                errors.append(TransformError(self.name, where, f"not valid UTF-8: {e}"))
                continue
            for severity, line, rule, message in lint_scss(text, self.rules):
                if severity >= 2:
                    errors.append(TransformError(self.name, where, f"{message} ({rule})", line))
                else:
                    warnings.append(f"{where}:{line}: {message} ({rule})")
        return TransformedFiles(files=list(files), errors=errors, warnings=warnings)

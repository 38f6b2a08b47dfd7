# transforms/scripts.py
from __future__ import annotations

import re
from pathlib import Path
from typing import List

import rjsmin

from ..model import SourceFile, TransformedFiles
from .registry import FileTransform


_DEBUGGER = re.compile(r"(?<![.\w$])debugger\b")
_LOOSE_EQ = re.compile(r"(?<![=!<>])(==|!=)(?!=)")
_STRINGS = re.compile(r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'|`(?:\\.|[^`\\])*`)")

# Strings and comments are matched first and kept as they are, so only real
# statements are removed:
#   - a console.* call starting a line, with one level of nested parens
#   - a debugger statement after a line start, `;`, `{` or `}`
_DEBUG_TOKENS = re.compile(
    r"(?P<keep>\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`"
    r"|//[^\n]*|/\*.*?\*/)"
    r"|(?P<console>(?:\A|(?<=\n))[ \t]*console\.\w+\((?:[^()]|\([^()]*\))*\)[ \t]*;?[ \t]*\n?)"
    r"|(?P<debugger>(?:\A|(?<=[;{}\n]))[ \t]*debugger\b[ \t]*;?)",
    re.S,
)


def _strip_debug_token(m: re.Match) -> str:
    return m.group("keep") if m.group("keep") is not None else ""


class JsLint:
    """
    Report suspicious code in the jshint spirit.

    Reporter only: findings are warnings and never drop files.
    """

    name = "js-lint"

    def __init__(self, eqeqeq: bool = True, trailing: bool = True, debug: bool = True):
        self.eqeqeq = eqeqeq
        self.trailing = trailing
        self.debug = debug

    def check(self, text: str) -> List[tuple[int, str]]:
        found = []
        for idx, raw in enumerate(text.split("\n"), start=1):
            code = _STRINGS.sub('""', raw).split("//", 1)[0]
            if self.trailing and raw != raw.rstrip() and raw.strip():
                found.append((idx, "Trailing whitespace."))
            if self.debug and _DEBUGGER.search(code):
                found.append((idx, "Forgotten 'debugger' statement?"))
            if self.eqeqeq:
                for m in _LOOSE_EQ.finditer(code):
                    found.append((idx, f"Expected '{m.group(1)}=' and instead saw '{m.group(1)}'."))
        return found

    def apply(self, files: List[SourceFile]) -> TransformedFiles:
        warnings: List[str] = []
        for f in files:
            where = f.origin or Path(f.path)
            try:
                text = f.text
            except UnicodeDecodeError:
                warnings.append(f"{where}: not valid UTF-8, not linted")
                continue
            for line, message in self.check(text):
                warnings.append(f"{where}:{line}: {message}")
        return TransformedFiles(files=list(files), warnings=warnings)


class StripDebug(FileTransform):
    """Remove console.* calls and debugger statements."""

    name = "strip-debug"

    def transform_file(self, f: SourceFile) -> SourceFile:
        try:
            text = f.text
        except UnicodeDecodeError as e:
            raise self.error(f, f"not valid UTF-8: {e}")
        return f.with_text(_DEBUG_TOKENS.sub(_strip_debug_token, text))


class Uglify(FileTransform):
    name = "uglify"

    def __init__(self, keep_bang_comments: bool = False):
        self.keep_bang_comments = keep_bang_comments

    def transform_file(self, f: SourceFile) -> SourceFile:
        try:
            text = f.text
        except UnicodeDecodeError as e:
            raise self.error(f, f"not valid UTF-8: {e}")
        return f.with_text(rjsmin.jsmin(text, keep_bang_comments=self.keep_bang_comments))

from __future__ import annotations

import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """`*.{png,jpg}` -> [`*.png`, `*.jpg`]; nested groups expand left to right."""
    m = _BRACES.search(pattern)
    if not m:
        return [pattern]
    head, tail = pattern[: m.start()], pattern[m.end():]
    out: List[str] = []
    for option in m.group(1).split(","):
        out.extend(expand_braces(head + option + tail))
    return out


def matches(rel: str, patterns: Iterable[str]) -> bool:
    """
    Match a posix relative path against glob patterns.

    fnmatch lets `*` cross directory separators, so `assets/**` matches any
    depth; a leading `**/` also matches files at the top level.
    """
    rel = rel.replace("\\", "/")
    for pat in patterns:
        for p in expand_braces(pat):
            if fnmatch(rel, p):
                return True
            if p.startswith("**/") and fnmatch(rel, p[3:]):
                return True
    return False


def resolve(root: Path, patterns: Iterable[str]) -> List[Path]:
    """
    Expand patterns relative to `root` into existing files.

    Sorted, de-duplicated, files only.
    """
    if not root.is_dir():
        return []
    seen = set()
    out: List[Path] = []
    for pat in patterns:
        for p in expand_braces(pat.strip()):
            if not p:
                continue
            for match in sorted(root.glob(p)):
                if not match.is_file():
                    continue
                key = match.resolve()
                if key not in seen:
                    seen.add(key)
                    out.append(match)
    return out


def relpath(path: Path, root: Path) -> str:
    return path.resolve().relative_to(root.resolve()).as_posix()

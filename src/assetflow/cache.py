# cache.py
from __future__ import annotations

import hashlib
import json
import threading
from pathlib import Path
from typing import Callable, Dict

# ---------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------
# A staleness predicate answers "does this source need reprocessing to
# produce that destination?":
#
#   predicate(src: Path, dest: Path) -> bool
#
# mtime_newer is the default (source newer than destination, or destination
# missing). FingerprintStore keeps a content hash per source in a JSON
# manifest so tests and CI can avoid depending on filesystem clocks.
# ---------------------------------------------------------------------

StalenessPredicate = Callable[[Path, Path], bool]

DEFAULT_MANIFEST = ".assetflow/fingerprints.json"


def mtime_newer(src: Path, dest: Path) -> bool:
    try:
        dest_mtime = dest.stat().st_mtime
    except FileNotFoundError:
        return True
    return src.stat().st_mtime > dest_mtime


def always(src: Path, dest: Path) -> bool:
    return True


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _json_dumps_stable(obj) -> str:
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False)


class FingerprintStore:
    """
    Content fingerprints of processed sources.

    Usable as a staleness predicate: a source is stale when its destination
    is missing or its digest differs from the one recorded after the last
    successful run.
    """

    def __init__(self, manifest: str | Path = DEFAULT_MANIFEST, *, digest: Callable[[Path], str] = _sha256_file):
        self.manifest = Path(manifest)
        self.digest = digest
        self._lock = threading.Lock()
        self._entries: Dict[str, str] = {}
        if self.manifest.exists():
            try:
                self._entries = dict(json.loads(self.manifest.read_text(encoding="utf-8")))
            except (ValueError, TypeError):
                # unreadable manifest means everything is stale
                self._entries = {}

    @staticmethod
    def _key(src: Path) -> str:
        return str(src.resolve())

    def __call__(self, src: Path, dest: Path) -> bool:
        if not dest.exists():
            return True
        with self._lock:
            recorded = self._entries.get(self._key(src))
        return recorded is None or recorded != self.digest(src)

    def record(self, src: Path) -> None:
        value = self.digest(src)
        with self._lock:
            self._entries[self._key(src)] = value

    def save(self) -> None:
        with self._lock:
            payload = _json_dumps_stable(self._entries)
        self.manifest.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.manifest.with_suffix(self.manifest.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(self.manifest)

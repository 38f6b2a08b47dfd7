# reload.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List

from .log import get_logger


log = get_logger("assetflow.reload")

STYLE_SUFFIXES = {".css"}


@dataclass(frozen=True)
class ReloadEvent:
    """Destination paths touched by one successful task run."""
    task: str
    paths: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def css_only(self) -> bool:
        return bool(self.paths) and all(p.suffix in STYLE_SUFFIXES for p in self.paths)


Subscriber = Callable[[ReloadEvent], None]


class ReloadChannel:
    """
    Thread-safe publish/subscribe path from completed tasks to live clients.

    Publishing happens on whatever thread the task ran on; subscribers must
    hand the event over to their own loop if they have one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(fn)

        def _unsubscribe() -> None:
            with self._lock:
                if fn in self._subscribers:
                    self._subscribers.remove(fn)

        return _unsubscribe

    def publish(self, event: ReloadEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for fn in subscribers:
            try:
                fn(event)
            except Exception:  # noqa: BLE001
                # a broken subscriber must not fail the task that published
                log.exception("Reload subscriber failed for %s", event.task)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

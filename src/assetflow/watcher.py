# watcher.py
from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import AssetflowError, ConfigurationError, WatchError
from .log import get_logger
from .model import BuildResult
from .runner import TaskGraph


RELEVANT_EVENTS = {"created", "modified", "deleted", "moved"}


@dataclass(frozen=True)
class WatchBinding:
    source_dir: Path
    group: str
    recursive: bool = True


class _GroupTrigger(FileSystemEventHandler):
    """Forward relevant filesystem events of one binding to the watcher."""

    def __init__(self, binding: WatchBinding, fire: Callable[[WatchBinding, str], None]):
        super().__init__()
        self.binding = binding
        self.fire = fire

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in RELEVANT_EVENTS:
            return
        # a directory "modified" event always accompanies a change inside it
        if event.is_directory and event.event_type == "modified":
            return
        self.fire(self.binding, str(event.src_path))


class Watcher:
    """
    Re-run task groups when their source directories change.

    Runs happen on a worker pool so the observer thread never blocks. With
    `debounce > 0` a burst of events for the same group collapses into one
    run, started `debounce` seconds after the last event.
    """

    def __init__(
        self,
        graph: TaskGraph,
        *,
        debounce: float = 0.0,
        executor: Executor | None = None,
        observer_factory: Callable[[], object] = Observer,
        on_result: Optional[Callable[[BuildResult], None]] = None,
    ):
        self.graph = graph
        self.debounce = debounce
        self.on_result = on_result
        self.bindings: List[WatchBinding] = []
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="watch")
        self._observer_factory = observer_factory
        self._observer = None
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self.log = get_logger("assetflow.watcher")

    @property
    def running(self) -> bool:
        return self._observer is not None

    def watch(self, source_dir: str | Path, group: str, *, recursive: bool = True) -> WatchBinding:
        src = Path(source_dir)
        if not src.is_dir():
            raise WatchError(f"Cannot watch {src}: not a directory")
        if group not in self.graph:
            raise ConfigurationError(f"Cannot watch {src}: unknown task group {group!r}")
        binding = WatchBinding(source_dir=src, group=group, recursive=recursive)
        self.bindings.append(binding)
        if self._observer is not None:
            self._schedule(self._observer, binding)
        return binding

    def _schedule(self, observer, binding: WatchBinding) -> None:
        handler = _GroupTrigger(binding, self.trigger)
        try:
            observer.schedule(handler, str(binding.source_dir), recursive=binding.recursive)
        except OSError as e:
            raise WatchError(f"Cannot watch {binding.source_dir}: {e}") from e
        self.log.info("Watching %s -> %s", binding.source_dir, binding.group)

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = self._observer_factory()
        for binding in self.bindings:
            self._schedule(observer, binding)
        try:
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatchError(f"Cannot start filesystem observer: {e}") from e
        self._observer = observer

    def stop(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def trigger(self, binding: WatchBinding, path: str) -> None:
        self.log.debug("Change in %s: %s", binding.source_dir, path)
        if self.debounce <= 0:
            self._submit(binding.group)
            return
        with self._lock:
            pending = self._timers.pop(binding.group, None)
            if pending is not None:
                pending.cancel()
            timer = threading.Timer(self.debounce, self._fire_timer, args=(binding.group,))
            timer.daemon = True
            self._timers[binding.group] = timer
            timer.start()

    def _fire_timer(self, group: str) -> None:
        with self._lock:
            self._timers.pop(group, None)
        self._submit(group)

    def _submit(self, group: str) -> None:
        try:
            self._executor.submit(self._run, group)
        except RuntimeError:
            # executor already shut down
            self.log.debug("Watcher stopped; ignoring change for %s", group)

    def _run(self, group: str) -> BuildResult | None:
        try:
            result = self.graph.run(group)
        except AssetflowError as e:
            self.log.error("Could not run %s: %s", group, e)
            return None
        if result.ok:
            self.log.info("'%s' rebuilt", group)
        else:
            self.log.error("'%s' failed in %s", group, ", ".join(result.failed))
        if self.on_result is not None:
            self.on_result(result)
        return result

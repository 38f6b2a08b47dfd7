from __future__ import annotations

import threading
from typing import Dict, Optional

from .log import get_logger
from .model import TaskReport
from .paths import PathConfig
from .runner import TaskGraph
from .server import DevServer
from .ui.console import get_console
from .watcher import Watcher


# asset group -> task group re-run when its sources change
WATCH_GROUPS: Dict[str, str] = {
    "fonts": "compile-fonts",
    "imgs": "compile-imgs",
    "css": "compile-scss",
    "js": "compile-scripts",
    "views": "compile-views",
}


class DevSession:
    """
    Dev server plus one watcher per asset group.

    Used as the body of the `serve` task: it blocks until interrupted (or
    until `stop_event` is set) and tears everything down on the way out.
    """

    def __init__(
        self,
        graph: TaskGraph,
        paths: PathConfig,
        *,
        server: Optional[DevServer] = None,
        watcher: Optional[Watcher] = None,
        watch_groups: Optional[Dict[str, str]] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.graph = graph
        self.paths = paths
        self.server = server or DevServer(graph.channel)
        self.watcher = watcher or Watcher(graph)
        self.watch_groups = dict(WATCH_GROUPS if watch_groups is None else watch_groups)
        self.stop_event = stop_event or threading.Event()
        self.log = get_logger("assetflow.session")

    def start(self) -> str:
        url = self.server.start(self.paths.dist_root)
        for asset_group, task_group in self.watch_groups.items():
            src = self.paths[asset_group].src
            if not src.is_dir():
                self.log.warning("Not watching %s: %s does not exist", asset_group, src)
                continue
            self.watcher.watch(src, task_group)
        self.watcher.start()
        return url

    def stop(self) -> None:
        self.watcher.stop()
        self.server.stop()

    def __call__(self) -> TaskReport:
        console = get_console()
        try:
            url = self.start()
            console.print_server_started(url, self.paths.dist_root, self.watcher.bindings)
            while not self.stop_event.wait(timeout=0.5):
                pass
        finally:
            self.stop()
        return TaskReport()


def install_serve(graph: TaskGraph, session: DevSession, *, build: str = "build") -> None:
    """Register `serve` (needs `build`) and its `default` alias."""
    graph.register_task("serve", session, needs=[build], description="dev server + watchers")
    graph.define_sequence("default", ["serve"])

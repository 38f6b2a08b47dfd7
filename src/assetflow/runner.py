# runner.py
from __future__ import annotations

import runpy
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .dag import validate_graph
from .errors import AssetflowError, ConfigurationError, DuplicateTaskError
from .log import get_logger
from .model import BATCH, SEQUENCE, BuildResult, Composite, Task, TaskBody, TaskReport
from .reload import ReloadChannel, ReloadEvent


class TaskGraph:
    """
    Registry of tasks and composites, and the sequencer that runs them.

    Composites come in two flavours:
      - sequence: members run in order, the first failure aborts the rest
      - batch:    members run concurrently, every failure is collected
    """

    def __init__(
        self,
        *,
        max_workers: int | None = None,
        channel: ReloadChannel | None = None,
    ):
        self.max_workers = max_workers
        self.channel = channel if channel is not None else ReloadChannel()
        self._tasks: Dict[str, Task] = {}
        self._composites: Dict[str, Composite] = {}
        self._task_locks: Dict[str, threading.Lock] = {}
        self._validated = False
        self.logger = get_logger("assetflow.runner")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _ensure_free(self, name: str) -> None:
        if name in self._tasks or name in self._composites:
            raise DuplicateTaskError(name)

    def add(self, task: Task) -> Task:
        self._ensure_free(task.name)
        self._tasks[task.name] = task
        self._task_locks[task.name] = threading.Lock()
        self._validated = False
        return task

    def register_task(
        self,
        name: str,
        body: TaskBody,
        *,
        needs: Iterable[str] | None = None,
        description: str = "",
    ) -> Task:
        return self.add(Task(name=name, run=body, needs=list(needs or []), description=description))

    def _define(self, name: str, members: Iterable[str], mode: str) -> Composite:
        self._ensure_free(name)
        comp = Composite(name=name, members=tuple(members), mode=mode)
        self._composites[name] = comp
        self._validated = False
        return comp

    def define_sequence(self, name: str, members: Iterable[str]) -> Composite:
        return self._define(name, members, SEQUENCE)

    def define_batch(self, name: str, members: Iterable[str]) -> Composite:
        return self._define(name, members, BATCH)

    def validate(self) -> List[List[str]]:
        """Check references and cycles before anything runs."""
        levels = validate_graph(self._tasks, self._composites)
        self._validated = True
        return levels

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> Dict[str, Task]:
        return dict(self._tasks)

    @property
    def composites(self) -> Dict[str, Composite]:
        return dict(self._composites)

    def __contains__(self, name: str) -> bool:
        return name in self._tasks or name in self._composites

    def names(self) -> List[str]:
        return sorted(set(self._tasks) | set(self._composites))

    def describe(self, name: str) -> str:
        comp = self._composites.get(name)
        if comp is not None:
            joiner = " + " if comp.is_batch else " -> "
            return f"{comp.mode}: {joiner.join(comp.members)}"
        task = self._tasks.get(name)
        if task is None:
            raise ConfigurationError(f"Unknown task: {name!r}")
        text = task.description or "task"
        if task.needs:
            text += f" (needs {', '.join(task.needs)})"
        return text

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, name: str) -> BuildResult:
        """
        Run a task or composite by name.

        Configuration problems raise ConfigurationError before any work is
        done; everything else is reported through the returned BuildResult.
        """
        if not self._validated:
            self.validate()
        if name not in self:
            raise ConfigurationError(f"Unknown task: {name!r}. Known names: {self.names()}")
        return self._run(name)

    def _run(self, name: str) -> BuildResult:
        # composites take precedence; clashes are rejected by validate()
        comp = self._composites.get(name)
        if comp is not None:
            if comp.is_batch:
                return self._run_batch(comp)
            return self._run_sequence(comp)
        return self._run_task(self._tasks[name])

    def _run_task(self, task: Task) -> BuildResult:
        start = time.monotonic()
        task_log = get_logger(f"assetflow.task.{task.name}")
        children: List[BuildResult] = []

        for need in task.needs:
            res = self._run(need)
            children.append(res)
            if not res.ok:
                return BuildResult(
                    name=task.name,
                    ok=False,
                    failed=[need],
                    origin=res.origin,
                    error=f"dependency '{need}' failed: {res.error}",
                    children=children,
                    duration=time.monotonic() - start,
                )

        # same-task invocations are serialized, different tasks are not
        with self._task_locks[task.name]:
            task_log.info("Starting '%s'...", task.name)
            try:
                report = task.run() or TaskReport()
            except AssetflowError as e:
                task_log.error("'%s' errored: %s", task.name, e)
                return BuildResult(
                    name=task.name,
                    ok=False,
                    failed=[task.name],
                    origin=task.name,
                    error=str(e),
                    children=children,
                    duration=time.monotonic() - start,
                )
            except Exception as e:  # noqa: BLE001
                task_log.exception("'%s' crashed", task.name)
                return BuildResult(
                    name=task.name,
                    ok=False,
                    failed=[task.name],
                    origin=task.name,
                    error=f"{type(e).__name__}: {e}",
                    children=children,
                    duration=time.monotonic() - start,
                )

        duration = time.monotonic() - start
        for w in report.warnings:
            task_log.warning("%s", w)
        for err in report.errors:
            task_log.error("%s (skipped)", err)
        task_log.info("Finished '%s' after %.2f s", task.name, duration)

        if report.touched:
            self.channel.publish(ReloadEvent(task=task.name, paths=tuple(report.touched)))

        touched = [p for child in children for p in child.touched] + list(report.touched)
        return BuildResult(
            name=task.name,
            ok=True,
            touched=touched,
            children=children,
            duration=duration,
            skipped=not report.touched and report.skipped > 0,
        )

    def _run_sequence(self, comp: Composite) -> BuildResult:
        start = time.monotonic()
        children: List[BuildResult] = []
        touched = []

        for idx, member in enumerate(comp.members):
            res = self._run(member)
            children.append(res)
            touched.extend(res.touched)
            if not res.ok:
                rest = list(comp.members[idx + 1:])
                if rest:
                    self.logger.error(
                        "Sequence '%s' aborted at '%s'; not running: %s",
                        comp.name, member, ", ".join(rest),
                    )
                return BuildResult(
                    name=comp.name,
                    ok=False,
                    failed=[member],
                    origin=res.origin,
                    error=res.error,
                    touched=touched,
                    children=children,
                    duration=time.monotonic() - start,
                )

        return BuildResult(
            name=comp.name,
            ok=True,
            touched=touched,
            children=children,
            duration=time.monotonic() - start,
        )

    def _run_batch(self, comp: Composite) -> BuildResult:
        start = time.monotonic()
        results: Dict[str, BuildResult] = {}
        workers = self.max_workers or len(comp.members)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"batch-{comp.name}") as pool:
            futures = {pool.submit(self._run, member): member for member in comp.members}
            for future in as_completed(futures):
                member = futures[future]
                try:
                    results[member] = future.result()
                except Exception as e:  # noqa: BLE001
                    self.logger.exception("Batch member '%s' raised", member)
                    results[member] = BuildResult(
                        name=member, ok=False, failed=[member], origin=member, error=str(e)
                    )

        # batch members may repeat a name; keep one result per name in member order
        children = [results[m] for m in dict.fromkeys(comp.members)]
        failed = [c.name for c in children if not c.ok]
        touched = [p for c in children for p in c.touched]

        if failed:
            self.logger.error("Batch '%s' failed: %s", comp.name, ", ".join(failed))
            first = next(c for c in children if not c.ok)
            return BuildResult(
                name=comp.name,
                ok=False,
                failed=failed,
                origin=first.origin,
                error="; ".join(f"{c.name}: {c.error}" for c in children if not c.ok),
                touched=touched,
                children=children,
                duration=time.monotonic() - start,
            )

        return BuildResult(
            name=comp.name,
            ok=True,
            touched=touched,
            children=children,
            duration=time.monotonic() - start,
        )


# ----------------------------------------------------------------------
# Pipeline loading (local file)
# ----------------------------------------------------------------------

def load_pipeline(path: str | Path, **kwargs: Any) -> TaskGraph:
    """
    Load a task graph from a python file.

    The file must define either:
      - pipeline(paths, registry, channel) -> TaskGraph
      - GRAPH = TaskGraph(...)
    """
    pipeline_path = Path(path).expanduser().resolve()
    if not pipeline_path.exists():
        raise ConfigurationError(f"Pipeline file not found: {pipeline_path}")
    if pipeline_path.suffix != ".py":
        raise ConfigurationError(f"Pipeline must be a .py file, got: {pipeline_path.name}")

    module_name = f"assetflow_pipeline_{pipeline_path.stem}"
    globals_dict = runpy.run_path(str(pipeline_path), run_name=module_name)

    graph: Optional[TaskGraph] = None
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
        graph = globals_dict["pipeline"](**kwargs)
    elif "GRAPH" in globals_dict:
        graph = globals_dict["GRAPH"]

    if not isinstance(graph, TaskGraph):
        raise ConfigurationError(
            f"{pipeline_path.name} must return/define a TaskGraph. "
            "Define pipeline(paths, registry, channel) -> TaskGraph or GRAPH = TaskGraph(...)."
        )
    return graph

# dsl.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from .model import BATCH, SEQUENCE, Composite, Task
from .paths import AssetGroup
from .reload import ReloadChannel
from .runner import TaskGraph
from .tasks import CleanTask, PipeTask, SyncTask
from .transforms.registry import Transform


# ---------------------------------------------------------------------
# Task helpers
# ---------------------------------------------------------------------

def pipe(
    name: str,
    group: AssetGroup,
    *transforms: Transform,
    patterns: Optional[Sequence[str]] = None,
    dest: str | Path | None = None,
    needs: Optional[List[str]] = None,
    description: str = "",
    **options,
) -> Task:
    """Pipe task over an asset group: pipe("imgmin", paths.imgs, imagemin, incremental=True)."""
    body = PipeTask(
        name,
        group.src,
        patterns or group.patterns,
        dest if dest is not None else group.dest,
        transforms,
        **options,
    )
    return Task(name=name, run=body, needs=needs or [], description=description or f"pipe {group.name}")


def sync(
    name: str,
    group: AssetGroup,
    *,
    patterns: Optional[Sequence[str]] = None,
    src: str | Path | None = None,
    dest: str | Path | None = None,
    ignore_in_dest: Sequence[str] = (),
    description: str = "",
    **options,
) -> Task:
    body = SyncTask(
        name,
        src if src is not None else group.src,
        patterns or group.patterns,
        dest if dest is not None else group.dest,
        ignore_in_dest=ignore_in_dest,
        **options,
    )
    return Task(name=name, run=body, description=description or f"sync {group.name}")


def clean(name: str, root: str | Path) -> Task:
    return Task(name=name, run=CleanTask(name, root), description=f"empty {root}")


# ---------------------------------------------------------------------
# Composites
# ---------------------------------------------------------------------

def sequence(name: str, *members: str) -> Composite:
    return Composite(name=name, members=tuple(members), mode=SEQUENCE)


def batch(name: str, *members: str) -> Composite:
    return Composite(name=name, members=tuple(members), mode=BATCH)


# ---------------------------------------------------------------------
# Graph helper (single-file story)
# ---------------------------------------------------------------------

def graph(
    *items: Union[Task, Composite, Iterable[Union[Task, Composite]]],
    max_workers: int | None = None,
    channel: ReloadChannel | None = None,
) -> TaskGraph:
    """
    Collect tasks and composites into a TaskGraph and validate it, so a bad
    reference raises ConfigurationError where the pipeline is declared.

        def pipeline(paths, registry, channel):
            return graph(
                pipe("fonts", paths.fonts),
                sync("sync-fonts", paths.fonts),
                sequence("compile-fonts", "fonts", "sync-fonts"),
                channel=channel,
            )
    """
    g = TaskGraph(max_workers=max_workers, channel=channel)
    pending: List[Union[Task, Composite]] = []
    for item in items:
        if isinstance(item, (Task, Composite)):
            pending.append(item)
        else:
            pending.extend(item)
    for item in pending:
        if isinstance(item, Task):
            g.add(item)
        elif item.mode == BATCH:
            g.define_batch(item.name, item.members)
        else:
            g.define_sequence(item.name, item.members)
    g.validate()
    return g

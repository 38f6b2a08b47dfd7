# tests/test_runner.py

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from assetflow.errors import ConfigurationError, DuplicateTaskError, SequenceAbortError
from assetflow.dsl import graph, sequence
from assetflow.model import Task
from assetflow.reload import ReloadChannel
from assetflow.runner import TaskGraph, load_pipeline

from .fakes import RecordingBody


def _graph(calls, *names, fail=(), channel=None):
    g = TaskGraph(channel=channel)
    for n in names:
        err = RuntimeError(f"{n} broke") if n in fail else None
        g.register_task(n, RecordingBody(n, calls, fail=err))
    return g


# ---------------------------------------------------------------------
# Graph building
# ---------------------------------------------------------------------

def test_duplicate_task_name_is_rejected():
    g = _graph([], "a")
    with pytest.raises(DuplicateTaskError):
        g.register_task("a", lambda: None)


def test_composite_cannot_reuse_a_task_name():
    g = _graph([], "a", "b")
    with pytest.raises(DuplicateTaskError):
        g.define_sequence("a", ["b"])


def test_unknown_member_fails_at_validation_not_at_run():
    calls = []
    g = _graph(calls, "a")
    g.define_sequence("seq", ["a", "missing"])

    with pytest.raises(ConfigurationError, match="missing"):
        g.validate()
    assert calls == []


def test_run_validates_before_executing_anything():
    calls = []
    g = _graph(calls, "a")
    g.define_batch("all", ["a", "ghost"])

    with pytest.raises(ConfigurationError):
        g.run("a")
    assert calls == []


def test_cycle_through_composites_is_detected():
    g = _graph([], "a")
    g.define_sequence("one", ["a", "two"])
    g.define_sequence("two", ["one"])

    with pytest.raises(ConfigurationError, match="cycle"):
        g.validate()


def test_cycle_through_task_needs_is_detected():
    g = TaskGraph()
    g.register_task("a", lambda: None, needs=["group"])
    g.define_sequence("group", ["a"])

    with pytest.raises(ConfigurationError, match="cycle"):
        g.validate()


def test_empty_composite_is_a_configuration_error():
    g = TaskGraph()
    g.define_batch("nothing", [])
    with pytest.raises(ConfigurationError):
        g.validate()


def test_graph_helper_validates_when_declared():
    with pytest.raises(ConfigurationError, match="ghost"):
        graph(Task("a", lambda: None), sequence("all", "a", "ghost"))


def test_unknown_name_raises_configuration_error():
    g = _graph([], "a")
    with pytest.raises(ConfigurationError, match="nope"):
        g.run("nope")


# ---------------------------------------------------------------------
# Sequences
# ---------------------------------------------------------------------

def test_sequence_runs_members_in_order():
    calls = []
    g = _graph(calls, "a", "b", "c")
    g.define_sequence("seq", ["a", "b", "c"])

    result = g.run("seq")

    assert result.ok
    assert calls == ["a", "b", "c"]
    assert [c.name for c in result.children] == ["a", "b", "c"]


def test_sequence_stops_after_failing_member():
    calls = []
    g = _graph(calls, "a", "b", "c", fail={"b"})
    g.define_sequence("seq", ["a", "b", "c"])

    result = g.run("seq")

    assert not result.ok
    assert calls == ["a", "b"]
    assert result.failed == ["b"]
    assert result.origin == "b"
    assert "b broke" in result.error


def test_nested_sequence_failure_reports_originating_task():
    calls = []
    g = _graph(calls, "lint", "compile", "other", fail={"lint"})
    g.define_sequence("styles", ["lint", "compile"])
    g.define_sequence("all", ["styles", "other"])

    result = g.run("all")

    assert not result.ok
    assert result.failed == ["styles"]
    assert result.origin == "lint"
    assert calls == ["lint"]


def test_sequence_abort_error_from_task_stops_sequence():
    calls = []
    g = TaskGraph()

    def lint():
        calls.append("lint")
        raise SequenceAbortError(task="lint", reason="1 error(s)")

    g.register_task("lint", lint)
    g.register_task("compile", RecordingBody("compile", calls))
    g.define_sequence("styles", ["lint", "compile"])

    result = g.run("styles")

    assert not result.ok
    assert calls == ["lint"]
    assert result.failed == ["lint"]


# ---------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------

def test_batch_runs_every_member_and_reports_the_single_failure():
    calls = []
    members = ["fonts", "imgs", "scss", "scripts", "views"]
    g = _graph(calls, *members, fail={"scss"})
    g.define_batch("build", members)

    result = g.run("build")

    assert not result.ok
    assert sorted(calls) == sorted(members)
    assert result.failed == ["scss"]
    assert all(c.ok for c in result.children if c.name != "scss")


def test_batch_reports_every_failed_member():
    calls = []
    g = _graph(calls, "a", "b", "c", fail={"a", "c"})
    g.define_batch("all", ["a", "b", "c"])

    result = g.run("all")

    assert result.failed == ["a", "c"]
    assert sorted(calls) == ["a", "b", "c"]


def test_batch_members_run_concurrently():
    # both members block until the other one has started
    started = threading.Barrier(2, timeout=5)

    def meet():
        started.wait()

    g = TaskGraph()
    g.register_task("left", meet)
    g.register_task("right", meet)
    g.define_batch("both", ["left", "right"])

    assert g.run("both").ok


def test_batch_of_sequences_fails_soft():
    calls = []
    g = _graph(calls, "lint", "compile", "fonts", "sync-fonts", fail={"lint"})
    g.define_sequence("compile-scss", ["lint", "compile"])
    g.define_sequence("compile-fonts", ["fonts", "sync-fonts"])
    g.define_batch("build", ["compile-scss", "compile-fonts"])

    result = g.run("build")

    assert not result.ok
    assert result.failed == ["compile-scss"]
    assert result.origin == "lint"
    assert "compile" not in calls
    assert {"fonts", "sync-fonts"} <= set(calls)


# ---------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------

def test_task_needs_run_first():
    calls = []
    g = _graph(calls, "build-a", "build-b")
    g.define_batch("build", ["build-a", "build-b"])
    g.register_task("serve", RecordingBody("serve", calls), needs=["build"])

    result = g.run("serve")

    assert result.ok
    assert calls[-1] == "serve"
    assert set(calls[:2]) == {"build-a", "build-b"}


def test_failed_need_prevents_task_body():
    calls = []
    g = _graph(calls, "build", fail={"build"})
    g.register_task("serve", RecordingBody("serve", calls), needs=["build"])

    result = g.run("serve")

    assert not result.ok
    assert result.failed == ["build"]
    assert "serve" not in calls


def test_successful_task_publishes_touched_paths():
    channel = ReloadChannel()
    events = []
    channel.subscribe(events.append)
    g = TaskGraph(channel=channel)
    g.register_task("scss", RecordingBody("scss", [], touched=["dist/assets/css/main.css"]))
    g.register_task("quiet", RecordingBody("quiet", []))
    g.define_sequence("both", ["scss", "quiet"])

    result = g.run("both")

    assert result.touched == [Path("dist/assets/css/main.css")]
    assert len(events) == 1
    assert events[0].task == "scss"
    assert events[0].css_only


def test_same_task_invocations_are_serialized():
    calls = []
    gate = threading.Event()
    g = TaskGraph()
    body = RecordingBody("slow", calls, delay=gate)
    g.register_task("slow", body)
    g.validate()

    results = []
    first = threading.Thread(target=lambda: results.append(g.run("slow")))
    second = threading.Thread(target=lambda: results.append(g.run("slow")))
    first.start()
    second.start()

    # only one body can be inside the task while the gate is closed
    first.join(timeout=0.3)
    assert calls == ["slow"]

    gate.set()
    first.join(timeout=5)
    second.join(timeout=5)
    assert calls == ["slow", "slow"]
    assert all(r.ok for r in results)


def test_describe_lists_composite_members():
    g = _graph([], "a", "b")
    g.define_sequence("seq", ["a", "b"])
    g.define_batch("all", ["a", "b"])

    assert g.describe("seq") == "sequence: a -> b"
    assert g.describe("all") == "batch: a + b"
    assert g.names() == ["a", "all", "b", "seq"]


# ---------------------------------------------------------------------
# Pipeline files
# ---------------------------------------------------------------------

def test_load_pipeline_calls_pipeline_function(tmp_path):
    f = tmp_path / "my_pipeline.py"
    f.write_text(
        "from assetflow import graph, sequence, Task\n"
        "def pipeline(paths, registry, channel):\n"
        "    return graph(Task('hello', lambda: None), sequence('all', 'hello'), channel=channel)\n",
        encoding="utf-8",
    )
    channel = ReloadChannel()

    g = load_pipeline(f, paths=None, registry=None, channel=channel)

    assert g.names() == ["all", "hello"]
    assert g.channel is channel
    assert g.run("all").ok


def test_load_pipeline_rejects_files_without_a_graph(tmp_path):
    f = tmp_path / "empty.py"
    f.write_text("X = 1\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_pipeline(f)


def test_load_pipeline_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_pipeline(tmp_path / "nope.py")

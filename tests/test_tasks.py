# tests/test_tasks.py

from __future__ import annotations

import os
import time

import pytest

from assetflow.cache import FingerprintStore, always, mtime_newer
from assetflow.errors import SequenceAbortError
from assetflow.tasks import CleanTask, PipeTask, SyncTask

from .conftest import write
from .fakes import AlwaysError, CountingTransform, FakeFingerprint, RejectNamed, Upper


def _age(path, seconds=100):
    """Push a file's mtime into the past."""
    t = time.time() - seconds
    os.utime(path, (t, t))


# ---------------------------------------------------------------------
# PipeTask
# ---------------------------------------------------------------------

def test_pipe_writes_transformed_files_under_dest(tmp_path):
    src = tmp_path / "src"
    write(src / "a.js", "alpha\n")
    write(src / "nested" / "b.js", "beta\n")

    task = PipeTask("up", src, ["**/*.js"], tmp_path / "out", [Upper()])
    report = task()

    assert (tmp_path / "out" / "a.js").read_text() == "ALPHA\n"
    assert (tmp_path / "out" / "nested" / "b.js").read_text() == "BETA\n"
    assert sorted(p.name for p in report.touched) == ["a.js", "b.js"]
    assert report.errors == []


def test_pipe_without_sources_is_a_quiet_noop(tmp_path):
    report = PipeTask("none", tmp_path / "missing", ["*.js"], tmp_path / "out")()

    assert report.touched == []
    assert not (tmp_path / "out").exists()


def test_incremental_pipe_only_processes_stale_sources(tmp_path):
    src = tmp_path / "src"
    fresh = write(src / "fresh.png", b"one")
    old = write(src / "old.png", b"two")
    counter = CountingTransform()
    task = PipeTask("imgmin", src, ["*.png"], tmp_path / "out", [counter], incremental=True)

    task()
    assert len(counter.seen) == 2

    # destination newer than the untouched source, older than the edited one
    _age(old, 200)
    _age(tmp_path / "out" / "old.png", 100)
    _age(tmp_path / "out" / "fresh.png", 100)
    fresh.write_bytes(b"one, edited")

    counter.seen.clear()
    report = task()

    assert counter.seen == ["fresh.png"]
    assert report.skipped == 1


def test_incremental_pipe_skips_everything_when_up_to_date(tmp_path):
    src = tmp_path / "src"
    write(src / "a.png", b"x")
    counter = CountingTransform()
    task = PipeTask(
        "imgmin", src, ["*.png"], tmp_path / "out", [counter],
        incremental=True, stale=FakeFingerprint(),
    )

    report = task()

    assert counter.seen == []
    assert report.touched == []
    assert report.skipped == 1


def test_target_mode_rebuilds_all_sources_when_one_is_stale(tmp_path):
    src = tmp_path / "src"
    for n in ("a.js", "b.js", "c.js"):
        write(src / n, n)
    counter = CountingTransform()
    task = PipeTask(
        "bundle", src, ["*.js"], tmp_path / "out", [counter],
        incremental=True, target="main.js", stale=FakeFingerprint({"b.js"}),
    )

    task()

    assert counter.seen == ["a.js", "b.js", "c.js"]


def test_target_mode_does_nothing_when_no_source_is_stale(tmp_path):
    src = tmp_path / "src"
    write(src / "a.js", "a")
    counter = CountingTransform()
    task = PipeTask(
        "bundle", src, ["*.js"], tmp_path / "out", [counter],
        incremental=True, target="main.js", stale=FakeFingerprint(),
    )

    assert task().skipped == 1
    assert counter.seen == []


def test_ext_maps_destination_suffix_for_staleness(tmp_path):
    src = tmp_path / "scss"
    write(src / "main.scss", "body {}")
    task = PipeTask("scss", src, ["*.scss"], tmp_path / "css", ext=".css", incremental=True)

    assert task.dest_for(src / "main.scss") == tmp_path / "css" / "main.css"


def test_failing_file_is_dropped_and_the_rest_is_written(tmp_path):
    src = tmp_path / "src"
    write(src / "good.js", "ok")
    write(src / "bad.js", "broken")

    report = PipeTask("js", src, ["*.js"], tmp_path / "out", [RejectNamed("bad")])()

    assert (tmp_path / "out" / "good.js").exists()
    assert not (tmp_path / "out" / "bad.js").exists()
    assert len(report.errors) == 1
    assert report.errors[0].path.name == "bad.js"
    assert "malformed source" in str(report.errors[0])


def test_fail_fast_raises_sequence_abort_and_writes_nothing(tmp_path):
    src = tmp_path / "scss"
    write(src / "main.scss", "a { color: red !important; }")

    task = PipeTask("lint", src, ["*.scss"], tmp_path / "out", [AlwaysError()], fail_fast=True)

    with pytest.raises(SequenceAbortError) as excinfo:
        task()

    assert excinfo.value.task == "lint"
    assert len(excinfo.value.errors) == 1
    assert not (tmp_path / "out").exists()


def test_write_false_runs_transforms_without_output(tmp_path):
    src = tmp_path / "src"
    write(src / "a.scss", "a {}")
    counter = CountingTransform()

    report = PipeTask("lint", src, ["*.scss"], tmp_path / "out", [counter], write=False)()

    assert counter.seen == ["a.scss"]
    assert report.touched == []
    assert not (tmp_path / "out").exists()


def test_fingerprint_store_tracks_content_between_runs(tmp_path):
    src = tmp_path / "src"
    a = write(src / "a.txt", "one")
    write(src / "b.txt", "two")
    manifest = tmp_path / ".assetflow" / "fingerprints.json"

    counter = CountingTransform()
    store = FingerprintStore(manifest)
    task = PipeTask("copy", src, ["*.txt"], tmp_path / "out", [counter], incremental=True, stale=store)
    task()
    assert manifest.exists()

    # a fresh store reads the manifest back
    counter.seen.clear()
    task.stale = FingerprintStore(manifest)
    task()
    assert counter.seen == []

    a.write_text("one, changed")
    task()
    assert counter.seen == ["a.txt"]


def test_fingerprint_store_does_not_record_failed_files(tmp_path):
    src = tmp_path / "src"
    write(src / "good.js", "ok")
    write(src / "bad.js", "nope")
    stale = FakeFingerprint({"good.js", "bad.js"})

    PipeTask(
        "js", src, ["*.js"], tmp_path / "out", [RejectNamed("bad")],
        incremental=True, stale=stale,
    )()

    assert stale.recorded == ["good.js"]


def test_staleness_helpers(tmp_path):
    src = write(tmp_path / "a", "x")
    dest = tmp_path / "b"

    assert mtime_newer(src, dest)
    write(dest, "y")
    _age(src)
    assert not mtime_newer(src, dest)
    assert always(src, dest)


# ---------------------------------------------------------------------
# SyncTask
# ---------------------------------------------------------------------

def test_sync_deletes_orphans_and_copies_new_files(tmp_path):
    src = tmp_path / "app" / "fonts"
    dest = tmp_path / "dist" / "assets" / "fonts"
    write(src / "icons.woff2", b"font")
    write(dest / "old.woff", b"stale font")

    report = SyncTask("sync-fonts", src, ["**/*.{woff,woff2}"], dest)()

    assert not (dest / "old.woff").exists()
    assert (dest / "icons.woff2").read_bytes() == b"font"
    assert dest / "old.woff" in report.touched


def test_sync_copies_only_newer_sources(tmp_path):
    src = tmp_path / "src"
    dest = tmp_path / "dest"
    s = write(src / "a.css", "new")
    d = write(dest / "a.css", "kept")
    _age(s, 200)
    _age(d, 100)

    report = SyncTask("sync", src, ["*.css"], dest)()
    assert d.read_text() == "kept"
    assert report.skipped == 1

    s.write_text("newer")
    SyncTask("sync", src, ["*.css"], dest)()
    assert d.read_text() == "newer"


def test_sync_leaves_ignored_destination_paths_alone(tmp_path):
    src = tmp_path / "views"
    dest = tmp_path / "dist"
    write(src / "index.html", "<p>hi</p>")
    write(dest / "about.html", "<p>gone</p>")
    css = write(dest / "assets" / "css" / "main.min.css", "a{}")

    SyncTask("sync-views", src, ["*.html"], dest, ignore_in_dest=["assets/**"])()

    assert css.exists()
    assert not (dest / "about.html").exists()
    assert (dest / "index.html").exists()


def test_sync_prunes_directories_left_empty(tmp_path):
    src = tmp_path / "src"
    dest = tmp_path / "dest"
    src.mkdir()
    write(dest / "icons" / "old" / "star.svg", "<svg/>")

    SyncTask("sync-imgs", src, ["**/*.svg"], dest)()

    assert not (dest / "icons").exists()
    assert dest.is_dir()


def test_sync_with_missing_source_empties_destination(tmp_path):
    dest = tmp_path / "dest"
    write(dest / "left.txt", "x")

    SyncTask("sync", tmp_path / "nothing", ["*"], dest)()

    assert list(dest.iterdir()) == []


# ---------------------------------------------------------------------
# CleanTask
# ---------------------------------------------------------------------

def test_clean_empties_root_but_keeps_it(tmp_path):
    root = tmp_path / "dist"
    write(root / "index.html", "x")
    write(root / "assets" / "css" / "main.min.css", "a{}")

    CleanTask("clean", root)()

    assert root.is_dir()
    assert list(root.iterdir()) == []


def test_clean_creates_missing_root(tmp_path):
    CleanTask("clean", tmp_path / "dist")()
    assert (tmp_path / "dist").is_dir()

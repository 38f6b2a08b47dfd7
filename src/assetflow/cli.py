# cli.py
from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Tuple

import click

from assetflow.errors import AssetflowError, ConfigurationError
from assetflow.log import get_logger, set_level
from assetflow.paths import PathConfig, default_paths
from assetflow.pipeline import pipeline
from assetflow.reload import ReloadChannel
from assetflow.runner import TaskGraph, load_pipeline
from assetflow.server import DevServer
from assetflow.session import DevSession, install_serve
from assetflow.settings import Settings
from assetflow.transforms.registry import TransformRegistry, default_registry
from assetflow.ui.console import Console, get_console, set_console
from assetflow.watcher import Watcher


def build_graph(settings: Settings, pipeline_file: str | None = None) -> Tuple[TaskGraph, PathConfig, TransformRegistry]:
    """
    Assemble the task graph for this invocation.

    The `serve`/`default` tasks are added unless the pipeline file defines
    its own.
    """
    paths = default_paths(settings.app_root, settings.dist_root)
    registry = default_registry()
    channel = ReloadChannel()

    if pipeline_file:
        graph = load_pipeline(pipeline_file, paths=paths, registry=registry, channel=channel)
    else:
        graph = pipeline(
            paths,
            registry,
            channel,
            lint_config=settings.lint_config,
            incremental=settings.incremental,
            max_workers=settings.workers,
        )

    if "serve" not in graph and "build" in graph:
        session = DevSession(
            graph,
            paths,
            server=DevServer(graph.channel, host=settings.host, port=settings.port),
            watcher=Watcher(graph, debounce=settings.debounce),
        )
        install_serve(graph, session)

    graph.validate()
    return graph, paths, registry


def _load(ctx) -> Tuple[TaskGraph, PathConfig, TransformRegistry]:
    console = get_console()
    try:
        return build_graph(ctx.obj["settings"], ctx.obj.get("pipeline_file"))
    except ConfigurationError as e:
        console.print_error(
            "Invalid pipeline",
            str(e),
            suggestion="Fix the task definitions; nothing was run.",
        )
        sys.exit(1)


def execute(ctx, name: str) -> None:
    """Run one task or composite and exit non-zero on failure."""
    console = get_console()
    graph, paths, _registry = _load(ctx)

    if name not in graph:
        console.print_error(
            "Unknown task",
            f"No task or composite named {name!r}.",
            suggestion="List what is available:\n  assetflow list",
        )
        sys.exit(1)

    console.print_run_started(name, paths.app_root, paths.dist_root)
    try:
        result = graph.run(name)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except AssetflowError as e:
        console.print_exception(e)
        sys.exit(1)
    except Exception as e:  # noqa: BLE001
        console.print_error("Unexpected error", f"{type(e).__name__}: {e}", suggestion="Re-run with --debug for a traceback.")
        if console.debug:
            console.print_exception(e)
        sys.exit(1)

    console.print_results(result)
    if not result.ok:
        console.print_failure(result)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging and stack traces")
@click.option("--app-root", default=None, help="Source root (default: ./app)")
@click.option("--dist-root", default=None, help="Destination root (default: ./dist)")
@click.option("--pipeline", "pipeline_file", default=None, help="Python file defining pipeline(paths, registry, channel)")
@click.option("--workers", default=None, type=int, help="Max parallel tasks inside a batch")
@click.option("--lint-config", default=None, help="Style lint configuration (default: .sass-lint.yml)")
@click.option("--incremental/--no-incremental", default=None, help="Skip sources whose output is up to date")
@click.pass_context
def cli(ctx, debug, app_root, dist_root, pipeline_file, workers, lint_config, incremental):
    """assetflow: front-end asset pipeline with live reload."""
    settings = Settings.from_env()
    if app_root:
        settings = replace(settings, app_root=Path(app_root))
    if dist_root:
        settings = replace(settings, dist_root=Path(dist_root))
    if workers is not None:
        settings = replace(settings, workers=workers)
    if lint_config:
        settings = replace(settings, lint_config=Path(lint_config))
    if incremental is not None:
        settings = replace(settings, incremental=incremental)

    set_console(Console(debug=debug))
    set_level("DEBUG" if debug else settings.log_level)
    if settings.log_file:
        get_logger("assetflow", log_file=settings.log_file)

    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["settings"] = settings
    ctx.obj["pipeline_file"] = pipeline_file

    if ctx.invoked_subcommand is None:
        execute(ctx, "default")


@cli.command()
@click.argument("name", default="default")
@click.pass_context
def run(ctx, name):
    """Run a task or composite by name (build, clean, compile-scss, ...)."""
    execute(ctx, name)


@cli.command()
@click.option("--host", default=None, help="Address to bind (default: 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to bind (default: 3000)")
@click.option("--debounce", default=None, type=float, help="Seconds to wait for more changes before rebuilding")
@click.pass_context
def serve(ctx, host, port, debounce):
    """Build, then serve the output with live reload and watch sources."""
    settings = ctx.obj["settings"]
    if host:
        settings = replace(settings, host=host)
    if port is not None:
        settings = replace(settings, port=port)
    if debounce is not None:
        settings = replace(settings, debounce=debounce)
    ctx.obj["settings"] = settings
    execute(ctx, "serve")


@cli.command("list")
@click.pass_context
def list_tasks(ctx):
    """List tasks, composites and registered transforms."""
    console = get_console()
    graph, _paths, registry = _load(ctx)
    console.print_listing("Tasks", [(name, graph.describe(name)) for name in sorted(graph.tasks)])
    console.print_listing("Composites", [(name, graph.describe(name)) for name in sorted(graph.composites)])
    console.print_listing("Transforms", [(name, registry.target(name)) for name in registry.names()])


def main():  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()

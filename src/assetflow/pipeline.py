"""
The default asset pipeline.

    fonts    copy        + sync-fonts
    imgs     imgmin      + sync-imgs
    scss     scss-lint   -> scss -> csslibs -> sync-css
    js       jshint      -> jslibs
    views    views       + sync-views

Each line is a `compile-*` sequence; `build` runs the five as one batch.
"""

from __future__ import annotations

from pathlib import Path

from .cache import StalenessPredicate, mtime_newer
from .dsl import batch, clean, graph, pipe, sequence, sync
from .paths import PathConfig
from .reload import ReloadChannel
from .runner import TaskGraph
from .transforms.registry import TransformRegistry, default_registry


BUILD_GROUPS = ("compile-fonts", "compile-imgs", "compile-scss", "compile-scripts", "compile-views")


def pipeline(
    paths: PathConfig,
    registry: TransformRegistry | None = None,
    channel: ReloadChannel | None = None,
    *,
    lint_config: str | Path | None = ".sass-lint.yml",
    incremental: bool = True,
    stale: StalenessPredicate = mtime_newer,
    max_workers: int | None = None,
) -> TaskGraph:
    r = registry or default_registry()
    fonts, imgs, css, js, views = paths.fonts, paths.imgs, paths.css, paths.js, paths.views
    css_vendor = css.dest / "vendor"
    js_vendor = js.dest / "vendor"
    tpls = Path(views.options["tpls"])

    return graph(
        # fonts
        pipe("fonts", fonts, description="copy fonts"),
        sync("sync-fonts", fonts, patterns=fonts.options["sync_patterns"]),

        # images
        pipe(
            "imgmin", imgs,
            r.create("imagemin", progressive=True, quantize_png=True),
            incremental=incremental, stale=stale,
            description="optimize images",
        ),
        sync("sync-imgs", imgs),

        # styles
        pipe(
            "scss-lint", css,
            r.create("sass-lint", config=lint_config),
            patterns=css.options["lint_patterns"],
            write=False, fail_fast=True,
            description="lint scss (fails the build on errors)",
        ),
        pipe(
            "scss", css,
            r.create("sass", include_paths=css.options["include_paths"]),
            r.create("dest", directory=css.dest),
            r.create("concat", filename="main.min.css"),
            r.create("clean-css"),
            description="compile scss, bundle main.min.css",
        ),
        pipe(
            "csslibs", css,
            r.create("concat", filename="libs.min.css"),
            r.create("clean-css"),
            patterns=css.options["vendor_patterns"], dest=css_vendor,
            description="bundle vendor css",
        ),
        # the vendor bundle written by csslibs has no source counterpart
        sync(
            "sync-css", css,
            src=css.src / "vendor", patterns=("*.css",), dest=css_vendor,
            ignore_in_dest=("*.min.css",),
        ),

        # scripts
        pipe(
            "jshint", js,
            r.create("js-lint"),
            r.create("concat", filename="main.js"),
            r.create("strip-debug"),
            r.create("dest", directory=js.dest),
            r.create("uglify"),
            r.create("rename", filename="main.min.js"),
            incremental=incremental, target="main.js", stale=stale,
            description="lint, bundle and minify scripts",
        ),
        pipe(
            "jslibs", js,
            r.create("concat", filename="libs.js"),
            r.create("dest", directory=js_vendor),
            r.create("uglify"),
            r.create("rename", filename="libs.min.js"),
            patterns=js.options["vendor_patterns"], dest=js_vendor,
            incremental=incremental, target="libs.js", stale=stale,
            description="bundle and minify vendor scripts",
        ),

        # views
        pipe(
            "views", views,
            r.create("twig", root=views.src),
            base=tpls,
            description="render page templates",
        ),
        sync(
            "sync-views", views,
            src=tpls, patterns=("*.html",),
            ignore_in_dest=views.options["ignore_in_dest"],
        ),

        clean("clean", paths.dist_root),

        sequence("compile-fonts", "fonts", "sync-fonts"),
        sequence("compile-imgs", "imgmin", "sync-imgs"),
        sequence("compile-scss", "scss-lint", "scss", "csslibs", "sync-css"),
        sequence("compile-scripts", "jshint", "jslibs"),
        sequence("compile-views", "views", "sync-views"),
        batch("build", *BUILD_GROUPS),

        channel=channel,
        max_workers=max_workers,
    )

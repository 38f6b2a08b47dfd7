"""Static mapping from asset groups to source/destination directories."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping


@dataclass(frozen=True)
class AssetGroup:
    name: str
    src: Path
    dest: Path
    patterns: tuple[str, ...] = ("**/*",)
    options: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class PathConfig:
    app_root: Path
    dist_root: Path
    groups: Dict[str, AssetGroup]

    def __getitem__(self, name: str) -> AssetGroup:
        return self.groups[name]

    @property
    def fonts(self) -> AssetGroup:
        return self.groups["fonts"]

    @property
    def views(self) -> AssetGroup:
        return self.groups["views"]

    @property
    def imgs(self) -> AssetGroup:
        return self.groups["imgs"]

    @property
    def css(self) -> AssetGroup:
        return self.groups["css"]

    @property
    def js(self) -> AssetGroup:
        return self.groups["js"]


FONT_EXTS = "{ttf,otf,eot,svg,woff,woff2}"
IMAGE_EXTS = "{jpg,jpeg,png,gif,ico,svg}"


def default_paths(app_root: str | Path = "./app", dist_root: str | Path = "./dist") -> PathConfig:
    app = Path(app_root)
    dist = Path(dist_root)
    groups = {
        "fonts": AssetGroup(
            name="fonts",
            src=app / "fonts",
            dest=dist / "assets" / "fonts",
            patterns=("**/*",),
            options={"sync_patterns": (f"**/*.{FONT_EXTS}",)},
        ),
        "views": AssetGroup(
            name="views",
            src=app / "views",
            dest=dist,
            patterns=("pages/*.html",),
            options={"tpls": app / "views" / "pages", "ignore_in_dest": ("assets/**",)},
        ),
        "imgs": AssetGroup(
            name="imgs",
            src=app / "imgs",
            dest=dist / "assets" / "imgs",
            patterns=(f"**/*.{IMAGE_EXTS}",),
        ),
        "css": AssetGroup(
            name="css",
            src=app / "scss",
            dest=dist / "assets" / "css",
            patterns=("*.scss",),
            options={
                "lint_patterns": ("*.scss", "includes/**/*.scss"),
                "vendor_patterns": ("vendor/**/*.css",),
                "include_paths": (app / "scss", app / "scss" / "includes"),
            },
        ),
        "js": AssetGroup(
            name="js",
            src=app / "js",
            dest=dist / "assets" / "js",
            patterns=("*.js", "custom/**/*.js"),
            options={"vendor_patterns": ("vendor/**/*.js",)},
        ),
    }
    return PathConfig(app_root=app, dist_root=dist, groups=groups)

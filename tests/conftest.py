# tests/conftest.py

from __future__ import annotations

import io
from pathlib import Path
from types import SimpleNamespace

import pytest

from assetflow.paths import default_paths


def write(path: Path, data: str | bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        path.write_text(data, encoding="utf-8")
    return path


def make_png(size=(32, 32), color=(200, 30, 30, 255)) -> bytes:
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


LINT_CONFIG = """\
options:
  merge-default-rules: true
rules:
  no-important: 2
  no-ids: 1
"""


@pytest.fixture()
def project(tmp_path: Path) -> SimpleNamespace:
    """
    A small but complete source tree under tmp_path/app.

    Every asset group has at least one file so `build` exercises each
    pipeline end to end.
    """
    app = tmp_path / "app"
    dist = tmp_path / "dist"

    write(app / "fonts" / "icons.woff2", b"wOF2-font-bytes")
    write(app / "fonts" / "README.txt", "not a font")
    write(app / "imgs" / "logo.png", make_png())
    write(app / "imgs" / "icons" / "star.svg", "<svg xmlns='http://www.w3.org/2000/svg'/>\n")

    write(app / "scss" / "main.scss", '@import "vars";\n\nbody {\n  color: $brand;\n}\n')
    write(app / "scss" / "includes" / "_vars.scss", "$brand: #333;\n")
    write(app / "scss" / "vendor" / "normalize.css", "html {\n  margin: 0;\n}\n")

    write(app / "js" / "app.js", "var answer = 42;\nconsole.log(answer);\n")
    write(app / "js" / "custom" / "extra.js", "function double(x) {\n  return x * 2;\n}\n")
    write(app / "js" / "vendor" / "lib.js", "window.lib = { version: 1 };\n")

    write(
        app / "views" / "layouts" / "base.html",
        "<html>\n<body>\n{% block content %}{% endblock %}\n</body>\n</html>\n",
    )
    write(
        app / "views" / "pages" / "index.html",
        '{% extends "layouts/base.html" %}\n{% block content %}<h1>{{ title | default("Home") }}</h1>{% endblock %}\n',
    )

    lint_config = write(tmp_path / ".sass-lint.yml", LINT_CONFIG)

    return SimpleNamespace(
        root=tmp_path,
        app=app,
        dist=dist,
        paths=default_paths(app, dist),
        lint_config=lint_config,
    )

# transforms/views.py
from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any, Mapping

import jinja2

from ..model import SourceFile
from .registry import FileTransform


class TwigRender(FileTransform):
    """
    Render page templates with Jinja2 (Twig-compatible block/extends syntax).

    `root` is the template search path; pages may extend layouts and include
    partials anywhere below it. Output keeps only the page's file name.
    """

    name = "twig"

    def __init__(self, root: str | Path, context: Mapping[str, Any] | None = None, strict: bool = False):
        self.root = Path(root)
        self.context = dict(context or {})
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.root)),
            undefined=jinja2.StrictUndefined if strict else jinja2.Undefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def _template_name(self, f: SourceFile) -> str | None:
        if f.origin is None:
            return None
        try:
            return f.origin.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return None

    def transform_file(self, f: SourceFile) -> SourceFile:
        name = self._template_name(f)
        try:
            if name is not None:
                template = self.env.get_template(name)
            else:
                template = self.env.from_string(f.text)
            html = template.render(**self.context)
        except jinja2.TemplateSyntaxError as e:
            raise self.error(f, e.message or "syntax error", e.lineno)
        except jinja2.TemplateError as e:
            raise self.error(f, str(e))
        except UnicodeDecodeError as e:
            raise self.error(f, f"not valid UTF-8: {e}")
        return SourceFile(path=PurePosixPath(f.path.name), contents=html.encode("utf-8"), origin=f.origin)

"""SQL module templates: discovery, rendering and sink/source capture."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

import jinja2

from .errors import TemplateError


@dataclass
class RenderCapture:
    """Sink and source names declared by the template being rendered."""

    sink: str = ""
    source: str = ""

    def clear(self) -> None:
        """Forget any previously captured names."""
        self.sink = ""
        self.source = ""


@dataclass(frozen=True)
class RenderedSql:
    """A rendered template together with what it declared."""

    name: str
    sql: str
    capture: RenderCapture = field(default_factory=RenderCapture)


def build_env_with_captures(
    root: str | os.PathLike[str], capture: RenderCapture
) -> jinja2.Environment:
    """Create a template environment rooted at *root*.

    Templates may call ``sink(name=...)`` and ``use_source(...)``; the names
    are recorded in *capture*.
    """
    env = jinja2.Environment(loader=jinja2.FileSystemLoader(os.fspath(root)))

    def sink(*, name: str) -> str:
        if not isinstance(name, str):
            raise TypeError("sink() expects a string for 'name'")
        capture.sink = name
        return ""

    def use_source(name: str) -> str:
        if not isinstance(name, str):
            raise TypeError("use_source() expects a string")
        capture.source = name
        return name

    env.globals.update(sink=sink, use_source=use_source)
    return env


def render_one(
    env: jinja2.Environment, capture: RenderCapture, name: str
) -> RenderedSql:
    """Render template *name*, returning its SQL and captured names."""
    capture.clear()
    try:
        sql = env.get_template(name).render()
    except (jinja2.TemplateError, TypeError) as exc:
        raise TemplateError(str(exc)) from exc
    return RenderedSql(name=name, sql=sql, capture=replace(capture))


def list_sql_templates(root: str | os.PathLike[str]) -> list[str]:
    """Return the sorted, '/'-separated paths of all .sql files under *root*."""
    base = Path(root)
    names = []
    for dirpath, _dirnames, filenames in os.walk(base):
        for filename in filenames:
            path = Path(dirpath, filename)
            if path.is_symlink() or not path.is_file():
                continue
            if path.suffix.lower() != ".sql":
                continue
            names.append(path.relative_to(base).as_posix())
    return sorted(names)
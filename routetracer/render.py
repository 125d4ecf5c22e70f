"""
Readable (Markdown) trace reports, rendered from a Jinja2 template.
"""

from __future__ import annotations

from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, Template

from .record import TraceRecord

__all__ = ["ReportRenderer"]

_TEMPLATE_NAME = "trace.md.j2"


class ReportRenderer:
    """Renders a ``TraceRecord`` as a Markdown report."""

    def __init__(self, env: Optional[Environment] = None) -> None:
        self.env = env or Environment(
            loader=PackageLoader("routetracer", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self._template: Optional[Template] = None

    @property
    def template(self) -> Template:
        if self._template is None:
            self._template = self.env.get_template(_TEMPLATE_NAME)
        return self._template

    def render(self, record: TraceRecord) -> str:
        return self.template.render(record=record)

"""Renderizado de templates (Jinja2).

Por qué está en adapters:
- Jinja2 es un detalle de infraestructura; la receta solo conoce el
  contrato `core.interfaces.renderer.TemplateRenderer`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from core.interfaces.renderer import TemplateRenderer

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _ini_value(value: Any) -> str:
    """Formato de valores INI: bool en minúsculas, listas separadas por coma."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_ini_value(v) for v in value)
    return str(value)


def _get_env(templates_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        # Los templates generan INI/conf de Apache, no HTML.
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["ini_value"] = _ini_value
    return env


class JinjaTemplateRenderer(TemplateRenderer):
    def __init__(self, templates_dir: Path | None = None) -> None:
        self._env = _get_env(templates_dir or _TEMPLATES_DIR)

    def render(self, template_name: str, **variables: Any) -> str:
        return self._env.get_template(template_name).render(**variables)

"""Contrato de renderizado de templates."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TemplateRenderer(Protocol):
    def render(self, template_name: str, **variables: Any) -> str:
        """Renderiza `template_name` con `variables` y devuelve el texto final."""

        ...

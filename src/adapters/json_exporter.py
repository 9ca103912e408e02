"""Exportación del plan.

Por qué JSON:
- Permite revisar (o diffear entre ejecuciones) lo que se va a aplicar sin
  tocar el host.
- El contenido sensible se redacta siempre en la exportación.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import ProvisioningPlan


def plan_to_json(plan: ProvisioningPlan) -> str:
    payload = plan.redacted().model_dump(mode="json")
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"


def export_plan_json(*, plan: ProvisioningPlan, output_path: Path) -> Path:
    """Exporta el plan a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(plan_to_json(plan), encoding="utf-8")
    return output_path


def render_plan_files(
    *,
    plan: ProvisioningPlan,
    output_dir: Path,
    show_secrets: bool = False,
) -> list[Path]:
    """Escribe cada archivo con contenido del plan bajo `output_dir`.

    Las rutas replican las del host (`/etc/keystone/keystone.conf` ->
    `<output_dir>/etc/keystone/keystone.conf`). Los archivos sensibles se
    escriben redactados salvo `show_secrets=True`.
    """

    source = plan if show_secrets else plan.redacted()
    written: list[Path] = []
    for resource in source.resources:
        if resource.kind not in ("template", "file"):
            continue
        content = getattr(resource, "content", None)
        if content is None or getattr(resource, "action", "create") != "create":
            continue
        target = output_dir / resource.path.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)
    return written

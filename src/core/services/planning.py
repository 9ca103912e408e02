"""Composición: settings -> atributos + secretos + renderer -> plan.

La CLI y el deploy de pyinfra comparten este punto de entrada para que ambos
construyan exactamente el mismo plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from adapters.secrets import build_secrets_provider
from adapters.template_renderer import JinjaTemplateRenderer
from core.attributes import NodeAttributes, load_attributes
from core.config import AppSettings
from core.domain.models import ProvisioningPlan
from core.services.identity_recipe import build_plan


@dataclass
class PlanBundle:
    attributes: NodeAttributes
    plan: ProvisioningPlan


def load_plan(
    settings: AppSettings,
    *,
    attributes_path: Path | None = None,
    secrets_path: Path | None = None,
) -> PlanBundle:
    attributes = load_attributes(attributes_path or settings.attributes_path)
    secrets = build_secrets_provider(secrets_path or settings.secrets_path)
    plan = build_plan(
        attributes=attributes,
        secrets=secrets,
        renderer=JinjaTemplateRenderer(),
    )
    return PlanBundle(attributes=attributes, plan=plan)

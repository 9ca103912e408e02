"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import ProvisioningPlan
from core.services.verify import EndpointStatus


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida (se omite en modo JSON)."""

    title = Text("keystone-provision", style="bold cyan")
    subtitle = Text("Identity service • Apache mod_wsgi • pyinfra", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _details(resource: object) -> str:
    parts: list[str] = []
    for attr in ("owner", "group"):
        value = getattr(resource, attr, None)
        if value:
            parts.append(str(value))
    mode = getattr(resource, "mode", None)
    if isinstance(mode, int):
        parts.append(f"{mode:04o}")
    actions = getattr(resource, "actions", None)
    if actions:
        parts.append("+".join(actions))
    return " ".join(parts)


def build_plan_table(plan: ProvisioningPlan) -> Table:
    table = Table(title="Provisioning plan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Action", style="green")
    table.add_column("Target", style="white")
    table.add_column("Details", style="magenta")
    for index, resource in enumerate(plan.resources, start=1):
        action = getattr(resource, "action", "")
        table.add_row(str(index), resource.kind, action, resource.target(), _details(resource))
    return table


def build_summary_panel(plan: ProvisioningPlan) -> Panel:
    body = Text()
    body.append("Public endpoint: ", style="bold")
    body.append(f"{plan.public_endpoint}\n")
    body.append("Admin endpoint:  ", style="bold")
    body.append(f"{plan.admin_endpoint}\n")
    body.append("Apache listen:   ", style="bold")
    body.append(", ".join(plan.listen) + "\n")
    for vhost in plan.virtual_hosts:
        ssl = " (ssl)" if vhost.use_ssl else ""
        body.append(f"- {vhost.name}: {vhost.server_host}:{vhost.server_port}{ssl}\n")
    if plan.warnings:
        body.append("\nWarnings:\n", style="bold yellow")
        for warning in plan.warnings:
            body.append(f"- {warning}\n", style="yellow")
    return Panel(body, title=Text("Summary", style="bold yellow"), border_style="yellow")


def build_endpoints_table(statuses: Iterable[EndpointStatus]) -> Table:
    table = Table(title="Identity endpoints")
    table.add_column("URL", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")
    for status in statuses:
        label = "[green]UP[/green]" if status.ok else "[red]DOWN[/red]"
        detail = f"HTTP {status.status_code}" if status.status_code is not None else (status.error or "")
        table.add_row(status.url, label, f"{detail} ({status.attempts} attempt(s))")
    return table

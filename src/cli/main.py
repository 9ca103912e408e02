"""CLI de keystone-provision (Typer + Rich).

Los comandos solo orquestan: construir el plan es `core.services`, aplicar es
pyinfra (`adapters.pyinfra_runner`).
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console

from adapters.json_exporter import export_plan_json, plan_to_json, render_plan_files
from adapters.pyinfra_runner import run_pyinfra
from cli import doctor
from cli.ui_components import build_endpoints_table, build_plan_table, build_summary_panel, print_banner
from core.attributes import load_attributes
from core.config import AppSettings
from core.errors import ProvisioningError
from core.helpers import admin_endpoint, public_endpoint
from core.logging_config import setup_logging
from core.services.planning import PlanBundle, load_plan
from core.services.verify import verify_endpoints

app = typer.Typer(
    no_args_is_help=True,
    help="Provision the identity service (Keystone) behind Apache with pyinfra.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()

_ATTRIBUTES_OPTION = typer.Option(None, "--attributes", "-a", help="Attributes JSON (overrides settings).")
_SECRETS_OPTION = typer.Option(None, "--secrets", "-s", help="Secrets JSON (overrides settings).")


def _fail(exc: Exception) -> NoReturn:
    _console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


def _settings() -> AppSettings:
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_file)
    return settings


def _load(settings: AppSettings, attributes: Optional[Path], secrets: Optional[Path]) -> PlanBundle:
    try:
        return load_plan(settings, attributes_path=attributes, secrets_path=secrets)
    except ProvisioningError as exc:
        _fail(exc)


@app.command()
def plan(
    attributes: Optional[Path] = _ATTRIBUTES_OPTION,
    secrets: Optional[Path] = _SECRETS_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print the redacted plan as JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write the JSON plan to this file."),
) -> None:
    """Build the provisioning plan and show it without touching the host."""

    settings = _settings()
    bundle = _load(settings, attributes, secrets)

    if as_json:
        typer.echo(plan_to_json(bundle.plan), nl=False)
    else:
        print_banner(_console)
        _console.print(build_plan_table(bundle.plan))
        _console.print(build_summary_panel(bundle.plan))

    if output is not None:
        path = export_plan_json(plan=bundle.plan, output_path=output)
        if not as_json:
            _console.print(f"[green]Plan written to:[/green] {path}")


@app.command()
def render(
    output_dir: Optional[Path] = typer.Argument(None, help="Directory for rendered files."),
    attributes: Optional[Path] = _ATTRIBUTES_OPTION,
    secrets: Optional[Path] = _SECRETS_OPTION,
    show_secrets: bool = typer.Option(False, "--show-secrets", help="Write sensitive files unredacted."),
) -> None:
    """Write every rendered configuration file under OUTPUT_DIR for review."""

    settings = _settings()
    bundle = _load(settings, attributes, secrets)
    target = output_dir or settings.output_dir
    written = render_plan_files(plan=bundle.plan, output_dir=target, show_secrets=show_secrets)
    for path in written:
        _console.print(f"[green]rendered[/green] {path}")
    _console.print(f"{len(written)} file(s) written to {target}")


@app.command()
def apply(
    inventory: Optional[str] = typer.Option(None, "--inventory", "-i", help="pyinfra inventory (default: settings)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Ask pyinfra for a dry run."),
    attributes: Optional[Path] = _ATTRIBUTES_OPTION,
    secrets: Optional[Path] = _SECRETS_OPTION,
) -> None:
    """Apply the plan through pyinfra."""

    settings = _settings()
    if attributes is not None:
        settings.attributes_path = attributes
    if secrets is not None:
        settings.secrets_path = secrets

    # Falla pronto (atributos/secretos) antes de abrir conexiones.
    _load(settings, None, None)
    try:
        run_pyinfra(settings, inventory=inventory, dry_run=dry_run)
    except ProvisioningError as exc:
        _fail(exc)
    _console.print("[green]Provisioning finished.[/green]")


@app.command()
def verify(
    attributes: Optional[Path] = _ATTRIBUTES_OPTION,
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds to wait for the endpoints."),
) -> None:
    """Wait until the public and admin identity endpoints answer."""

    settings = _settings()
    if timeout is not None:
        settings.verify_timeout_seconds = timeout
    try:
        node = load_attributes(attributes or settings.attributes_path)
        urls = [
            public_endpoint(node, "identity").base_url,
            admin_endpoint(node, "identity").base_url,
        ]
    except ProvisioningError as exc:
        _fail(exc)

    statuses = asyncio.run(verify_endpoints(urls, settings=settings))
    _console.print(build_endpoints_table(statuses))
    if not all(status.ok for status in statuses):
        raise typer.Exit(code=1)


def run() -> None:
    app()

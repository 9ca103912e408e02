"""Doctor command for environment diagnostics."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from adapters.pyinfra_runner import find_pyinfra
from adapters.secrets import build_secrets_provider
from adapters.template_renderer import JinjaTemplateRenderer
from core.attributes import dump_default_attributes, load_attributes
from core.config import AppSettings, write_user_env_vars
from core.errors import ProvisioningError
from core.services.identity_recipe import build_plan

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="keystone-provision Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    failed = False

    pyinfra_path = find_pyinfra(settings)
    if pyinfra_path:
        table.add_row("pyinfra", "OK", pyinfra_path)
    else:
        failed = True
        table.add_row("pyinfra", "FAIL", f"'{settings.pyinfra_bin}' not found in PATH")

    attributes = None
    try:
        attributes = load_attributes(settings.attributes_path)
        source = str(settings.attributes_path) if settings.attributes_path else "defaults"
        table.add_row("Attributes", "OK", f"{source} ({attributes.platform_family})")
    except ProvisioningError as exc:
        failed = True
        table.add_row("Attributes", "FAIL", str(exc))

    if attributes is not None:
        try:
            secrets = build_secrets_provider(settings.secrets_path)
            plan = build_plan(attributes=attributes, secrets=secrets, renderer=JinjaTemplateRenderer())
            table.add_row("Plan", "OK", f"{len(plan.resources)} resources")
            for warning in plan.warnings:
                table.add_row("Plan warning", "WARN", warning)
        except ProvisioningError as exc:
            failed = True
            table.add_row("Plan", "FAIL", str(exc))

    table.add_row("Inventory", "OK", settings.inventory)
    _console.print(table)

    if failed:
        _console.print(
            "\n[yellow]Note:[/yellow] secrets can be set as env vars "
            "(KEYSTONE_PROVISION_SECRET_<KIND>_<KEY>) or in a JSON file (KEYSTONE_PROVISION_SECRETS_PATH)."
        )
        raise typer.Exit(code=1)


@app.command(name="init-attributes")
def init_attributes(
    path: Path = typer.Argument(Path("attributes.json"), help="Where to write the default attributes."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write the default attributes tree as JSON, ready to edit."""

    if path.exists() and not force:
        raise typer.BadParameter(f"{path} already exists (use --force)")
    written = dump_default_attributes(path)
    _console.print(f"[green]Default attributes written to:[/green] {written}")


@app.command()
def setup() -> None:
    """Interactive setup (stores paths and inventory in the user config .env)."""

    attributes_path = typer.prompt("Attributes JSON path", default="attributes.json", show_default=True).strip()
    secrets_path = typer.prompt("Secrets JSON path", default="secrets.json", show_default=True).strip()
    inventory = typer.prompt("pyinfra inventory", default="@local", show_default=True).strip()

    if not inventory:
        raise typer.BadParameter("inventory is required")

    env_path = write_user_env_vars(
        {
            "KEYSTONE_PROVISION_ATTRIBUTES_PATH": str(Path(attributes_path).expanduser().resolve()),
            "KEYSTONE_PROVISION_SECRETS_PATH": str(Path(secrets_path).expanduser().resolve()),
            "KEYSTONE_PROVISION_INVENTORY": inventory,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")

"""Invocación del ejecutable de pyinfra.

La CLI no importa pyinfra para aplicar: lanza `pyinfra <inventario> <deploy>`
y deja que pyinfra gestione conexión, diffs y errores.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

from core.config import AppSettings
from core.errors import RuntimeApplyError

logger = logging.getLogger(__name__)

DEPLOY_FILE = Path(__file__).resolve().parent / "pyinfra_deploy.py"


def find_pyinfra(settings: AppSettings) -> str | None:
    return shutil.which(settings.pyinfra_bin)


def build_command(settings: AppSettings, *, inventory: str | None = None, dry_run: bool = False) -> list[str]:
    command = [settings.pyinfra_bin, "-y"]
    if dry_run:
        command.append("--dry")
    command.extend([inventory or settings.inventory, str(DEPLOY_FILE)])
    return command


def build_env(settings: AppSettings) -> dict[str, str]:
    """Propaga la configuración efectiva al proceso de pyinfra."""

    env = dict(os.environ)
    if settings.attributes_path is not None:
        env["KEYSTONE_PROVISION_ATTRIBUTES_PATH"] = str(settings.attributes_path.resolve())
    if settings.secrets_path is not None:
        env["KEYSTONE_PROVISION_SECRETS_PATH"] = str(settings.secrets_path.resolve())
    env["KEYSTONE_PROVISION_LOG_LEVEL"] = settings.log_level
    return env


def run_pyinfra(settings: AppSettings, *, inventory: str | None = None, dry_run: bool = False) -> int:
    if find_pyinfra(settings) is None:
        raise RuntimeApplyError(f"pyinfra executable not found: {settings.pyinfra_bin}")

    command = build_command(settings, inventory=inventory, dry_run=dry_run)
    logger.info("Running %s", " ".join(command))
    completed = subprocess.run(command, env=build_env(settings), check=False)
    if completed.returncode != 0:
        raise RuntimeApplyError(
            f"pyinfra exited with code {completed.returncode}",
            returncode=completed.returncode,
        )
    return completed.returncode

"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (pyinfra/HTTP/secrets) lean config de forma consistente.

Los *atributos* del nodo (qué se provisiona) viven en `core.attributes`; aquí
solo está la configuración de la herramienta (dónde leerlos, cómo loguear, etc.).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "keystone-provision"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "keystone-provision"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "keystone-provision"
    return Path.home() / ".config" / "keystone-provision"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str]) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# keystone-provision user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la herramienta.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters/deploy de pyinfra.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYSTONE_PROVISION_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    attributes_path: Path | None = Field(
        default=None,
        description="JSON con los atributos del nodo (si falta, se usan los defaults).",
    )
    secrets_path: Path | None = Field(
        default=None,
        description="JSON con secretos {tipo: {clave: valor}} (db, user, keystone).",
    )

    inventory: str = Field(
        default="@local",
        min_length=1,
        description="Inventario pyinfra (p.ej. '@local', '@ssh/host', 'inventory.py').",
    )
    pyinfra_bin: str = Field(
        default="pyinfra",
        min_length=1,
        description="Ejecutable de pyinfra usado por `apply`.",
    )

    log_level: str = Field(
        default="INFO",
        description="Nivel de logging (DEBUG, INFO, WARNING, ERROR).",
    )
    log_file: Path | None = Field(
        default=None,
        description="Archivo de log opcional además de la consola.",
    )

    http_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout por request al verificar endpoints (segundos).",
    )
    verify_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Tiempo máximo esperando a que los endpoints respondan (segundos).",
    )
    verify_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Pausa entre rondas de verificación (segundos).",
    )
    user_agent: str = Field(
        default="keystone-provision/0.1",
        min_length=1,
        description="User-Agent para las verificaciones HTTP.",
    )

    output_dir: Path = Field(
        default=Path("rendered"),
        description="Directorio por defecto para `render`.",
    )

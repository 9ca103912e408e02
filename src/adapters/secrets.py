"""Proveedores de secretos.

Orden típico: variables de entorno primero (CI/operadores), luego un JSON
local `{tipo: {clave: valor}}`.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Iterable, Mapping

from core.errors import ConfigurationError, SecretNotFoundError
from core.interfaces.secrets import SecretsProvider

ENV_PREFIX = "KEYSTONE_PROVISION_SECRET_"


def secret_env_name(kind: str, key: str) -> str:
    """`("user", "guest")` -> `KEYSTONE_PROVISION_SECRET_USER_GUEST`."""

    raw = f"{kind}_{key}".upper()
    return ENV_PREFIX + re.sub(r"[^A-Z0-9]+", "_", raw)


class EnvSecretsProvider(SecretsProvider):
    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    def get_password(self, kind: str, key: str) -> str:
        value = self._environ.get(secret_env_name(kind, key))
        if value is None:
            raise SecretNotFoundError(kind, key)
        return value


class JsonSecretsProvider(SecretsProvider):
    """Lee secretos de un JSON `{"db": {"keystone": "..."}, "user": {...}}`."""

    def __init__(self, data: Mapping[str, Mapping[str, str]]) -> None:
        self._data = data

    @classmethod
    def from_file(cls, path: Path) -> "JsonSecretsProvider":
        if not path.exists():
            raise ConfigurationError(f"Secrets file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Secrets file is not valid JSON ({path}): {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Secrets file must hold an object: {path}")
        return cls(data)

    def get_password(self, kind: str, key: str) -> str:
        group = self._data.get(kind)
        if not isinstance(group, Mapping) or key not in group:
            raise SecretNotFoundError(kind, key)
        return str(group[key])


class ChainSecretsProvider(SecretsProvider):
    """Prueba cada proveedor en orden; el primero que resuelve gana."""

    def __init__(self, providers: Iterable[SecretsProvider]) -> None:
        self._providers = list(providers)

    def get_password(self, kind: str, key: str) -> str:
        for provider in self._providers:
            try:
                return provider.get_password(kind, key)
            except SecretNotFoundError:
                continue
        raise SecretNotFoundError(kind, key)


def build_secrets_provider(secrets_path: Path | None) -> SecretsProvider:
    providers: list[SecretsProvider] = [EnvSecretsProvider()]
    if secrets_path is not None:
        providers.append(JsonSecretsProvider.from_file(secrets_path))
    return ChainSecretsProvider(providers)

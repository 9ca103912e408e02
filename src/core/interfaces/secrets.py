"""Contrato de proveedores de secretos.

Por qué Protocol:
- La receta pide contraseñas por (tipo, clave) sin saber de dónde salen
  (env vars, JSON, un vault externo).
- Permite tests con un dict en memoria.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SecretsProvider(Protocol):
    """Contrato mínimo para resolver secretos.

    Reglas de diseño:
    - `kind` agrupa secretos (`db`, `user`, `keystone`).
    - Si el secreto no existe se lanza `core.errors.SecretNotFoundError`.
    """

    def get_password(self, kind: str, key: str) -> str:
        ...

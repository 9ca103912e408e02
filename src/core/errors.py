"""Errores del Core.

Por qué una jerarquía propia:
- La CLI captura `ProvisioningError` en un único punto y decide el exit code.
- Los adaptadores (secrets, pyinfra) lanzan subclases concretas sin acoplar
  el Core a sus librerías.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for every error raised while building or applying a plan."""


class ConfigurationError(ProvisioningError):
    """Attributes are missing, inconsistent or reference unknown values."""


class SecretNotFoundError(ProvisioningError):
    """A password or key could not be resolved by any secrets provider."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"Secret not found: {kind}/{key}")
        self.kind = kind
        self.key = key


class UnsupportedResourceError(ProvisioningError):
    """The runtime binding has no operation for a resource kind."""


class RuntimeApplyError(ProvisioningError):
    """The external provisioning runtime reported a failure."""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode

"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core al runtime de aprovisionamiento (pyinfra).
- Facilita serializar el plan (JSON) para revisarlo antes de aplicarlo.

Nota:
- Estos modelos describen *qué* estado se declara, no *cómo* se converge.
  La convergencia (idempotencia, orden en el host, reinicios) es del runtime.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.errors import ConfigurationError

REDACTED = "**redacted**"


class _Resource(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        description="Etiqueta legible del recurso (única dentro de un plan).",
    )

    def target(self) -> str:
        """Lo que el recurso toca en el host (path, paquete, servicio...)."""

        return self.name

    def redacted(self) -> "_Resource":
        return self


class PackageResource(_Resource):
    kind: Literal["package"] = "package"
    package_name: str = Field(..., min_length=1, description="Nombre del paquete del SO.")
    options: str | None = Field(
        default=None,
        description="Argumentos extra para el gestor de paquetes.",
    )
    action: Literal["upgrade", "install"] = "upgrade"

    def target(self) -> str:
        return self.package_name


class ServiceResource(_Resource):
    kind: Literal["service"] = "service"
    service_name: str = Field(..., min_length=1)
    actions: tuple[Literal["stop", "disable", "start", "enable", "restart"], ...] = Field(
        ...,
        min_length=1,
        description="Acciones en orden (p.ej. stop + disable).",
    )

    def target(self) -> str:
        return self.service_name


class DirectoryResource(_Resource):
    kind: Literal["directory"] = "directory"
    path: str = Field(..., min_length=1)
    owner: str = "root"
    group: str = "root"
    mode: int = Field(default=0o755, ge=0, le=0o7777)
    action: Literal["create"] = "create"

    def target(self) -> str:
        return self.path


class FileResource(_Resource):
    """Archivo con contenido literal, copiado de otra ruta del host, o borrado."""

    kind: Literal["file"] = "file"
    path: str = Field(..., min_length=1)
    content: str | None = None
    copy_from: str | None = Field(
        default=None,
        description="Ruta en el host de la que se copia el contenido al aplicar.",
    )
    owner: str = "root"
    group: str = "root"
    mode: int = Field(default=0o644, ge=0, le=0o7777)
    sensitive: bool = False
    action: Literal["create", "delete"] = "create"

    def target(self) -> str:
        return self.path

    def redacted(self) -> "FileResource":
        if self.sensitive and self.content is not None:
            return self.model_copy(update={"content": REDACTED})
        return self


class RemoteFileResource(_Resource):
    kind: Literal["remote_file"] = "remote_file"
    path: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    owner: str = "root"
    group: str = "root"
    mode: int = Field(default=0o644, ge=0, le=0o7777)
    action: Literal["create_if_missing"] = "create_if_missing"

    def target(self) -> str:
        return self.path


class TemplateResource(_Resource):
    """Archivo renderizado desde un template jinja2 (el contenido ya viene resuelto)."""

    kind: Literal["template"] = "template"
    path: str = Field(..., min_length=1)
    template: str = Field(..., min_length=1, description="Nombre del template de origen.")
    content: str = Field(..., description="Contenido renderizado.")
    owner: str = "root"
    group: str = "root"
    mode: int = Field(default=0o644, ge=0, le=0o7777)
    sensitive: bool = False
    action: Literal["create"] = "create"

    def target(self) -> str:
        return self.path

    def redacted(self) -> "TemplateResource":
        if self.sensitive:
            return self.model_copy(update={"content": REDACTED})
        return self


class ExecuteResource(_Resource):
    kind: Literal["execute"] = "execute"
    command: str = Field(..., min_length=1)
    user: str | None = None
    group: str | None = None
    creates: str | None = Field(
        default=None,
        description="Si la ruta existe en el host, el comando no se ejecuta.",
    )
    action: Literal["run"] = "run"

    def target(self) -> str:
        return self.command


class CronResource(_Resource):
    kind: Literal["cron"] = "cron"
    minute: str = "*"
    hour: str = "*"
    day: str = "*"
    weekday: str = "*"
    user: str = "root"
    command: str = Field(..., min_length=1)
    action: Literal["create", "delete"] = "create"


class ApacheModuleResource(_Resource):
    kind: Literal["apache_module"] = "apache_module"
    module: str = Field(..., min_length=1)
    action: Literal["enable"] = "enable"

    def target(self) -> str:
        return self.module


class ApacheSiteResource(_Resource):
    kind: Literal["apache_site"] = "apache_site"
    site: str = Field(..., min_length=1)
    action: Literal["enable", "disable"] = "enable"

    def target(self) -> str:
        return self.site


Resource = Annotated[
    Union[
        PackageResource,
        ServiceResource,
        DirectoryResource,
        FileResource,
        RemoteFileResource,
        TemplateResource,
        ExecuteResource,
        CronResource,
        ApacheModuleResource,
        ApacheSiteResource,
    ],
    Field(discriminator="kind"),
]


class VirtualHost(BaseModel):
    """Parámetros de un virtual host WSGI (main/admin)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Nombre del sitio Apache (keystone-main, keystone-admin).")
    server_host: str
    server_port: int = Field(..., ge=1, le=65535)
    server_entry: str = Field(..., description="Script WSGI servido por el vhost.")
    server_suffix: str
    log_dir: str
    log_debug: bool = False
    user: str
    group: str
    use_ssl: bool = False
    cert_file: str | None = None
    chain_file: str | None = None
    key_file: str | None = None
    ca_certs_path: str | None = None
    cert_required: bool = False
    protocol: str | None = None
    ciphers: str | None = None


class ProvisioningPlan(BaseModel):
    """Resultado de una ejecución de la receta: declaraciones en orden.

    Por qué un agregado:
    - Centraliza lo que se va a aplicar para poder mostrarlo, exportarlo y
      entregarlo al runtime sin recalcular nada.
    """

    resources: list[Resource] = Field(default_factory=list)
    listen: list[str] = Field(
        default_factory=list,
        description="Direcciones `host:puerto` en las que Apache escucha.",
    )
    public_endpoint: str | None = None
    admin_endpoint: str | None = None
    virtual_hosts: list[VirtualHost] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add(self, resource: _Resource) -> None:
        if any(existing.name == resource.name for existing in self.resources):
            raise ConfigurationError(f"Duplicated resource name in plan: {resource.name}")
        self.resources.append(resource)  # type: ignore[arg-type]

    def by_kind(self, kind: str) -> list[Any]:
        return [r for r in self.resources if r.kind == kind]

    def find(self, name: str) -> Any | None:
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None

    def redacted(self) -> "ProvisioningPlan":
        """Copia del plan sin contenido sensible (para mostrar/exportar)."""

        return self.model_copy(update={"resources": [r.redacted() for r in self.resources]})

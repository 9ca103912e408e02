"""Árbol de atributos del nodo.

Por qué modelos anidados:
- Reemplazan el árbol clave/valor jerárquico del runtime por un contrato
  tipado: cada clave ausente en el JSON toma su default.
- La receta solo lee atributos; nunca los muta.

Los defaults reproducen una instalación estándar de Keystone detrás de Apache
(puertos 5000/35357, usuario `keystone`, Ubuntu como familia por defecto).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.config import ConfigDict

from core.errors import ConfigurationError

PlatformFamily = Literal["debian", "rhel"]


class _Node(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class SyslogAttributes(_Node):
    use: bool = False
    config_file: str = "/etc/openstack/logging.conf"
    facility: str = "LOG_LOCAL2"
    error_facility: str = "LOG_LOCAL1"


class TokenFlushCron(_Node):
    enabled: bool = True
    log_file: str = "/var/log/keystone/token-flush.log"
    minute: str = "0"
    hour: str = "*"
    day: str = "*"
    weekday: str = "*"


class SSLAttributes(_Node):
    enabled: bool = False
    certfile: str = "/etc/keystone/ssl/certs/sslcert.pem"
    chainfile: str | None = None
    keyfile: str = "/etc/keystone/ssl/private/sslkey.pem"
    ca_certs_path: str = "/etc/keystone/ssl/certs/"
    cert_required: bool = False
    protocol: str = "All -SSLv2 -SSLv3"
    ciphers: str | None = None


class FernetAttributes(_Node):
    key_repository: str = "/etc/keystone/fernet-tokens"
    keys: list[int] = Field(default_factory=lambda: [0, 1, 2])


class PKIAttributes(_Node):
    certfile_url: str | None = None
    keyfile_url: str | None = None
    ca_certs_url: str | None = None
    signing_certfile: str = "/etc/keystone/ssl/certs/signing_cert.pem"
    signing_keyfile: str = "/etc/keystone/ssl/private/signing_key.pem"
    signing_ca_certs: str = "/etc/keystone/ssl/certs/ca.pem"


def _default_conf() -> dict[str, dict[str, Any]]:
    return {
        "DEFAULT": {"rpc_backend": "rabbit"},
        "token": {"backend": "sql"},
        "catalog": {"driver": "keystone.catalog.backends.sql.Catalog"},
        "memcache": {},
        "database": {},
    }


class IdentityAttributes(_Node):
    user: str = "keystone"
    group: str = "keystone"
    syslog: SyslogAttributes = Field(default_factory=SyslogAttributes)
    domain_config_dir: str = "/etc/keystone/domains"
    domain_specific_drivers_enabled: bool = False
    pastefile_url: str | None = None
    conf: dict[str, dict[str, Any]] = Field(
        default_factory=_default_conf,
        description="Opciones de keystone.conf: sección -> clave -> valor.",
    )
    catalog_backend: str = "sql"
    region: str = "RegionOne"
    token_backend: str = "sql"
    token_flush_cron: TokenFlushCron = Field(default_factory=TokenFlushCron)
    ssl: SSLAttributes = Field(default_factory=SSLAttributes)
    fernet: FernetAttributes = Field(default_factory=FernetAttributes)
    pki: PKIAttributes = Field(default_factory=PKIAttributes)
    debug: bool = False
    start_delay: int = Field(default=10, ge=0)

    @field_validator("conf", mode="after")
    @classmethod
    def _merge_conf_defaults(cls, value: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
        merged = _default_conf()
        for section, options in value.items():
            merged.setdefault(section, {}).update(options)
        return merged


class PlatformOptions(_Node):
    keystone_packages: list[str]
    memcache_python_packages: list[str]
    keystone_service: str
    keystone_wsgi_file: str
    package_options: str | None = None
    apache_packages: list[str]
    apache_service: str
    mod_wsgi_packages: list[str]
    mod_ssl_packages: list[str] = Field(default_factory=list)
    apache_conf_dir: str
    apache_log_dir: str
    apache_docroot_dir: str = "/var/www/html"
    apache_ports_file: str = Field(..., description="Archivo de `Listen`, relativo a apache_conf_dir.")
    apache_sites_include: str | None = Field(
        default=None,
        description="Archivo (relativo a apache_conf_dir) que incluye sites-enabled cuando httpd no lo hace.",
    )


PLATFORM_DEFAULTS: dict[str, dict[str, Any]] = {
    "debian": {
        "keystone_packages": ["keystone"],
        "memcache_python_packages": ["python-memcache"],
        "keystone_service": "keystone",
        "keystone_wsgi_file": "/usr/share/keystone/wsgi.py",
        "package_options": "-o Dpkg::Options::='--force-confold' -o Dpkg::Options::='--force-confdef'",
        "apache_packages": ["apache2"],
        "apache_service": "apache2",
        "mod_wsgi_packages": ["libapache2-mod-wsgi"],
        "mod_ssl_packages": [],
        "apache_conf_dir": "/etc/apache2",
        "apache_log_dir": "/var/log/apache2",
        "apache_docroot_dir": "/var/www/html",
        "apache_ports_file": "ports.conf",
        "apache_sites_include": None,
    },
    "rhel": {
        "keystone_packages": ["openstack-keystone"],
        "memcache_python_packages": ["python-memcached"],
        "keystone_service": "openstack-keystone",
        "keystone_wsgi_file": "/usr/share/keystone/keystone.wsgi",
        "package_options": "",
        "apache_packages": ["httpd"],
        "apache_service": "httpd",
        "mod_wsgi_packages": ["mod_wsgi"],
        "mod_ssl_packages": ["mod_ssl"],
        "apache_conf_dir": "/etc/httpd",
        "apache_log_dir": "/var/log/httpd",
        "apache_docroot_dir": "/var/www/html",
        "apache_ports_file": "conf.d/ports.conf",
        "apache_sites_include": "conf.d/sites-enabled.conf",
    },
}


class IdentityDatabase(_Node):
    service_type: str = "mysql"
    host: str = "127.0.0.1"
    port: int = Field(default=3306, ge=1, le=65535)
    db_name: str = "keystone"
    username: str = "keystone"
    path: str = "/var/lib/keystone/keystone.db"
    migrate: bool = True


def _default_python_packages() -> dict[str, list[str]]:
    return {
        "mysql": ["python-mysqldb"],
        "postgresql": ["python-psycopg2"],
        "sqlite": [],
    }


def _default_db_options() -> dict[str, str]:
    return {
        "mysql": "charset=utf8",
        "postgresql": "",
        "galera": "charset=utf8",
        "mariadb": "charset=utf8",
        "percona-cluster": "charset=utf8",
    }


class DatabaseAttributes(_Node):
    identity: IdentityDatabase = Field(default_factory=IdentityDatabase)
    python_packages: dict[str, list[str]] = Field(default_factory=_default_python_packages)
    options: dict[str, str] = Field(default_factory=_default_db_options)

    @field_validator("python_packages", mode="after")
    @classmethod
    def _merge_packages(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return {**_default_python_packages(), **value}

    @field_validator("options", mode="after")
    @classmethod
    def _merge_options(cls, value: dict[str, str]) -> dict[str, str]:
        return {**_default_db_options(), **value}


class BindService(_Node):
    host: str = "127.0.0.1"
    interface: str | None = Field(
        default=None,
        description="Si se define, la dirección se resuelve desde network.interfaces.",
    )
    family: Literal["inet", "inet6"] = "inet"
    port: int = Field(..., ge=1, le=65535)


class BindServices(_Node):
    main: BindService = Field(default_factory=lambda: BindService(port=5000))
    admin: BindService = Field(default_factory=lambda: BindService(port=35357))


class EndpointAttributes(_Node):
    scheme: str = "http"
    host: str = "127.0.0.1"
    port: int = Field(..., ge=1, le=65535)
    path: str = ""


def _default_public_endpoints() -> dict[str, EndpointAttributes]:
    return {
        "identity": EndpointAttributes(port=5000, path="/v2.0"),
        "compute": EndpointAttributes(port=8774, path="/v2.1/%(tenant_id)s"),
        "compute-ec2": EndpointAttributes(port=8773, path="/services/Cloud"),
        "image": EndpointAttributes(port=9292),
        "network": EndpointAttributes(port=9696),
        "block-storage": EndpointAttributes(port=8776, path="/v2/%(tenant_id)s"),
    }


def _default_admin_endpoints() -> dict[str, EndpointAttributes]:
    return {
        "identity": EndpointAttributes(port=35357, path="/v2.0"),
    }


class EndpointsAttributes(_Node):
    public: dict[str, EndpointAttributes] = Field(default_factory=_default_public_endpoints)
    admin: dict[str, EndpointAttributes] = Field(default_factory=_default_admin_endpoints)

    # Los servicios declarados se suman a los defaults, no los reemplazan.
    @field_validator("public", mode="after")
    @classmethod
    def _merge_public(cls, value: dict[str, EndpointAttributes]) -> dict[str, EndpointAttributes]:
        return {**_default_public_endpoints(), **value}

    @field_validator("admin", mode="after")
    @classmethod
    def _merge_admin(cls, value: dict[str, EndpointAttributes]) -> dict[str, EndpointAttributes]:
        return {**_default_admin_endpoints(), **value}


class InterfaceAddress(_Node):
    address: str
    family: Literal["inet", "inet6"] = "inet"


class NetworkAttributes(_Node):
    interfaces: dict[str, list[InterfaceAddress]] = Field(default_factory=dict)


class MessageQueueAttributes(_Node):
    rabbit_userid: str = "guest"


class ApacheAttributes(_Node):
    """Directorios de Apache; los que quedan en `None` salen de la plataforma."""

    listen: list[str] = Field(default_factory=lambda: ["*:80"])
    docroot_dir: str | None = None
    log_dir: str | None = None
    conf_dir: str | None = None


class NodeAttributes(_Node):
    """Raíz del árbol de atributos."""

    platform_family: PlatformFamily = "debian"
    platform: dict[str, Any] = Field(
        default_factory=dict,
        description="Overrides sobre los defaults de la familia de plataforma.",
    )
    identity: IdentityAttributes = Field(default_factory=IdentityAttributes)
    db: DatabaseAttributes = Field(default_factory=DatabaseAttributes)
    auth_strategy: str = "fernet"
    bind_service: BindServices = Field(default_factory=BindServices)
    endpoints: EndpointsAttributes = Field(default_factory=EndpointsAttributes)
    network: NetworkAttributes = Field(default_factory=NetworkAttributes)
    mq: MessageQueueAttributes = Field(default_factory=MessageQueueAttributes)
    memcached_servers: list[str] = Field(default_factory=lambda: ["127.0.0.1:11211"])
    apache: ApacheAttributes = Field(default_factory=ApacheAttributes)

    def platform_options(self) -> PlatformOptions:
        """Defaults de la familia combinados con los overrides de `platform`."""

        merged = {**PLATFORM_DEFAULTS[self.platform_family], **self.platform}
        try:
            return PlatformOptions.model_validate(merged)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid platform options: {exc}") from exc

    def resolved_apache(self) -> ApacheAttributes:
        platform = self.platform_options()
        apache = self.apache
        return apache.model_copy(
            update={
                "docroot_dir": apache.docroot_dir or platform.apache_docroot_dir,
                "log_dir": apache.log_dir or platform.apache_log_dir,
                "conf_dir": apache.conf_dir or platform.apache_conf_dir,
            }
        )


def load_attributes(path: Path | None) -> NodeAttributes:
    """Carga atributos desde JSON; sin ruta devuelve los defaults."""

    if path is None:
        return NodeAttributes()
    if not path.exists():
        raise ConfigurationError(f"Attributes file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Attributes file is not valid JSON ({path}): {exc}") from exc
    try:
        return NodeAttributes.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid attributes in {path}: {exc}") from exc


def dump_default_attributes(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = NodeAttributes().model_dump(mode="json")
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path

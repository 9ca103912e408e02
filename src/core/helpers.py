"""Helpers de ensamblado de strings (endpoints, direcciones, URIs de BD).

Funciones puras sobre `NodeAttributes`: no tocan el host ni la red.
"""

from __future__ import annotations

import copy
import ipaddress
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote

from core.attributes import BindService, NodeAttributes
from core.errors import ConfigurationError

_DB_DIALECTS: dict[str, str] = {
    "mysql": "mysql+pymysql",
    "galera": "mysql+pymysql",
    "mariadb": "mysql+pymysql",
    "percona-cluster": "mysql+pymysql",
    "postgresql": "postgresql",
    "pgsql": "postgresql",
}


def format_host(host: str) -> str:
    try:
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]"
    except ValueError:
        pass
    return host


@dataclass(frozen=True)
class Endpoint:
    """URI de un endpoint de servicio (scheme/host/port/path)."""

    scheme: str
    host: str
    port: int
    path: str = ""

    @property
    def base_url(self) -> str:
        """`scheme://host:port/` (lo que keystone.conf espera)."""

        return f"{self.scheme}://{format_host(self.host)}:{self.port}/"

    @property
    def catalog_url(self) -> str:
        """URI completa con los `%25` devueltos a `%` (placeholders del catálogo)."""

        return str(self).replace("%25", "%")

    def __str__(self) -> str:
        path = quote(self.path, safe="/:@!$&'()*+,;=%-._~")
        return f"{self.scheme}://{format_host(self.host)}:{self.port}{path}"


def endpoint(attributes: NodeAttributes, role: str, service: str) -> Endpoint:
    endpoints = getattr(attributes.endpoints, role, None)
    if endpoints is None:
        raise ConfigurationError(f"Unknown endpoint role: {role}")
    info = endpoints.get(service)
    if info is None:
        raise ConfigurationError(f"No {role} endpoint configured for service '{service}'")
    return Endpoint(scheme=info.scheme, host=info.host, port=info.port, path=info.path)


def public_endpoint(attributes: NodeAttributes, service: str) -> Endpoint:
    return endpoint(attributes, "public", service)


def admin_endpoint(attributes: NodeAttributes, service: str) -> Endpoint:
    return endpoint(attributes, "admin", service)


def bind_address(attributes: NodeAttributes, bind: BindService) -> str:
    """Dirección a la que se enlaza un servicio.

    Si `bind.interface` está definido, se toma la primera dirección de esa
    familia en `network.interfaces`; si no, `bind.host`.
    """

    if not bind.interface:
        return bind.host

    addresses = attributes.network.interfaces.get(bind.interface)
    if addresses is None:
        raise ConfigurationError(f"Unknown network interface: {bind.interface}")
    for entry in addresses:
        if entry.family == bind.family:
            return entry.address
    raise ConfigurationError(f"Interface {bind.interface} has no {bind.family} address")


def db_uri(attributes: NodeAttributes, user: str, password: str) -> str:
    """URI SQLAlchemy para la base de datos de identidad."""

    info = attributes.db.identity
    service_type = info.service_type
    if service_type == "sqlite":
        return f"sqlite:///{info.path}"

    dialect = _DB_DIALECTS.get(service_type)
    if dialect is None:
        raise ConfigurationError(f"Unsupported database service_type: {service_type}")

    credentials = f"{quote(user, safe='')}:{quote(password, safe='')}"
    uri = f"{dialect}://{credentials}@{format_host(info.host)}:{info.port}/{info.db_name}"
    options = attributes.db.options.get(service_type)
    if options:
        uri = f"{uri}?{options}"
    return uri


def memcached_servers(attributes: NodeAttributes) -> list[str]:
    return [server.strip() for server in attributes.memcached_servers if server.strip()]


def merge_config_options(
    conf: Mapping[str, Mapping[str, Any]],
    secrets: Mapping[str, Mapping[str, Any]],
) -> dict[str, dict[str, Any]]:
    """Combina opciones y secretos por sección; los secretos ganan."""

    merged = {section: copy.deepcopy(dict(options)) for section, options in conf.items()}
    for section, options in secrets.items():
        merged.setdefault(section, {}).update(options)
    return merged

"""Identity service (Keystone under Apache) provisioning recipe.

This module turns a `NodeAttributes` tree into an ordered
`ProvisioningPlan`. It never touches the host: every step is a declaration
that the runtime binding (`adapters.pyinfra_runtime`) hands to pyinfra.

The order of declarations is fixed, so the same attributes and secrets always
produce the same plan. Secrets are only ever merged into rendered content,
never into the attribute tree.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from core.attributes import NodeAttributes, PlatformOptions
from core.domain.models import (
    ApacheModuleResource,
    ApacheSiteResource,
    CronResource,
    DirectoryResource,
    ExecuteResource,
    FileResource,
    PackageResource,
    ProvisioningPlan,
    RemoteFileResource,
    ServiceResource,
    TemplateResource,
    VirtualHost,
)
from core.helpers import (
    admin_endpoint,
    bind_address,
    db_uri,
    format_host,
    memcached_servers,
    merge_config_options,
    public_endpoint,
)
from core.interfaces.renderer import TemplateRenderer
from core.interfaces.secrets import SecretsProvider

logger = logging.getLogger(__name__)

KEYSTONE_CONF_DIR = "/etc/keystone"
KEYSTONE_SQLITE_DB = "/var/lib/keystone/keystone.db"
OPENSTACK_CONF_DIR = "/etc/openstack"

# Alias en el catálogo templated -> tipo de servicio del endpoint público.
_CATALOG_SERVICES: tuple[tuple[str, str], ...] = (
    ("identity", "identity"),
    ("image", "image"),
    ("compute", "compute"),
    ("ec2", "compute-ec2"),
    ("network", "network"),
    ("volume", "block-storage"),
)


@dataclass
class _RecipeState:
    attributes: NodeAttributes
    platform: PlatformOptions
    secrets: SecretsProvider
    renderer: TemplateRenderer
    plan: ProvisioningPlan = field(default_factory=ProvisioningPlan)
    conf: dict[str, dict[str, Any]] = field(default_factory=dict)
    conf_secrets: dict[str, dict[str, Any]] = field(default_factory=dict)
    declared_packages: set[str] = field(default_factory=set)

    @property
    def user(self) -> str:
        return self.attributes.identity.user

    @property
    def group(self) -> str:
        return self.attributes.identity.group

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.plan.warnings.append(message)


def _packages(state: _RecipeState, packages: list[str], *, action: str = "upgrade") -> None:
    for pkg in packages:
        if pkg in state.declared_packages:
            continue
        state.declared_packages.add(pkg)
        state.plan.add(
            PackageResource(
                name=f"identity package {pkg}",
                package_name=pkg,
                options=state.platform.package_options or None,
                action=action,  # type: ignore[arg-type]
            )
        )


def _template(
    state: _RecipeState,
    path: str,
    template: str,
    *,
    owner: str,
    group: str,
    mode: int,
    sensitive: bool = False,
    **variables: Any,
) -> None:
    content = state.renderer.render(template, **variables)
    state.plan.add(
        TemplateResource(
            name=f"template {path}",
            path=path,
            template=template,
            content=content,
            owner=owner,
            group=group,
            mode=mode,
            sensitive=sensitive,
        )
    )


def _logging_setup(state: _RecipeState) -> None:
    syslog = state.attributes.identity.syslog
    state.plan.add(DirectoryResource(name=f"directory {OPENSTACK_CONF_DIR}", path=OPENSTACK_CONF_DIR, mode=0o755))
    _template(
        state,
        syslog.config_file,
        "logging.conf.j2",
        owner="root",
        group="root",
        mode=0o644,
        facility=syslog.facility,
        error_facility=syslog.error_facility,
    )
    state.conf.setdefault("DEFAULT", {})["log_config_append"] = syslog.config_file


def _pki_tokens(state: _RecipeState) -> None:
    pki = state.attributes.identity.pki
    ssl_dir = f"{KEYSTONE_CONF_DIR}/ssl"
    for path, mode in ((ssl_dir, 0o700), (f"{ssl_dir}/certs", 0o755), (f"{ssl_dir}/private", 0o750)):
        state.plan.add(DirectoryResource(name=f"directory {path}", path=path, owner=state.user, group=state.group, mode=mode))

    remote = (
        (pki.signing_certfile, pki.certfile_url, 0o644),
        (pki.signing_keyfile, pki.keyfile_url, 0o640),
        (pki.signing_ca_certs, pki.ca_certs_url, 0o644),
    )
    if all(url for _, url, _ in remote):
        for path, url, mode in remote:
            state.plan.add(
                RemoteFileResource(
                    name=f"remote_file {path}",
                    path=path,
                    source_url=url or "",
                    owner=state.user,
                    group=state.group,
                    mode=mode,
                )
            )
        return

    state.plan.add(
        ExecuteResource(
            name="keystone-manage pki_setup",
            command=f"keystone-manage pki_setup --keystone-user {state.user} --keystone-group {state.group}",
            user=state.user,
            group=state.group,
            creates=pki.signing_certfile,
        )
    )


def _fernet_tokens(state: _RecipeState) -> None:
    fernet = state.attributes.identity.fernet
    repo = fernet.key_repository.rstrip("/")
    state.plan.add(DirectoryResource(name=f"directory {repo}", path=repo, owner=state.user, group=state.group, mode=0o700))
    for index in fernet.keys:
        key = state.secrets.get_password("keystone", f"fernet_key{index}")
        state.plan.add(
            FileResource(
                name=f"file {repo}/{index}",
                path=f"{repo}/{index}",
                content=key,
                owner=state.user,
                group=state.group,
                mode=0o400,
                sensitive=True,
            )
        )
    state.conf.setdefault("fernet_tokens", {})["key_repository"] = repo


def _token_strategy(state: _RecipeState) -> None:
    strategy = state.attributes.auth_strategy
    if strategy == "pki":
        _pki_tokens(state)
    elif strategy == "fernet":
        _fernet_tokens(state)
    else:
        state.warn(f"Auth strategy '{strategy}' has no token setup; skipping.")


def _paste_file(state: _RecipeState) -> None:
    path = f"{KEYSTONE_CONF_DIR}/keystone-paste.ini"
    url = state.attributes.identity.pastefile_url
    if url:
        state.plan.add(
            RemoteFileResource(
                name=f"remote_file {path}",
                path=path,
                source_url=url,
                owner=state.user,
                group=state.group,
                mode=0o644,
            )
        )
        return
    _template(state, path, "keystone-paste.ini.j2", owner=state.user, group=state.group, mode=0o644)


def _catalog(state: _RecipeState) -> None:
    attributes = state.attributes
    uris = {"identity-admin": admin_endpoint(attributes, "identity").catalog_url}
    for alias, service in _CATALOG_SERVICES:
        uris[alias] = public_endpoint(attributes, service).catalog_url
    _template(
        state,
        f"{KEYSTONE_CONF_DIR}/default_catalog.templates",
        "default_catalog.templates.j2",
        owner=state.user,
        group=state.group,
        mode=0o644,
        region=attributes.identity.region,
        uris=uris,
    )


def _token_flush_cron(state: _RecipeState) -> None:
    identity = state.attributes.identity
    cron = identity.token_flush_cron
    should_run = cron.enabled and identity.token_backend == "sql"
    log_file = cron.log_file
    state.plan.add(
        CronResource(
            name="keystone-manage-token-flush",
            minute=cron.minute,
            hour=cron.hour,
            day=cron.day,
            weekday=cron.weekday,
            user=state.user,
            command=(
                f"keystone-manage token_flush > {log_file} 2>&1; "
                f"echo keystone-manage token_flush ran at $(/bin/date) with exit code $? >> {log_file}"
            ),
            action="create" if should_run else "delete",
        )
    )


def apache_listen(existing: list[str], main: str, admin: str) -> list[str]:
    """Lista `Listen` de Apache: sin `*:80`, con main/admin, sin duplicados."""

    listen = [entry for entry in existing if entry != "*:80"]
    listen.extend([main, admin])
    return list(dict.fromkeys(listen))


def _sites_include(state: _RecipeState, conf_dir: str, include_file: str) -> None:
    # httpd no trae sites-available/sites-enabled: se crean y se incluyen desde conf.d.
    for sub in ("sites-available", "sites-enabled"):
        path = f"{conf_dir}/{sub}"
        state.plan.add(DirectoryResource(name=f"directory {path}", path=path, mode=0o755))
    path = f"{conf_dir}/{include_file}"
    state.plan.add(
        FileResource(
            name=f"file {path}",
            path=path,
            content="IncludeOptional sites-enabled/*.conf\n",
            mode=0o644,
        )
    )


def _apache(state: _RecipeState, *, main_address: str, admin_address: str) -> None:
    attributes = state.attributes
    identity = attributes.identity
    apache = attributes.resolved_apache()
    platform = state.platform
    conf_dir = (apache.conf_dir or "").rstrip("/")
    ssl = identity.ssl
    main_bind = attributes.bind_service.main
    admin_bind = attributes.bind_service.admin

    state.plan.listen = apache_listen(
        list(apache.listen),
        f"{format_host(main_address)}:{main_bind.port}",
        f"{format_host(admin_address)}:{admin_bind.port}",
    )

    _packages(state, platform.apache_packages, action="install")
    _packages(state, platform.mod_wsgi_packages, action="install")
    if ssl.enabled:
        _packages(state, platform.mod_ssl_packages, action="install")

    if platform.apache_sites_include:
        _sites_include(state, conf_dir, platform.apache_sites_include)

    _template(
        state,
        f"{conf_dir}/{platform.apache_ports_file}",
        "ports.conf.j2",
        owner="root",
        group="root",
        mode=0o644,
        listen=state.plan.listen,
    )

    state.plan.add(ApacheModuleResource(name="apache module wsgi", module="wsgi"))
    if ssl.enabled:
        state.plan.add(ApacheModuleResource(name="apache module ssl", module="ssl"))

    apache_dir = f"{(apache.docroot_dir or '').rstrip('/')}/keystone"
    state.plan.add(DirectoryResource(name=f"directory {apache_dir}", path=apache_dir, mode=0o755))

    wsgi_apps = {
        "main": (main_address, main_bind.port),
        "admin": (admin_address, admin_bind.port),
    }
    for app in wsgi_apps:
        entry = f"{apache_dir}/{app}"
        # El script WSGI lo instala el paquete keystone: se copia en el host.
        state.plan.add(
            FileResource(
                name=f"file {entry}",
                path=entry,
                copy_from=platform.keystone_wsgi_file,
                mode=0o755,
            )
        )

    for app, (host, port) in wsgi_apps.items():
        vhost = VirtualHost(
            name=f"keystone-{app}",
            server_host=host,
            server_port=port,
            server_entry=f"{apache_dir}/{app}",
            server_suffix=app,
            log_dir=(apache.log_dir or "").rstrip("/"),
            log_debug=identity.debug,
            user=state.user,
            group=state.group,
            use_ssl=ssl.enabled,
            cert_file=ssl.certfile,
            chain_file=ssl.chainfile,
            key_file=ssl.keyfile,
            ca_certs_path=ssl.ca_certs_path,
            cert_required=ssl.cert_required,
            protocol=ssl.protocol,
            ciphers=ssl.ciphers,
        )
        state.plan.virtual_hosts.append(vhost)
        _template(
            state,
            f"{conf_dir}/sites-available/{vhost.name}.conf",
            "wsgi-keystone.conf.j2",
            owner="root",
            group="root",
            mode=0o644,
            params=vhost,
            server_host_listen=format_host(host),
        )
        state.plan.add(ApacheSiteResource(name=f"apache site {vhost.name}", site=vhost.name, action="enable"))

    # Ubuntu habilita el sitio `keystone` del paquete.
    state.plan.add(ApacheSiteResource(name="apache site keystone", site="keystone", action="disable"))

    state.plan.add(
        ServiceResource(
            name="Keystone apache restart",
            service_name=platform.apache_service,
            actions=("restart",),
        )
    )
    state.plan.add(ExecuteResource(name="Keystone: sleep", command=f"sleep {identity.start_delay}"))


def build_plan(
    *,
    attributes: NodeAttributes,
    secrets: SecretsProvider,
    renderer: TemplateRenderer,
) -> ProvisioningPlan:
    """Build the ordered resource declarations for one provisioning run."""

    identity = attributes.identity
    db = attributes.db.identity
    state = _RecipeState(
        attributes=attributes,
        platform=attributes.platform_options(),
        secrets=secrets,
        renderer=renderer,
        conf=copy.deepcopy(identity.conf),
    )
    plan = state.plan
    platform = state.platform

    if identity.syslog.use:
        _logging_setup(state)

    if db.service_type != "sqlite":
        _packages(state, attributes.db.python_packages.get(db.service_type, []))
    _packages(state, platform.memcache_python_packages)
    _packages(state, platform.keystone_packages)

    # Keystone corre dentro de Apache: el servicio standalone se para.
    plan.add(ServiceResource(name="service keystone", service_name=platform.keystone_service, actions=("stop", "disable")))

    plan.add(DirectoryResource(name=f"directory {KEYSTONE_CONF_DIR}", path=KEYSTONE_CONF_DIR, owner=state.user, group=state.group, mode=0o700))
    if identity.domain_specific_drivers_enabled:
        plan.add(
            DirectoryResource(
                name=f"directory {identity.domain_config_dir}",
                path=identity.domain_config_dir,
                owner=state.user,
                group=state.group,
                mode=0o700,
            )
        )

    if db.service_type != "sqlite":
        plan.add(FileResource(name=f"file {KEYSTONE_SQLITE_DB}", path=KEYSTONE_SQLITE_DB, action="delete"))

    _token_strategy(state)

    main_address = bind_address(attributes, attributes.bind_service.main)
    admin_address = bind_address(attributes, attributes.bind_service.admin)

    db_pass = state.secrets.get_password("db", "keystone")
    state.conf_secrets.setdefault("database", {})["connection"] = db_uri(attributes, db.username, db_pass)

    servers = memcached_servers(attributes)
    public_url = public_endpoint(attributes, "identity").base_url
    admin_url = admin_endpoint(attributes, "identity").base_url
    plan.public_endpoint = public_url
    plan.admin_endpoint = admin_url

    _paste_file(state)

    if state.conf.get("DEFAULT", {}).get("rpc_backend") == "rabbit":
        userid = attributes.mq.rabbit_userid
        rabbit = state.conf_secrets.setdefault("oslo_messaging_rabbit", {})
        rabbit["rabbit_userid"] = userid
        rabbit["rabbit_password"] = state.secrets.get_password("user", userid)

    default = state.conf.setdefault("DEFAULT", {})
    default["public_endpoint"] = public_url
    default["admin_endpoint"] = admin_url
    if servers:
        state.conf.setdefault("memcache", {})["servers"] = ",".join(servers)

    _template(
        state,
        f"{KEYSTONE_CONF_DIR}/keystone.conf",
        "openstack-service.conf.j2",
        owner=state.user,
        group=state.group,
        mode=0o640,
        sensitive=True,
        service_config=merge_config_options(state.conf, state.conf_secrets),
    )

    if identity.catalog_backend == "templated":
        _catalog(state)

    if db.migrate:
        plan.add(ExecuteResource(name="keystone-manage db_sync", command="keystone-manage db_sync", user=state.user, group=state.group))

    _token_flush_cron(state)

    _apache(state, main_address=main_address, admin_address=admin_address)

    logger.debug("Built plan with %d resources", len(plan.resources))
    return plan

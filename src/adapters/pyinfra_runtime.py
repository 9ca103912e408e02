"""Binding del plan con pyinfra.

Por qué pyinfra:
- Es el runtime de aprovisionamiento: idempotencia, orden en el host,
  diffs y reinicios son su responsabilidad, no de la receta.
- Cada declaración del plan se traduce 1:1 a una operación pyinfra.

`apply_plan` solo puede llamarse dentro de un deploy de pyinfra
(ver `adapters.pyinfra_deploy`).
"""

from __future__ import annotations

import logging
import shlex
from io import StringIO
from typing import Any, Callable

from pyinfra.operations import apt, dnf, files, server, systemd

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
)
from core.errors import UnsupportedResourceError

logger = logging.getLogger(__name__)


def _mode(value: int) -> str:
    return f"{value:o}"


def _as_user(command: str, user: str | None, group: str | None) -> str:
    """Envuelve `command` en `runuser` para fijar usuario y grupo primario."""

    if (not user or user == "root") and (not group or group == "root"):
        return command
    wrapped = ["runuser", "-u", user or "root"]
    if group:
        wrapped.extend(["-g", group])
    wrapped.extend(["--", "sh", "-c", command])
    return shlex.join(wrapped)


class PyinfraRuntime:
    """Traduce declaraciones a operaciones pyinfra para una familia de plataforma."""

    def __init__(self, *, platform_family: str, apache_conf_dir: str = "/etc/apache2") -> None:
        self.platform_family = platform_family
        self.apache_conf_dir = apache_conf_dir.rstrip("/")
        self._handlers: dict[str, Callable[[Any], None]] = {
            "package": self._package,
            "service": self._service,
            "directory": self._directory,
            "file": self._file,
            "remote_file": self._remote_file,
            "template": self._template,
            "execute": self._execute,
            "cron": self._cron,
            "apache_module": self._apache_module,
            "apache_site": self._apache_site,
        }

    def apply(self, resource: Any) -> None:
        handler = self._handlers.get(getattr(resource, "kind", ""))
        if handler is None:
            raise UnsupportedResourceError(f"No pyinfra operation for resource kind: {getattr(resource, 'kind', resource)!r}")
        logger.debug("Declaring %s (%s)", resource.name, resource.kind)
        handler(resource)

    def _package(self, res: PackageResource) -> None:
        args = {
            "name": res.name,
            "packages": [res.package_name],
            "latest": res.action == "upgrade",
            "extra_install_args": res.options,
            "_sudo": True,
        }
        if self.platform_family == "rhel":
            dnf.packages(**args)
        else:
            apt.packages(**args)

    def _service(self, res: ServiceResource) -> None:
        kwargs: dict[str, Any] = {}
        for action in res.actions:
            if action == "stop":
                kwargs["running"] = False
            elif action == "start":
                kwargs["running"] = True
            elif action == "restart":
                kwargs["running"] = True
                kwargs["restarted"] = True
            elif action == "disable":
                kwargs["enabled"] = False
            elif action == "enable":
                kwargs["enabled"] = True
        systemd.service(name=res.name, service=res.service_name, _sudo=True, **kwargs)

    def _directory(self, res: DirectoryResource) -> None:
        files.directory(
            name=res.name,
            path=res.path,
            present=True,
            user=res.owner,
            group=res.group,
            mode=_mode(res.mode),
            _sudo=True,
        )

    def _file(self, res: FileResource) -> None:
        if res.action == "delete":
            files.file(name=res.name, path=res.path, present=False, _sudo=True)
            return
        if res.copy_from is not None:
            # El origen solo existe en el host (lo instala un paquete).
            command = "install -o {owner} -g {group} -m {mode} {src} {dest}".format(
                owner=shlex.quote(res.owner),
                group=shlex.quote(res.group),
                mode=_mode(res.mode),
                src=shlex.quote(res.copy_from),
                dest=shlex.quote(res.path),
            )
            server.shell(name=res.name, commands=[command], _sudo=True)
            return
        files.put(
            name=res.name,
            src=StringIO(res.content or ""),
            dest=res.path,
            user=res.owner,
            group=res.group,
            mode=_mode(res.mode),
            _sudo=True,
        )

    def _remote_file(self, res: RemoteFileResource) -> None:
        files.download(
            name=res.name,
            src=res.source_url,
            dest=res.path,
            user=res.owner,
            group=res.group,
            mode=_mode(res.mode),
            force=False,
            _sudo=True,
        )

    def _template(self, res: TemplateResource) -> None:
        files.put(
            name=res.name,
            src=StringIO(res.content),
            dest=res.path,
            user=res.owner,
            group=res.group,
            mode=_mode(res.mode),
            _sudo=True,
        )

    def _execute(self, res: ExecuteResource) -> None:
        command = _as_user(res.command, res.user, res.group)
        if res.creates:
            command = f"test -e {shlex.quote(res.creates)} || {command}"
        server.shell(name=res.name, commands=[command], _sudo=True)

    def _cron(self, res: CronResource) -> None:
        server.crontab(
            name=res.name,
            command=res.command,
            present=res.action == "create",
            user=res.user,
            cron_name=res.name,
            minute=res.minute,
            hour=res.hour,
            day_of_month=res.day,
            day_of_week=res.weekday,
            _sudo=True,
        )

    def _apache_module(self, res: ApacheModuleResource) -> None:
        if self.platform_family == "rhel":
            # En RHEL el paquete del módulo ya deja su LoadModule en conf.modules.d.
            logger.debug("Module %s is enabled by its package on rhel", res.module)
            return
        server.shell(name=res.name, commands=[f"a2enmod -q {shlex.quote(res.module)}"], _sudo=True)

    def _apache_site(self, res: ApacheSiteResource) -> None:
        site = shlex.quote(res.site)
        if self.platform_family == "rhel":
            enabled = f"{self.apache_conf_dir}/sites-enabled/{res.site}.conf"
            if res.action == "enable":
                command = f"ln -sf ../sites-available/{site}.conf {shlex.quote(enabled)}"
            else:
                command = f"rm -f {shlex.quote(enabled)}"
        elif res.action == "enable":
            command = f"a2ensite -q {site}"
        else:
            command = f"a2dissite -q {site} || true"
        server.shell(name=res.name, commands=[command], _sudo=True)


def apply_plan(plan: ProvisioningPlan, *, platform_family: str, apache_conf_dir: str = "/etc/apache2") -> int:
    """Declara todas las operaciones del plan en orden; devuelve cuántas."""

    runtime = PyinfraRuntime(platform_family=platform_family, apache_conf_dir=apache_conf_dir)
    for resource in plan.resources:
        runtime.apply(resource)
    return len(plan.resources)

"""Deploy de pyinfra para el servicio de identidad.

Uso (lo invoca `keystone-provision apply`):

    pyinfra @local src/adapters/pyinfra_deploy.py

Lee la misma configuración que la CLI (env `KEYSTONE_PROVISION_*`).
"""

from __future__ import annotations

import sys
from pathlib import Path

# pyinfra ejecuta este archivo como script: el layout `src/` no está en sys.path.
_SRC = Path(__file__).resolve().parents[1]
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from adapters.pyinfra_runtime import apply_plan  # noqa: E402
from core.config import AppSettings  # noqa: E402
from core.logging_config import setup_logging  # noqa: E402
from core.services.planning import load_plan  # noqa: E402

settings = AppSettings()
setup_logging(settings.log_level, settings.log_file)
bundle = load_plan(settings)
apply_plan(
    bundle.plan,
    platform_family=bundle.attributes.platform_family,
    apache_conf_dir=bundle.attributes.resolved_apache().conf_dir,
)

"""
Pytest configuration and shared fixtures for all tests.
"""
from __future__ import annotations

import copy
import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Add src/ to path for proper imports (src layout without install)
SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from adapters.template_renderer import JinjaTemplateRenderer  # noqa: E402
from core.attributes import NodeAttributes  # noqa: E402
from core.domain.models import ProvisioningPlan  # noqa: E402
from core.errors import SecretNotFoundError  # noqa: E402
from core.services.identity_recipe import build_plan  # noqa: E402

DEFAULT_SECRETS: dict[str, dict[str, str]] = {
    "db": {"keystone": "db-pass"},
    "user": {"guest": "mq-pass"},
    "keystone": {"fernet_key0": "key-0", "fernet_key1": "key-1", "fernet_key2": "key-2"},
}


class DictSecrets:
    """In-memory secrets provider that records every lookup."""

    def __init__(self, data: dict[str, dict[str, str]]) -> None:
        self.data = data
        self.requests: list[tuple[str, str]] = []

    def get_password(self, kind: str, key: str) -> str:
        self.requests.append((kind, key))
        try:
            return self.data[kind][key]
        except KeyError:
            raise SecretNotFoundError(kind, key) from None


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host env vars and a local .env from leaking into settings."""

    for key in list(os.environ):
        if key.startswith("KEYSTONE_PROVISION_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def secrets() -> DictSecrets:
    return DictSecrets(copy.deepcopy(DEFAULT_SECRETS))


@pytest.fixture
def renderer() -> JinjaTemplateRenderer:
    return JinjaTemplateRenderer()


@pytest.fixture
def make_attributes():
    def _make(**data: Any) -> NodeAttributes:
        return NodeAttributes.model_validate(data)

    return _make


@pytest.fixture
def build(secrets: DictSecrets, renderer: JinjaTemplateRenderer):
    def _build(attributes: NodeAttributes | None = None) -> ProvisioningPlan:
        return build_plan(
            attributes=attributes or NodeAttributes(),
            secrets=secrets,
            renderer=renderer,
        )

    return _build


@pytest.fixture
def secret_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Default secrets exposed as KEYSTONE_PROVISION_SECRET_* env vars."""

    monkeypatch.setenv("KEYSTONE_PROVISION_SECRET_DB_KEYSTONE", "db-pass")
    monkeypatch.setenv("KEYSTONE_PROVISION_SECRET_USER_GUEST", "mq-pass")
    for index in range(3):
        monkeypatch.setenv(f"KEYSTONE_PROVISION_SECRET_KEYSTONE_FERNET_KEY{index}", f"key-{index}")

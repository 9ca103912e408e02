"""Endpoint verification after a provisioning run.

Apache is restarted at the end of the recipe and Keystone needs a few seconds
before answering. `verify_endpoints` polls every URL concurrently until all
of them answer with a non-5xx status or the time budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Sequence

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings

logger = logging.getLogger(__name__)


@dataclass
class EndpointStatus:
    url: str
    ok: bool
    status_code: int | None = None
    error: str | None = None
    attempts: int = 0


async def _probe(client: httpx.AsyncClient, status: EndpointStatus) -> None:
    status.attempts += 1
    try:
        response = await client.get(status.url)
    except httpx.HTTPError as exc:
        status.ok = False
        status.status_code = None
        status.error = str(exc) or exc.__class__.__name__
        return
    status.status_code = response.status_code
    status.ok = response.status_code < 500
    status.error = None if status.ok else f"HTTP {response.status_code}"


async def verify_endpoints(
    urls: Sequence[str],
    *,
    settings: AppSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[EndpointStatus]:
    statuses = [EndpointStatus(url=url, ok=False) for url in dict.fromkeys(urls)]
    deadline = time.monotonic() + settings.verify_timeout_seconds

    async with build_async_client(settings, transport=transport) as client:
        while True:
            pending = [s for s in statuses if not s.ok]
            await asyncio.gather(*(_probe(client, s) for s in pending))
            if all(s.ok for s in statuses):
                break
            if time.monotonic() + settings.verify_interval_seconds > deadline:
                break
            logger.info("Waiting for %d endpoint(s) to answer", sum(not s.ok for s in statuses))
            await asyncio.sleep(settings.verify_interval_seconds)

    for status in statuses:
        if status.ok:
            logger.info("Endpoint %s answered HTTP %s", status.url, status.status_code)
        else:
            logger.error("Endpoint %s not available: %s", status.url, status.error)
    return statuses

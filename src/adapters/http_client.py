"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts y headers para todas las verificaciones de endpoints.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que todos los probes se comporten igual.
    - `verify=False`: los endpoints recién provisionados suelen usar
      certificados autofirmados; aquí solo se comprueba que respondan.
    """

    settings = settings or AppSettings()
    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        verify=False,
        transport=transport,
    )

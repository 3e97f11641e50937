"""
HTTP transport construction for adapters.

Each adapter owns one :class:`httpx.AsyncClient` for its lifetime. The client
carries no per-call state, so overlapping ``fetch`` calls share it safely.
Retries are deliberately absent here: resilience belongs to the Gateway.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx

DEFAULT_TIMEOUT = 30.0


def build_http_client(*, proxy: Optional[str] = None, client_config: Optional[Mapping[str, Any]] = None) -> httpx.AsyncClient:
    """
    Build the transport client used by an adapter.

    Parameters
    ----------
    proxy:
        Optional HTTP(S) proxy URL. When set, every request is routed through
        it and ambient proxy detection from the environment is disabled.
    client_config:
        Keyword options passed straight to :class:`httpx.AsyncClient`
        (``timeout`` in seconds, ``headers``, ``transport``, ...). Values here
        override the defaults.
    """

    options: Dict[str, Any] = {"timeout": DEFAULT_TIMEOUT, "follow_redirects": True}
    if client_config:
        options.update(client_config)
    if proxy:
        options["proxy"] = proxy
        options["trust_env"] = False
    return httpx.AsyncClient(**options)

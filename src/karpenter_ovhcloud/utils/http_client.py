# src/karpenter_ovhcloud/utils/http_client.py
"""
HTTP client for the public OVH order catalog.

The catalog is unauthenticated and not covered by the signed `ovh` SDK, so it
is fetched with a plain httpx client that pins the subsidiary on every request.
"""

from typing import Optional

import httpx

from ..core.config import config

CATALOG_ACCEPT = "application/json"


def get_pricing_http_client(
    subsidiary: str,
    read_timeout: Optional[float] = None,
    verify: Optional[bool] = None,
) -> httpx.AsyncClient:
    """
    Returns an httpx.AsyncClient for catalog requests.

    Every request carries `ovhSubsidiary={subsidiary}` (upper-cased), the
    configured User-Agent and a JSON Accept header. Timeouts and certificate
    verification default to the config values.
    """
    r_timeout = read_timeout if read_timeout is not None else config.DEFAULT_TIMEOUT_READ
    timeout = httpx.Timeout(r_timeout, connect=config.DEFAULT_TIMEOUT_CONNECT)

    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": config.USER_AGENT, "Accept": CATALOG_ACCEPT},
        params={"ovhSubsidiary": subsidiary.upper()},
        verify=config.PRICING_VERIFY_CERTS if verify is None else verify,
        follow_redirects=True,
    )

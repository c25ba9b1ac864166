import logging

import httpx

from ..core.config import config

logger = logging.getLogger(__name__)


def get_async_http_client(
    base_url: str = "",
    connect_timeout: float = None,
    read_timeout: float = None,
) -> httpx.AsyncClient:
    """
    Returns a configured httpx.AsyncClient for a plugin channel with:
    - Default timeouts (connect and read).
    - Standard User-Agent header.
    - No proxy lookups: plugin endpoints are always on the loopback interface.
    """
    c_timeout = connect_timeout if connect_timeout is not None else config.PLUGIN_CONNECT_TIMEOUT
    r_timeout = read_timeout if read_timeout is not None else config.PLUGIN_CALL_TIMEOUT

    timeout = httpx.Timeout(r_timeout, connect=c_timeout)

    headers = {"User-Agent": config.USER_AGENT, "Content-Type": "application/json"}

    # No transport retries: a failed cost call becomes a per-resource error.
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers=headers,
        trust_env=False,
    )

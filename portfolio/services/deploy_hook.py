from __future__ import annotations

import logging
from typing import Optional

import httpx

from portfolio.core.errors import PortfolioError

logger = logging.getLogger(__name__)


class DeployHookError(PortfolioError):
    status_code = 500


async def trigger_deploy(
    hook_url: str,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """POST to a static-site rebuild hook (e.g. a Cloudflare Pages deploy hook)."""
    if not hook_url:
        raise DeployHookError("Deploy hook is not configured in environment variables")
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            r = await client.post(hook_url)
    except httpx.HTTPError as e:
        logger.error(f"Deploy hook request failed: {e}")
        raise DeployHookError(f"Failed to trigger deployment: {e}")
    if not r.is_success:
        logger.error(f"Deploy hook returned {r.status_code}: {r.text[:300]}")
        raise DeployHookError(
            f"Failed to trigger deployment: {r.status_code} {r.reason_phrase} - {r.text[:300]}"
        )
    logger.info("Deploy hook triggered")

"""Health probe for the metrics backend."""

import logging

import aiohttp

from ..models.telemetry import HealthStatus
from .channels import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)


async def check_health(url: str, timeout: float = 5.0) -> HealthStatus:
    """Query the backend health endpoint.

    Never raises for transport problems; an unreachable backend is reported
    as status ``unreachable``.

    Args:
        url: Full URL of the health endpoint
        timeout: Total request timeout in seconds

    Returns:
        HealthStatus parsed from the JSON body
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.warning(f"Health check returned {response.status}: {error_text[:200]}")
                    return HealthStatus(status="error", message=f"HTTP {response.status}")
                data = await response.json(content_type=None)
    except (ValueError, *TRANSPORT_ERRORS) as e:
        logger.warning(f"Health check against {url} failed: {e}")
        return HealthStatus(status="unreachable", message=str(e))

    status = HealthStatus.from_dict(data)
    logger.info(f"Backend health: {status.status} - {status.message}")
    return status

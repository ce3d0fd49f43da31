"""
IP-to-location lookup for visit records.
Any failure resolves to (None, None); it never reaches the visitor.
"""

import ipaddress
from typing import Optional, Tuple

import httpx

from .config import settings
from .security import is_private_ip
from .logging_config import get_logger

logger = get_logger(__name__)

Location = Tuple[Optional[str], Optional[str]]


def _is_public_ip(ip: Optional[str]) -> bool:
    if not ip:
        return False
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not is_private_ip(ip)


async def lookup_location(ip: Optional[str]) -> Location:
    """
    Resolve an IP address to (country, city).

    Args:
        ip: Visitor IP address

    Returns:
        (country, city), either of which may be None
    """
    if not settings.GEOIP_ENABLED or not _is_public_ip(ip):
        return None, None

    url = settings.GEOIP_URL.format(ip=ip)
    try:
        async with httpx.AsyncClient(timeout=settings.GEOIP_TIMEOUT) as client:
            response = await client.get(url)
            response.raise_for_status()
            result = response.json()
    except httpx.TimeoutException:
        logger.warning(f"Geolocation lookup timed out for {ip}")
        return None, None
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Geolocation lookup failed for {ip}: {e}")
        return None, None

    if result.get("status") not in (None, "success"):
        logger.debug(f"Geolocation lookup returned no data for {ip}")
        return None, None

    return result.get("country") or None, result.get("city") or None

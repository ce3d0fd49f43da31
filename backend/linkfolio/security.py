"""
Security utilities: destination URL validation, alias and input checks,
visitor IP masking and password hashing.
"""

import ipaddress
import re
from typing import Optional, Tuple
from urllib.parse import urlparse

import bcrypt

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

# Hostnames that always resolve to the server itself
LOCAL_HOSTNAMES = frozenset({"localhost", "localhost.localdomain", "local"})

MAX_URL_LENGTH = 2048

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_private_ip(ip_str: str) -> bool:
    """True for loopback, private, link-local and unspecified addresses."""
    try:
        address = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped
    return (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_unspecified
    )


def is_domain_blocked(domain: str) -> bool:
    """True when the host or any parent domain is local or listed in BLOCKED_DOMAINS."""
    denied = LOCAL_HOSTNAMES | {d.strip().lower() for d in settings.BLOCKED_DOMAINS}
    labels = domain.lower().rstrip(".").split(".")
    return any(".".join(labels[i:]) in denied for i in range(len(labels)))


def validate_destination(url: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a (normalized) destination URL.

    Returns:
        Tuple of (is_valid, error_message)
        If is_valid is True, error_message is None
    """
    if not url:
        return False, "Destination URL is required"

    if len(url) > MAX_URL_LENGTH:
        return False, f"URL too long (max {MAX_URL_LENGTH} characters)"

    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return False, "Invalid URL format"

    if parsed.scheme.lower() not in ("http", "https"):
        return False, f"Invalid URL scheme '{parsed.scheme}'. Only http and https are allowed"

    if not host or ("." not in host and not _is_ip(host)):
        return False, "Invalid URL format"

    if parsed.username or parsed.password or "\x00" in url:
        return False, "Invalid URL format"

    if is_domain_blocked(host):
        logger.warning(f"Rejected destination on blocked domain {host}")
        return False, "This domain is not allowed"

    if is_private_ip(host):
        logger.warning(f"Rejected destination on internal address {host}")
        return False, "URLs pointing to private/local addresses are not allowed"

    return True, None


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return False


def custom_id_pattern() -> re.Pattern:
    return re.compile(
        rf"^[A-Za-z0-9_-]{{{settings.MIN_CUSTOM_ID_LENGTH},{settings.MAX_CUSTOM_ID_LENGTH}}}$"
    )


def is_valid_custom_id(value: str) -> bool:
    """Alphanumeric plus dash/underscore, within the configured length bounds."""
    return bool(value) and bool(custom_id_pattern().match(value))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def mask_ip(ip: Optional[str]) -> Optional[str]:
    """Mask the host part of a visitor IP: a.b.*.* for IPv4, g1:g2:**** for IPv6."""
    if not ip or not isinstance(ip, str):
        return None

    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return None

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped

    if isinstance(address, ipaddress.IPv4Address):
        parts = str(address).split(".")
        return f"{parts[0]}.{parts[1]}.*.*"

    groups = address.exploded.split(":")
    return f"{groups[0]}:{groups[1]}:****"


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False

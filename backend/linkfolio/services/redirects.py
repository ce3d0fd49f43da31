"""
Short link resolution and visit recording.

Resolution decides the visitor's outcome. Recording runs after the response
has gone out, on its own session, and never raises.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..errors import BadDestinationError, GoneError, NotFoundError
from ..geo import lookup_location
from ..logging_config import get_logger
from ..models import Link, Visit
from ..utils import detect_device_type, is_http_url, normalize_utc, referrer_origin, utc_now
from .allocator import short_id_key

logger = get_logger(__name__)


@dataclass
class VisitorInfo:
    """Request metadata captured before the response is sent."""

    ip: Optional[str]
    user_agent: Optional[str]
    referrer: Optional[str]


def resolve_link(db: Session, short_id: str) -> Link:
    """
    Find the link a visitor should be sent to.

    Raises NotFoundError for unknown or deleted links, GoneError for inactive
    or expired ones and BadDestinationError when the stored destination is
    not an http(s) URL.
    """
    link = db.query(Link).filter(Link.short_id_key == short_id_key(short_id)).first()

    if not link or link.is_deleted:
        raise NotFoundError("URL not found")

    if not link.is_active:
        raise GoneError("This URL has been deactivated")

    expires_at = normalize_utc(link.expires_at)
    if expires_at is not None and expires_at < utc_now():
        raise GoneError("This URL has expired")

    if not is_http_url(link.destination):
        logger.warning(f"Link {link.short_id} has a non-http destination")
        raise BadDestinationError("Invalid redirect URL")

    return link


async def record_visit(
    session_factory: Callable[[], Session],
    link_id: int,
    owner_id: int,
    visitor: VisitorInfo,
) -> None:
    """Store one visit against the link and its owner. Failures are logged and dropped."""
    try:
        country, city = await lookup_location(visitor.ip)
    except Exception as e:
        logger.warning(f"Location lookup failed: {e}")
        country, city = None, None

    db = session_factory()
    try:
        db.add(Visit(
            link_id=link_id,
            owner_id=owner_id,
            visitor_ip=visitor.ip,
            device_type=detect_device_type(visitor.user_agent),
            user_agent=visitor.user_agent[:500] if visitor.user_agent else None,
            referrer=referrer_origin(visitor.referrer),
            country=country,
            city=city,
            visited_at=utc_now(),
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record visit for link {link_id}: {e}")
    finally:
        db.close()

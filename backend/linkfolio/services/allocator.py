"""
Short id allocation.

A custom alias is validated and checked against every link (any owner, any
state, case-insensitive). A random id is drawn until an unused one turns up,
with a cap on the number of draws. Nothing is written here; the unique key on
``links.short_id_key`` remains the final arbiter at insert time.
"""

from functools import lru_cache
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AliasTakenError, AllocationExhaustedError, InvalidAliasError
from ..logging_config import get_logger
from ..models import Link
from ..security import is_valid_custom_id
from ..utils import generate_short_id

logger = get_logger(__name__)


def short_id_key(short_id: str) -> str:
    """Storage key used for case-insensitive uniqueness."""
    return short_id.lower()


def short_id_in_use(db: Session, short_id: str, exclude_link_id: Optional[int] = None) -> bool:
    query = db.query(Link.id).filter(Link.short_id_key == short_id_key(short_id))
    if exclude_link_id is not None:
        query = query.filter(Link.id != exclude_link_id)
    return query.first() is not None


class ShortIdAllocator:
    """Hands out unique short ids."""

    def __init__(
        self,
        length: int,
        max_attempts: int,
        generator: Callable[[int], str] = generate_short_id,
    ):
        self.length = length
        self.max_attempts = max_attempts
        self.generator = generator

    def allocate(
        self,
        db: Session,
        custom_alias: Optional[str] = None,
        exclude_link_id: Optional[int] = None,
    ) -> str:
        if custom_alias:
            return self.claim_alias(db, custom_alias, exclude_link_id)
        return self.draw_random(db)

    def claim_alias(self, db: Session, alias: str, exclude_link_id: Optional[int] = None) -> str:
        if not is_valid_custom_id(alias):
            raise InvalidAliasError(
                f"Custom ID must be {settings.MIN_CUSTOM_ID_LENGTH}-{settings.MAX_CUSTOM_ID_LENGTH} "
                "characters (letters, numbers, dashes, underscores)"
            )
        if short_id_in_use(db, alias, exclude_link_id):
            raise AliasTakenError("Custom short ID is already in use")
        return alias

    def draw_random(self, db: Session) -> str:
        for attempt in range(self.max_attempts):
            candidate = self.generator(self.length)
            if not short_id_in_use(db, candidate):
                return candidate
            logger.info(f"Short id collision on draw {attempt + 1}")

        logger.error(f"Failed to generate unique short id after {self.max_attempts} attempts")
        raise AllocationExhaustedError("Failed to generate a unique short ID. Please try again.")


@lru_cache()
def get_allocator() -> ShortIdAllocator:
    return ShortIdAllocator(
        length=settings.SHORT_ID_LENGTH,
        max_attempts=settings.SHORT_ID_MAX_ATTEMPTS,
    )

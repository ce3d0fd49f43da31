from datetime import date, datetime
from typing import List, Optional, Tuple
import time

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload

from ..errors import (
    AliasTakenError,
    AllocationExhaustedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import Folder, Link, User
from ..schemas import LinkCreate, LinkUpdate
from ..security import validate_destination
from ..utils import clamp_pagination, day_range, normalize_destination, normalize_utc, utc_now
from .allocator import get_allocator, short_id_key

logger = get_logger(__name__)

# Insert retries when a random id loses the race to a concurrent insert
MAX_INSERT_ATTEMPTS = 3
RETRY_BASE_DELAY = 0.05  # seconds


def resolve_destination(raw: Optional[str]) -> str:
    """Normalize a user-supplied destination and validate it."""
    if not raw or not raw.strip():
        raise ValidationError("Destination URL is required")
    url = normalize_destination(raw)
    is_valid, error = validate_destination(url)
    if not is_valid:
        raise ValidationError(error or "Invalid URL format")
    return url


def ensure_future(expires_at: Optional[datetime]) -> Optional[datetime]:
    expires_at = normalize_utc(expires_at)
    if expires_at is not None and expires_at <= utc_now():
        raise ValidationError("Expiration date must be in the future")
    return expires_at


def get_active_folder(db: Session, owner_id: int, folder_id: int) -> Folder:
    """Folder owned by the user and not in the recycle bin."""
    folder = db.query(Folder).filter(
        Folder.id == folder_id,
        Folder.owner_id == owner_id,
        Folder.is_deleted == False,  # noqa: E712
    ).first()
    if not folder:
        raise NotFoundError("Folder not found")
    return folder


def apply_link_filters(
    query: Query,
    search: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Query:
    """AND together the optional list filters shared by link listings."""
    if search:
        query = query.filter(or_(
            Link.title.icontains(search, autoescape=True),
            Link.short_id.icontains(search, autoescape=True),
        ))

    if status == "active":
        query = query.filter(Link.is_active == True)  # noqa: E712
    elif status == "inactive":
        query = query.filter(Link.is_active == False)  # noqa: E712
    elif status:
        raise ValidationError("Status must be 'active' or 'inactive'")

    start_dt, end_dt = day_range(start_date, end_date)
    if start_dt:
        query = query.filter(Link.created_at >= start_dt)
    if end_dt:
        query = query.filter(Link.created_at <= end_dt)
    return query


def parse_folder_filter(value: Optional[str]) -> Tuple[bool, Optional[int]]:
    """Returns (apply_filter, folder_id); 'null' selects links without a folder."""
    if value is None or value == "":
        return False, None
    if value.lower() in ("null", "none"):
        return True, None
    try:
        return True, int(value)
    except ValueError:
        raise ValidationError("Invalid folder ID format")


class LinkService:
    """Service for managing shortened links."""

    @staticmethod
    def get_owned_link(
        db: Session,
        owner_id: int,
        short_id: str,
        deleted: Optional[bool] = False,
    ) -> Link:
        """
        Look up a link by short id (any case) for its owner.
        ``deleted`` selects live links, recycle-bin links, or either (None).
        """
        query = db.query(Link).filter(
            Link.short_id_key == short_id_key(short_id),
            Link.owner_id == owner_id,
        )
        if deleted is not None:
            query = query.filter(Link.is_deleted == deleted)
        link = query.first()
        if not link:
            raise NotFoundError("URL not found in recycle bin" if deleted else "URL not found")
        return link

    @staticmethod
    def get_owned_link_by_id(
        db: Session,
        owner_id: int,
        link_id: int,
        deleted: Optional[bool] = False,
    ) -> Link:
        query = db.query(Link).filter(Link.id == link_id, Link.owner_id == owner_id)
        if deleted is not None:
            query = query.filter(Link.is_deleted == deleted)
        link = query.first()
        if not link:
            raise NotFoundError("URL not found in recycle bin" if deleted else "URL not found")
        return link

    @staticmethod
    def create_link(db: Session, owner: User, data: LinkCreate) -> Link:
        """
        Create a new short link.
        Handles a random-id collision at insert time by drawing again.
        """
        destination = resolve_destination(data.redirect_url)

        if data.folder_id is not None:
            get_active_folder(db, owner.id, data.folder_id)

        expires_at = None if data.never_expire else ensure_future(data.expiration_date)

        allocator = get_allocator()
        for attempt in range(MAX_INSERT_ATTEMPTS):
            short_id = allocator.allocate(db, data.custom_short_id)

            link = Link(
                short_id=short_id,
                short_id_key=short_id_key(short_id),
                title=data.title,
                destination=destination,
                owner_id=owner.id,
                folder_id=data.folder_id,
                is_active=data.is_active,
                expires_at=expires_at,
                is_deleted=False,
            )
            db.add(link)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if data.custom_short_id:
                    logger.warning(f"Race condition: custom short id already taken: {short_id}")
                    raise AliasTakenError("Custom short ID is already in use")
                if attempt < MAX_INSERT_ATTEMPTS - 1:
                    delay = RETRY_BASE_DELAY * (2 ** attempt)
                    logger.info(f"Short id collision on insert, retrying in {delay}s (attempt {attempt + 1})")
                    time.sleep(delay)
                    continue
                logger.error(f"Failed to create link after {MAX_INSERT_ATTEMPTS} attempts")
                raise AllocationExhaustedError("Failed to create link. Please try again.")

            db.refresh(link)
            logger.info(f"Created link: {short_id} -> {destination[:50]}")
            return link

        raise AllocationExhaustedError("Failed to create link. Please try again.")

    @staticmethod
    def list_links(
        db: Session,
        owner_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        folder: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        show_deleted: bool = False,
    ) -> Tuple[List[Link], int, int, int]:
        """Returns (links, total_count, page, limit)."""
        page, limit, offset = clamp_pagination(page, limit)

        query = db.query(Link).filter(
            Link.owner_id == owner_id,
            Link.is_deleted == show_deleted,
        )
        query = apply_link_filters(query, search, status, start_date, end_date)

        apply_folder, folder_id = parse_folder_filter(folder)
        if apply_folder:
            query = query.filter(Link.folder_id == folder_id if folder_id is not None else Link.folder_id.is_(None))

        total = query.count()
        links = (
            query.options(joinedload(Link.folder))
            .order_by(Link.created_at.desc(), Link.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return links, total, page, limit

    @staticmethod
    def update_link(db: Session, owner_id: int, short_id: str, data: LinkUpdate) -> Link:
        """Apply the fields present in ``data`` to a live link."""
        link = LinkService.get_owned_link(db, owner_id, short_id)
        fields = data.model_fields_set

        if "title" in fields:
            link.title = (data.title or "").strip() or None

        if "redirect_url" in fields:
            link.destination = resolve_destination(data.redirect_url)

        if "new_short_id" in fields and data.new_short_id and data.new_short_id != link.short_id:
            new_id = get_allocator().claim_alias(db, data.new_short_id.strip(), exclude_link_id=link.id)
            link.short_id = new_id
            link.short_id_key = short_id_key(new_id)

        if "folder_id" in fields:
            if data.folder_id is None:
                link.folder_id = None
            else:
                link.folder_id = get_active_folder(db, owner_id, data.folder_id).id

        if "is_active" in fields and data.is_active is not None:
            link.is_active = data.is_active

        if data.never_expire:
            link.expires_at = None
        elif "expiration_date" in fields:
            link.expires_at = ensure_future(data.expiration_date)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise AliasTakenError("Short ID already in use")

        db.refresh(link)
        logger.info(f"Updated link {link.short_id}")
        return link

    @staticmethod
    def set_status(db: Session, owner_id: int, short_id: str, is_active: bool) -> Tuple[Link, bool]:
        """Activate or deactivate a link. Returns (link, changed)."""
        link = LinkService.get_owned_link(db, owner_id, short_id)
        if link.is_active == is_active:
            return link, False

        link.is_active = is_active
        db.commit()
        db.refresh(link)
        logger.info(f"Link {link.short_id} {'activated' if is_active else 'deactivated'}")
        return link, True

    @staticmethod
    def soft_delete(db: Session, link: Link) -> Link:
        """Move a link to the recycle bin. Folder membership is left as is."""
        link.is_deleted = True
        link.deleted_at = utc_now()
        db.commit()
        logger.info(f"Link {link.short_id} moved to recycle bin")
        return link

    @staticmethod
    def restore(db: Session, link: Link) -> Link:
        """Bring a link back from the recycle bin."""
        link.is_deleted = False
        link.deleted_at = None

        # A folder that was deleted meanwhile no longer holds live links
        if link.folder_id is not None:
            folder = db.get(Folder, link.folder_id)
            if folder is None or folder.is_deleted:
                link.folder_id = None

        db.commit()
        db.refresh(link)
        logger.info(f"Link {link.short_id} restored")
        return link

    @staticmethod
    def permanent_delete(db: Session, link: Link) -> None:
        """Hard delete. Only links already in the recycle bin qualify."""
        if not link.is_deleted:
            raise ConflictError("Only URLs in the recycle bin can be permanently deleted")

        short_id = link.short_id
        db.delete(link)
        db.commit()
        logger.info(f"Link {short_id} permanently deleted")

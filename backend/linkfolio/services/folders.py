from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..errors import ConflictError, NameConflictError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Folder, Link
from ..utils import clamp_pagination, day_range, utc_now
from .links import apply_link_filters

logger = get_logger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50


def folder_name_key(name: str) -> str:
    return name.lower()


def clean_folder_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH or len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Folder name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters"
        )
    return name


def name_in_use(db: Session, owner_id: int, name: str, exclude_folder_id: Optional[int] = None) -> bool:
    """Whether an active folder of this owner already has the name (any case)."""
    query = db.query(Folder.id).filter(
        Folder.owner_id == owner_id,
        Folder.name_key == folder_name_key(name),
        Folder.is_deleted == False,  # noqa: E712
    )
    if exclude_folder_id is not None:
        query = query.filter(Folder.id != exclude_folder_id)
    return query.first() is not None


def link_counts(db: Session, folder_ids: List[int]) -> Dict[int, Tuple[int, int]]:
    """(total, active) non-deleted link counts per folder id."""
    if not folder_ids:
        return {}

    rows = db.query(
        Link.folder_id,
        func.count(Link.id),
        func.sum(case((Link.is_active == True, 1), else_=0)),  # noqa: E712
    ).filter(
        Link.folder_id.in_(folder_ids),
        Link.is_deleted == False,  # noqa: E712
    ).group_by(Link.folder_id).all()

    return {folder_id: (int(total), int(active or 0)) for folder_id, total, active in rows}


class FolderService:
    """Service for managing folders and their membership."""

    @staticmethod
    def get_owned_folder(
        db: Session,
        owner_id: int,
        folder_id: int,
        deleted: Optional[bool] = False,
    ) -> Folder:
        query = db.query(Folder).filter(Folder.id == folder_id, Folder.owner_id == owner_id)
        if deleted is not None:
            query = query.filter(Folder.is_deleted == deleted)
        folder = query.first()
        if not folder:
            raise NotFoundError("Folder not found in recycle bin" if deleted else "Folder not found")
        return folder

    @staticmethod
    def create_folder(db: Session, owner_id: int, name: str, description: Optional[str] = None) -> Folder:
        name = clean_folder_name(name)
        if name_in_use(db, owner_id, name):
            raise NameConflictError("Folder with this name already exists")

        folder = Folder(
            name=name,
            name_key=folder_name_key(name),
            description=(description or "").strip(),
            owner_id=owner_id,
        )
        db.add(folder)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise NameConflictError("Folder with this name already exists")

        db.refresh(folder)
        logger.info(f"Created folder {folder.id} '{name}' for user {owner_id}")
        return folder

    @staticmethod
    def list_folders(
        db: Session,
        owner_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        show_deleted: bool = False,
    ) -> Tuple[List[Folder], Dict[int, Tuple[int, int]], int, int, int]:
        """Returns (folders, counts by folder id, total_count, page, limit)."""
        page, limit, offset = clamp_pagination(page, limit)

        query = db.query(Folder).filter(
            Folder.owner_id == owner_id,
            Folder.is_deleted == show_deleted,
        )
        if search:
            query = query.filter(Folder.name.icontains(search, autoescape=True))

        start_dt, end_dt = day_range(start_date, end_date)
        if start_dt:
            query = query.filter(Folder.created_at >= start_dt)
        if end_dt:
            query = query.filter(Folder.created_at <= end_dt)

        total = query.count()
        folders = (
            query.order_by(Folder.created_at.desc(), Folder.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        counts = link_counts(db, [f.id for f in folders])
        return folders, counts, total, page, limit

    @staticmethod
    def folder_details(
        db: Session,
        owner_id: int,
        folder_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[Folder, List[Link], int, int, int]:
        """Folder plus one page of its live links."""
        folder = FolderService.get_owned_folder(db, owner_id, folder_id)
        page, limit, offset = clamp_pagination(page, limit)

        query = db.query(Link).filter(
            Link.folder_id == folder.id,
            Link.owner_id == owner_id,
            Link.is_deleted == False,  # noqa: E712
        )
        query = apply_link_filters(query, search, status, start_date, end_date)

        total = query.count()
        links = (
            query.options(joinedload(Link.folder))
            .order_by(Link.created_at.desc(), Link.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return folder, links, total, page, limit

    @staticmethod
    def update_folder(
        db: Session,
        owner_id: int,
        folder_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Folder:
        if name is None and description is None:
            raise ValidationError("At least one field (name or description) is required")

        folder = FolderService.get_owned_folder(db, owner_id, folder_id)

        if name is not None:
            name = clean_folder_name(name)
            if name_in_use(db, owner_id, name, exclude_folder_id=folder.id):
                raise NameConflictError("Folder with this name already exists")
            folder.name = name
            folder.name_key = folder_name_key(name)

        if description is not None:
            folder.description = description.strip()

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise NameConflictError("Folder with this name already exists")

        db.refresh(folder)
        logger.info(f"Updated folder {folder.id}")
        return folder

    @staticmethod
    def soft_delete(db: Session, folder: Folder) -> int:
        """
        Move a folder to the recycle bin and orphan its live links.
        Both happen in one transaction. Returns the number of orphaned links.
        """
        folder.is_deleted = True
        folder.deleted_at = utc_now()
        folder.name_key = None

        orphaned = db.query(Link).filter(
            Link.folder_id == folder.id,
            Link.owner_id == folder.owner_id,
            Link.is_deleted == False,  # noqa: E712
        ).update({Link.folder_id: None}, synchronize_session=False)

        db.commit()
        logger.info(f"Folder {folder.id} moved to recycle bin, {orphaned} links orphaned")
        return orphaned

    @staticmethod
    def remove_links(db: Session, owner_id: int, folder_id: int, link_ids: List[int]) -> int:
        """Detach the given links from the folder. Returns how many were detached."""
        folder = FolderService.get_owned_folder(db, owner_id, folder_id)

        removed = db.query(Link).filter(
            Link.id.in_(link_ids),
            Link.folder_id == folder.id,
            Link.owner_id == owner_id,
            Link.is_deleted == False,  # noqa: E712
        ).update({Link.folder_id: None}, synchronize_session=False)

        db.commit()
        logger.info(f"Removed {removed} links from folder {folder.id}")
        return removed

    @staticmethod
    def restore(db: Session, folder: Folder) -> Folder:
        """Bring a folder back unless an active folder now holds its name."""
        if name_in_use(db, folder.owner_id, folder.name, exclude_folder_id=folder.id):
            raise NameConflictError("A folder with this name already exists")

        folder.is_deleted = False
        folder.deleted_at = None
        folder.name_key = folder_name_key(folder.name)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise NameConflictError("A folder with this name already exists")

        db.refresh(folder)
        logger.info(f"Folder {folder.id} restored")
        return folder

    @staticmethod
    def permanent_delete(db: Session, folder: Folder) -> None:
        """Hard delete a folder from the recycle bin, detaching any remaining links."""
        if not folder.is_deleted:
            raise ConflictError("Only folders in the recycle bin can be permanently deleted")

        folder_id = folder.id
        db.query(Link).filter(Link.folder_id == folder_id).update(
            {Link.folder_id: None}, synchronize_session=False
        )
        db.delete(folder)
        db.commit()
        logger.info(f"Folder {folder_id} permanently deleted")


def reconcile_folder_references(db: Session) -> int:
    """
    Clear folder references on live links whose folder is deleted or missing.
    Safe to run repeatedly. Returns the number of links fixed.
    """
    live_folder_ids = select(Folder.id).where(Folder.is_deleted == False)  # noqa: E712

    fixed = db.query(Link).filter(
        Link.is_deleted == False,  # noqa: E712
        Link.folder_id.isnot(None),
        Link.folder_id.notin_(live_folder_ids),
    ).update({Link.folder_id: None}, synchronize_session=False)

    db.commit()
    if fixed:
        logger.info(f"Reconciled {fixed} dangling folder references")
    return fixed

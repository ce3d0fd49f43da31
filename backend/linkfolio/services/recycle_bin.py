from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import Folder, Link
from ..utils import clamp_pagination, format_short_url, normalize_utc
from .folders import FolderService
from .links import LinkService

logger = get_logger(__name__)

ITEM_TYPES = ("url", "folder")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _link_item(link: Link) -> Dict[str, Any]:
    return {
        "id": link.id,
        "type": "url",
        "short_id": link.short_id,
        "title": link.title,
        "redirect_url": link.destination,
        "short_url": format_short_url(link.short_id),
        "deleted_at": link.deleted_at,
        "created_at": link.created_at,
    }


def _folder_item(folder: Folder) -> Dict[str, Any]:
    return {
        "id": folder.id,
        "type": "folder",
        "name": folder.name,
        "description": folder.description,
        "deleted_at": folder.deleted_at,
        "created_at": folder.created_at,
    }


def _deleted_sort_key(item: Dict[str, Any]) -> datetime:
    return normalize_utc(item["deleted_at"]) or _EPOCH


def _check_type(item_type: Optional[str]) -> None:
    if item_type is not None and item_type not in ITEM_TYPES:
        raise ValidationError("Type must be 'url' or 'folder'")


class RecycleBinService:
    """One listing, restore and purge surface over deleted links and folders."""

    @staticmethod
    def list_items(
        db: Session,
        owner_id: int,
        page: int = 1,
        limit: Optional[int] = None,
        item_type: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, int], int, int, int]:
        """
        Returns (items, summary, total_count, page, limit).

        Without a type, links and folders are merged by deletion time and the
        page is cut from the merged sequence. With a type, that type alone is
        paginated.
        """
        _check_type(item_type)
        page, limit, offset = clamp_pagination(page, limit)

        link_query = db.query(Link).filter(
            Link.owner_id == owner_id, Link.is_deleted == True  # noqa: E712
        ).order_by(Link.deleted_at.desc(), Link.id.desc())
        folder_query = db.query(Folder).filter(
            Folder.owner_id == owner_id, Folder.is_deleted == True  # noqa: E712
        ).order_by(Folder.deleted_at.desc(), Folder.id.desc())

        url_count = link_query.count()
        folder_count = folder_query.count()
        summary = {
            "total_urls": url_count,
            "total_folders": folder_count,
            "total": url_count + folder_count,
        }

        if item_type == "url":
            items = [_link_item(l) for l in link_query.offset(offset).limit(limit)]
            return items, summary, url_count, page, limit

        if item_type == "folder":
            items = [_folder_item(f) for f in folder_query.offset(offset).limit(limit)]
            return items, summary, folder_count, page, limit

        # Any item on the requested merged page is within the first
        # offset + limit rows of its own type
        window = offset + limit
        merged = [_link_item(l) for l in link_query.limit(window)]
        merged += [_folder_item(f) for f in folder_query.limit(window)]
        merged.sort(key=_deleted_sort_key, reverse=True)
        return merged[offset:offset + limit], summary, summary["total"], page, limit

    @staticmethod
    def restore(db: Session, owner_id: int, item_id: int, item_type: str) -> Dict[str, Any]:
        _check_type(item_type)
        if item_type == "url":
            link = LinkService.get_owned_link_by_id(db, owner_id, item_id, deleted=True)
            return _link_item(LinkService.restore(db, link))

        folder = FolderService.get_owned_folder(db, owner_id, item_id, deleted=True)
        return _folder_item(FolderService.restore(db, folder))

    @staticmethod
    def purge(db: Session, owner_id: int, item_id: int, item_type: str) -> None:
        _check_type(item_type)
        if item_type == "url":
            link = LinkService.get_owned_link_by_id(db, owner_id, item_id, deleted=True)
            LinkService.permanent_delete(db, link)
        else:
            folder = FolderService.get_owned_folder(db, owner_id, item_id, deleted=True)
            FolderService.permanent_delete(db, folder)
        logger.info(f"Purged {item_type} {item_id} from recycle bin of user {owner_id}")

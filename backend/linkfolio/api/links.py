from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..auth import get_client_ip, get_current_user
from ..database import get_db
from ..logging_config import get_logger
from ..models import User
from ..redis_client import RedisService
from ..schemas import (
    ErrorResponse,
    LinkCreate,
    LinkResponse,
    LinkStatusResponse,
    LinkStatusUpdate,
    LinkUpdate,
    MessageResponse,
    Page,
)
from ..services.links import LinkService
from ..utils import pagination_meta

logger = get_logger(__name__)

router = APIRouter(tags=["urls"])


@router.post(
    "",
    response_model=LinkResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def create_link(
    request: Request,
    data: LinkCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a short link with a random or custom id."""
    client_ip = get_client_ip(request)

    allowed, _ = RedisService.check_rate_limit(f"create:{client_ip}")
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please try again later.",
            headers={"X-RateLimit-Remaining": "0"},
        )

    link = LinkService.create_link(db, user, data)
    return LinkResponse.from_link(link)


@router.get("", response_model=Page[LinkResponse])
async def list_links(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    folder_id: Optional[str] = Query(None, alias="folderId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    show_deleted: bool = Query(False, alias="showDeleted"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the caller's links, newest first. Filters combine with AND."""
    links, total, page, limit = LinkService.list_links(
        db,
        user.id,
        page=page,
        limit=limit,
        search=search,
        folder=folder_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        show_deleted=show_deleted,
    )
    return {
        "data": [LinkResponse.from_link(link) for link in links],
        "pagination": pagination_meta(page, limit, total),
    }


@router.get("/{short_id}", response_model=LinkResponse, responses={404: {"model": ErrorResponse}})
async def get_link(
    short_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    link = LinkService.get_owned_link(db, user.id, short_id)
    return LinkResponse.from_link(link)


@router.patch(
    "/{short_id}/edit",
    response_model=LinkResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def edit_link(
    short_id: str,
    data: LinkUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial update; fields left out of the body are not touched."""
    link = LinkService.update_link(db, user.id, short_id, data)
    return LinkResponse.from_link(link)


@router.patch(
    "/{short_id}/status",
    response_model=LinkStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def set_link_status(
    short_id: str,
    data: LinkStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    link, changed = LinkService.set_status(db, user.id, short_id, data.is_active)
    state = "active" if link.is_active else "inactive"
    message = f"URL is now {state}" if changed else f"URL is already {state}"
    return LinkStatusResponse(message=message, is_active=link.is_active)


@router.delete("/{short_id}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
async def delete_link(
    short_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Move a link to the recycle bin."""
    link = LinkService.get_owned_link(db, user.id, short_id)
    LinkService.soft_delete(db, link)
    return MessageResponse(message="URL moved to recycle bin")


@router.patch("/{short_id}/restore", response_model=LinkResponse, responses={404: {"model": ErrorResponse}})
async def restore_link(
    short_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    link = LinkService.get_owned_link(db, user.id, short_id, deleted=True)
    return LinkResponse.from_link(LinkService.restore(db, link))


@router.delete(
    "/{short_id}/permanent",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def purge_link(
    short_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Hard delete a link that is already in the recycle bin."""
    link = LinkService.get_owned_link(db, user.id, short_id, deleted=None)
    LinkService.permanent_delete(db, link)
    return MessageResponse(message="URL permanently deleted")

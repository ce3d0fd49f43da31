from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    ErrorResponse,
    MessageResponse,
    RecycleBinAction,
    RecycleBinItem,
    RecycleBinResponse,
)
from ..services.recycle_bin import RecycleBinService
from ..utils import pagination_meta

router = APIRouter(tags=["recycle-bin"])


@router.get("", response_model=RecycleBinResponse, responses={400: {"model": ErrorResponse}})
async def list_items(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    type: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Deleted links and folders; merged by deletion time unless a type is given."""
    items, summary, total, page, limit = RecycleBinService.list_items(db, user.id, page, limit, type)
    return {
        "items": items,
        "summary": summary,
        "pagination": pagination_meta(page, limit, total),
    }


@router.patch(
    "/restore",
    response_model=RecycleBinItem,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def restore_item(
    data: RecycleBinAction,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return RecycleBinService.restore(db, user.id, data.item_id, data.item_type)


@router.delete(
    "/permanent",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}},
)
async def purge_item(
    data: RecycleBinAction,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    RecycleBinService.purge(db, user.id, data.item_id, data.item_type)
    label = "URL" if data.item_type == "url" else "Folder"
    return MessageResponse(message=f"{label} permanently deleted")

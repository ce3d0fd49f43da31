from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Folder, User
from ..schemas import (
    ErrorResponse,
    FolderCreate,
    FolderDeleteResponse,
    FolderDetailResponse,
    FolderResponse,
    FolderUpdate,
    LinkResponse,
    MessageResponse,
    Page,
    RemoveUrlsRequest,
    RemoveUrlsResponse,
)
from ..services.folders import FolderService, link_counts
from ..utils import pagination_meta

router = APIRouter(tags=["folders"])


def folder_response(folder: Folder, counts: Optional[tuple] = None) -> FolderResponse:
    response = FolderResponse.model_validate(folder)
    if counts is not None:
        response.total_urls, response.active_urls = counts
    return response


@router.post(
    "",
    response_model=FolderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_folder(
    data: FolderCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    folder = FolderService.create_folder(db, user.id, data.name, data.description)
    return folder_response(folder, (0, 0))


@router.get("", response_model=Page[FolderResponse])
async def list_folders(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    show_deleted: bool = Query(False, alias="showDeleted"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List folders with counts of their live links."""
    folders, counts, total, page, limit = FolderService.list_folders(
        db,
        user.id,
        page=page,
        limit=limit,
        search=search,
        start_date=start_date,
        end_date=end_date,
        show_deleted=show_deleted,
    )
    return {
        "data": [folder_response(f, counts.get(f.id, (0, 0))) for f in folders],
        "pagination": pagination_meta(page, limit, total),
    }


@router.get("/{folder_id}", response_model=FolderDetailResponse, responses={404: {"model": ErrorResponse}})
async def get_folder(
    folder_id: int,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Folder details with one page of its links."""
    folder, links, total, page, limit = FolderService.folder_details(
        db,
        user.id,
        folder_id,
        page=page,
        limit=limit,
        search=search,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
    )
    counts = link_counts(db, [folder.id]).get(folder.id, (0, 0))
    return {
        "folder": folder_response(folder, counts),
        "urls": [LinkResponse.from_link(link) for link in links],
        "pagination": pagination_meta(page, limit, total),
    }


@router.patch(
    "/{folder_id}",
    response_model=FolderResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_folder(
    folder_id: int,
    data: FolderUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    folder = FolderService.update_folder(db, user.id, folder_id, name=data.name, description=data.description)
    return folder_response(folder)


@router.delete("/{folder_id}", response_model=FolderDeleteResponse, responses={404: {"model": ErrorResponse}})
async def delete_folder(
    folder_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Move a folder to the recycle bin. Its live links stay, without a folder."""
    folder = FolderService.get_owned_folder(db, user.id, folder_id)
    orphaned = FolderService.soft_delete(db, folder)
    return FolderDeleteResponse(message="Folder moved to recycle bin", orphaned_urls=orphaned)


@router.patch(
    "/{folder_id}/remove-urls",
    response_model=RemoveUrlsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def remove_urls(
    folder_id: int,
    data: RemoveUrlsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    removed = FolderService.remove_links(db, user.id, folder_id, data.url_ids)
    return RemoveUrlsResponse(message=f"{removed} URL(s) removed from folder", removed_count=removed)


@router.patch(
    "/{folder_id}/restore",
    response_model=FolderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def restore_folder(
    folder_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    folder = FolderService.get_owned_folder(db, user.id, folder_id, deleted=True)
    return folder_response(FolderService.restore(db, folder))


@router.delete(
    "/{folder_id}/permanent",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def purge_folder(
    folder_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Hard delete a folder that is already in the recycle bin."""
    folder = FolderService.get_owned_folder(db, user.id, folder_id, deleted=None)
    FolderService.permanent_delete(db, folder)
    return MessageResponse(message="Folder permanently deleted")

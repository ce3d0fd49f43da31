from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..logging_config import get_logger
from ..models import User
from ..schemas import (
    AdminLinkDetail,
    AdminLinkResponse,
    AdminLinkUpdate,
    AdminUserDetail,
    AdminUserUpdate,
    DashboardResponse,
    ErrorResponse,
    FolderResponse,
    LinkResponse,
    Page,
    SystemStatsResponse,
    UserResponse,
)
from ..services.admin import AdminService
from ..utils import pagination_meta

logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Headline numbers for the admin dashboard."""
    return AdminService.dashboard(db)


@router.get("/stats", response_model=SystemStatsResponse)
async def system_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return AdminService.system_stats(db)


@router.get("/users", response_model=Page[UserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users, total, page, limit = AdminService.list_users(db, page, limit, search, role, is_active)
    return {"data": users, "pagination": pagination_meta(page, limit, total)}


@router.get("/users/{user_id}", response_model=AdminUserDetail, responses={404: {"model": ErrorResponse}})
async def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    details = AdminService.user_details(db, user_id)
    return {
        "user": details["user"],
        "url_stats": details["url_stats"],
        "recent_urls": [LinkResponse.from_link(link) for link in details["recent_urls"]],
        "folders": [FolderResponse.model_validate(f) for f in details["folders"]],
    }


@router.patch(
    "/users/{user_id}",
    response_model=UserResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_user(
    user_id: int,
    data: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Change a user's role, active flag or name."""
    return AdminService.update_user(
        db, admin, user_id, role=data.role, is_active=data.is_active, name=data.name
    )


@router.get("/urls", response_model=Page[AdminLinkResponse])
async def list_links(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    is_deleted: Optional[bool] = Query(None, alias="isDeleted"),
    user_id: Optional[int] = Query(None, alias="userId"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every link in the system, across owners."""
    links, total, page, limit = AdminService.list_links(
        db, page, limit, search, is_active, is_deleted, user_id
    )
    return {
        "data": [AdminLinkResponse.from_link(link) for link in links],
        "pagination": pagination_meta(page, limit, total),
    }


@router.get("/urls/{link_id}", response_model=AdminLinkDetail, responses={404: {"model": ErrorResponse}})
async def get_link(
    link_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    details = AdminService.link_details(db, link_id)
    return {
        "url": AdminLinkResponse.from_link(details["url"]),
        "analytics": details["analytics"],
    }


@router.patch(
    "/urls/{link_id}",
    response_model=AdminLinkResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_link(
    link_id: int,
    data: AdminLinkUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Override a link's state regardless of owner."""
    link = AdminService.update_link(
        db,
        admin,
        link_id,
        is_active=data.is_active,
        is_deleted=data.is_deleted,
        redirect_url=data.redirect_url,
    )
    return AdminLinkResponse.from_link(link)

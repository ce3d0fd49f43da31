from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import ChartsResponse, ErrorResponse, LinkOverview, VisitPage
from ..services.analytics import AnalyticsService
from ..services.links import LinkService
from ..utils import pagination_meta

router = APIRouter(tags=["analytics"])


@router.get("/{short_id}/overview", response_model=LinkOverview, responses={404: {"model": ErrorResponse}})
async def overview(
    short_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    link = LinkService.get_owned_link(db, user.id, short_id)
    return AnalyticsService.overview(db, link)


@router.get(
    "/{short_id}/charts",
    response_model=ChartsResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def charts(
    short_id: str,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    group_by: Optional[str] = Query("day", alias="groupBy"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Time series and top breakdowns for one link."""
    link = LinkService.get_owned_link(db, user.id, short_id)
    return AnalyticsService.charts(db, link, start_date, end_date, group_by)


@router.get(
    "/{short_id}/visits",
    response_model=VisitPage,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def visits(
    short_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Visit history, newest first, with masked IPs."""
    link = LinkService.get_owned_link(db, user.id, short_id)
    rows, total, page, limit = AnalyticsService.visits(db, link, page, limit, start_date, end_date)
    return {
        "data": rows,
        "pagination": pagination_meta(page, limit, total),
        "filters": {"start_date": start_date, "end_date": end_date},
    }


@router.get(
    "/{short_id}/export",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def export(
    short_id: str,
    format: str = Query("csv"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Download the full visit history as CSV or JSON."""
    link = LinkService.get_owned_link(db, user.id, short_id)
    content, media_type, filename = AnalyticsService.export(db, link, format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

"""
Admin-only system views and overrides.

Everything here crosses ownership boundaries; routes guard it with
``require_admin``.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session, joinedload

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import Folder, Link, User, Visit, ROLE_ADMIN
from ..utils import clamp_pagination, utc_now
from .analytics import breakdown, bucket_label, link_visits, time_series
from .links import LinkService, resolve_destination

logger = get_logger(__name__)

RECENT_USERS = 5
TOP_LINKS = 5
TOP_COUNTRIES = 10
DASHBOARD_DAYS = 7
STATS_DAYS = 30
GROWTH_MONTHS = 12


def _as_int(value) -> int:
    return int(value or 0)


def daily_visits(db: Session, days: int) -> List[Dict[str, Any]]:
    """Visits per day over the trailing window, oldest first."""
    since = utc_now() - timedelta(days=days)
    query = db.query(Visit).filter(Visit.visited_at >= since)
    return [
        {"date": point["date"], "visits": point["count"]}
        for point in time_series(query, "day")
    ]


def monthly_growth(db: Session, column, months: int = GROWTH_MONTHS) -> List[Dict[str, Any]]:
    """Rows created per month (``YYYY-MM``) over the trailing months."""
    today = utc_now().date()
    year, month = today.year, today.month - (months - 1)
    while month <= 0:
        month += 12
        year -= 1
    since = datetime(year, month, 1, tzinfo=timezone.utc)

    counter = Counter(
        bucket_label(created_at, "month")
        for (created_at,) in db.query(column).filter(column >= since)
    )
    return [{"month": label, "count": counter[label]} for label in sorted(counter)]


def top_links(db: Session, limit: int = TOP_LINKS) -> List[Dict[str, Any]]:
    """Live links ordered by all-time visits."""
    counts = (
        select(Visit.link_id, Visit.owner_id, func.count(Visit.id).label("visits"))
        .group_by(Visit.link_id, Visit.owner_id)
        .subquery()
    )
    rows = (
        db.query(Link, counts.c.visits)
        .join(counts, (counts.c.link_id == Link.id) & (counts.c.owner_id == Link.owner_id))
        .options(joinedload(Link.owner))
        .filter(Link.is_deleted == False)  # noqa: E712
        .order_by(counts.c.visits.desc(), Link.id)
        .limit(limit)
        .all()
    )
    return [
        {
            "id": link.id,
            "short_id": link.short_id,
            "redirect_url": link.destination,
            "owner_email": link.owner.email if link.owner is not None else None,
            "visits": visits,
        }
        for link, visits in rows
    ]


class AdminService:
    """Aggregate statistics and admin overrides of users and links."""

    @staticmethod
    def dashboard(db: Session) -> Dict[str, Any]:
        total_users, active_users = db.query(
            func.count(User.id),
            func.sum(case((User.is_active == True, 1), else_=0)),  # noqa: E712
        ).one()
        live_links = db.query(func.count(Link.id)).filter(Link.is_deleted == False).scalar()  # noqa: E712
        total_visits = db.query(func.count(Visit.id)).scalar()

        recent_users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).limit(RECENT_USERS).all()

        return {
            "users": {"total": _as_int(total_users), "active": _as_int(active_users)},
            "urls": {"total": _as_int(live_links), "clicks": _as_int(total_visits)},
            "recent_users": recent_users,
            "top_urls": top_links(db),
            "daily_stats": daily_visits(db, DASHBOARD_DAYS),
        }

    @staticmethod
    def system_stats(db: Session) -> Dict[str, Any]:
        total_users, active_users, admins = db.query(
            func.count(User.id),
            func.sum(case((User.is_active == True, 1), else_=0)),  # noqa: E712
            func.sum(case((User.role == ROLE_ADMIN, 1), else_=0)),
        ).one()
        total_links, active_links, deleted_links = db.query(
            func.count(Link.id),
            func.sum(case((Link.is_active == True, 1), else_=0)),  # noqa: E712
            func.sum(case((Link.is_deleted == True, 1), else_=0)),  # noqa: E712
        ).one()
        total_visits = db.query(func.count(Visit.id)).scalar()

        countries = (
            db.query(Visit.country, func.count(Visit.id).label("visits"))
            .filter(Visit.country.isnot(None))
            .group_by(Visit.country)
            .order_by(func.count(Visit.id).desc(), Visit.country)
            .limit(TOP_COUNTRIES)
            .all()
        )

        return {
            "users": {
                "total": _as_int(total_users),
                "active": _as_int(active_users),
                "admins": _as_int(admins),
            },
            "urls": {
                "total": _as_int(total_links),
                "active": _as_int(active_links),
                "deleted": _as_int(deleted_links),
                "total_clicks": _as_int(total_visits),
            },
            "daily_activity": daily_visits(db, STATS_DAYS),
            "monthly_growth": {
                "urls": monthly_growth(db, Link.created_at),
                "users": monthly_growth(db, User.created_at),
            },
            "top_countries": [{"name": name, "visits": visits} for name, visits in countries],
        }

    # --- Users ---------------------------------------------------------------

    @staticmethod
    def list_users(
        db: Session,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[User], int, int, int]:
        page, limit, offset = clamp_pagination(page, limit)

        query = db.query(User)
        if search:
            query = query.filter(or_(
                User.name.icontains(search, autoescape=True),
                User.email.icontains(search, autoescape=True),
            ))
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        total = query.count()
        users = query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()
        return users, total, page, limit

    @staticmethod
    def user_details(db: Session, user_id: int) -> Dict[str, Any]:
        user = db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        total, active, deleted = db.query(
            func.count(Link.id),
            func.sum(case(((Link.is_active == True) & (Link.is_deleted == False), 1), else_=0)),  # noqa: E712
            func.sum(case((Link.is_deleted == True, 1), else_=0)),  # noqa: E712
        ).filter(Link.owner_id == user.id).one()

        recent_links = (
            db.query(Link)
            .options(joinedload(Link.folder))
            .filter(Link.owner_id == user.id)
            .order_by(Link.created_at.desc(), Link.id.desc())
            .limit(10)
            .all()
        )
        folders = (
            db.query(Folder)
            .filter(Folder.owner_id == user.id)
            .order_by(Folder.created_at.desc(), Folder.id.desc())
            .limit(5)
            .all()
        )
        return {
            "user": user,
            "url_stats": {"total": _as_int(total), "active": _as_int(active), "deleted": _as_int(deleted)},
            "recent_urls": recent_links,
            "folders": folders,
        }

    @staticmethod
    def update_user(
        db: Session,
        admin: User,
        user_id: int,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        name: Optional[str] = None,
    ) -> User:
        user = db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        if user.id == admin.id:
            if role is not None and role != ROLE_ADMIN:
                raise PermissionDeniedError("Cannot change your own admin role")
            if is_active is False:
                raise PermissionDeniedError("Cannot deactivate your own account")

        if role is not None:
            user.role = role
        if is_active is not None:
            user.is_active = is_active
        if name is not None:
            if not name.strip():
                raise ValidationError("Name cannot be empty")
            user.name = name.strip()

        db.commit()
        db.refresh(user)
        logger.info(f"Admin {admin.id} updated user {user.id}")
        return user

    # --- Links ---------------------------------------------------------------

    @staticmethod
    def list_links(
        db: Session,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_deleted: Optional[bool] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[List[Link], int, int, int]:
        page, limit, offset = clamp_pagination(page, limit)

        query = db.query(Link)
        if search:
            query = query.filter(or_(
                Link.short_id.icontains(search, autoescape=True),
                Link.destination.icontains(search, autoescape=True),
            ))
        if is_active is not None:
            query = query.filter(Link.is_active == is_active)
        if is_deleted is not None:
            query = query.filter(Link.is_deleted == is_deleted)
        if user_id is not None:
            query = query.filter(Link.owner_id == user_id)

        total = query.count()
        links = (
            query.options(joinedload(Link.owner), joinedload(Link.folder))
            .order_by(Link.created_at.desc(), Link.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return links, total, page, limit

    @staticmethod
    def get_link(db: Session, link_id: int) -> Link:
        link = db.get(Link, link_id)
        if not link:
            raise NotFoundError("URL not found")
        return link

    @staticmethod
    def link_details(db: Session, link_id: int) -> Dict[str, Any]:
        link = AdminService.get_link(db, link_id)
        query = link_visits(db, link)
        total = query.count()
        return {
            "url": link,
            "analytics": {
                "visits": time_series(query, "day"),
                "devices": breakdown(query, Visit.device_type, "unknown", "device", total, limit=None),
                "referrers": breakdown(query, Visit.referrer, "direct", "referrer", total),
                "countries": breakdown(query, Visit.country, "unknown", "country", total),
            },
        }

    @staticmethod
    def update_link(
        db: Session,
        admin: User,
        link_id: int,
        is_active: Optional[bool] = None,
        is_deleted: Optional[bool] = None,
        redirect_url: Optional[str] = None,
    ) -> Link:
        link = AdminService.get_link(db, link_id)

        if redirect_url:
            link.destination = resolve_destination(redirect_url)
        if is_active is not None:
            link.is_active = is_active

        if is_deleted is True and not link.is_deleted:
            link.is_deleted = True
            link.deleted_at = utc_now()
        elif is_deleted is False and link.is_deleted:
            LinkService.restore(db, link)

        db.commit()
        db.refresh(link)
        logger.info(f"Admin {admin.id} updated link {link.short_id}")
        return link

"""
Visit analytics for a single link.

Counts and categorical breakdowns are grouped in the database; time buckets
are formed in Python so day/ISO-week/month labels are identical on every
engine.
"""

import csv
import io
import json
from collections import Counter
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ..errors import ValidationError
from ..models import Link, Visit
from ..security import mask_ip
from ..utils import (
    apportion_percentages,
    clamp_pagination,
    day_range,
    format_short_url,
    normalize_utc,
    utc_now,
)

GROUP_BY_OPTIONS = ("day", "week", "month")
TOP_N = 10
EXPORT_FORMATS = ("csv", "json")
CSV_COLUMNS = ["Timestamp", "Country", "City", "Device", "Referrer", "IP Address", "User Agent"]


def bucket_label(moment: datetime, group_by: str) -> str:
    """Label a timestamp with its day, ISO week or month."""
    moment = normalize_utc(moment)
    if group_by == "month":
        return moment.strftime("%Y-%m")
    if group_by == "week":
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week:02d}"
    return moment.strftime("%Y-%m-%d")


def link_visits(db: Session, link: Link) -> Query:
    """Visits of one link, scoped to its current owner."""
    return db.query(Visit).filter(Visit.link_id == link.id, Visit.owner_id == link.owner_id)


def _visit_query(
    db: Session,
    link: Link,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Query:
    query = link_visits(db, link)
    start_dt, end_dt = day_range(start_date, end_date)
    if start_dt:
        query = query.filter(Visit.visited_at >= start_dt)
    if end_dt:
        query = query.filter(Visit.visited_at <= end_dt)
    return query


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationError("Start date must be before end date")


def time_series(query: Query, group_by: str) -> List[Dict[str, Any]]:
    """Visit counts per bucket, oldest first."""
    counter = Counter(
        bucket_label(visited_at, group_by)
        for (visited_at,) in query.with_entities(Visit.visited_at)
    )
    return [{"date": label, "count": counter[label]} for label in sorted(counter)]


def breakdown(
    query: Query,
    column,
    default: str,
    key: str,
    total: int,
    limit: Optional[int] = TOP_N,
) -> List[Dict[str, Any]]:
    """Top values of a visit column with counts and percentages of total."""
    label = func.coalesce(column, default)
    grouped = (
        query.with_entities(label.label("label"), func.count(Visit.id).label("count"))
        .group_by(label)
        .order_by(func.count(Visit.id).desc(), label)
    )
    if limit:
        grouped = grouped.limit(limit)
    rows = grouped.all()

    percentages = apportion_percentages([row.count for row in rows], total)
    return [
        {key: row.label or default, "count": row.count, "percentage": pct}
        for row, pct in zip(rows, percentages)
    ]


def serialize_visit(visit: Visit) -> Dict[str, Any]:
    """Visit as shown to the link owner. The IP is always masked."""
    return {
        "id": visit.id,
        "timestamp": normalize_utc(visit.visited_at),
        "country": visit.country or None,
        "city": visit.city or None,
        "device_type": visit.device_type or "unknown",
        "referrer": visit.referrer or "direct",
        "visitor_ip": mask_ip(visit.visitor_ip),
        "user_agent": visit.user_agent or None,
    }


class AnalyticsService:
    """Read-only summaries of a link's visits."""

    @staticmethod
    def total_clicks(db: Session, link: Link) -> int:
        return link_visits(db, link).count()

    @staticmethod
    def overview(db: Session, link: Link) -> Dict[str, Any]:
        folder = link.folder if link.folder is not None and not link.folder.is_deleted else None
        return {
            "id": link.id,
            "title": link.title,
            "short_id": link.short_id,
            "short_url": format_short_url(link.short_id),
            "redirect_url": link.destination,
            "is_active": link.is_active,
            "folder": {"id": folder.id, "name": folder.name} if folder else None,
            "expiration_date": link.expires_at,
            "total_clicks": AnalyticsService.total_clicks(db, link),
            "created_at": link.created_at,
            "updated_at": link.updated_at,
        }

    @staticmethod
    def charts(
        db: Session,
        link: Link,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        group_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        group_by = group_by or "day"
        if group_by not in GROUP_BY_OPTIONS:
            raise ValidationError("groupBy must be one of: day, week, month")
        _check_range(start_date, end_date)

        query = _visit_query(db, link, start_date, end_date)
        total = query.count()

        return {
            "total_clicks": total,
            "clicks_over_time": time_series(query, group_by),
            "devices": breakdown(query, Visit.device_type, "unknown", "device", total, limit=None),
            "countries": breakdown(query, Visit.country, "unknown", "country", total),
            "cities": breakdown(query, Visit.city, "unknown", "city", total),
            "referrers": breakdown(query, Visit.referrer, "direct", "referrer", total),
            "filters": {"start_date": start_date, "end_date": end_date, "group_by": group_by},
        }

    @staticmethod
    def visits(
        db: Session,
        link: Link,
        page: int = 1,
        limit: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[List[Dict[str, Any]], int, int, int]:
        """Returns (visits, total_count, page, limit), newest first."""
        _check_range(start_date, end_date)
        page, limit, offset = clamp_pagination(page, limit)

        query = _visit_query(db, link, start_date, end_date)
        total = query.count()
        visits = (
            query.order_by(Visit.visited_at.desc(), Visit.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [serialize_visit(v) for v in visits], total, page, limit

    @staticmethod
    def export(db: Session, link: Link, fmt: str = "csv") -> Tuple[str, str, str]:
        """
        Full visit history as a file.

        Returns:
            (content, media_type, filename)
        """
        fmt = (fmt or "csv").lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError("Format must be 'csv' or 'json'")

        visits = [
            serialize_visit(v)
            for v in link_visits(db, link)
            .order_by(Visit.visited_at.desc(), Visit.id.desc())
        ]
        stamp = utc_now().strftime("%Y%m%d")
        filename = f"{link.short_id}-visits-{stamp}.{fmt}"

        if fmt == "json":
            document = {
                "shortId": link.short_id,
                "redirectURL": link.destination,
                "exportedAt": utc_now().isoformat(),
                "totalVisits": len(visits),
                "visits": [
                    {
                        "timestamp": v["timestamp"].isoformat() if v["timestamp"] else None,
                        "country": v["country"],
                        "city": v["city"],
                        "deviceType": v["device_type"],
                        "referrer": v["referrer"],
                        "visitorIP": v["visitor_ip"],
                        "userAgent": v["user_agent"],
                    }
                    for v in visits
                ],
            }
            return json.dumps(document, indent=2), "application/json", filename

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for v in visits:
            writer.writerow([
                v["timestamp"].isoformat() if v["timestamp"] else "",
                v["country"] or "",
                v["city"] or "",
                v["device_type"],
                v["referrer"],
                v["visitor_ip"] or "",
                v["user_agent"] or "",
            ])
        return buffer.getvalue(), "text/csv", filename

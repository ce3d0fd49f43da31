from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..auth import get_client_ip
from ..config import settings
from ..database import get_db, get_session_factory
from ..services.redirects import VisitorInfo, record_visit, resolve_link

router = APIRouter(tags=["redirect"])


@router.get("/{short_id}")
async def redirect_to_destination(
    short_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """
    Send the visitor to the link's destination.

    The visit is stored after the response has been sent, so a slow
    geolocation lookup or a failed write never delays or breaks the redirect.
    """
    link = resolve_link(db, short_id)

    visitor = VisitorInfo(
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
    background_tasks.add_task(record_visit, session_factory, link.id, link.owner_id, visitor)

    return RedirectResponse(url=link.destination, status_code=settings.REDIRECT_STATUS_CODE)

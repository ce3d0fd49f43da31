import math
import re
import secrets
import string
from urllib.parse import urlparse
from typing import Optional, Iterable, List, Tuple
from datetime import date, datetime, time, timezone
from user_agents import parse as parse_user_agent  # type: ignore
from .config import settings

# URL-safe alphabet (same characters nanoid uses)
SHORT_ID_ALPHABET = string.ascii_letters + string.digits + "_-"

DEVICE_TYPES = ("desktop", "mobile", "tablet", "tv", "bot", "unknown")

BOT_PATTERN = re.compile(r"bot|crawler|spider|scraper|slurp|headless", re.IGNORECASE)
TV_PATTERN = re.compile(
    r"smart-?tv|googletv|appletv|hbbtv|netcast|roku|crkey|aftb|aftm|bravia|viera|tizen.+tv|web0s|webos.+tv",
    re.IGNORECASE,
)
SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z\d+\-.]*://")


def generate_short_id(length: Optional[int] = None) -> str:
    """Generate a random URL-safe short id."""
    if length is None:
        length = settings.SHORT_ID_LENGTH
    return ''.join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(length))


def normalize_destination(url: str) -> str:
    """Trim a destination and prepend https:// when it has no scheme."""
    trimmed = url.strip()
    if SCHEME_PATTERN.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def is_http_url(url: Optional[str]) -> bool:
    """True for absolute http/https URLs with a host."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


def extract_domain(url: str) -> Optional[str]:
    """Extract domain from URL."""
    try:
        parsed = urlparse(url)
        return parsed.netloc.lower()
    except ValueError:
        return None


def detect_device_type(user_agent_string: Optional[str]) -> str:
    """Classify a user agent: bot first, then mobile, tablet, TV, else desktop."""
    if not user_agent_string:
        return "unknown"

    try:
        user_agent = parse_user_agent(user_agent_string)
    except Exception:
        return "unknown"

    if user_agent.is_bot or BOT_PATTERN.search(user_agent_string):
        return "bot"
    elif user_agent.is_mobile:
        return "mobile"
    elif user_agent.is_tablet:
        return "tablet"
    elif TV_PATTERN.search(user_agent_string):
        return "tv"
    return "desktop"


def referrer_origin(referrer: Optional[str]) -> Optional[str]:
    """Reduce a referrer URL to scheme://host[:port]."""
    if not referrer:
        return None

    try:
        parsed = urlparse(referrer)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    origin = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"
    return origin[:255]


def format_short_url(short_id: str) -> str:
    """Format a short id into a full public URL."""
    base = settings.BASE_URL.rstrip('/')
    return f"{base}/r/{short_id}"


def utc_now() -> datetime:
    """Return timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC (assume naive is UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def day_range(
    start: Optional[date], end: Optional[date]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Turn an inclusive day range into UTC datetime bounds."""
    start_dt = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
    end_dt = datetime.combine(end, time.max, tzinfo=timezone.utc) if end else None
    return start_dt, end_dt


def clamp_pagination(page: int, limit: Optional[int]) -> Tuple[int, int, int]:
    """Return (page, limit, offset) with page >= 1 and 1 <= limit <= MAX_PAGE_SIZE."""
    page = max(1, page)
    if limit is None:
        limit = settings.DEFAULT_PAGE_SIZE
    limit = min(settings.MAX_PAGE_SIZE, max(1, limit))
    return page, limit, (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_count": total,
        "limit": limit,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def apportion_percentages(counts: Iterable[int], total: int) -> List[int]:
    """
    Rounded percentages of total for each count.

    Each value is round(count / total * 100), halves rounding up. Only when
    those sum above 100 is the excess taken back, one point at a time, from
    the rounded-up values with the smallest remainder (later buckets first on
    a tie). All zeros when total is 0.
    """
    counts = list(counts)
    if total <= 0:
        return [0 for _ in counts]

    exact = [c * 100 / total for c in counts]
    rounded = [math.floor(x + 0.5) for x in exact]
    excess = sum(rounded) - 100
    if excess <= 0:
        return rounded

    rounded_up = [i for i in range(len(exact)) if rounded[i] > exact[i]]
    rounded_up.sort(key=lambda i: (exact[i] - math.floor(exact[i]), -i))
    for i in rounded_up[:excess]:
        rounded[i] -= 1
    return rounded

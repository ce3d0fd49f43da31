from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Generic, List, Literal, Optional, TypeVar
from datetime import date, datetime
from .utils import format_short_url, normalize_utc
from .security import is_valid_email

T = TypeVar("T")


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: bool
    redis: bool
    version: str


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class Page(CamelModel, Generic[T]):
    data: List[T]
    pagination: Pagination


# --- Users & auth -----------------------------------------------------------

def _clean_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not is_valid_email(value):
        raise ValueError("Invalid email format")
    return value


class SignupRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _clean_email(v)


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return None if v is None else _clean_email(v)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str = Field(..., min_length=1)


class DeleteAccountRequest(CamelModel):
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    message: str
    user: UserResponse


# --- Links ------------------------------------------------------------------

class LinkCreate(CamelModel):
    """Request schema for creating a short link."""

    redirect_url: str = Field(..., alias="redirectURL", description="Destination URL")
    custom_short_id: Optional[str] = Field(None, description="Custom short id (optional)")
    title: Optional[str] = Field(None, max_length=200)
    folder_id: Optional[int] = None
    is_active: bool = True
    expiration_date: Optional[datetime] = None
    never_expire: bool = False

    @field_validator("custom_short_id", "title")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("expiration_date")
    @classmethod
    def to_utc(cls, v):
        return normalize_utc(v)


class LinkUpdate(CamelModel):
    """
    Partial update. Only fields present in the request body are applied;
    an explicit null clears title, folder and expiration.
    """

    title: Optional[str] = Field(None, max_length=200)
    redirect_url: Optional[str] = Field(None, alias="redirectURL")
    new_short_id: Optional[str] = None
    folder_id: Optional[int] = None
    is_active: Optional[bool] = None
    expiration_date: Optional[datetime] = None
    never_expire: Optional[bool] = None

    @field_validator("expiration_date")
    @classmethod
    def to_utc(cls, v):
        return normalize_utc(v)


class LinkStatusUpdate(CamelModel):
    is_active: bool


class FolderRef(CamelModel):
    id: int
    name: str


class LinkResponse(CamelModel):
    """Response schema for a short link."""

    id: int
    short_id: str
    title: Optional[str] = None
    redirect_url: str = Field(..., alias="redirectURL")
    short_url: str
    folder_id: Optional[int] = None
    folder: Optional[FolderRef] = None
    is_active: bool
    expiration_date: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_link(cls, link) -> "LinkResponse":
        folder = link.folder
        return cls(
            id=link.id,
            short_id=link.short_id,
            title=link.title,
            redirect_url=link.destination,
            short_url=format_short_url(link.short_id),
            folder_id=link.folder_id,
            folder=FolderRef(id=folder.id, name=folder.name) if folder is not None and not folder.is_deleted else None,
            is_active=link.is_active,
            expiration_date=link.expires_at,
            is_deleted=link.is_deleted,
            deleted_at=link.deleted_at,
            created_at=link.created_at,
            updated_at=link.updated_at,
        )


class LinkStatusResponse(CamelModel):
    message: str
    is_active: bool


# --- Folders ----------------------------------------------------------------

class FolderCreate(CamelModel):
    name: str
    description: Optional[str] = Field(None, max_length=500)


class FolderUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)


class FolderResponse(CamelModel):
    id: int
    name: str
    description: str = ""
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    total_urls: Optional[int] = None
    active_urls: Optional[int] = None


class FolderDetailResponse(CamelModel):
    folder: FolderResponse
    urls: List[LinkResponse]
    pagination: Pagination


class FolderDeleteResponse(CamelModel):
    message: str
    orphaned_urls: int


class RemoveUrlsRequest(CamelModel):
    url_ids: List[int] = Field(..., min_length=1, max_length=500)


class RemoveUrlsResponse(CamelModel):
    message: str
    removed_count: int


# --- Recycle bin ------------------------------------------------------------

ItemType = Literal["url", "folder"]


class RecycleBinItem(CamelModel):
    id: int
    type: ItemType
    deleted_at: Optional[datetime] = None
    created_at: datetime
    short_id: Optional[str] = None
    title: Optional[str] = None
    redirect_url: Optional[str] = Field(None, alias="redirectURL")
    short_url: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class RecycleBinSummary(CamelModel):
    total_urls: int
    total_folders: int
    total: int


class RecycleBinResponse(CamelModel):
    items: List[RecycleBinItem]
    summary: RecycleBinSummary
    pagination: Pagination


class RecycleBinAction(CamelModel):
    item_id: int
    item_type: ItemType


# --- Analytics --------------------------------------------------------------

class LinkOverview(CamelModel):
    id: int
    title: Optional[str] = None
    short_id: str
    short_url: str
    redirect_url: str = Field(..., alias="redirectURL")
    is_active: bool
    folder: Optional[FolderRef] = None
    expiration_date: Optional[datetime] = None
    total_clicks: int
    created_at: datetime
    updated_at: datetime


class TimePoint(CamelModel):
    date: str
    count: int


class DeviceStat(CamelModel):
    device: str
    count: int
    percentage: int


class CountryStat(CamelModel):
    country: str
    count: int
    percentage: int


class CityStat(CamelModel):
    city: str
    count: int
    percentage: int


class ReferrerStat(CamelModel):
    referrer: str
    count: int
    percentage: int


class DateFilters(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    group_by: Optional[str] = None


class ChartsResponse(CamelModel):
    total_clicks: int
    clicks_over_time: List[TimePoint]
    devices: List[DeviceStat]
    countries: List[CountryStat]
    cities: List[CityStat]
    referrers: List[ReferrerStat]
    filters: DateFilters


class VisitResponse(CamelModel):
    id: int
    timestamp: datetime
    country: Optional[str] = None
    city: Optional[str] = None
    device_type: str
    referrer: str
    visitor_ip: Optional[str] = Field(None, alias="visitorIP")
    user_agent: Optional[str] = None


class VisitPage(Page[VisitResponse]):
    filters: DateFilters


# --- Admin ------------------------------------------------------------------

class DailyVisits(CamelModel):
    date: str
    visits: int


class MonthlyCount(CamelModel):
    month: str
    count: int


class CountryVisits(CamelModel):
    name: str
    visits: int


class TopLink(CamelModel):
    id: int
    short_id: str
    redirect_url: str = Field(..., alias="redirectURL")
    owner_email: Optional[str] = None
    visits: int


class DashboardResponse(CamelModel):
    users: dict
    urls: dict
    recent_users: List[UserResponse]
    top_urls: List[TopLink]
    daily_stats: List[DailyVisits]


class MonthlyGrowth(CamelModel):
    urls: List[MonthlyCount]
    users: List[MonthlyCount]


class SystemStatsResponse(CamelModel):
    users: dict
    urls: dict
    daily_activity: List[DailyVisits]
    monthly_growth: MonthlyGrowth
    top_countries: List[CountryVisits]


class AdminUserUpdate(CamelModel):
    role: Optional[Literal["user", "admin"]] = None
    is_active: Optional[bool] = None
    name: Optional[str] = Field(None, max_length=100)


class AdminLinkResponse(LinkResponse):
    owner_id: int
    owner_email: Optional[str] = None

    @classmethod
    def from_link(cls, link) -> "AdminLinkResponse":
        base = LinkResponse.from_link(link).model_dump()
        return cls(
            **base,
            owner_id=link.owner_id,
            owner_email=link.owner.email if link.owner is not None else None,
        )


class AdminUserDetail(CamelModel):
    user: UserResponse
    url_stats: dict
    recent_urls: List[LinkResponse]
    folders: List[FolderResponse]


class AdminLinkAnalytics(CamelModel):
    visits: List[TimePoint]
    devices: List[DeviceStat]
    referrers: List[ReferrerStat]
    countries: List[CountryStat]


class AdminLinkDetail(CamelModel):
    url: AdminLinkResponse
    analytics: AdminLinkAnalytics


class AdminLinkUpdate(CamelModel):
    is_active: Optional[bool] = None
    is_deleted: Optional[bool] = None
    redirect_url: Optional[str] = Field(None, alias="redirectURL")

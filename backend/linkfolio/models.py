from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, BigInteger, Index,
    ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from .database import Base
from .utils import utc_now

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base):
    """Registered account; owns links and folders."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_USER)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    links = relationship("Link", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    folders = relationship("Folder", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Folder(Base):
    """Named container for links. Membership lives on Link.folder_id."""

    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    # Lowercased name while active, NULL while in the recycle bin
    name_key = Column(String(50), nullable=True)
    description = Column(String(500), nullable=False, default="")
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    owner = relationship("User", back_populates="folders")
    links = relationship("Link", back_populates="folder")

    __table_args__ = (
        UniqueConstraint("owner_id", "name_key", name="uq_folders_owner_name"),
        Index("idx_folders_owner_deleted", "owner_id", "is_deleted"),
    )

    def __repr__(self):
        return f"<Folder(id={self.id}, name={self.name}, deleted={self.is_deleted})>"


class Link(Base):
    """Model for storing shortened links."""

    __tablename__ = "links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    short_id = Column(String(20), nullable=False)
    # Lowercased short_id; the unique index makes aliases case-insensitive
    short_id_key = Column(String(20), unique=True, nullable=False, index=True)
    title = Column(String(200), nullable=True)
    destination = Column(Text, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    owner = relationship("User", back_populates="links")
    folder = relationship("Folder", back_populates="links")

    __table_args__ = (
        Index("idx_links_owner_deleted", "owner_id", "is_deleted"),
        Index("idx_links_created_at", "created_at"),
        # ids of purged links are never reused
        {"sqlite_autoincrement": True},
    )

    def __repr__(self):
        return f"<Link(short_id={self.short_id}, url={self.destination[:50]}...)>"


class Visit(Base):
    """One recorded redirect. Append-only."""

    __tablename__ = "visits"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    link_id = Column(Integer, nullable=False, index=True)
    # Visits outlive a purged link and are removed with the owner's account
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    visitor_ip = Column(String(45), nullable=True)
    device_type = Column(String(20), nullable=True)  # desktop, mobile, tablet, tv, bot, unknown
    user_agent = Column(String(500), nullable=True)
    referrer = Column(String(255), nullable=True)  # origin only
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    visited_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_visits_link_visited", "link_id", "visited_at"),
        Index("idx_visits_owner_link", "owner_id", "link_id"),
    )

    def __repr__(self):
        return f"<Visit(link_id={self.link_id}, at={self.visited_at})>"

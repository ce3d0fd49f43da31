from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import Folder, Link, User, Visit, ROLE_USER
from ..security import hash_password, verify_password

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


class UserService:
    """Accounts, credentials and profile management."""

    @staticmethod
    def signup(db: Session, name: str, email: str, password: str, role: str = ROLE_USER) -> User:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if get_user_by_email(db, email):
            raise ConflictError("Email is already registered")

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=hash_password(password),
            role=role,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email is already registered")

        db.refresh(user)
        logger.info(f"Registered user {user.id} ({user.email})")
        return user

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User:
        """Check credentials. Unknown email and wrong password look the same."""
        user = get_user_by_email(db, email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        if not user.is_active:
            raise PermissionDeniedError("Account is inactive")
        return user

    @staticmethod
    def update_profile(
        db: Session,
        user: User,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        if name is None and email is None:
            raise ValidationError("At least one field (name or email) is required")

        if email is not None and email != user.email:
            existing = get_user_by_email(db, email)
            if existing and existing.id != user.id:
                raise ConflictError("Email is already in use")
            user.email = email

        if name is not None:
            user.name = name

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email is already in use")

        db.refresh(user)
        logger.info(f"Updated profile of user {user.id}")
        return user

    @staticmethod
    def change_password(
        db: Session,
        user: User,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        if new_password != confirm_password:
            raise ValidationError("New password and confirm password do not match")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if new_password == current_password:
            raise ValidationError("New password must be different from current password")
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = hash_password(new_password)
        db.commit()
        logger.info(f"Password changed for user {user.id}")

    @staticmethod
    def delete_account(db: Session, user: User, password: str) -> None:
        """
        Delete the account with its links, folders and every visit recorded
        for it, including visits of links already purged.
        Everything goes in a single transaction.
        """
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Incorrect password")

        user_id = user.id
        try:
            db.query(Visit).filter(Visit.owner_id == user_id).delete(synchronize_session=False)
            db.query(Link).filter(Link.owner_id == user_id).delete(synchronize_session=False)
            db.query(Folder).filter(Folder.owner_id == user_id).delete(synchronize_session=False)
            db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(f"Failed to delete account {user_id}")
            raise

        logger.info(f"Deleted account {user_id}")

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import clear_session_cookies, get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    ErrorResponse,
    MessageResponse,
    ProfileUpdate,
    UserResponse,
)
from ..services.users import UserService

router = APIRouter(tags=["user"])


@router.get("/profile", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch(
    "/profile",
    response_model=UserResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change name and/or email."""
    return UserService.update_profile(db, user, name=data.name, email=data.email)


@router.patch(
    "/change-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def change_password(
    data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    UserService.change_password(
        db,
        user,
        current_password=data.current_password,
        new_password=data.new_password,
        confirm_password=data.confirm_password,
    )
    return MessageResponse(message="Password changed successfully")


@router.delete(
    "/account",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
)
async def delete_account(
    data: DeleteAccountRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete the account and everything it owns, then end the session."""
    UserService.delete_account(db, user, data.password)
    clear_session_cookies(response)
    return MessageResponse(message="Account deleted successfully")

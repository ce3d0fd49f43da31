from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import (
    REFRESH_COOKIE,
    clear_session_cookies,
    get_client_ip,
    get_current_user,
    set_access_cookie,
    set_session_cookies,
)
from ..config import settings
from ..database import get_db
from ..errors import AuthenticationError
from ..logging_config import get_logger
from ..models import User
from ..redis_client import RedisService
from ..schemas import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserResponse,
)
from ..services.users import UserService
from ..tokens import TokenService, get_token_service

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """Register a new account."""
    user = UserService.signup(db, data.name, data.email, data.password)
    return AuthResponse(message="Account created successfully", user=UserResponse.model_validate(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Check credentials and start a cookie session."""
    client_ip = get_client_ip(request)
    allowed, _ = RedisService.check_rate_limit(f"login:{client_ip}", settings.LOGIN_RATE_LIMIT_PER_HOUR)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many login attempts. Please try again later.",
            headers={"X-RateLimit-Remaining": "0"},
        )

    try:
        user = UserService.authenticate(db, data.email, data.password)
    except AuthenticationError:
        logger.info(f"Failed login for {data.email} from {client_ip}")
        raise

    set_session_cookies(response, user, tokens)
    logger.info(f"User {user.id} logged in")
    return AuthResponse(message="Login successful", user=UserResponse.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """End the session by clearing both cookies."""
    clear_session_cookies(response)
    return MessageResponse(message="Logout successful")


@router.post(
    "/refresh",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def refresh(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange a valid refresh cookie for a new access cookie."""
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AuthenticationError("Refresh token is required")

    payload = tokens.verify_refresh_token(token)
    user = None
    if payload:
        try:
            user = db.get(User, int(payload["sub"]))
        except (KeyError, TypeError, ValueError):
            user = None

    if not payload or user is None:
        # Cookies have to be cleared on the error response itself
        failed = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Invalid or expired refresh token" if not payload else "User no longer exists"},
        )
        clear_session_cookies(failed)
        return failed

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    set_access_cookie(response, tokens.create_access_token(user), tokens)
    return MessageResponse(message="Access token refreshed successfully")


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Current signed-in user."""
    return user

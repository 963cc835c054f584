from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database.connection import get_db
from services.auth import (
    register_user,
    login_user,
    refresh_tokens,
    logout_user,
    verify_token,
    get_user_by_id
)
from schemas.user import (
    UserLogin,
    UserRegister,
    UserResponse,
    AuthResponse,
    TokenPair,
    RefreshTokenRequest
)
from core.config import settings
from core.middleware import RouteRateLimiter
from core.response import health_response
from models.user import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
security = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

register_rate_limit = RouteRateLimiter(settings.REGISTER_RATE_LIMIT_CALLS, settings.AUTH_RATE_LIMIT_PERIOD, "registration")
login_rate_limit = RouteRateLimiter(settings.LOGIN_RATE_LIMIT_CALLS, settings.AUTH_RATE_LIMIT_PERIOD, "login")

# Dependency to get current user
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> UserResponse:
    """Resolve the bearer token (or access cookie) to the stored user."""
    token = credentials.credentials if credentials and credentials.credentials else request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = verify_token(token)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = get_user_by_id(db, token_data.user_id)
    if user is None:
        logger.warning(f"Token valid but user not found: {token_data.user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.user_id = user.id
    return UserResponse.from_orm(user)

def require_roles(*roles: UserRole):
    """Dependency factory: admins always pass, others must hold one of ``roles``."""
    def dependency(current_user: UserResponse = Depends(get_current_user)) -> UserResponse:
        if current_user.role == UserRole.ADMIN or current_user.role in roles:
            return current_user
        logger.warning(f"User {current_user.id} with role {current_user.role.value} denied access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions"
        )
    return dependency

def _set_token_cookies(response: Response, tokens: TokenPair) -> None:
    secure = settings.ENVIRONMENT == "production"
    response.set_cookie(
        ACCESS_COOKIE, tokens.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True, secure=secure, samesite="strict", path="/"
    )
    response.set_cookie(
        REFRESH_COOKIE, tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True, secure=secure, samesite="strict", path="/"
    )

def _auth_response(user, tokens: TokenPair, message: str) -> AuthResponse:
    return AuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type="bearer",
        user=UserResponse.from_orm(user),
        message=message
    )

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(register_rate_limit)]
)
def register(user_data: UserRegister, response: Response, db: Session = Depends(get_db)):
    """Register a new user and sign them in."""
    logger.info(f"Registration attempt for email: {user_data.email}")

    user, tokens = register_user(
        db,
        email=user_data.email,
        password=user_data.password,
        name=user_data.name,
        role=user_data.role
    )
    _set_token_cookies(response, tokens)

    logger.info(f"User registered successfully: {user.email}")
    return _auth_response(user, tokens, "Registration successful")

@router.post("/login", response_model=AuthResponse, dependencies=[Depends(login_rate_limit)])
def login(user_credentials: UserLogin, response: Response, db: Session = Depends(get_db)):
    """Login user and return a token pair."""
    logger.info(f"Login attempt for email: {user_credentials.email}")

    user, tokens = login_user(db, user_credentials.email, user_credentials.password)
    _set_token_cookies(response, tokens)

    logger.info(f"User logged in successfully: {user.email}")
    return _auth_response(user, tokens, "Login successful")

@router.post("/refresh", response_model=TokenPair)
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = None,
    db: Session = Depends(get_db)
):
    """Exchange a refresh token for a new token pair."""
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Refresh token not provided"
        )

    tokens = refresh_tokens(db, token)
    _set_token_cookies(response, tokens)
    return tokens

@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = None,
    db: Session = Depends(get_db)
):
    """Revoke the refresh token and clear auth cookies."""
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    logout_user(db, token)

    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")
    return {"message": "Logout successful"}

@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: UserResponse = Depends(get_current_user)):
    """Get current user information."""
    return current_user

@router.get("/health")
def auth_health():
    return health_response(
        "auth-service",
        settings.ENVIRONMENT,
        dependencies={"jwt": "healthy" if settings.SECRET_KEY else "warning"}
    )

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database.connection import get_db
from routers.auth import get_current_user, require_roles
from schemas.user import UserCreate, UserUpdate, UserRoleUpdate, UserResponse
from services import user as user_service
from core.config import settings
from core.response import health_response
from models.user import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

# Declared before /{user_id} so it is not captured as an id
@router.get("/health")
def users_health():
    return health_response("user-service", settings.ENVIRONMENT)

@router.get("", response_model=List[UserResponse])
def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    role: Optional[UserRole] = None,
    current_user: UserResponse = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """List users (admin only)."""
    users = user_service.list_users(db, skip=skip, limit=limit, role=role)
    return [UserResponse.from_orm(u) for u in users]

@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    current_user: UserResponse = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Create a user with any role (admin only)."""
    user = user_service.create_user(db, user_data)
    logger.info(f"Admin {current_user.id} created user {user.id}")
    return UserResponse.from_orm(user)

@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UserResponse.from_orm(user_service.get_user(db, user_id, current_user))

@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_data: UserUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UserResponse.from_orm(user_service.update_user(db, user_id, user_data, current_user))

@router.patch("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role_data: UserRoleUpdate,
    current_user: UserResponse = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Change a user's role (admin only, never their own)."""
    user = user_service.update_user_role(db, user_id, role_data.role, current_user)
    return UserResponse.from_orm(user)

@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    current_user: UserResponse = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    user_service.delete_user(db, user_id, current_user)
    return {"message": "User deleted successfully"}

from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional
from datetime import datetime
import logging

from models.user import User, UserRole
from schemas.user import UserCreate, UserUpdate, UserResponse
from services.auth import create_user as create_auth_user, get_user_by_email
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    ResourceNotFoundError,
    BusinessLogicError
)

logger = logging.getLogger(__name__)

def _is_admin(user: UserResponse) -> bool:
    return user.role == UserRole.ADMIN

def list_users(db: Session, skip: int = 0, limit: int = 100,
               role: Optional[UserRole] = None) -> List[User]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(desc(User.created_at)).offset(skip).limit(limit).all()

def get_user(db: Session, user_id: int, current_user: UserResponse) -> User:
    """Fetch a user; non-admins may only read their own record."""
    if not _is_admin(current_user) and current_user.id != user_id:
        raise AuthorizationError("You can only view your own profile")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user

def create_user(db: Session, user_data: UserCreate) -> User:
    """Admin-side creation; any role may be assigned."""
    return create_auth_user(
        db,
        email=user_data.email,
        password=user_data.password,
        name=user_data.name,
        role=user_data.role
    )

def update_user(db: Session, user_id: int, user_data: UserUpdate,
                current_user: UserResponse) -> User:
    """Update profile fields. Only admins may touch another user or a role."""
    if not _is_admin(current_user):
        if current_user.id != user_id:
            raise AuthorizationError("You can only update your own profile")
        if user_data.role is not None:
            raise AuthorizationError("Role can only be changed by an administrator")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User", user_id)

    if user_data.email is not None:
        email = user_data.email.lower().strip()
        existing = get_user_by_email(db, email)
        if existing and existing.id != user.id:
            raise ConflictError("User with this email already exists")
        user.email = email

    if user_data.name is not None:
        user.name = user_data.name

    if user_data.role is not None:
        user.role = user_data.role

    user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} updated by {current_user.id}")
    return user

def update_user_role(db: Session, user_id: int, role: UserRole,
                     current_user: UserResponse) -> User:
    if not _is_admin(current_user):
        raise AuthorizationError("Only administrators can change roles")
    if current_user.id == user_id:
        raise BusinessLogicError("Administrators cannot change their own role")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User", user_id)

    previous = user.role
    user.role = role
    user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    logger.info(f"Role of user {user.id} changed from {UserRole(previous).value} to {role.value} by {current_user.id}")
    return user

def delete_user(db: Session, user_id: int, current_user: UserResponse) -> None:
    if not _is_admin(current_user):
        raise AuthorizationError("Only administrators can delete users")
    if current_user.id == user_id:
        raise BusinessLogicError("Administrators cannot delete their own account")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User", user_id)

    db.delete(user)
    db.commit()
    logger.info(f"User {user_id} deleted by {current_user.id}")

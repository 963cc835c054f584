from pydantic import BaseModel, EmailStr, validator, Field
from typing import Optional
from datetime import datetime
from models.user import UserRole
from core.validators import validate_password_strength

def _check_password(v):
    is_valid, errors = validate_password_strength(v)
    if not is_valid:
        raise ValueError("; ".join(errors))
    return v

def _check_name(v):
    if not v or len(v.strip()) < 2:
        raise ValueError('Name must be at least 2 characters long')
    return v.strip()

# Base User Schema
class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)

# User Registration Schema
class UserRegister(UserBase):
    password: str = Field(..., max_length=128)
    role: Optional[UserRole] = None

    @validator('name')
    def validate_name(cls, v):
        return _check_name(v)

    @validator('password')
    def validate_password(cls, v):
        return _check_password(v)

# Admin-side user creation
class UserCreate(UserRegister):
    pass

# Profile update; role changes go through UserRoleUpdate
class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None

    @validator('name')
    def validate_name(cls, v):
        if v is None:
            return v
        return _check_name(v)

class UserRoleUpdate(BaseModel):
    role: UserRole

# User Login Schema
class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

# Refresh / logout payload; the cookie is used when the body omits it
class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None

# User Response Schema
class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: UserRole
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# Token Schemas
class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class AuthResponse(TokenPair):
    user: UserResponse
    message: str

# Token Data Schema
class TokenData(BaseModel):
    user_id: int
    email: Optional[str] = None
    role: Optional[UserRole] = None

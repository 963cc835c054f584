from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship
from database.base import Base
import enum

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    DELIVERY_PERSON = "delivery_person"
    MERCHANT = "merchant"
    LOGISTICS_TECHNICIAN = "logistics_technician"

# Feature access per role
ROLE_PERMISSIONS = {
    UserRole.ADMIN: {
        "can_access_user_management": True,
        "can_access_global_stats": True,
        "can_access_inventory_management": True,
        "can_access_order_management": True,
        "can_access_delivery_management": True,
        "can_access_reports": True,
        "can_modify_user_roles": True,
    },
    UserRole.LOGISTICS_TECHNICIAN: {
        "can_access_user_management": False,
        "can_access_global_stats": True,
        "can_access_inventory_management": True,
        "can_access_order_management": False,
        "can_access_delivery_management": True,
        "can_access_reports": True,
        "can_modify_user_roles": False,
    },
    UserRole.MERCHANT: {
        "can_access_user_management": False,
        "can_access_global_stats": False,
        "can_access_inventory_management": True,
        "can_access_order_management": True,
        "can_access_delivery_management": False,
        "can_access_reports": False,
        "can_modify_user_roles": False,
    },
    UserRole.DELIVERY_PERSON: {
        "can_access_user_management": False,
        "can_access_global_stats": False,
        "can_access_inventory_management": False,
        "can_access_order_management": False,
        "can_access_delivery_management": True,
        "can_access_reports": False,
        "can_modify_user_roles": False,
    },
}

ROLE_DISPLAY_NAMES = {
    UserRole.ADMIN: "Administrator",
    UserRole.LOGISTICS_TECHNICIAN: "Logistics Technician",
    UserRole.MERCHANT: "Merchant",
    UserRole.DELIVERY_PERSON: "Delivery Person",
}

def is_valid_role(role) -> bool:
    """True only for the exact value of a defined role."""
    if not isinstance(role, str):
        return False
    return role in {r.value for r in UserRole}

def has_permission(role: UserRole, permission: str) -> bool:
    return ROLE_PERMISSIONS.get(UserRole(role), {}).get(permission, False)

def get_role_display_name(role) -> str:
    if not is_valid_role(role):
        return "User"
    return ROLE_DISPLAY_NAMES[UserRole(role)]

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.DELIVERY_PERSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")
    orders_as_merchant = relationship("Order", back_populates="merchant", foreign_keys="Order.merchant_id")
    orders_as_delivery_person = relationship("Order", back_populates="delivery_person", foreign_keys="Order.delivery_person_id")

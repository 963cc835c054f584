from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database.connection import get_db
from routers.auth import get_current_user, require_roles
from schemas.user import UserResponse
from schemas.order import OrderCreate, OrderUpdate, OrderResponse, OrdersListResponse
from models.order import OrderStatus, OrderPriority
from models.user import UserRole
from services import order as order_service
from core.config import settings
from core.response import health_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])

# Static paths are declared before /{order_id}
@router.get("/health")
def orders_health():
    return health_response("order-service", settings.ENVIRONMENT)

@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@router.post("/create", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    current_user: UserResponse = Depends(require_roles(UserRole.MERCHANT)),
    db: Session = Depends(get_db)
):
    """Create a new delivery order (merchants only)."""
    order = order_service.create_order(db, order_data, current_user)
    return order_service.to_response(order)

@router.get("/all", response_model=OrdersListResponse)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    priority: Optional[OrderPriority] = None,
    merchant_id: Optional[int] = None,
    delivery_person_id: Optional[int] = None,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List orders visible to the current user."""
    orders, total = order_service.list_orders(
        db,
        current_user,
        page=page,
        limit=limit,
        status=status,
        priority=priority,
        merchant_id=merchant_id,
        delivery_person_id=delivery_person_id
    )
    return OrdersListResponse(
        orders=[order_service.to_response(o) for o in orders],
        total=total,
        page=page,
        limit=limit
    )

@router.get("/available", response_model=List[OrderResponse])
def available_orders(
    current_user: UserResponse = Depends(require_roles(UserRole.DELIVERY_PERSON)),
    db: Session = Depends(get_db)
):
    """Pending orders not yet assigned to anyone."""
    orders = order_service.get_available_orders(db, current_user)
    return [order_service.to_response(o) for o in orders]

@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return order_service.to_response(order_service.get_order(db, order_id, current_user))

@router.patch("/{order_id}", response_model=OrderResponse)
@router.put("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    order_data: OrderUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update order details or status."""
    order = order_service.update_order(db, order_id, order_data, current_user)
    return order_service.to_response(order)

@router.post("/{order_id}/accept", response_model=OrderResponse)
def accept_order(
    order_id: int,
    current_user: UserResponse = Depends(require_roles(UserRole.DELIVERY_PERSON)),
    db: Session = Depends(get_db)
):
    order = order_service.accept_order(db, order_id, current_user)
    return order_service.to_response(order)

@router.delete("/{order_id}", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel an order. Orders are kept for history."""
    order = order_service.cancel_order(db, order_id, current_user)
    return order_service.to_response(order)

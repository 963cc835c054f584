from sqlalchemy.orm import Session
from sqlalchemy import asc, desc
from typing import List, Optional, Tuple
from datetime import datetime
import logging

from models.order import Order, OrderStatus, can_transition
from models.user import User, UserRole
from schemas.order import OrderCreate, OrderUpdate, OrderResponse
from schemas.user import UserResponse
from core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    ResourceNotFoundError,
    ValidationError
)

logger = logging.getLogger(__name__)

# Fields a delivery person is allowed to send on update
DELIVERY_PERSON_FIELDS = {"status", "delivery_person_id"}

def to_response(order: Order) -> OrderResponse:
    return OrderResponse.from_orm(order)

def create_order(db: Session, order_data: OrderCreate, merchant: UserResponse) -> Order:
    """Create a pending order owned by the calling merchant."""
    if merchant.role != UserRole.MERCHANT:
        raise AuthorizationError("Only merchants can create orders")

    data = order_data.dict()
    order = Order(
        merchant_id=merchant.id,
        customer_name=data["customer_name"],
        customer_phone=data.get("customer_phone"),
        delivery_address=data["delivery_address"],
        delivery_coordinates=data.get("delivery_coordinates"),
        scheduled_delivery_time=data["scheduled_delivery_time"],
        status=OrderStatus.PENDING,
        priority=order_data.priority,
        notes=data.get("notes"),
        estimated_delivery_duration=data.get("estimated_delivery_duration"),
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(order)
        db.commit()
        db.refresh(order)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating order for merchant {merchant.id}: {str(e)}")
        raise

    logger.info(f"Order {order.id} created by merchant {merchant.id} with priority {order.priority.value}")
    return order

def list_orders(
    db: Session,
    current_user: UserResponse,
    page: int = 1,
    limit: int = 20,
    status: Optional[OrderStatus] = None,
    priority=None,
    merchant_id: Optional[int] = None,
    delivery_person_id: Optional[int] = None
) -> Tuple[List[Order], int]:
    """Orders visible to the caller, scheduled time first then most urgent."""
    query = db.query(Order)

    if current_user.role == UserRole.MERCHANT:
        query = query.filter(Order.merchant_id == current_user.id)
    elif current_user.role == UserRole.DELIVERY_PERSON:
        query = query.filter(Order.delivery_person_id == current_user.id)

    filters_given = any(v is not None for v in (status, priority, merchant_id, delivery_person_id))
    if current_user.role == UserRole.ADMIN:
        if status:
            query = query.filter(Order.status == status)
        if priority:
            query = query.filter(Order.priority == priority)
        if merchant_id is not None:
            query = query.filter(Order.merchant_id == merchant_id)
        if delivery_person_id is not None:
            query = query.filter(Order.delivery_person_id == delivery_person_id)
    elif filters_given:
        logger.info(f"Ignoring list filters from non-admin user {current_user.id}")

    total = query.count()
    orders = (
        query.order_by(asc(Order.scheduled_delivery_time), desc(Order.priority_rank()))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return orders, total

def get_available_orders(db: Session, current_user: UserResponse) -> List[Order]:
    """Pending orders nobody has taken yet, most urgent first."""
    if current_user.role not in (UserRole.DELIVERY_PERSON, UserRole.ADMIN):
        raise AuthorizationError("Only delivery persons can view available orders")

    return (
        db.query(Order)
        .filter(Order.status == OrderStatus.PENDING, Order.delivery_person_id.is_(None))
        .order_by(desc(Order.priority_rank()), asc(Order.scheduled_delivery_time))
        .all()
    )

def _can_view(order: Order, user: UserResponse) -> bool:
    if user.role in (UserRole.ADMIN, UserRole.LOGISTICS_TECHNICIAN):
        return True
    if user.role == UserRole.MERCHANT:
        return order.merchant_id == user.id
    # Delivery persons see their own orders and the open pool
    return order.delivery_person_id == user.id or (
        order.delivery_person_id is None and order.status == OrderStatus.PENDING
    )

def get_order(db: Session, order_id: int, current_user: UserResponse) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ResourceNotFoundError("Order", order_id)
    if not _can_view(order, current_user):
        raise AuthorizationError("You do not have access to this order")
    return order

def _apply_status(order: Order, new_status: OrderStatus) -> None:
    current = OrderStatus(order.status)
    if not can_transition(current, new_status):
        raise BusinessLogicError(
            f"Invalid status transition from {current.value} to {new_status.value}",
            details={"current_status": current.value, "requested_status": new_status.value}
        )
    if current == OrderStatus.PENDING and new_status not in (OrderStatus.PENDING, OrderStatus.CANCELLED) \
            and order.delivery_person_id is None:
        raise BusinessLogicError("An order must be assigned to a delivery person before it can progress")
    order.status = new_status

def _check_delivery_person(db: Session, delivery_person_id: int) -> None:
    user = db.query(User).filter(User.id == delivery_person_id).first()
    if not user or user.role != UserRole.DELIVERY_PERSON:
        raise ValidationError("Assigned user must be a delivery person", field="delivery_person_id")

def update_order(db: Session, order_id: int, order_data: OrderUpdate,
                 current_user: UserResponse) -> Order:
    """Partial update with role-based field restrictions and status rules."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ResourceNotFoundError("Order", order_id)

    update_data = order_data.dict(exclude_unset=True)

    if current_user.role == UserRole.LOGISTICS_TECHNICIAN:
        raise AuthorizationError("Logistics technicians cannot modify orders")

    if current_user.role == UserRole.MERCHANT:
        if order.merchant_id != current_user.id:
            raise AuthorizationError("You can only update your own orders")
        if "delivery_person_id" in update_data:
            raise AuthorizationError("Merchants cannot assign delivery persons")

    if current_user.role == UserRole.DELIVERY_PERSON:
        forbidden = set(update_data) - DELIVERY_PERSON_FIELDS
        if forbidden:
            raise AuthorizationError(
                "Delivery persons can only update status and assignment",
                details={"fields": sorted(forbidden)}
            )
        self_assigning = (
            order.delivery_person_id is None
            and order.status == OrderStatus.PENDING
            and update_data.get("delivery_person_id") == current_user.id
        )
        if order.delivery_person_id != current_user.id and not self_assigning:
            raise AuthorizationError("You can only update orders assigned to you")
        if "delivery_person_id" in update_data and update_data["delivery_person_id"] != current_user.id:
            raise AuthorizationError("Delivery persons can only assign orders to themselves")

    # Assignment first so a pending order can be assigned and accepted in one call
    if "delivery_person_id" in update_data:
        new_assignee = update_data.pop("delivery_person_id")
        if new_assignee is not None:
            _check_delivery_person(db, new_assignee)
        elif OrderStatus(order.status) != OrderStatus.PENDING:
            raise BusinessLogicError("Only pending orders can be unassigned")
        order.delivery_person_id = new_assignee

    new_status = update_data.pop("status", None)
    if new_status is not None:
        _apply_status(order, OrderStatus(new_status))

    for field, value in update_data.items():
        setattr(order, field, value)

    order.updated_at = datetime.utcnow()
    try:
        db.commit()
        db.refresh(order)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating order {order_id}: {str(e)}")
        raise

    logger.info(f"Order {order.id} updated by user {current_user.id}, status={order.status.value}")
    return order

def accept_order(db: Session, order_id: int, delivery_person: UserResponse) -> Order:
    """Assign a pending, unassigned order to the calling delivery person."""
    if delivery_person.role != UserRole.DELIVERY_PERSON:
        raise AuthorizationError("Only delivery persons can accept orders")

    order = db.query(Order).filter(
        Order.id == order_id,
        Order.status == OrderStatus.PENDING,
        Order.delivery_person_id.is_(None)
    ).first()
    if not order:
        raise ResourceNotFoundError("Available order", order_id)

    order.delivery_person_id = delivery_person.id
    order.status = OrderStatus.ACCEPTED
    order.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(order)

    logger.info(f"Order {order.id} accepted by delivery person {delivery_person.id}")
    return order

def cancel_order(db: Session, order_id: int, current_user: UserResponse) -> Order:
    """Orders are never removed; deleting one cancels it."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ResourceNotFoundError("Order", order_id)

    if current_user.role != UserRole.ADMIN:
        if current_user.role != UserRole.MERCHANT or order.merchant_id != current_user.id:
            raise AuthorizationError("Only the owning merchant or an administrator can cancel this order")

    _apply_status(order, OrderStatus.CANCELLED)
    order.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(order)

    logger.info(f"Order {order.id} cancelled by user {current_user.id}")
    return order

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum, JSON, case
from sqlalchemy.orm import relationship
from database.base import Base
import enum

class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class OrderPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

# Forward progression of an order; cancellation sits outside the sequence
STATUS_SEQUENCE = [
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
]

TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

PRIORITY_RANK = {
    OrderPriority.LOW: 0,
    OrderPriority.NORMAL: 1,
    OrderPriority.HIGH: 2,
    OrderPriority.URGENT: 3,
}

def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Whether an order may move from ``current`` to ``new``."""
    current, new = OrderStatus(current), OrderStatus(new)
    if current == new:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if new == OrderStatus.CANCELLED:
        return True
    return STATUS_SEQUENCE.index(new) > STATUS_SEQUENCE.index(current)

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=True)
    delivery_address = Column(String, nullable=False)
    delivery_coordinates = Column(JSON, nullable=True)
    scheduled_delivery_time = Column(DateTime, nullable=False, index=True)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    priority = Column(Enum(OrderPriority), default=OrderPriority.NORMAL, nullable=False, index=True)
    delivery_person_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    estimated_delivery_duration = Column(Integer, nullable=True)  # minutes
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    merchant = relationship("User", back_populates="orders_as_merchant", foreign_keys=[merchant_id])
    delivery_person = relationship("User", back_populates="orders_as_delivery_person", foreign_keys=[delivery_person_id])

    @classmethod
    def priority_rank(cls):
        """SQL expression ranking priorities low < normal < high < urgent."""
        return case(
            *[(cls.priority == priority, rank) for priority, rank in PRIORITY_RANK.items()],
            else_=0
        )

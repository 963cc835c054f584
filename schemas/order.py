from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
from models.order import OrderStatus, OrderPriority
from schemas.geo import Coordinates

MAX_SCHEDULED_YEAR = 3000

def _check_scheduled_time(v):
    if v is not None and v.year > MAX_SCHEDULED_YEAR:
        raise ValueError('Invalid scheduled delivery time')
    return v

# Order creation (merchant)
class OrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: Optional[str] = Field(None, max_length=30)
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_coordinates: Optional[Coordinates] = None
    scheduled_delivery_time: datetime
    priority: OrderPriority = OrderPriority.NORMAL
    notes: Optional[str] = Field(None, max_length=2000)
    estimated_delivery_duration: Optional[int] = Field(None, ge=1)

    @validator('customer_name', 'delivery_address')
    def strip_required(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be blank')
        return v.strip()

    @validator('scheduled_delivery_time')
    def validate_scheduled_time(cls, v):
        return _check_scheduled_time(v)

class OrderUpdate(BaseModel):
    customer_name: Optional[str] = Field(None, min_length=1, max_length=200)
    customer_phone: Optional[str] = Field(None, max_length=30)
    delivery_address: Optional[str] = Field(None, min_length=1, max_length=500)
    delivery_coordinates: Optional[Coordinates] = None
    scheduled_delivery_time: Optional[datetime] = None
    status: Optional[OrderStatus] = None
    priority: Optional[OrderPriority] = None
    delivery_person_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)
    estimated_delivery_duration: Optional[int] = Field(None, ge=1)

    # May be omitted, but never cleared
    @validator('customer_name', 'delivery_address', 'scheduled_delivery_time', 'priority', pre=True)
    def reject_null(cls, v):
        if v is None:
            raise ValueError('Field cannot be null')
        return v

    @validator('customer_name', 'delivery_address')
    def strip_required(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be blank')
        return v.strip()

    @validator('scheduled_delivery_time')
    def validate_scheduled_time(cls, v):
        return _check_scheduled_time(v)

class OrderResponse(BaseModel):
    id: int
    merchant_id: int
    customer_name: str
    customer_phone: Optional[str] = None
    delivery_address: str
    delivery_coordinates: Optional[Coordinates] = None
    scheduled_delivery_time: datetime
    status: OrderStatus
    priority: OrderPriority
    delivery_person_id: Optional[int] = None
    notes: Optional[str] = None
    estimated_delivery_duration: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class OrdersListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int
    limit: int

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from carebook.models.booking import PaymentStatus
from carebook.models.marketplace import OrderStatus


class OrderItemCreate(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    quantity: int


class OrderCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=36)
    items: List[OrderItemCreate]
    shipping_cost: int = 0
    courier: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)


class OrderCancel(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=36)


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_price: int
    quantity: int
    subtotal: int

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    user_id: str
    order_number: str
    subtotal: int
    shipping_cost: int
    admin_fee: int
    total_amount: int
    status: OrderStatus
    payment_status: PaymentStatus
    courier: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderCheckoutResponse(BaseModel):
    order: OrderResponse
    order_payment_id: str
    snap_token: Optional[str] = None
    snap_redirect_url: Optional[str] = None


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int
    limit: int

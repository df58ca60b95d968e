from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from carebook.config.database import get_db
from carebook.models.marketplace import OrderStatus
from carebook.schemas.order import OrderCancel, OrderCheckoutResponse, OrderCreate, OrderListResponse, OrderResponse
from carebook.schemas.payment import PaymentResponse
from carebook.services.midtrans_service import MidtransGateway, get_payment_gateway
from carebook.services.order_service import OrderService
from carebook.utils.validators import unwrap, validate_create_order

router = APIRouter(prefix="/orders", tags=["Orders"])

@router.post("/", response_model=OrderCheckoutResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    order: OrderCreate,
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Reserve stock for the listed products and issue a Snap checkout"""
    unwrap(validate_create_order(order))
    created, payment = OrderService.create_order(db, gateway, order)
    return OrderCheckoutResponse(
        order=OrderResponse.model_validate(created),
        order_payment_id=payment.gateway_order_id,
        snap_token=payment.snap_token,
        snap_redirect_url=payment.snap_redirect_url,
    )

@router.get("/users/{user_id}", response_model=OrderListResponse)
def list_orders(
    user_id: str,
    status: Optional[OrderStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Get a user's orders, newest first"""
    orders, total = OrderService.list_orders(db, user_id, status, page, limit)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )

@router.get("/payments/{order_payment_id}", response_model=PaymentResponse)
def get_order_payment(order_payment_id: str, db: Session = Depends(get_db)):
    """Get an order payment by its gateway order id"""
    return PaymentResponse.from_record(OrderService.get_order_payment(db, order_payment_id))

@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, db: Session = Depends(get_db)):
    """Get order by ID"""
    return OrderResponse.model_validate(OrderService.get_order(db, order_id))

@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    payload: OrderCancel,
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Cancel an unshipped order and restore its stock"""
    return OrderResponse.model_validate(OrderService.cancel_order(db, gateway, payload.user_id, order_id))

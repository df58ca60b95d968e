from urllib.parse import quote
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from carebook.config.database import get_db, settings
from carebook.models.booking import PaymentStatus
from carebook.repositories.payment_repository import BOOKING, MARKETPLACE
from carebook.schemas.payment import CheckoutResponse, NotificationResult, PaymentNotification, PaymentResponse
from carebook.services.midtrans_service import MidtransGateway, get_payment_gateway
from carebook.services.payment_service import PaymentService
from carebook.services.reconciliation import is_marketplace_order_id
from carebook.utils.errors import ValidationError

router = APIRouter(prefix="/payments", tags=["Payments"])

# Midtrans sends the browser back to APP_URL/payment/<outcome>
redirect_router = APIRouter(prefix="/payment", tags=["Payment Redirects"])


def to_checkout(payment) -> CheckoutResponse:
    return CheckoutResponse(
        payment_id=payment.id,
        order_id=payment.gateway_order_id,
        owner_id=payment.owner_id,
        amount=payment.amount,
        status=payment.status,
        snap_token=payment.snap_token,
        snap_redirect_url=payment.snap_redirect_url,
        expiry_time=payment.expiry_time,
    )

@router.post("/create/{booking_id}", response_model=CheckoutResponse)
def create_payment(
    booking_id: str,
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Issue (or re-issue the pending) Snap checkout for a booking"""
    return to_checkout(PaymentService.create_payment(db, gateway, booking_id))

@router.post("/notification", response_model=NotificationResult)
def payment_notification(
    notification: PaymentNotification,
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Midtrans webhook; signature-verified, safe to redeliver"""
    result = PaymentService.handle_notification(db, gateway, notification)
    return NotificationResult(
        order_id=result.gateway_order_id,
        kind=result.kind,
        payment_status=result.payment_status,
        owner_status=result.owner_status,
    )

@router.get("/status/{order_id}", response_model=PaymentResponse)
def get_payment_status(
    order_id: str,
    refresh: bool = Query(False, description="Re-read the gateway and reconcile before answering"),
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Get payment state by gateway order id"""
    return PaymentResponse.from_record(PaymentService.get_payment_status(db, gateway, order_id, refresh))

@router.get("/booking/{booking_id}", response_model=PaymentResponse)
def get_payment_by_booking(booking_id: str, db: Session = Depends(get_db)):
    """Get the payment attached to a booking"""
    return PaymentResponse.from_record(PaymentService.get_payment_by_booking(db, booking_id))

@router.get("/history/{user_id}", response_model=List[PaymentResponse])
def get_payment_history(
    user_id: str,
    type: Optional[str] = Query(None, description="BOOKING or MARKETPLACE"),
    status: Optional[PaymentStatus] = Query(None),
    db: Session = Depends(get_db)
):
    """Booking and marketplace payments of a user, newest first"""
    kind = type.upper() if type else None
    if kind not in (None, BOOKING, MARKETPLACE):
        raise ValidationError("type must be BOOKING or MARKETPLACE", details={"field": "type"})
    return [PaymentResponse.from_record(p) for p in PaymentService.get_payment_history(db, user_id, kind, status)]

@router.post("/cancel/{order_id}", response_model=NotificationResult)
def cancel_payment(
    order_id: str,
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Cancel a pending payment and release its booking or order"""
    result = PaymentService.cancel_payment(db, gateway, order_id)
    return NotificationResult(
        order_id=result.gateway_order_id,
        kind=result.kind,
        payment_status=result.payment_status,
        owner_status=result.owner_status,
    )


def _frontend_redirect(order_id: str, outcome: str) -> RedirectResponse:
    path = "/"
    if order_id and is_marketplace_order_id(order_id):
        path = f"/orders?payment={outcome}&order_id={quote(order_id)}"
    elif order_id:
        path = f"/bookings?payment={outcome}&order_id={quote(order_id)}"
    return RedirectResponse(url=f"{settings.frontend_url.rstrip('/')}{path}")

@redirect_router.get("/finish")
def payment_finish(order_id: str = Query("")):
    """Browser return after a completed payment"""
    return _frontend_redirect(order_id, "success")

@redirect_router.get("/pending")
def payment_pending(order_id: str = Query("")):
    """Browser return while the payment is still pending"""
    return _frontend_redirect(order_id, "pending")

@redirect_router.get("/error")
def payment_error(order_id: str = Query("")):
    """Browser return after a failed payment"""
    return _frontend_redirect(order_id, "error")

"""Gateway status -> payment/booking/order transitions.

Both the webhook handler and the expiry sweep go through ``apply_booking_update``
and ``apply_order_update`` so a callback, a manual cancel and a sweep all move
rows the same way. Each call runs as one unit of work on the given session.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from carebook.config.database import transactional
from carebook.config.payment_config import payment_config
from carebook.models import BookingStatus, OrderStatus, PaymentStatus
from carebook.repositories import BookingPaymentRepository, BookingRepository, OrderPaymentRepository, OrderRepository
from carebook.services import redis_service
from carebook.utils.clock import utcnow
from carebook.utils.errors import PaymentNotFound

logger = logging.getLogger(__name__)

BOOKING_STATUS_FOR_PAYMENT = {
    PaymentStatus.PAID: BookingStatus.PENDING,
    PaymentStatus.PENDING: BookingStatus.PENDING_PAYMENT,
    PaymentStatus.FAILED: BookingStatus.CANCELLED,
    PaymentStatus.EXPIRED: BookingStatus.EXPIRED,
}

ORDER_STATUS_FOR_PAYMENT = {
    PaymentStatus.PAID: OrderStatus.PROCESSING,
    PaymentStatus.PENDING: OrderStatus.PENDING_PAYMENT,
    PaymentStatus.FAILED: OrderStatus.CANCELLED,
    PaymentStatus.EXPIRED: OrderStatus.EXPIRED,
}

STOCK_RELEASING_STATUSES = {OrderStatus.CANCELLED, OrderStatus.EXPIRED}

# PENDING may settle any way; PAID may only be refunded; the rest are final
PAYMENT_MOVES = {
    PaymentStatus.PENDING: {
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.EXPIRED,
        PaymentStatus.REFUNDED,
    },
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
}


@dataclass(frozen=True)
class TransitionResult:
    gateway_order_id: str
    kind: str
    payment_status: PaymentStatus
    owner_status: str


def map_transaction_status(transaction_status: Optional[str], fraud_status: Optional[str] = None) -> PaymentStatus:
    """Translate a Midtrans transaction_status (+ fraud_status) into a PaymentStatus"""
    if transaction_status == "capture":
        return PaymentStatus.PAID if fraud_status == "accept" else PaymentStatus.PENDING
    if transaction_status == "settlement":
        return PaymentStatus.PAID
    if transaction_status == "pending":
        return PaymentStatus.PENDING
    if transaction_status in ("deny", "cancel"):
        return PaymentStatus.FAILED
    if transaction_status == "expire":
        return PaymentStatus.EXPIRED
    if transaction_status in ("refund", "partial_refund"):
        return PaymentStatus.REFUNDED

    logger.warning(f"Unknown transaction_status '{transaction_status}', treating as PENDING")
    return PaymentStatus.PENDING


def is_marketplace_order_id(gateway_order_id: str) -> bool:
    return f"-{payment_config.MARKETPLACE_MARKER}-" in gateway_order_id


def resolve_status(current, target, awaiting_payment):
    """Pick the owner status after a callback.

    The callback only drives the owner while it still awaits payment; doctor or
    fulfilment driven states and terminal states stay where they are.
    """
    if target is None or target == current:
        return current
    if current == awaiting_payment:
        return target
    return None


def resolve_payment_status(current: PaymentStatus, target: PaymentStatus) -> Optional[PaymentStatus]:
    """The payment status a callback may move to, or None when the move is not allowed"""
    if target == current or target in PAYMENT_MOVES.get(current, ()):
        return target
    return None


def _guard_payment(payment, payment_status: PaymentStatus, gateway_order_id: str):
    """Return (status to store, whether the owner should follow it)"""
    allowed = resolve_payment_status(payment.status, payment_status)
    if allowed is None:
        logger.warning(
            f"Payment {gateway_order_id} is {payment.status.value}; "
            f"keeping it over {payment_status.value}"
        )
        return payment.status, False
    return allowed, True


def parse_transaction_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        logger.warning(f"Unparseable transaction_time '{value}'")
        return None


def notification_fields(notification) -> dict:
    """Columns to persist from a gateway notification, raw payload included"""
    va = notification.va_numbers[0] if notification.va_numbers else None
    return {
        "payment_type": notification.payment_type,
        "transaction_id": notification.transaction_id,
        "transaction_status": notification.transaction_status,
        "transaction_time": parse_transaction_time(notification.transaction_time),
        "va_number": va.va_number if va else None,
        "bank": (va.bank if va and va.bank else None) or notification.bank,
        "raw_response": json.dumps(notification.model_dump(), default=str),
    }


def apply_booking_update(
    db: Session,
    gateway_order_id: str,
    payment_status: PaymentStatus,
    fields: Optional[dict] = None
) -> TransitionResult:
    payments = BookingPaymentRepository(db)
    bookings = BookingRepository(db)

    with transactional(db):
        payment = payments.get_by_gateway_id(gateway_order_id, for_update=True)
        if not payment:
            raise PaymentNotFound(f"Payment with order_id {gateway_order_id} not found")

        payment_status, follow = _guard_payment(payment, payment_status, gateway_order_id)
        booking = bookings.get(payment.owner_id, for_update=True)
        target = BOOKING_STATUS_FOR_PAYMENT.get(payment_status) if follow else None
        new_status = resolve_status(booking.status, target, BookingStatus.PENDING_PAYMENT)
        if new_status is None:
            logger.warning(
                f"Booking {booking.id} is {booking.status.value}; "
                f"ignoring transition to {target.value} from {gateway_order_id}"
            )
            new_status = booking.status

        payments.apply_notification(payment.id, payment_status, fields or {})
        bookings.update(booking.id, status=new_status, payment_status=payment_status)

    if new_status != booking.status:
        redis_service.slot_cache.invalidate(booking.doctor_id, booking.booking_date.isoformat())

    logger.info(f"✓ {gateway_order_id}: payment {payment_status.value}, booking {new_status.value}")
    return TransitionResult(gateway_order_id, payments.kind, payment_status, new_status.value)


def apply_order_update(
    db: Session,
    gateway_order_id: str,
    payment_status: PaymentStatus,
    fields: Optional[dict] = None
) -> TransitionResult:
    payments = OrderPaymentRepository(db)
    orders = OrderRepository(db)

    with transactional(db):
        payment = payments.get_by_gateway_id(gateway_order_id, for_update=True)
        if not payment:
            raise PaymentNotFound(f"Order payment with order_id {gateway_order_id} not found")

        payment_status, follow = _guard_payment(payment, payment_status, gateway_order_id)
        order = orders.get_order(payment.owner_id, for_update=True)
        target = ORDER_STATUS_FOR_PAYMENT.get(payment_status) if follow else None
        new_status = resolve_status(order.status, target, OrderStatus.PENDING_PAYMENT)
        if new_status is None:
            logger.warning(
                f"Order {order.order_number} is {order.status.value}; "
                f"ignoring transition to {target.value} from {gateway_order_id}"
            )
            new_status = order.status

        if new_status in STOCK_RELEASING_STATUSES and new_status != order.status:
            for item in order.items:
                orders.restore_stock(item.product_id, item.quantity)
            logger.info(f"Restored stock for {len(order.items)} item(s) of order {order.order_number}")

        paid_at = utcnow() if payment_status == PaymentStatus.PAID and not order.paid_at else None
        payments.apply_notification(payment.id, payment_status, fields or {})
        orders.set_order_status(order.id, status=new_status, payment_status=payment_status, paid_at=paid_at)

    logger.info(f"✓ {gateway_order_id}: payment {payment_status.value}, order {new_status.value}")
    return TransitionResult(gateway_order_id, payments.kind, payment_status, new_status.value)


def apply_update(
    db: Session,
    gateway_order_id: str,
    payment_status: PaymentStatus,
    fields: Optional[dict] = None
) -> TransitionResult:
    """Route to the marketplace or booking handler by the order id marker"""
    if is_marketplace_order_id(gateway_order_id):
        return apply_order_update(db, gateway_order_id, payment_status, fields)
    return apply_booking_update(db, gateway_order_id, payment_status, fields)

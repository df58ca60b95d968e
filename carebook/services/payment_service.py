import logging
import time
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from carebook.config.database import transactional
from carebook.config.payment_config import payment_config
from carebook.models.booking import BookingStatus, PaymentStatus
from carebook.repositories import (
    BookingPaymentRepository,
    BookingRepository,
    DoctorRepository,
    OrderPaymentRepository,
    UserRepository,
)
from carebook.repositories.payment_repository import BOOKING, MARKETPLACE
from carebook.repositories.records import PaymentRecord
from carebook.schemas.payment import PaymentNotification
from carebook.services import reconciliation
from carebook.services.midtrans_service import MidtransGateway
from carebook.utils.clock import utcnow
from carebook.utils.errors import (
    AuthenticationFailure,
    BookingNotFound,
    GatewayError,
    InvalidBookingState,
    InvalidPaymentState,
    PaymentNotFound,
)

logger = logging.getLogger(__name__)


def build_gateway_order_id(entity_id: str, marketplace: bool = False, now_ms: Optional[int] = None) -> str:
    """{PREFIX}-{id[:8]}-{epoch_ms}, with the marketplace marker after the prefix"""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    parts = [payment_config.ORDER_ID_PREFIX]
    if marketplace:
        parts.append(payment_config.MARKETPLACE_MARKER)
    parts.extend([entity_id[:8], str(stamp)])
    return "-".join(parts)


def split_name(full_name: str) -> dict:
    first, _, last = (full_name or "").strip().partition(" ")
    return {"first_name": first, "last_name": last}


def payment_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + timedelta(hours=payment_config.PAYMENT_EXPIRY_HOURS)


class PaymentService:
    @staticmethod
    def create_payment(db: Session, gateway: MidtransGateway, booking_id: str) -> PaymentRecord:
        """Issue a Snap checkout for a booking, reusing the pending one if it exists"""
        booking = BookingRepository(db).get(booking_id)
        if not booking:
            raise BookingNotFound(f"Booking with ID {booking_id} not found")
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise InvalidBookingState(
                f"Booking is {booking.status.value}; only PENDING_PAYMENT bookings can be paid",
                details={"current_status": booking.status.value}
            )

        payments = BookingPaymentRepository(db)
        existing = payments.get_by_owner(booking_id)
        if existing:
            return PaymentService._reuse(existing)

        patient = UserRepository(db).get(booking.user_id)
        doctor = DoctorRepository(db).get(booking.doctor_id)
        order_id = build_gateway_order_id(booking.id)

        checkout = gateway.create_transaction(
            order_id=order_id,
            gross_amount=booking.consultation_fee,
            customer={
                **split_name(patient.full_name if patient else ""),
                "email": patient.email if patient else "",
                "phone": (patient.phone_number or "") if patient else "",
            },
            items=[{
                "id": booking.id,
                "price": booking.consultation_fee,
                "quantity": 1,
                "name": f"Consultation - {doctor.full_name if doctor else 'Doctor'}"[:50],
            }],
        )

        try:
            with transactional(db):
                payment = payments.insert(
                    owner_id=booking.id,
                    gateway_order_id=order_id,
                    amount=booking.consultation_fee,
                    snap_token=checkout["token"],
                    snap_redirect_url=checkout["redirect_url"],
                    expiry_time=payment_expiry(),
                )
        except IntegrityError:
            # A concurrent request stored its checkout first; hand out that one
            logger.warning(f"Concurrent checkout for booking {booking_id}; returning the stored token")
            winner = payments.get_by_owner(booking_id)
            if not winner:
                raise
            return PaymentService._reuse(winner)

        logger.info(f"✓ Payment {order_id} created for booking {booking_id}")
        return payment

    @staticmethod
    def _reuse(payment: PaymentRecord) -> PaymentRecord:
        if payment.status != PaymentStatus.PENDING:
            raise InvalidPaymentState(
                f"Booking already has a {payment.status.value} payment",
                details={"order_id": payment.gateway_order_id}
            )
        logger.info(f"Reusing pending payment {payment.gateway_order_id}")
        return payment

    @staticmethod
    def handle_notification(
        db: Session,
        gateway: MidtransGateway,
        notification: PaymentNotification
    ) -> reconciliation.TransitionResult:
        logger.info(
            f"📥 Payment notification {notification.order_id}: "
            f"{notification.transaction_status} (fraud={notification.fraud_status})"
        )

        if not gateway.verify_signature(
            notification.order_id,
            notification.status_code,
            notification.gross_amount,
            notification.signature_key,
        ):
            logger.warning(f"❌ Invalid signature on notification for {notification.order_id}")
            raise AuthenticationFailure("Invalid notification")

        payment_status = reconciliation.map_transaction_status(
            notification.transaction_status, notification.fraud_status
        )
        return reconciliation.apply_update(
            db, notification.order_id, payment_status, reconciliation.notification_fields(notification)
        )

    @staticmethod
    def _find_by_gateway_id(db: Session, order_id: str) -> PaymentRecord:
        if reconciliation.is_marketplace_order_id(order_id):
            payment = OrderPaymentRepository(db).get_by_gateway_id(order_id)
        else:
            payment = BookingPaymentRepository(db).get_by_gateway_id(order_id)
        if not payment:
            raise PaymentNotFound(f"Payment with order_id {order_id} not found")
        return payment

    @staticmethod
    def get_payment_status(db: Session, gateway: MidtransGateway, order_id: str, refresh: bool = False) -> PaymentRecord:
        """Stored payment state; with refresh, re-read the gateway and reconcile first"""
        payment = PaymentService._find_by_gateway_id(db, order_id)
        if not refresh:
            return payment

        status = gateway.get_transaction_status(order_id)
        payment_status = reconciliation.map_transaction_status(
            status.get("transaction_status"), status.get("fraud_status")
        )
        va_numbers = status.get("va_numbers") or []
        fields = {
            "payment_type": status.get("payment_type"),
            "transaction_id": status.get("transaction_id"),
            "transaction_status": status.get("transaction_status"),
            "transaction_time": reconciliation.parse_transaction_time(status.get("transaction_time")),
            "va_number": va_numbers[0].get("va_number") if va_numbers else None,
            "bank": (va_numbers[0].get("bank") if va_numbers else None) or status.get("bank"),
        }
        reconciliation.apply_update(db, order_id, payment_status, fields)
        return PaymentService._find_by_gateway_id(db, order_id)

    @staticmethod
    def get_payment_by_booking(db: Session, booking_id: str) -> PaymentRecord:
        if not BookingRepository(db).get(booking_id):
            raise BookingNotFound(f"Booking with ID {booking_id} not found")
        payment = BookingPaymentRepository(db).get_by_owner(booking_id)
        if not payment:
            raise PaymentNotFound(f"No payment found for booking {booking_id}")
        return payment

    @staticmethod
    def get_payment_history(
        db: Session,
        user_id: str,
        kind: Optional[str] = None,
        status: Optional[PaymentStatus] = None
    ) -> List[PaymentRecord]:
        history = []
        if kind in (None, BOOKING):
            history.extend(BookingPaymentRepository(db).history_for_user(user_id, status))
        if kind in (None, MARKETPLACE):
            history.extend(OrderPaymentRepository(db).history_for_user(user_id, status))
        return sorted(history, key=lambda p: p.created_at or datetime.min, reverse=True)

    @staticmethod
    def cancel_payment(db: Session, gateway: MidtransGateway, order_id: str) -> reconciliation.TransitionResult:
        payment = PaymentService._find_by_gateway_id(db, order_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidPaymentState("Only pending payments can be cancelled")

        try:
            gateway.cancel_transaction(order_id)
        except GatewayError as e:
            # Settled or unknown transactions cannot be cancelled upstream; local cancel still applies
            logger.warning(f"Gateway cancel for {order_id} ignored: {e.message}")

        return reconciliation.apply_update(db, order_id, PaymentStatus.FAILED)

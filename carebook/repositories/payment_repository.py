"""Payment repositories - booking payments and marketplace order payments"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from carebook.models import Booking, Order, OrderPayment, Payment, PaymentStatus
from carebook.repositories.records import PaymentRecord

BOOKING = "BOOKING"
MARKETPLACE = "MARKETPLACE"

# Columns a gateway callback is allowed to write
NOTIFICATION_FIELDS = (
    "payment_type",
    "transaction_id",
    "transaction_status",
    "transaction_time",
    "va_number",
    "bank",
    "raw_response",
)


class GatewayPaymentRepository:
    """Shared operations for rows that mirror a gateway transaction"""

    model = None
    kind = None

    def __init__(self, db: Session):
        self.db = db

    def _gateway_column(self):
        raise NotImplementedError

    def _owner_column(self):
        raise NotImplementedError

    def _to_record(self, row) -> PaymentRecord:
        return PaymentRecord(
            id=row.id,
            kind=self.kind,
            owner_id=getattr(row, self._owner_column().key),
            gateway_order_id=getattr(row, self._gateway_column().key),
            amount=row.amount,
            status=row.status,
            payment_type=row.payment_type,
            transaction_id=row.transaction_id,
            transaction_status=row.transaction_status,
            transaction_time=row.transaction_time,
            va_number=row.va_number,
            bank=row.bank,
            snap_token=row.snap_token,
            snap_redirect_url=row.snap_redirect_url,
            expiry_time=row.expiry_time,
            created_at=row.created_at,
        )

    def _row(self, payment_id: str):
        return self.db.query(self.model).filter(self.model.id == payment_id).first()

    def get_by_gateway_id(self, gateway_order_id: str, for_update: bool = False) -> Optional[PaymentRecord]:
        query = self.db.query(self.model).filter(self._gateway_column() == gateway_order_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        return self._to_record(row) if row else None

    def get_by_owner(self, owner_id: str, for_update: bool = False) -> Optional[PaymentRecord]:
        query = self.db.query(self.model).filter(self._owner_column() == owner_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        return self._to_record(row) if row else None

    def insert(
        self,
        owner_id: str,
        gateway_order_id: str,
        amount: int,
        snap_token: str,
        snap_redirect_url: str,
        expiry_time: datetime
    ) -> PaymentRecord:
        """Insert a payment; raises IntegrityError when the owner already has one"""
        row = self.model(
            amount=amount,
            status=PaymentStatus.PENDING,
            snap_token=snap_token,
            snap_redirect_url=snap_redirect_url,
            expiry_time=expiry_time,
        )
        setattr(row, self._owner_column().key, owner_id)
        setattr(row, self._gateway_column().key, gateway_order_id)
        self.db.add(row)
        self.db.flush()
        return self._to_record(row)

    def apply_notification(self, payment_id: str, status: PaymentStatus, fields: dict) -> PaymentRecord:
        row = self._row(payment_id)
        row.status = status
        for name in NOTIFICATION_FIELDS:
            if name in fields:
                setattr(row, name, fields[name])
        self.db.flush()
        return self._to_record(row)

    def set_status(self, payment_id: str, status: PaymentStatus) -> PaymentRecord:
        row = self._row(payment_id)
        row.status = status
        self.db.flush()
        return self._to_record(row)

    def pending_past_expiry(self, now: datetime) -> List[PaymentRecord]:
        rows = self.db.query(self.model).filter(
            self.model.status == PaymentStatus.PENDING,
            self.model.expiry_time.isnot(None),
            self.model.expiry_time < now
        ).all()
        return [self._to_record(row) for row in rows]


class BookingPaymentRepository(GatewayPaymentRepository):
    model = Payment
    kind = BOOKING

    def _gateway_column(self):
        return Payment.order_id

    def _owner_column(self):
        return Payment.booking_id

    def history_for_user(self, user_id: str, status: Optional[PaymentStatus] = None) -> List[PaymentRecord]:
        query = self.db.query(Payment).join(Booking, Booking.id == Payment.booking_id).filter(
            Booking.user_id == user_id
        )
        if status is not None:
            query = query.filter(Payment.status == status)
        return [self._to_record(row) for row in query.order_by(Payment.created_at.desc()).all()]


class OrderPaymentRepository(GatewayPaymentRepository):
    model = OrderPayment
    kind = MARKETPLACE

    def _gateway_column(self):
        return OrderPayment.order_payment_id

    def _owner_column(self):
        return OrderPayment.order_id

    def history_for_user(self, user_id: str, status: Optional[PaymentStatus] = None) -> List[PaymentRecord]:
        query = self.db.query(OrderPayment).join(Order, Order.id == OrderPayment.order_id).filter(
            Order.user_id == user_id
        )
        if status is not None:
            query = query.filter(OrderPayment.status == status)
        return [self._to_record(row) for row in query.order_by(OrderPayment.created_at.desc()).all()]

"""Plain data records returned by the repositories.

Services never see ORM instances; anything that needs related rows (a booking's
doctor name, an order's items) is loaded explicitly by the repository.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from carebook.models import (
    Booking,
    BookingStatus,
    ConsultationType,
    DayOfWeek,
    DoctorSchedule,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    User,
)


@dataclass(frozen=True)
class UserRecord:
    id: str
    full_name: str
    email: str
    phone_number: Optional[str]

    @classmethod
    def from_row(cls, row: User) -> "UserRecord":
        return cls(id=row.id, full_name=row.full_name, email=row.email, phone_number=row.phone_number)


@dataclass(frozen=True)
class DoctorRecord:
    id: str
    user_id: str
    full_name: str
    email: str
    phone_number: Optional[str]
    specialization: str
    license_number: str
    practice_address: Optional[str]
    consultation_fee: int
    is_available: bool
    rating: float
    total_patients: int


@dataclass(frozen=True)
class ScheduleRecord:
    id: str
    doctor_id: str
    day_of_week: DayOfWeek
    time_slot: str
    duration_minutes: int
    is_active: bool

    @classmethod
    def from_row(cls, row: DoctorSchedule) -> "ScheduleRecord":
        return cls(
            id=row.id,
            doctor_id=row.doctor_id,
            day_of_week=row.day_of_week,
            time_slot=row.time_slot,
            duration_minutes=row.duration_minutes,
            is_active=row.is_active,
        )


@dataclass(frozen=True)
class BookingRecord:
    id: str
    user_id: str
    doctor_id: str
    schedule_id: str
    booking_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    consultation_type: ConsultationType
    consultation_fee: int
    status: BookingStatus
    payment_status: PaymentStatus
    notes: Optional[str]
    cancellation_reason: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: Booking) -> "BookingRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            doctor_id=row.doctor_id,
            schedule_id=row.schedule_id,
            booking_date=row.booking_date,
            start_time=row.start_time,
            end_time=row.end_time,
            duration_minutes=row.duration_minutes,
            consultation_type=row.consultation_type,
            consultation_fee=row.consultation_fee,
            status=row.status,
            payment_status=row.payment_status,
            notes=row.notes,
            cancellation_reason=row.cancellation_reason,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass(frozen=True)
class BookingDetail:
    """A booking joined with its doctor, patient and schedule"""

    booking: BookingRecord
    doctor_name: Optional[str]
    doctor_specialization: Optional[str]
    patient_name: Optional[str]
    patient_email: Optional[str]
    patient_phone: Optional[str]
    schedule_day: Optional[DayOfWeek]
    schedule_time: Optional[str]


@dataclass(frozen=True)
class PaymentRecord:
    """Gateway payment for either a booking or a marketplace order.

    ``gateway_order_id`` is the identifier the gateway knows; ``owner_id`` is the
    booking id or the marketplace order id depending on ``kind``.
    """

    id: str
    kind: str
    owner_id: str
    gateway_order_id: str
    amount: int
    status: PaymentStatus
    payment_type: Optional[str]
    transaction_id: Optional[str]
    transaction_status: Optional[str]
    transaction_time: Optional[datetime]
    va_number: Optional[str]
    bank: Optional[str]
    snap_token: Optional[str]
    snap_redirect_url: Optional[str]
    expiry_time: Optional[datetime]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class ProductRecord:
    id: str
    name: str
    price: int
    quantity: int
    is_active: bool

    @classmethod
    def from_row(cls, row: Product) -> "ProductRecord":
        return cls(id=row.id, name=row.name, price=row.price, quantity=row.quantity, is_active=row.is_active)


@dataclass(frozen=True)
class OrderItemRecord:
    id: str
    product_id: str
    product_name: str
    product_price: int
    quantity: int
    subtotal: int

    @classmethod
    def from_row(cls, row: OrderItem) -> "OrderItemRecord":
        return cls(
            id=row.id,
            product_id=row.product_id,
            product_name=row.product_name,
            product_price=row.product_price,
            quantity=row.quantity,
            subtotal=row.subtotal,
        )


@dataclass(frozen=True)
class OrderRecord:
    id: str
    user_id: str
    order_number: str
    subtotal: int
    shipping_cost: int
    admin_fee: int
    total_amount: int
    status: OrderStatus
    payment_status: PaymentStatus
    courier: Optional[str]
    notes: Optional[str]
    paid_at: Optional[datetime]
    created_at: Optional[datetime]
    items: List[OrderItemRecord] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Order, items: List[OrderItem]) -> "OrderRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            order_number=row.order_number,
            subtotal=row.subtotal,
            shipping_cost=row.shipping_cost,
            admin_fee=row.admin_fee,
            total_amount=row.total_amount,
            status=row.status,
            payment_status=row.payment_status,
            courier=row.courier,
            notes=row.notes,
            paid_at=row.paid_at,
            created_at=row.created_at,
            items=[OrderItemRecord.from_row(item) for item in items],
        )

import uuid
import enum
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Index, Enum as SQLEnum, text, func
from carebook.config.database import Base


class BookingStatus(enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class PaymentStatus(enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"


class ConsultationType(enum.Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), index=True, nullable=False)
    schedule_id = Column(String(36), ForeignKey("doctor_schedules.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    consultation_type = Column(SQLEnum(ConsultationType, name="consultationtype"), nullable=False)
    consultation_fee = Column(Integer, nullable=False)
    status = Column(SQLEnum(BookingStatus, name="bookingstatus"), nullable=False, default=BookingStatus.PENDING_PAYMENT)
    payment_status = Column(SQLEnum(PaymentStatus, name="paymentstatus"), nullable=False, default=PaymentStatus.PENDING)
    notes = Column(String(500))
    cancellation_reason = Column(String(500))
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # One live booking per schedule slot per date; cancelled rows free the slot
    __table_args__ = (
        Index(
            "uq_bookings_active_slot",
            "schedule_id",
            "booking_date",
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
    )

    def __repr__(self):
        return f"<Booking {self.id} schedule={self.schedule_id} on {self.booking_date} [{self.status}]>"

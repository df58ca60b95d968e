import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum, func
from carebook.config.database import Base
from carebook.models.booking import PaymentStatus


class GatewayPaymentColumns:
    """Columns shared by booking and marketplace payments, filled from gateway callbacks"""

    amount = Column(Integer, nullable=False)
    status = Column(SQLEnum(PaymentStatus, name="paymentstatus"), nullable=False, default=PaymentStatus.PENDING)
    payment_type = Column(String(50))
    transaction_id = Column(String(100))
    transaction_status = Column(String(50))
    transaction_time = Column(DateTime)
    va_number = Column(String(50))
    bank = Column(String(50))
    snap_token = Column(String(255))
    snap_redirect_url = Column(String(500))
    expiry_time = Column(DateTime)
    raw_response = Column(Text)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Payment(GatewayPaymentColumns, Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.id"), unique=True, nullable=False)
    order_id = Column(String(100), unique=True, index=True, nullable=False)

    def __repr__(self):
        return f"<Payment {self.order_id} [{self.status}]>"

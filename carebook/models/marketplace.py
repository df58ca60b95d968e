import uuid
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum, func
from carebook.config.database import Base
from carebook.models.booking import PaymentStatus
from carebook.models.payment import GatewayPaymentColumns


class OrderStatus(enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)  # units in stock
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    order_number = Column(String(30), unique=True, nullable=False)
    subtotal = Column(Integer, nullable=False)
    shipping_cost = Column(Integer, nullable=False, default=0)
    admin_fee = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)
    status = Column(SQLEnum(OrderStatus, name="orderstatus"), nullable=False, default=OrderStatus.PENDING_PAYMENT)
    payment_status = Column(SQLEnum(PaymentStatus, name="paymentstatus"), nullable=False, default=PaymentStatus.PENDING)
    courier = Column(String(50))
    notes = Column(String(500))
    paid_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    product_name = Column(String(200), nullable=False)
    product_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False)


class OrderPayment(GatewayPaymentColumns, Base):
    __tablename__ = "order_payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id"), unique=True, nullable=False)
    order_payment_id = Column(String(100), unique=True, index=True, nullable=False)

    def __repr__(self):
        return f"<OrderPayment {self.order_payment_id} [{self.status}]>"

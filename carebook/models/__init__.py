from carebook.models.user import User
from carebook.models.doctor import Doctor, DoctorSchedule, DayOfWeek
from carebook.models.booking import Booking, BookingStatus, PaymentStatus, ConsultationType
from carebook.models.payment import Payment
from carebook.models.marketplace import Product, Order, OrderItem, OrderPayment, OrderStatus

__all__ = [
    "User",
    "Doctor",
    "DoctorSchedule",
    "DayOfWeek",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "ConsultationType",
    "Payment",
    "Product",
    "Order",
    "OrderItem",
    "OrderPayment",
    "OrderStatus",
]

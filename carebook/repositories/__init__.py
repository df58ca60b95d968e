from carebook.repositories.user_repository import UserRepository
from carebook.repositories.doctor_repository import DoctorRepository
from carebook.repositories.booking_repository import BookingRepository
from carebook.repositories.payment_repository import BookingPaymentRepository, OrderPaymentRepository
from carebook.repositories.order_repository import OrderRepository

__all__ = [
    "UserRepository",
    "DoctorRepository",
    "BookingRepository",
    "BookingPaymentRepository",
    "OrderPaymentRepository",
    "OrderRepository",
]

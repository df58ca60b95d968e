from datetime import timedelta

from carebook.models import BookingStatus, OrderStatus, PaymentStatus
from carebook.repositories import BookingPaymentRepository, BookingRepository, OrderRepository
from carebook.schemas.order import OrderCreate
from carebook.schemas.payment import PaymentNotification
from carebook.services.booking_service import BookingService
from carebook.services.expiry_service import ExpiryService
from carebook.services.order_service import OrderService
from carebook.services.payment_service import PaymentService
from carebook.utils.clock import utcnow
from tests.factories import signed_notification

LATER = utcnow() + timedelta(hours=25)


def test_expires_overdue_booking_payment(db, gateway, booking_payload):
    booking = BookingService.create_booking(db, booking_payload()).booking
    PaymentService.create_payment(db, gateway, booking.id)

    assert ExpiryService.expire_overdue(db, now=LATER) == 1

    db.expire_all()
    assert BookingRepository(db).get(booking.id).status == BookingStatus.EXPIRED
    assert BookingPaymentRepository(db).get_by_owner(booking.id).status == PaymentStatus.EXPIRED
    assert ExpiryService.expire_overdue(db, now=LATER) == 0


def test_leaves_fresh_payments_alone(db, gateway, booking_payload):
    booking = BookingService.create_booking(db, booking_payload()).booking
    PaymentService.create_payment(db, gateway, booking.id)

    assert ExpiryService.expire_overdue(db, now=utcnow()) == 0
    assert BookingRepository(db).get(booking.id).status == BookingStatus.PENDING_PAYMENT


def test_paid_payment_is_not_expired(db, gateway, booking_payload):
    booking = BookingService.create_booking(db, booking_payload()).booking
    payment = PaymentService.create_payment(db, gateway, booking.id)
    PaymentService.handle_notification(
        db, gateway, PaymentNotification(**signed_notification(payment.gateway_order_id, "settlement"))
    )

    assert ExpiryService.expire_overdue(db, now=LATER) == 0


def test_expired_order_releases_stock(db, gateway, patient, make_product):
    product = make_product(quantity=4)
    order, _ = OrderService.create_order(
        db, gateway, OrderCreate(user_id=patient.id, items=[{"product_id": product.id, "quantity": 3}])
    )

    assert ExpiryService.expire_overdue(db, now=LATER) == 1

    db.expire_all()
    orders = OrderRepository(db)
    assert orders.get_order(order.id).status == OrderStatus.EXPIRED
    assert orders.get_product(product.id).quantity == 4


def test_sweep_expires_transaction_at_gateway(db, gateway, fake_midtrans, booking_payload):
    booking = BookingService.create_booking(db, booking_payload()).booking
    payment = PaymentService.create_payment(db, gateway, booking.id)

    assert ExpiryService.expire_overdue(db, now=LATER, gateway=gateway) == 1

    assert ("POST", f"/v2/{payment.gateway_order_id}/expire", None) in fake_midtrans.calls
    db.expire_all()
    assert BookingPaymentRepository(db).get_by_owner(booking.id).status == PaymentStatus.EXPIRED


def test_sweep_follows_gateway_when_expire_is_refused(db, gateway, fake_midtrans, booking_payload):
    booking = BookingService.create_booking(db, booking_payload()).booking
    payment = PaymentService.create_payment(db, gateway, booking.id)
    # The customer paid just before the deadline and the callback has not arrived
    fake_midtrans.expire_response = {
        "status_code": "412",
        "status_message": "Merchant cannot modify the status of the transaction",
    }
    fake_midtrans.statuses[payment.gateway_order_id] = {"transaction_status": "settlement"}

    assert ExpiryService.expire_overdue(db, now=LATER, gateway=gateway) == 0

    db.expire_all()
    assert BookingPaymentRepository(db).get_by_owner(booking.id).status == PaymentStatus.PAID
    assert BookingRepository(db).get(booking.id).status == BookingStatus.PENDING


def test_sweep_expires_locally_when_gateway_never_saw_the_order(db, gateway, fake_midtrans, booking_payload):
    booking = BookingService.create_booking(db, booking_payload()).booking
    PaymentService.create_payment(db, gateway, booking.id)
    fake_midtrans.expire_response = {"status_code": "404", "status_message": "Transaction doesn't exist."}

    assert ExpiryService.expire_overdue(db, now=LATER, gateway=gateway) == 1

    db.expire_all()
    assert BookingRepository(db).get(booking.id).status == BookingStatus.EXPIRED

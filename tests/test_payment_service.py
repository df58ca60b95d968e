import json
from datetime import timedelta

import pytest

from carebook.models import BookingStatus, Payment, PaymentStatus
from carebook.repositories import BookingPaymentRepository, BookingRepository
from carebook.schemas.payment import PaymentNotification
from carebook.services.booking_service import BookingService
from carebook.services.expiry_service import ExpiryService
from carebook.services.payment_service import PaymentService, build_gateway_order_id
from carebook.services.reconciliation import resolve_payment_status
from carebook.services.report_service import ReportService
from carebook.utils.clock import utcnow
from carebook.utils.errors import (
    AuthenticationFailure,
    GatewayError,
    InvalidBookingState,
    InvalidPaymentState,
    PaymentNotFound,
)
from tests.factories import signed_notification


@pytest.fixture
def booking(db, booking_payload):
    return BookingService.create_booking(db, booking_payload()).booking


@pytest.fixture
def payment(db, gateway, booking):
    return PaymentService.create_payment(db, gateway, booking.id)


def notify(db, gateway, order_id, transaction_status, **extra):
    return PaymentService.handle_notification(
        db, gateway, PaymentNotification(**signed_notification(order_id, transaction_status, **extra))
    )


def state(db, booking_id):
    db.expire_all()
    booking = BookingRepository(db).get(booking_id)
    payment = BookingPaymentRepository(db).get_by_owner(booking_id)
    return booking, payment


class TestOrderIds:
    def test_booking_order_id_format(self):
        assert build_gateway_order_id("1a2b3c4d-5e6f-7788", now_ms=1734312000000) == "CAREBOOK-1a2b3c4d-1734312000000"

    def test_marketplace_order_id_format(self):
        order_id = build_gateway_order_id("9f8e7d6c-0000", marketplace=True, now_ms=1734312000000)
        assert order_id == "CAREBOOK-MKT-9f8e7d6c-1734312000000"


class TestPaymentGuard:
    @pytest.mark.parametrize("current,target,expected", [
        (PaymentStatus.PENDING, PaymentStatus.PAID, PaymentStatus.PAID),
        (PaymentStatus.PENDING, PaymentStatus.EXPIRED, PaymentStatus.EXPIRED),
        (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.REFUNDED),
        (PaymentStatus.PAID, PaymentStatus.PAID, PaymentStatus.PAID),
        (PaymentStatus.PAID, PaymentStatus.PENDING, None),
        (PaymentStatus.PAID, PaymentStatus.EXPIRED, None),
        (PaymentStatus.FAILED, PaymentStatus.PAID, None),
        (PaymentStatus.EXPIRED, PaymentStatus.PAID, None),
        (PaymentStatus.REFUNDED, PaymentStatus.PAID, None),
    ])
    def test_resolve_payment_status(self, current, target, expected):
        assert resolve_payment_status(current, target) == expected


class TestCheckout:
    def test_creates_pending_payment(self, db, fake_midtrans, booking, payment):
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == 200000
        assert payment.gateway_order_id.startswith(f"CAREBOOK-{booking.id[:8]}-")
        assert payment.snap_token == f"snap-token-{payment.gateway_order_id}"
        assert payment.expiry_time is not None

        _, path, body = fake_midtrans.snap_calls()[0]
        assert body["transaction_details"] == {"order_id": payment.gateway_order_id, "gross_amount": 200000}
        assert body["customer_details"]["first_name"] == "Siti"
        assert body["item_details"][0]["price"] == 200000

    def test_second_call_returns_same_token(self, db, gateway, fake_midtrans, booking, payment):
        again = PaymentService.create_payment(db, gateway, booking.id)

        assert again.snap_token == payment.snap_token
        assert again.gateway_order_id == payment.gateway_order_id
        assert len(fake_midtrans.snap_calls()) == 1
        assert db.query(Payment).count() == 1

    def test_concurrent_first_checkout_returns_winner(self, session_factory, gateway, booking, monkeypatch):
        first = session_factory()
        second = session_factory()
        try:
            winner = PaymentService.create_payment(first, gateway, booking.id)

            real_get_by_owner = BookingPaymentRepository.get_by_owner
            seen = {"calls": 0}

            def miss_once(self, owner_id, for_update=False):
                seen["calls"] += 1
                return None if seen["calls"] == 1 else real_get_by_owner(self, owner_id, for_update)

            monkeypatch.setattr(BookingPaymentRepository, "get_by_owner", miss_once)
            loser = PaymentService.create_payment(second, gateway, booking.id)

            assert loser.snap_token == winner.snap_token
            assert second.query(Payment).count() == 1
        finally:
            first.close()
            second.close()

    def test_gateway_failure_stores_nothing(self, db, gateway, fake_midtrans, booking):
        fake_midtrans.fail_snap = True

        with pytest.raises(GatewayError):
            PaymentService.create_payment(db, gateway, booking.id)

        assert db.query(Payment).count() == 0

    def test_only_pending_payment_bookings(self, db, gateway, booking):
        BookingService.cancel_booking(db, booking.id)

        with pytest.raises(InvalidBookingState):
            PaymentService.create_payment(db, gateway, booking.id)


class TestNotifications:
    def test_settlement_marks_paid(self, db, gateway, booking, payment):
        result = notify(db, gateway, payment.gateway_order_id, "settlement")

        assert result.payment_status == PaymentStatus.PAID
        assert result.owner_status == "PENDING"
        saved_booking, saved_payment = state(db, booking.id)
        assert saved_booking.status == BookingStatus.PENDING
        assert saved_booking.payment_status == PaymentStatus.PAID
        assert saved_payment.status == PaymentStatus.PAID
        assert saved_payment.payment_type == "bank_transfer"
        assert saved_payment.va_number == "12345678901"
        assert saved_payment.bank == "bca"
        assert saved_payment.transaction_status == "settlement"

    def test_settlement_replay_is_idempotent(self, db, gateway, booking, payment):
        notify(db, gateway, payment.gateway_order_id, "settlement")
        after_first = state(db, booking.id)

        notify(db, gateway, payment.gateway_order_id, "settlement")
        after_second = state(db, booking.id)

        assert after_first[0].status == after_second[0].status == BookingStatus.PENDING
        assert after_first[0].payment_status == after_second[0].payment_status == PaymentStatus.PAID
        assert after_first[1].status == after_second[1].status == PaymentStatus.PAID
        assert db.query(Payment).count() == 1

    def test_raw_payload_is_stored(self, db, gateway, payment):
        notify(db, gateway, payment.gateway_order_id, "settlement", acquirer="gopay")

        raw = db.query(Payment.raw_response).filter(Payment.id == payment.id).scalar()
        stored = json.loads(raw)
        assert stored["transaction_status"] == "settlement"
        assert stored["acquirer"] == "gopay"

    def test_bad_signature_changes_nothing(self, db, gateway, booking, payment):
        payload = signed_notification(payment.gateway_order_id, "settlement")
        payload["signature_key"] = "0" * 128

        with pytest.raises(AuthenticationFailure):
            PaymentService.handle_notification(db, gateway, PaymentNotification(**payload))

        saved_booking, saved_payment = state(db, booking.id)
        assert saved_booking.status == BookingStatus.PENDING_PAYMENT
        assert saved_booking.payment_status == PaymentStatus.PENDING
        assert saved_payment.status == PaymentStatus.PENDING
        assert saved_payment.transaction_status is None

    def test_tampered_amount_is_rejected(self, db, gateway, booking, payment):
        payload = signed_notification(payment.gateway_order_id, "settlement")
        payload["gross_amount"] = "1000.00"

        with pytest.raises(AuthenticationFailure):
            PaymentService.handle_notification(db, gateway, PaymentNotification(**payload))

    def test_unknown_order_id(self, db, gateway, payment):
        with pytest.raises(PaymentNotFound):
            notify(db, gateway, "CAREBOOK-deadbeef-1", "settlement")

    @pytest.mark.parametrize("transaction_status,fraud_status,payment_status,booking_status", [
        ("capture", "accept", PaymentStatus.PAID, BookingStatus.PENDING),
        ("capture", "challenge", PaymentStatus.PENDING, BookingStatus.PENDING_PAYMENT),
        ("pending", None, PaymentStatus.PENDING, BookingStatus.PENDING_PAYMENT),
        ("deny", None, PaymentStatus.FAILED, BookingStatus.CANCELLED),
        ("cancel", None, PaymentStatus.FAILED, BookingStatus.CANCELLED),
        ("expire", None, PaymentStatus.EXPIRED, BookingStatus.EXPIRED),
    ])
    def test_transition_table(
        self, db, gateway, booking, payment, transaction_status, fraud_status, payment_status, booking_status
    ):
        notify(db, gateway, payment.gateway_order_id, transaction_status, fraud_status=fraud_status)

        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == payment_status
        assert saved_booking.status == booking_status
        assert saved_booking.payment_status == payment_status

    def test_refund_keeps_booking_status(self, db, gateway, booking, payment):
        notify(db, gateway, payment.gateway_order_id, "settlement")
        notify(db, gateway, payment.gateway_order_id, "refund")

        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.REFUNDED
        assert saved_booking.status == BookingStatus.PENDING
        assert saved_booking.payment_status == PaymentStatus.REFUNDED

    @pytest.mark.parametrize("late_status", ["pending", "expire", "deny"])
    def test_paid_payment_ignores_late_callbacks(self, db, gateway, booking, payment, late_status):
        notify(db, gateway, payment.gateway_order_id, "settlement")

        result = notify(db, gateway, payment.gateway_order_id, late_status)

        assert result.payment_status == PaymentStatus.PAID
        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.PAID
        assert saved_booking.payment_status == PaymentStatus.PAID
        assert saved_booking.status == BookingStatus.PENDING
        # The latest payload is still kept for audit
        assert saved_payment.transaction_status == late_status

    def test_completed_consultation_survives_redelivery_and_sweep(self, db, gateway, doctor, booking, payment):
        notify(db, gateway, payment.gateway_order_id, "settlement")
        BookingService.confirm_booking(db, booking.id)
        BookingService.complete_booking(db, booking.id)

        notify(db, gateway, payment.gateway_order_id, "pending")
        ExpiryService.expire_overdue(db, now=utcnow() + timedelta(days=2), gateway=gateway)

        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.PAID
        assert saved_booking.status == BookingStatus.COMPLETED
        assert saved_booking.payment_status == PaymentStatus.PAID
        assert ReportService.income_summary(db, doctor.id)["total_income"] == 200000

    @pytest.mark.parametrize("first,late", [("deny", "settlement"), ("expire", "settlement"), ("refund", "settlement")])
    def test_final_payment_statuses_stay_final(self, db, gateway, booking, payment, first, late):
        if first == "refund":
            notify(db, gateway, payment.gateway_order_id, "settlement")
        notify(db, gateway, payment.gateway_order_id, first)
        before = state(db, booking.id)

        notify(db, gateway, payment.gateway_order_id, late)

        after = state(db, booking.id)
        assert after[1].status == before[1].status
        assert after[0].status == before[0].status

    def test_cancelled_booking_rejects_late_settlement(self, db, gateway, fake_midtrans, booking, payment, booking_payload):
        BookingService.cancel_booking(db, booking.id, "Changed plans", gateway=gateway)

        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.FAILED
        assert saved_booking.payment_status == PaymentStatus.FAILED
        assert ("POST", f"/v2/{payment.gateway_order_id}/cancel", None) in fake_midtrans.calls

        # Someone else takes the freed slot, then the first checkout settles late
        BookingService.create_booking(db, booking_payload(notes="rebooked"))
        result = notify(db, gateway, payment.gateway_order_id, "settlement")

        assert result.payment_status == PaymentStatus.FAILED
        assert result.owner_status == "CANCELLED"
        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.FAILED
        assert saved_booking.status == BookingStatus.CANCELLED

    def test_cancel_without_gateway_still_fails_payment(self, db, gateway, fake_midtrans, booking, payment):
        BookingService.cancel_booking(db, booking.id)

        _, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.FAILED
        assert not any(call[1].endswith("/cancel") for call in fake_midtrans.calls)

    def test_late_settlement_does_not_undo_confirmation(self, db, gateway, booking, payment):
        notify(db, gateway, payment.gateway_order_id, "settlement")
        BookingService.confirm_booking(db, booking.id)

        notify(db, gateway, payment.gateway_order_id, "settlement")

        saved_booking, _ = state(db, booking.id)
        assert saved_booking.status == BookingStatus.CONFIRMED


class TestStatusAndCancel:
    def test_stored_status(self, db, gateway, payment):
        found = PaymentService.get_payment_status(db, gateway, payment.gateway_order_id)
        assert found.id == payment.id
        assert found.status == PaymentStatus.PENDING

    def test_refresh_reconciles_from_gateway(self, db, gateway, fake_midtrans, booking, payment):
        fake_midtrans.statuses[payment.gateway_order_id] = {
            "transaction_status": "settlement",
            "payment_type": "qris",
            "transaction_id": "txn-42",
            "transaction_time": "2025-12-15 11:00:00",
        }

        refreshed = PaymentService.get_payment_status(db, gateway, payment.gateway_order_id, refresh=True)

        assert refreshed.status == PaymentStatus.PAID
        assert refreshed.payment_type == "qris"
        saved_booking, _ = state(db, booking.id)
        assert saved_booking.status == BookingStatus.PENDING

    def test_refresh_for_unknown_gateway_transaction(self, db, gateway, payment):
        with pytest.raises(GatewayError) as exc:
            PaymentService.get_payment_status(db, gateway, payment.gateway_order_id, refresh=True)
        assert exc.value.gateway_status_code == 404

    def test_cancel_pending_payment(self, db, gateway, fake_midtrans, booking, payment):
        result = PaymentService.cancel_payment(db, gateway, payment.gateway_order_id)

        assert result.payment_status == PaymentStatus.FAILED
        assert result.owner_status == "CANCELLED"
        assert ("POST", f"/v2/{payment.gateway_order_id}/cancel", None) in fake_midtrans.calls

    def test_cancel_ignores_gateway_refusal(self, db, gateway, fake_midtrans, booking, payment):
        fake_midtrans.cancel_response = {
            "status_code": "412",
            "status_message": "Merchant cannot modify the status of the transaction",
        }

        PaymentService.cancel_payment(db, gateway, payment.gateway_order_id)

        saved_booking, saved_payment = state(db, booking.id)
        assert saved_payment.status == PaymentStatus.FAILED
        assert saved_booking.status == BookingStatus.CANCELLED

    def test_cancel_paid_payment_rejected(self, db, gateway, payment):
        notify(db, gateway, payment.gateway_order_id, "settlement")

        with pytest.raises(InvalidPaymentState):
            PaymentService.cancel_payment(db, gateway, payment.gateway_order_id)

    def test_payment_by_booking_and_history(self, db, gateway, patient, booking, payment):
        assert PaymentService.get_payment_by_booking(db, booking.id).id == payment.id

        history = PaymentService.get_payment_history(db, patient.id)
        assert [p.gateway_order_id for p in history] == [payment.gateway_order_id]
        assert PaymentService.get_payment_history(db, patient.id, kind="MARKETPLACE") == []
        assert PaymentService.get_payment_history(db, patient.id, status=PaymentStatus.PAID) == []

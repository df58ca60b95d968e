import pytest

from carebook.config.database import settings
from tests.factories import signed_notification

API = "/api/v1"
DAY = "2025-12-16"


@pytest.fixture
def clinic(client):
    patient = client.post(f"{API}/users/", json={
        "full_name": "Siti Rahma", "email": "siti@example.com", "phone_number": "+6281234567890",
    }).json()
    account = client.post(f"{API}/users/", json={"full_name": "Budi Santoso", "email": "dr.budi@example.com"}).json()
    doctor = client.post(f"{API}/doctors/", json={
        "user_id": account["id"],
        "specialization": "Endocrinology",
        "license_number": "STR-0001",
        "consultation_fee": 200000,
    }).json()
    schedules = client.post(f"{API}/doctors/{doctor['id']}/schedules", json={"schedules": [
        {"day_of_week": "TUESDAY", "time_slot": "09:00"},
        {"day_of_week": "TUESDAY", "time_slot": "10:00"},
        {"day_of_week": "MONDAY", "time_slot": "09:00"},
    ]}).json()
    return {"patient": patient, "doctor": doctor, "schedules": schedules}


def booking_body(clinic, schedule_index=0, **overrides):
    body = {
        "user_id": clinic["patient"]["id"],
        "doctor_id": clinic["doctor"]["id"],
        "schedule_id": clinic["schedules"][schedule_index]["id"],
        "booking_date": DAY,
        "start_time": "09:00",
        "end_time": "09:30",
        "duration_minutes": 30,
        "consultation_type": "ONLINE",
        "consultation_fee": 200000,
    }
    body.update(overrides)
    return body


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"


def test_booking_payment_and_report_flow(client, clinic):
    response = client.post(f"{API}/bookings/", json=booking_body(clinic))
    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "PENDING_PAYMENT"
    assert booking["payment_status"] == "PENDING"
    assert booking["doctor_name"] == "Budi Santoso"

    slots = client.get(f"{API}/bookings/available-slots/{clinic['doctor']['id']}", params={"date": DAY}).json()
    assert slots["day_of_week"] == "TUESDAY"
    assert [(s["time_slot"], s["is_available"]) for s in slots["slots"]] == [("09:00", False), ("10:00", True)]

    checkout = client.post(f"{API}/payments/create/{booking['id']}").json()
    assert checkout["snap_token"] == f"snap-token-{checkout['order_id']}"
    assert checkout["amount"] == 200000

    result = client.post(f"{API}/payments/notification", json=signed_notification(checkout["order_id"], "settlement"))
    assert result.status_code == 200
    assert result.json()["payment_status"] == "PAID"
    assert result.json()["owner_status"] == "PENDING"

    paid = client.get(f"{API}/payments/booking/{booking['id']}").json()
    assert paid["status"] == "PAID"
    assert paid["va_number"] == "12345678901"

    assert client.patch(f"{API}/bookings/{booking['id']}/confirm").json()["status"] == "CONFIRMED"
    assert client.patch(f"{API}/bookings/{booking['id']}/complete").json()["status"] == "COMPLETED"

    refused = client.patch(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "Too late"})
    assert refused.status_code == 400
    assert refused.json()["error"]["type"] == "InvalidState"

    income = client.get(f"{API}/reports/doctors/{clinic['doctor']['id']}/income").json()
    assert income["total_income"] == 200000
    assert income["buckets"][0]["period_start"] == "2025-12-01"

    patients = client.get(f"{API}/reports/doctors/{clinic['doctor']['id']}/patients").json()
    assert patients["unique_patients"] == 1
    assert patients["patients"][0]["full_name"] == "Siti Rahma"

    history = client.get(f"{API}/payments/history/{clinic['patient']['id']}", params={"type": "booking"}).json()
    assert [p["order_id"] for p in history] == [checkout["order_id"]]


def test_cancel_voids_pending_checkout(client, clinic, fake_midtrans):
    booking = client.post(f"{API}/bookings/", json=booking_body(clinic)).json()
    checkout = client.post(f"{API}/payments/create/{booking['id']}").json()

    cancelled = client.patch(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "Changed plans"}).json()

    assert cancelled["status"] == "CANCELLED"
    assert cancelled["payment_status"] == "FAILED"
    assert ("POST", f"/v2/{checkout['order_id']}/cancel", None) in fake_midtrans.calls

    late = client.post(f"{API}/payments/notification", json=signed_notification(checkout["order_id"], "settlement"))
    assert late.json()["payment_status"] == "FAILED"
    assert late.json()["owner_status"] == "CANCELLED"


def test_double_booking_conflicts(client, clinic):
    assert client.post(f"{API}/bookings/", json=booking_body(clinic)).status_code == 201

    response = client.post(f"{API}/bookings/", json=booking_body(clinic))

    assert response.status_code == 409
    assert response.json()["error"]["type"] == "Conflict"


def test_date_must_match_schedule_day(client, clinic):
    response = client.post(f"{API}/bookings/", json=booking_body(clinic, schedule_index=2))

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "ValidationError"
    assert error["details"] == {"booking_day": "TUESDAY", "schedule_day": "MONDAY"}


def test_bad_time_format(client, clinic):
    response = client.post(f"{API}/bookings/", json=booking_body(clinic, start_time="9am"))

    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"field": "start_time"}


def test_malformed_body(client, clinic):
    body = booking_body(clinic)
    del body["schedule_id"]

    response = client.post(f"{API}/bookings/", json=body)

    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"


def test_bad_date_query(client, clinic):
    response = client.get(f"{API}/bookings/available-slots/{clinic['doctor']['id']}", params={"date": "16-12-2025"})
    assert response.status_code == 400


def test_forged_notification(client, clinic):
    booking = client.post(f"{API}/bookings/", json=booking_body(clinic)).json()
    checkout = client.post(f"{API}/payments/create/{booking['id']}").json()
    payload = signed_notification(checkout["order_id"], "settlement")
    payload["signature_key"] = "f" * 128

    response = client.post(f"{API}/payments/notification", json=payload)

    assert response.status_code == 401
    assert response.json()["error"] == {
        "code": 401,
        "message": "Invalid notification",
        "type": "AuthenticationFailure",
        "details": None,
    }
    assert client.get(f"{API}/bookings/{booking['id']}").json()["payment_status"] == "PENDING"


def test_unknown_booking(client):
    response = client.get(f"{API}/bookings/missing")

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "NotFound"


def test_duplicate_schedule_in_request(client, clinic):
    response = client.post(f"{API}/doctors/{clinic['doctor']['id']}/schedules", json={"schedules": [
        {"day_of_week": "FRIDAY", "time_slot": "09:00"},
        {"day_of_week": "FRIDAY", "time_slot": "09:00"},
    ]})
    assert response.status_code == 400


def test_marketplace_order_flow(client, clinic, make_product):
    product = make_product(price=50000, quantity=5)
    user_id = clinic["patient"]["id"]

    response = client.post(f"{API}/orders/", json={
        "user_id": user_id,
        "items": [{"product_id": product.id, "quantity": 2}],
        "shipping_cost": 10000,
    })
    assert response.status_code == 201
    checkout = response.json()
    assert checkout["order"]["total_amount"] == 115000
    assert "-MKT-" in checkout["order_payment_id"]

    notification = signed_notification(checkout["order_payment_id"], "settlement", gross_amount="115000.00")
    assert client.post(f"{API}/payments/notification", json=notification).json()["owner_status"] == "PROCESSING"

    order = client.get(f"{API}/orders/{checkout['order']['id']}").json()
    assert order["status"] == "PROCESSING"
    assert order["payment_status"] == "PAID"

    listing = client.get(f"{API}/orders/users/{user_id}").json()
    assert listing["total"] == 1


def test_order_with_repeated_product(client, clinic, make_product):
    product = make_product()
    response = client.post(f"{API}/orders/", json={
        "user_id": clinic["patient"]["id"],
        "items": [{"product_id": product.id, "quantity": 1}, {"product_id": product.id, "quantity": 1}],
    })
    assert response.status_code == 400


@pytest.mark.parametrize("outcome,query", [("finish", "success"), ("pending", "pending"), ("error", "error")])
def test_payment_redirects(client, outcome, query):
    booking = client.get(f"/payment/{outcome}", params={"order_id": "CAREBOOK-1a2b3c4d-1"}, follow_redirects=False)
    order = client.get(f"/payment/{outcome}", params={"order_id": "CAREBOOK-MKT-1a2b3c4d-1"}, follow_redirects=False)

    assert booking.status_code == 307
    assert booking.headers["location"] == (
        f"{settings.frontend_url.rstrip('/')}/bookings?payment={query}&order_id=CAREBOOK-1a2b3c4d-1"
    )
    assert order.headers["location"].startswith(f"{settings.frontend_url.rstrip('/')}/orders?payment={query}")


def test_redirect_without_order_id(client):
    response = client.get("/payment/finish", follow_redirects=False)
    assert response.headers["location"] == f"{settings.frontend_url.rstrip('/')}/"

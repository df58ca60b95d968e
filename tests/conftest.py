import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from carebook.config.database import Base, build_engine, get_db
from carebook.main import app
from carebook.models import ConsultationType, DayOfWeek
from carebook.repositories import DoctorRepository, OrderRepository, UserRepository
from carebook.schemas.booking import BookingCreate
from carebook.services.midtrans_service import MidtransGateway, get_payment_gateway
from tests.factories import SERVER_KEY, TUESDAY, FakeMidtrans


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'carebook-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_midtrans():
    return FakeMidtrans()


@pytest.fixture
def gateway(fake_midtrans):
    gateway = MidtransGateway(server_key=SERVER_KEY, transport=httpx.MockTransport(fake_midtrans))
    yield gateway
    gateway.close()


@pytest.fixture
def client(session_factory, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def patient(db):
    user = UserRepository(db).insert("Siti Rahma", "siti@example.com", "+6281234567890")
    db.commit()
    return user


@pytest.fixture
def doctor(db):
    users = UserRepository(db)
    account = users.insert("Budi Santoso", "dr.budi@example.com", "+6281111111111")
    doctors = DoctorRepository(db)
    doctor_id = doctors.insert(
        user_id=account.id,
        specialization="Endocrinology",
        license_number="STR-0001",
        consultation_fee=200000,
    )
    db.commit()
    return doctors.get(doctor_id)


@pytest.fixture
def make_schedule(db, doctor):
    def _make(day=DayOfWeek.TUESDAY, time_slot="09:00", duration_minutes=30, is_active=True, doctor_id=None):
        schedules = DoctorRepository(db).add_schedules(doctor_id or doctor.id, [{
            "day_of_week": day,
            "time_slot": time_slot,
            "duration_minutes": duration_minutes,
            "is_active": is_active,
        }])
        db.commit()
        return schedules[0]
    return _make


@pytest.fixture
def tuesday_schedule(make_schedule):
    return make_schedule()


@pytest.fixture
def booking_payload(patient, doctor, tuesday_schedule):
    def _payload(**overrides):
        data = {
            "user_id": patient.id,
            "doctor_id": doctor.id,
            "schedule_id": tuesday_schedule.id,
            "booking_date": TUESDAY,
            "start_time": "09:00",
            "end_time": "09:30",
            "duration_minutes": 30,
            "consultation_type": ConsultationType.ONLINE,
            "consultation_fee": 200000,
            "notes": "Follow-up for HbA1c results",
        }
        data.update(overrides)
        return BookingCreate(**data)
    return _payload


@pytest.fixture
def make_product(db):
    def _make(name="Glucose test strips", price=50000, quantity=5):
        product = OrderRepository(db).create_product(name=name, price=price, quantity=quantity)
        db.commit()
        return product
    return _make


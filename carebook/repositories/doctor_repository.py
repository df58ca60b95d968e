"""Doctor repository - doctor profiles and the schedule store"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from carebook.models import DayOfWeek, Doctor, DoctorSchedule, User
from carebook.repositories.records import DoctorRecord, ScheduleRecord


class DoctorRepository:
    """Repository for doctor and doctor schedule database operations"""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return self.db.query(Doctor, User).join(User, User.id == Doctor.user_id)

    @staticmethod
    def _to_record(doctor: Doctor, user: User) -> DoctorRecord:
        return DoctorRecord(
            id=doctor.id,
            user_id=doctor.user_id,
            full_name=user.full_name,
            email=user.email,
            phone_number=user.phone_number,
            specialization=doctor.specialization,
            license_number=doctor.license_number,
            practice_address=doctor.practice_address,
            consultation_fee=doctor.consultation_fee,
            is_available=doctor.is_available,
            rating=doctor.rating,
            total_patients=doctor.total_patients,
        )

    def get(self, doctor_id: str) -> Optional[DoctorRecord]:
        """Get doctor with account details by doctor ID"""
        result = self._base_query().filter(Doctor.id == doctor_id).first()
        return self._to_record(*result) if result else None

    def exists_for_user(self, user_id: str) -> bool:
        return self.db.query(Doctor.id).filter(Doctor.user_id == user_id).first() is not None

    def exists_for_license(self, license_number: str) -> bool:
        return self.db.query(Doctor.id).filter(Doctor.license_number == license_number).first() is not None

    def list(self, specialization: Optional[str] = None, is_available: Optional[bool] = None) -> List[DoctorRecord]:
        query = self._base_query()
        if specialization:
            query = query.filter(Doctor.specialization.ilike(f"%{specialization}%"))
        if is_available is not None:
            query = query.filter(Doctor.is_available == is_available)

        rows = query.order_by(Doctor.rating.desc(), Doctor.total_patients.desc()).all()
        return [self._to_record(doctor, user) for doctor, user in rows]

    def insert(self, **fields) -> str:
        doctor = Doctor(**fields)
        self.db.add(doctor)
        self.db.flush()
        return doctor.id

    def set_availability(self, doctor_id: str, is_available: bool) -> int:
        return self.db.query(Doctor).filter(Doctor.id == doctor_id).update(
            {"is_available": is_available},
            synchronize_session=False
        )

    def increment_total_patients(self, doctor_id: str) -> None:
        self.db.query(Doctor).filter(Doctor.id == doctor_id).update(
            {"total_patients": Doctor.total_patients + 1},
            synchronize_session=False
        )

    # Schedule store

    def add_schedules(self, doctor_id: str, items: Iterable[dict]) -> List[ScheduleRecord]:
        rows = [DoctorSchedule(doctor_id=doctor_id, **item) for item in items]
        self.db.add_all(rows)
        self.db.flush()
        return [ScheduleRecord.from_row(row) for row in rows]

    def get_schedule(self, schedule_id: str) -> Optional[ScheduleRecord]:
        row = self.db.query(DoctorSchedule).filter(DoctorSchedule.id == schedule_id).first()
        return ScheduleRecord.from_row(row) if row else None

    def list_schedules(
        self,
        doctor_id: str,
        day_of_week: Optional[DayOfWeek] = None,
        active_only: bool = False
    ) -> List[ScheduleRecord]:
        query = self.db.query(DoctorSchedule).filter(DoctorSchedule.doctor_id == doctor_id)
        if day_of_week is not None:
            query = query.filter(DoctorSchedule.day_of_week == day_of_week)
        if active_only:
            query = query.filter(DoctorSchedule.is_active.is_(True))

        rows = query.order_by(DoctorSchedule.day_of_week, DoctorSchedule.time_slot).all()
        return [ScheduleRecord.from_row(row) for row in rows]

    def update_schedule(self, schedule_id: str, changes: dict) -> Optional[ScheduleRecord]:
        row = self.db.query(DoctorSchedule).filter(DoctorSchedule.id == schedule_id).first()
        if not row:
            return None

        for key, value in changes.items():
            setattr(row, key, value)
        self.db.flush()
        return ScheduleRecord.from_row(row)

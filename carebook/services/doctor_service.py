import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from carebook.config.database import transactional
from carebook.models.doctor import DayOfWeek
from carebook.repositories import DoctorRepository, UserRepository
from carebook.repositories.records import DoctorRecord, ScheduleRecord
from carebook.schemas.doctor import DoctorCreate, ScheduleItem
from carebook.utils.errors import DoctorNotFound, DuplicateDoctorProfile, ScheduleNotFound, UserNotFound

logger = logging.getLogger(__name__)


class DoctorService:
    @staticmethod
    def create_doctor(db: Session, doctor_data: DoctorCreate) -> DoctorRecord:
        if not UserRepository(db).get(doctor_data.user_id):
            raise UserNotFound(f"User with ID {doctor_data.user_id} not found")

        doctors = DoctorRepository(db)
        if doctors.exists_for_user(doctor_data.user_id):
            raise DuplicateDoctorProfile(f"User {doctor_data.user_id} already has a doctor profile")
        if doctors.exists_for_license(doctor_data.license_number):
            raise DuplicateDoctorProfile(f"License number {doctor_data.license_number} is already registered")

        try:
            with transactional(db):
                doctor_id = doctors.insert(**doctor_data.model_dump())
        except IntegrityError:
            raise DuplicateDoctorProfile("Doctor profile already exists for this user or license")

        logger.info(f"✓ Created doctor profile {doctor_id}")
        return doctors.get(doctor_id)

    @staticmethod
    def get_doctor_by_id(db: Session, doctor_id: str) -> DoctorRecord:
        doctor = DoctorRepository(db).get(doctor_id)
        if not doctor:
            raise DoctorNotFound(f"Doctor with ID {doctor_id} not found")
        return doctor

    @staticmethod
    def get_all_doctors(
        db: Session,
        specialization: Optional[str] = None,
        is_available: Optional[bool] = None
    ) -> List[DoctorRecord]:
        return DoctorRepository(db).list(specialization, is_available)

    @staticmethod
    def update_availability(db: Session, doctor_id: str, is_available: bool) -> DoctorRecord:
        doctors = DoctorRepository(db)
        with transactional(db):
            if not doctors.set_availability(doctor_id, is_available):
                raise DoctorNotFound(f"Doctor with ID {doctor_id} not found")
        return doctors.get(doctor_id)

    # Schedules

    @staticmethod
    def add_schedules(db: Session, doctor_id: str, items: List[ScheduleItem]) -> List[ScheduleRecord]:
        DoctorService.get_doctor_by_id(db, doctor_id)
        with transactional(db):
            schedules = DoctorRepository(db).add_schedules(doctor_id, [item.model_dump() for item in items])
        logger.info(f"✓ Added {len(schedules)} schedule(s) for doctor {doctor_id}")
        return schedules

    @staticmethod
    def get_schedules(
        db: Session,
        doctor_id: str,
        day_of_week: Optional[DayOfWeek] = None,
        active_only: bool = False
    ) -> List[ScheduleRecord]:
        DoctorService.get_doctor_by_id(db, doctor_id)
        return DoctorRepository(db).list_schedules(doctor_id, day_of_week, active_only)

    @staticmethod
    def update_schedule(db: Session, schedule_id: str, changes: dict) -> ScheduleRecord:
        with transactional(db):
            schedule = DoctorRepository(db).update_schedule(schedule_id, changes)
            if not schedule:
                raise ScheduleNotFound(f"Schedule with ID {schedule_id} not found")
        return schedule

"""Booking repository - Database operations for slot bookings"""

from datetime import date
from typing import List, Optional, Set

from sqlalchemy.orm import Session, aliased

from carebook.models import Booking, BookingStatus, Doctor, DoctorSchedule, PaymentStatus, User
from carebook.repositories.records import BookingDetail, BookingRecord


class BookingRepository:
    """Repository for booking database operations"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, booking_id: str, for_update: bool = False) -> Optional[BookingRecord]:
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        return BookingRecord.from_row(row) if row else None

    def _detail_query(self):
        # booking -> doctor -> doctor's account, booking -> patient, booking -> schedule
        doctor_user = aliased(User)
        patient = aliased(User)
        return (
            self.db.query(Booking, Doctor, doctor_user, patient, DoctorSchedule)
            .outerjoin(Doctor, Doctor.id == Booking.doctor_id)
            .outerjoin(doctor_user, doctor_user.id == Doctor.user_id)
            .outerjoin(patient, patient.id == Booking.user_id)
            .outerjoin(DoctorSchedule, DoctorSchedule.id == Booking.schedule_id)
        )

    @staticmethod
    def _to_detail(booking, doctor, doctor_user, patient, schedule) -> BookingDetail:
        return BookingDetail(
            booking=BookingRecord.from_row(booking),
            doctor_name=doctor_user.full_name if doctor_user else None,
            doctor_specialization=doctor.specialization if doctor else None,
            patient_name=patient.full_name if patient else None,
            patient_email=patient.email if patient else None,
            patient_phone=patient.phone_number if patient else None,
            schedule_day=schedule.day_of_week if schedule else None,
            schedule_time=schedule.time_slot if schedule else None,
        )

    def get_detail(self, booking_id: str) -> Optional[BookingDetail]:
        result = self._detail_query().filter(Booking.id == booking_id).first()
        return self._to_detail(*result) if result else None

    def list_details(
        self,
        status: Optional[BookingStatus] = None,
        doctor_id: Optional[str] = None,
        user_id: Optional[str] = None,
        booking_date: Optional[date] = None,
        newest_first: bool = False
    ) -> List[BookingDetail]:
        query = self._detail_query()
        if status is not None:
            query = query.filter(Booking.status == status)
        if doctor_id:
            query = query.filter(Booking.doctor_id == doctor_id)
        if user_id:
            query = query.filter(Booking.user_id == user_id)
        if booking_date is not None:
            query = query.filter(Booking.booking_date == booking_date)

        date_order = Booking.booking_date.desc() if newest_first else Booking.booking_date.asc()
        rows = query.order_by(date_order, Booking.start_time.asc()).all()
        return [self._to_detail(*row) for row in rows]

    def find_active_for_slot(self, schedule_id: str, booking_date: date) -> Optional[BookingRecord]:
        row = self.db.query(Booking).filter(
            Booking.schedule_id == schedule_id,
            Booking.booking_date == booking_date,
            Booking.status != BookingStatus.CANCELLED
        ).first()
        return BookingRecord.from_row(row) if row else None

    def booked_schedule_ids(self, doctor_id: str, booking_date: date) -> Set[str]:
        rows = self.db.query(Booking.schedule_id).filter(
            Booking.doctor_id == doctor_id,
            Booking.booking_date == booking_date,
            Booking.status != BookingStatus.CANCELLED
        ).all()
        return {row.schedule_id for row in rows}

    def insert(self, **fields) -> BookingRecord:
        """Insert a booking; raises IntegrityError when the slot is already taken"""
        row = Booking(**fields)
        self.db.add(row)
        self.db.flush()
        return BookingRecord.from_row(row)

    def update(
        self,
        booking_id: str,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        cancellation_reason: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[BookingRecord]:
        row = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not row:
            return None

        if status is not None:
            row.status = status
        if payment_status is not None:
            row.payment_status = payment_status
        if cancellation_reason is not None:
            row.cancellation_reason = cancellation_reason
        if notes is not None:
            row.notes = notes

        self.db.flush()
        return BookingRecord.from_row(row)

    def completed_paid_for_doctor(
        self,
        doctor_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[BookingRecord]:
        query = self.db.query(Booking).filter(
            Booking.doctor_id == doctor_id,
            Booking.status == BookingStatus.COMPLETED,
            Booking.payment_status == PaymentStatus.PAID
        )
        if start_date is not None:
            query = query.filter(Booking.booking_date >= start_date)
        if end_date is not None:
            query = query.filter(Booking.booking_date <= end_date)

        rows = query.order_by(Booking.booking_date.asc()).all()
        return [BookingRecord.from_row(row) for row in rows]

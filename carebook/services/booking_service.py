import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from carebook.config.database import transactional
from carebook.models.booking import BookingStatus, PaymentStatus
from carebook.models.doctor import DayOfWeek
from carebook.repositories import BookingPaymentRepository, BookingRepository, DoctorRepository, UserRepository
from carebook.repositories.records import BookingDetail
from carebook.schemas.booking import BookingCreate
from carebook.services.midtrans_service import MidtransGateway
from carebook.services.redis_service import slot_cache
from carebook.utils.errors import (
    BookingNotFound,
    DateDayMismatch,
    DoctorNotFound,
    DoctorUnavailable,
    GatewayError,
    InvalidBookingState,
    ScheduleInactive,
    ScheduleMismatch,
    ScheduleNotFound,
    SlotAlreadyBooked,
    UserNotFound,
)

logger = logging.getLogger(__name__)

# Index 0 is Sunday, matching date.isoweekday() % 7
DAYS_FROM_SUNDAY = [
    DayOfWeek.SUNDAY,
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
]


def day_of_week_for(value: date) -> DayOfWeek:
    return DAYS_FROM_SUNDAY[value.isoweekday() % 7]


class BookingService:
    @staticmethod
    def create_booking(db: Session, booking_data: BookingCreate) -> BookingDetail:
        if not UserRepository(db).get(booking_data.user_id):
            raise UserNotFound(f"User with ID {booking_data.user_id} not found")

        doctors = DoctorRepository(db)
        doctor = doctors.get(booking_data.doctor_id)
        if not doctor:
            raise DoctorNotFound(f"Doctor with ID {booking_data.doctor_id} not found")
        if not doctor.is_available:
            raise DoctorUnavailable("Doctor is not available for booking")

        schedule = doctors.get_schedule(booking_data.schedule_id)
        if not schedule:
            raise ScheduleNotFound(f"Schedule with ID {booking_data.schedule_id} not found")
        if schedule.doctor_id != doctor.id:
            raise ScheduleMismatch("Schedule does not belong to this doctor")
        if not schedule.is_active:
            raise ScheduleInactive("Schedule is not active")

        booking_day = day_of_week_for(booking_data.booking_date)
        if booking_day != schedule.day_of_week:
            raise DateDayMismatch(
                f"Booking date {booking_data.booking_date} is a {booking_day.value}, "
                f"but the schedule is for {schedule.day_of_week.value}",
                details={"booking_day": booking_day.value, "schedule_day": schedule.day_of_week.value}
            )

        bookings = BookingRepository(db)
        if bookings.find_active_for_slot(schedule.id, booking_data.booking_date):
            raise SlotAlreadyBooked("This schedule slot is already booked for the selected date")

        # The partial unique index settles races the pre-check above cannot see
        try:
            with transactional(db):
                booking = bookings.insert(
                    **booking_data.model_dump(),
                    status=BookingStatus.PENDING_PAYMENT,
                    payment_status=PaymentStatus.PENDING,
                )
        except IntegrityError:
            logger.warning(f"Slot {schedule.id} on {booking_data.booking_date} taken by a concurrent booking")
            raise SlotAlreadyBooked("This schedule slot is already booked for the selected date")

        slot_cache.invalidate(doctor.id, booking_data.booking_date.isoformat())
        logger.info(f"✓ Booking {booking.id} created for schedule {schedule.id} on {booking.booking_date}")
        return bookings.get_detail(booking.id)

    @staticmethod
    def get_available_slots(db: Session, doctor_id: str, slot_date: date) -> dict:
        version = slot_cache.version(doctor_id, slot_date.isoformat())
        cached = slot_cache.get(doctor_id, slot_date.isoformat(), version)
        if cached:
            return cached

        doctors = DoctorRepository(db)
        if not doctors.get(doctor_id):
            raise DoctorNotFound(f"Doctor with ID {doctor_id} not found")

        day = day_of_week_for(slot_date)
        schedules = doctors.list_schedules(doctor_id, day_of_week=day, active_only=True)
        booked = BookingRepository(db).booked_schedule_ids(doctor_id, slot_date)

        slots = [
            {
                "schedule_id": schedule.id,
                "time_slot": schedule.time_slot,
                "duration_minutes": schedule.duration_minutes,
                "is_available": schedule.id not in booked,
            }
            for schedule in sorted(schedules, key=lambda s: s.time_slot)
        ]

        result = {
            "doctor_id": doctor_id,
            "date": slot_date.isoformat(),
            "day_of_week": day.value,
            "slots": slots,
            "total_slots": len(slots),
            "available_count": sum(1 for slot in slots if slot["is_available"]),
        }
        slot_cache.set(doctor_id, slot_date.isoformat(), version, result)
        return result

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: str) -> BookingDetail:
        booking = BookingRepository(db).get_detail(booking_id)
        if not booking:
            raise BookingNotFound(f"Booking with ID {booking_id} not found")
        return booking

    @staticmethod
    def get_all_bookings(
        db: Session,
        status: Optional[BookingStatus] = None,
        doctor_id: Optional[str] = None,
        booking_date: Optional[date] = None
    ) -> List[BookingDetail]:
        return BookingRepository(db).list_details(status=status, doctor_id=doctor_id, booking_date=booking_date)

    @staticmethod
    def get_user_bookings(db: Session, user_id: str, status: Optional[BookingStatus] = None) -> List[BookingDetail]:
        return BookingRepository(db).list_details(status=status, user_id=user_id, newest_first=True)

    @staticmethod
    def get_doctor_bookings(
        db: Session,
        doctor_id: str,
        status: Optional[BookingStatus] = None,
        booking_date: Optional[date] = None
    ) -> List[BookingDetail]:
        if not DoctorRepository(db).get(doctor_id):
            raise DoctorNotFound(f"Doctor with ID {doctor_id} not found")
        return BookingRepository(db).list_details(status=status, doctor_id=doctor_id, booking_date=booking_date)

    @staticmethod
    def _transition(db: Session, booking_id: str, allowed, target: BookingStatus, reason: Optional[str] = None):
        bookings = BookingRepository(db)
        payments = BookingPaymentRepository(db)
        released = None
        with transactional(db):
            # Payment before booking, the same lock order as the webhook path
            payment = payments.get_by_owner(booking_id, for_update=True)
            booking = bookings.get(booking_id, for_update=True)
            if not booking:
                raise BookingNotFound(f"Booking with ID {booking_id} not found")
            if booking.status not in allowed:
                raise InvalidBookingState(
                    f"Cannot move booking from {booking.status.value} to {target.value}",
                    details={"current_status": booking.status.value}
                )

            bookings.update(booking_id, status=target, cancellation_reason=reason)
            if target == BookingStatus.CANCELLED and payment and payment.status == PaymentStatus.PENDING:
                payments.set_status(payment.id, PaymentStatus.FAILED)
                bookings.update(booking_id, payment_status=PaymentStatus.FAILED)
                released = payment
            if target == BookingStatus.COMPLETED:
                DoctorRepository(db).increment_total_patients(booking.doctor_id)

        slot_cache.invalidate(booking.doctor_id, booking.booking_date.isoformat())
        logger.info(f"✓ Booking {booking_id}: {booking.status.value} -> {target.value}")
        return bookings.get_detail(booking_id), released

    @staticmethod
    def confirm_booking(db: Session, booking_id: str) -> BookingDetail:
        """Doctor accepts a paid booking"""
        return BookingService._transition(db, booking_id, {BookingStatus.PENDING}, BookingStatus.CONFIRMED)[0]

    @staticmethod
    def complete_booking(db: Session, booking_id: str) -> BookingDetail:
        return BookingService._transition(db, booking_id, {BookingStatus.CONFIRMED}, BookingStatus.COMPLETED)[0]

    @staticmethod
    def cancel_booking(
        db: Session,
        booking_id: str,
        reason: Optional[str] = None,
        gateway: Optional[MidtransGateway] = None
    ) -> BookingDetail:
        """Cancel and free the slot; a still-pending payment is failed with it"""
        allowed = {BookingStatus.PENDING_PAYMENT, BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.EXPIRED}
        detail, released = BookingService._transition(
            db, booking_id, allowed, BookingStatus.CANCELLED, reason or "Cancelled by user"
        )

        if released and gateway:
            try:
                gateway.cancel_transaction(released.gateway_order_id)
            except GatewayError as e:
                logger.warning(f"Gateway cancel for {released.gateway_order_id} ignored: {e.message}")
        return detail

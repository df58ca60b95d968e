from collections import defaultdict
from datetime import date, timedelta
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from carebook.repositories import BookingRepository, DoctorRepository, UserRepository
from carebook.utils.errors import DoctorNotFound, ValidationError

PERIODS = ("daily", "weekly", "monthly")


def period_window(day: date, period: str) -> Tuple[date, date]:
    """First and last day of the daily/weekly (Monday start)/monthly window holding ``day``"""
    if period == "daily":
        return day, day
    if period == "weekly":
        start = day - timedelta(days=day.weekday())
        return start, start + timedelta(days=6)
    start = day.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


class ReportService:
    """Rollups over COMPLETED bookings paid through the gateway"""

    @staticmethod
    def _completed(db: Session, doctor_id: str, start_date: Optional[date], end_date: Optional[date]):
        if not DoctorRepository(db).get(doctor_id):
            raise DoctorNotFound(f"Doctor with ID {doctor_id} not found")
        return BookingRepository(db).completed_paid_for_doctor(doctor_id, start_date, end_date)

    @staticmethod
    def income_summary(
        db: Session,
        doctor_id: str,
        period: str = "monthly",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> dict:
        if period not in PERIODS:
            raise ValidationError(f"period must be one of {', '.join(PERIODS)}", details={"field": "period"})

        bookings = ReportService._completed(db, doctor_id, start_date, end_date)

        buckets = {}
        totals = defaultdict(lambda: {"count": 0, "income": 0})
        for booking in bookings:
            window = period_window(booking.booking_date, period)
            bucket = buckets.setdefault(window, {
                "period_start": window[0],
                "period_end": window[1],
                "total_income": 0,
                "booking_count": 0,
                "by_consultation_type": defaultdict(lambda: {"count": 0, "income": 0}),
            })
            kind = booking.consultation_type.value
            bucket["total_income"] += booking.consultation_fee
            bucket["booking_count"] += 1
            bucket["by_consultation_type"][kind]["count"] += 1
            bucket["by_consultation_type"][kind]["income"] += booking.consultation_fee
            totals[kind]["count"] += 1
            totals[kind]["income"] += booking.consultation_fee

        ordered = [buckets[key] for key in sorted(buckets)]
        for bucket in ordered:
            bucket["by_consultation_type"] = dict(bucket["by_consultation_type"])

        return {
            "doctor_id": doctor_id,
            "period": period,
            "start_date": start_date,
            "end_date": end_date,
            "total_income": sum(b.consultation_fee for b in bookings),
            "total_bookings": len(bookings),
            "by_consultation_type": dict(totals),
            "buckets": ordered,
        }

    @staticmethod
    def patient_summary(
        db: Session,
        doctor_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> dict:
        bookings = ReportService._completed(db, doctor_id, start_date, end_date)

        visits = {}
        by_type = defaultdict(int)
        for booking in bookings:
            by_type[booking.consultation_type.value] += 1
            visit = visits.setdefault(booking.user_id, {"consultations": 0, "last_visit": booking.booking_date})
            visit["consultations"] += 1
            visit["last_visit"] = max(visit["last_visit"], booking.booking_date)

        users = UserRepository(db)
        patients = []
        for user_id, visit in visits.items():
            user = users.get(user_id)
            patients.append({
                "user_id": user_id,
                "full_name": user.full_name if user else None,
                "consultations": visit["consultations"],
                "last_visit": visit["last_visit"],
            })
        patients.sort(key=lambda p: p["consultations"], reverse=True)

        return {
            "doctor_id": doctor_id,
            "start_date": start_date,
            "end_date": end_date,
            "unique_patients": len(visits),
            "total_consultations": len(bookings),
            "by_consultation_type": dict(by_type),
            "patients": patients,
        }

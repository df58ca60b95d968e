from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from carebook.models.booking import BookingStatus, PaymentStatus, ConsultationType
from carebook.models.doctor import DayOfWeek


class BookingCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=36)
    doctor_id: str = Field(..., min_length=1, max_length=36)
    schedule_id: str = Field(..., min_length=1, max_length=36)
    booking_date: date = Field(..., description="Format: YYYY-MM-DD")
    start_time: str = Field(..., description="Format: HH:MM")
    end_time: str = Field(..., description="Format: HH:MM")
    duration_minutes: int
    consultation_type: ConsultationType
    consultation_fee: int = Field(..., description="Fee in Rupiah")
    notes: Optional[str] = Field(None, max_length=500)


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: str
    user_id: str
    doctor_id: str
    schedule_id: str
    booking_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    consultation_type: ConsultationType
    consultation_fee: int
    status: BookingStatus
    payment_status: PaymentStatus
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_specialization: Optional[str] = None
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_detail(cls, detail) -> "BookingResponse":
        booking = detail.booking
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            doctor_id=booking.doctor_id,
            schedule_id=booking.schedule_id,
            booking_date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            duration_minutes=booking.duration_minutes,
            consultation_type=booking.consultation_type,
            consultation_fee=booking.consultation_fee,
            status=booking.status,
            payment_status=booking.payment_status,
            notes=booking.notes,
            cancellation_reason=booking.cancellation_reason,
            doctor_name=detail.doctor_name,
            doctor_specialization=detail.doctor_specialization,
            patient_name=detail.patient_name,
            patient_email=detail.patient_email,
            patient_phone=detail.patient_phone,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class AvailableSlot(BaseModel):
    schedule_id: str
    time_slot: str
    duration_minutes: int
    is_available: bool


class AvailableSlotsResponse(BaseModel):
    doctor_id: str
    date: date
    day_of_week: DayOfWeek
    slots: List[AvailableSlot]
    total_slots: int
    available_count: int

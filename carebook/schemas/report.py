from pydantic import BaseModel
from datetime import date
from typing import Dict, List, Optional


class TypeBreakdown(BaseModel):
    count: int
    income: int


class IncomeBucket(BaseModel):
    period_start: date
    period_end: date
    total_income: int
    booking_count: int
    by_consultation_type: Dict[str, TypeBreakdown]


class IncomeSummaryResponse(BaseModel):
    doctor_id: str
    period: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_income: int
    total_bookings: int
    by_consultation_type: Dict[str, TypeBreakdown]
    buckets: List[IncomeBucket]


class PatientVisit(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    consultations: int
    last_visit: date


class PatientSummaryResponse(BaseModel):
    doctor_id: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    unique_patients: int
    total_consultations: int
    by_consultation_type: Dict[str, int]
    patients: List[PatientVisit]

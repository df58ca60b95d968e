from pydantic import BaseModel, Field
from typing import List, Optional
from carebook.models.doctor import DayOfWeek


class DoctorCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=36)
    specialization: str = Field("General Medicine", min_length=1, max_length=100)
    license_number: str = Field(..., min_length=1, max_length=50)
    practice_address: Optional[str] = Field(None, max_length=300)
    consultation_fee: int = Field(0, ge=0, description="Default fee in Rupiah")
    is_available: bool = True


class DoctorAvailabilityUpdate(BaseModel):
    is_available: bool


class DoctorResponse(BaseModel):
    id: str
    user_id: str
    full_name: str
    email: str
    phone_number: Optional[str] = None
    specialization: str
    license_number: str
    practice_address: Optional[str] = None
    consultation_fee: int
    is_available: bool
    rating: float
    total_patients: int

    class Config:
        from_attributes = True


class ScheduleItem(BaseModel):
    day_of_week: DayOfWeek
    time_slot: str = Field(..., description="Format: HH:MM")
    duration_minutes: int = 30
    is_active: bool = True


class ScheduleCreate(BaseModel):
    schedules: List[ScheduleItem]


class ScheduleUpdate(BaseModel):
    day_of_week: Optional[DayOfWeek] = None
    time_slot: Optional[str] = None
    duration_minutes: Optional[int] = None
    is_active: Optional[bool] = None


class ScheduleResponse(BaseModel):
    id: str
    doctor_id: str
    day_of_week: DayOfWeek
    time_slot: str
    duration_minutes: int
    is_active: bool

    class Config:
        from_attributes = True

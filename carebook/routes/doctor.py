from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from carebook.config.database import get_db
from carebook.models.doctor import DayOfWeek
from carebook.schemas.doctor import (
    DoctorAvailabilityUpdate,
    DoctorCreate,
    DoctorResponse,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
)
from carebook.services.doctor_service import DoctorService
from carebook.utils.validators import unwrap, validate_schedule_items, validate_schedule_update

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.post("/", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(doctor: DoctorCreate, db: Session = Depends(get_db)):
    """
    Create a doctor profile for an existing user:

    - **user_id**: Account the profile belongs to (one profile per user)
    - **license_number**: Unique practice license
    - **consultation_fee**: Default fee in Rupiah
    """
    return DoctorService.create_doctor(db, doctor)

@router.get("/", response_model=List[DoctorResponse])
def get_all_doctors(
    specialization: Optional[str] = Query(None, description="Case-insensitive substring match"),
    is_available: Optional[bool] = Query(None),
    db: Session = Depends(get_db)
):
    """List doctors ordered by rating"""
    return DoctorService.get_all_doctors(db, specialization, is_available)

@router.patch("/schedules/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(schedule_id: str, schedule: ScheduleUpdate, db: Session = Depends(get_db)):
    """Update a single schedule entry (time, duration, active flag)"""
    changes = unwrap(validate_schedule_update(schedule))
    return DoctorService.update_schedule(db, schedule_id, changes)

@router.get("/{doctor_id}", response_model=DoctorResponse)
def get_doctor(doctor_id: str, db: Session = Depends(get_db)):
    """Get doctor by ID"""
    return DoctorService.get_doctor_by_id(db, doctor_id)

@router.patch("/{doctor_id}/availability", response_model=DoctorResponse)
def update_availability(doctor_id: str, availability: DoctorAvailabilityUpdate, db: Session = Depends(get_db)):
    """Open or close a doctor for new bookings"""
    return DoctorService.update_availability(db, doctor_id, availability.is_available)

@router.post("/{doctor_id}/schedules", response_model=List[ScheduleResponse], status_code=status.HTTP_201_CREATED)
def add_schedules(doctor_id: str, payload: ScheduleCreate, db: Session = Depends(get_db)):
    """Add weekly schedule slots for a doctor"""
    items = unwrap(validate_schedule_items(payload.schedules))
    return DoctorService.add_schedules(db, doctor_id, items)

@router.get("/{doctor_id}/schedules", response_model=List[ScheduleResponse])
def get_schedules(
    doctor_id: str,
    day_of_week: Optional[DayOfWeek] = Query(None),
    active_only: bool = Query(False),
    db: Session = Depends(get_db)
):
    """List a doctor's weekly schedule"""
    return DoctorService.get_schedules(db, doctor_id, day_of_week, active_only)

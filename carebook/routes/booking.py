from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from carebook.config.database import get_db
from carebook.models.booking import BookingStatus
from carebook.schemas.booking import AvailableSlotsResponse, BookingCancel, BookingCreate, BookingResponse
from carebook.services.booking_service import BookingService
from carebook.services.midtrans_service import MidtransGateway, get_payment_gateway
from carebook.utils.validators import unwrap, validate_create_booking, validate_date_param

router = APIRouter(prefix="/bookings", tags=["Bookings"])

def _optional_date(value: Optional[str], field: str):
    return unwrap(validate_date_param(value, field)) if value else None

@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(booking: BookingCreate, db: Session = Depends(get_db)):
    """Reserve a schedule slot on a date; the booking waits for payment"""
    unwrap(validate_create_booking(booking))
    return BookingResponse.from_detail(BookingService.create_booking(db, booking))

@router.get("/", response_model=List[BookingResponse])
def get_all_bookings(
    status: Optional[BookingStatus] = Query(None),
    doctor_id: Optional[str] = Query(None),
    booking_date: Optional[str] = Query(None, description="Format: YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """List bookings with optional filters"""
    day = _optional_date(booking_date, "booking_date")
    return [BookingResponse.from_detail(b) for b in BookingService.get_all_bookings(db, status, doctor_id, day)]

@router.get("/available-slots/{doctor_id}", response_model=AvailableSlotsResponse)
def get_available_slots(doctor_id: str, date: str = Query(..., description="Format: YYYY-MM-DD"), db: Session = Depends(get_db)):
    """Get a doctor's schedule slots for a date with their availability"""
    slot_date = unwrap(validate_date_param(date))
    return BookingService.get_available_slots(db, doctor_id, slot_date)

@router.get("/users/{user_id}", response_model=List[BookingResponse])
def get_user_bookings(user_id: str, status: Optional[BookingStatus] = Query(None), db: Session = Depends(get_db)):
    """Get a patient's bookings, newest first"""
    return [BookingResponse.from_detail(b) for b in BookingService.get_user_bookings(db, user_id, status)]

@router.get("/doctors/{doctor_id}", response_model=List[BookingResponse])
def get_doctor_bookings(
    doctor_id: str,
    status: Optional[BookingStatus] = Query(None),
    booking_date: Optional[str] = Query(None, description="Format: YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """Get all bookings for a specific doctor"""
    day = _optional_date(booking_date, "booking_date")
    return [BookingResponse.from_detail(b) for b in BookingService.get_doctor_bookings(db, doctor_id, status, day)]

@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    """Get booking by ID"""
    return BookingResponse.from_detail(BookingService.get_booking_by_id(db, booking_id))

@router.patch("/{booking_id}/confirm", response_model=BookingResponse)
def confirm_booking(booking_id: str, db: Session = Depends(get_db)):
    """Doctor confirms a paid booking"""
    return BookingResponse.from_detail(BookingService.confirm_booking(db, booking_id))

@router.patch("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(booking_id: str, db: Session = Depends(get_db)):
    """Doctor marks a confirmed consultation as done"""
    return BookingResponse.from_detail(BookingService.complete_booking(db, booking_id))

@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancel] = None,
    db: Session = Depends(get_db),
    gateway: MidtransGateway = Depends(get_payment_gateway)
):
    """Cancel a booking, free its slot and void a still-pending checkout"""
    reason = payload.reason if payload else None
    return BookingResponse.from_detail(BookingService.cancel_booking(db, booking_id, reason, gateway))

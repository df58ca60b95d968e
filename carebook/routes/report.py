from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from carebook.config.database import get_db
from carebook.schemas.report import IncomeSummaryResponse, PatientSummaryResponse
from carebook.services.report_service import ReportService
from carebook.utils.validators import unwrap, validate_date_param, validate_date_range

router = APIRouter(prefix="/reports", tags=["Reports"])

def _date_range(start_date: Optional[str], end_date: Optional[str]):
    start = unwrap(validate_date_param(start_date, "start_date")) if start_date else None
    end = unwrap(validate_date_param(end_date, "end_date")) if end_date else None
    return unwrap(validate_date_range(start, end))

@router.get("/doctors/{doctor_id}/income", response_model=IncomeSummaryResponse)
def get_income_summary(
    doctor_id: str,
    period: str = Query("monthly", description="daily, weekly or monthly"),
    start_date: Optional[str] = Query(None, description="Format: YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="Format: YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """Income from completed, paid consultations grouped by period and type"""
    start, end = _date_range(start_date, end_date)
    return ReportService.income_summary(db, doctor_id, period, start, end)

@router.get("/doctors/{doctor_id}/patients", response_model=PatientSummaryResponse)
def get_patient_summary(
    doctor_id: str,
    start_date: Optional[str] = Query(None, description="Format: YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="Format: YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """Patients seen in completed, paid consultations"""
    start, end = _date_range(start_date, end_date)
    return ReportService.patient_summary(db, doctor_id, start, end)

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import (
    get_bearer_token, get_current_admin_id, get_current_patient_id,
    get_token_authority, rate_limit_check
)
from ...services.booking_service import BookingService
from ...services.patient_service import PatientService
from ...services.token_service import TokenAuthority
from ...schemas.appointment import AppointmentResponse
from ...schemas.patient import PatientCreate, PatientResponse

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def register_patient(
    patient_data: PatientCreate,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient."""
    patient_service = PatientService(db)
    return PatientResponse.model_validate(patient_service.register_patient(patient_data))

@router.get("/me", response_model=PatientResponse)
def get_patient_details(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    token_authority: TokenAuthority = Depends(get_token_authority)
):
    """Details of the patient the token belongs to."""
    patient_service = PatientService(db)
    return PatientResponse.model_validate(
        patient_service.get_patient_details(token, token_authority)
    )

@router.get("/me/appointments", response_model=List[AppointmentResponse])
def get_patient_appointments(
    patient_id: int = Depends(get_current_patient_id),
    db: Session = Depends(get_db)
):
    """All appointments of the calling patient."""
    booking_service = BookingService(db)
    return [
        AppointmentResponse.model_validate(a)
        for a in booking_service.patient_appointments(patient_id)
    ]

@router.get("/me/appointments/filter", response_model=List[AppointmentResponse])
def filter_patient_appointments(
    condition: Optional[str] = None,
    doctor_name: Optional[str] = None,
    patient_id: int = Depends(get_current_patient_id),
    db: Session = Depends(get_db)
):
    """Filter the caller's appointments by past/future and doctor name."""
    booking_service = BookingService(db)
    appointments = booking_service.filter_patient_appointments(
        patient_id, condition, doctor_name
    )
    return [AppointmentResponse.model_validate(a) for a in appointments]

@router.delete("/{patient_id}")
def delete_patient(
    patient_id: int,
    admin_id: int = Depends(get_current_admin_id),
    db: Session = Depends(get_db)
):
    """Delete a patient and its appointments (admin only)."""
    patient_service = PatientService(db)
    patient_service.delete_patient(patient_id)

    return {"message": "Patient deleted successfully", "id": patient_id}

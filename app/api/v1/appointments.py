from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import (
    get_bearer_token, get_current_doctor_id, get_current_patient_id,
    get_token_authority
)
from ...services.booking_service import BookingService
from ...services.token_service import TokenAuthority
from ...schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentResponse, StatusUpdate
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

# Booking routes are sync so the per-doctor lock is taken in the threadpool,
# not on the event loop.

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    appointment_data: AppointmentCreate,
    patient_id: int = Depends(get_current_patient_id),
    db: Session = Depends(get_db)
):
    """Book an appointment for the patient identified by the token."""
    booking_service = BookingService(db)
    appointment = booking_service.book(
        appointment_data.doctor_id,
        patient_id,
        appointment_data.appointment_time
    )
    return AppointmentResponse.model_validate(appointment)

@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    appointment_data: AppointmentUpdate,
    patient_id: int = Depends(get_current_patient_id),
    db: Session = Depends(get_db)
):
    """Reschedule an appointment owned by the caller."""
    booking_service = BookingService(db)
    appointment = booking_service.update(appointment_id, appointment_data, patient_id)
    return AppointmentResponse.model_validate(appointment)

@router.delete("/{appointment_id}")
def cancel_appointment(
    appointment_id: int,
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    token_authority: TokenAuthority = Depends(get_token_authority)
):
    """Cancel an appointment; only the owning patient may do so."""
    booking_service = BookingService(db, token_authority=token_authority)
    booking_service.cancel(appointment_id, token)

    return {"message": "Appointment cancelled successfully", "id": appointment_id}

@router.get("", response_model=List[AppointmentResponse])
def list_doctor_appointments(
    date: date,
    patient_name: Optional[str] = None,
    doctor_id: int = Depends(get_current_doctor_id),
    db: Session = Depends(get_db)
):
    """List the calling doctor's appointments on a date."""
    booking_service = BookingService(db)
    appointments = booking_service.query(doctor_id, patient_name, date)
    return [AppointmentResponse.model_validate(a) for a in appointments]

@router.patch("/{appointment_id}/status")
def change_status(
    appointment_id: int,
    status_data: StatusUpdate,
    doctor_id: int = Depends(get_current_doctor_id),
    db: Session = Depends(get_db)
):
    """Overwrite the status code of one of the caller's appointments."""
    booking_service = BookingService(db)
    if not booking_service.set_status(appointment_id, status_data.status, doctor_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found"
        )

    return {"message": "Status updated", "id": appointment_id, "status": status_data.status}

@router.patch("/{appointment_id}/prescription")
def mark_prescription_added(
    appointment_id: int,
    doctor_id: int = Depends(get_current_doctor_id),
    db: Session = Depends(get_db)
):
    """Flag that a prescription has been attached to the appointment."""
    booking_service = BookingService(db)
    if not booking_service.mark_prescription_added(appointment_id, doctor_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found"
        )

    return {"message": "Prescription marked as added", "id": appointment_id}

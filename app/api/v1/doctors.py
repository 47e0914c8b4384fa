from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_bearer_token, get_current_admin_id, get_token_authority
from ...services.availability_service import AvailabilityService
from ...services.directory_service import DirectoryService
from ...services.doctor_service import DoctorService
from ...services.token_service import TokenAuthority
from ...schemas.appointment import AvailabilityResponse
from ...schemas.doctor import DoctorCreate, DoctorUpdate, DoctorResponse

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
def list_doctors(db: Session = Depends(get_db)):
    """List all doctors."""
    directory = DirectoryService(db)
    return [DoctorResponse.model_validate(d) for d in directory.list_doctors()]

@router.get("/filter", response_model=List[DoctorResponse])
def filter_doctors(
    name: Optional[str] = None,
    specialty: Optional[str] = None,
    time_period: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Filter doctors by name, specialty and AM/PM availability."""
    directory = DirectoryService(db)
    doctors = directory.filter_doctors(name, specialty, time_period)
    return [DoctorResponse.model_validate(d) for d in doctors]

@router.get("/{doctor_id}/availability", response_model=AvailabilityResponse)
def doctor_availability(
    doctor_id: int,
    date: date,
    role: str,
    token: str = Depends(get_bearer_token),
    token_authority: TokenAuthority = Depends(get_token_authority),
    db: Session = Depends(get_db)
):
    """Free slots for a doctor on a date; any valid role may ask."""
    if not token_authority.verify(token, role):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    availability_service = AvailabilityService(db)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        date=date,
        slots=availability_service.availability(doctor_id, date)
    )

@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    doctor_data: DoctorCreate,
    admin_id: int = Depends(get_current_admin_id),
    db: Session = Depends(get_db)
):
    """Add a doctor (admin only)."""
    doctor_service = DoctorService(db)
    return DoctorResponse.model_validate(doctor_service.create_doctor(doctor_data))

@router.put("/{doctor_id}", response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    admin_id: int = Depends(get_current_admin_id),
    db: Session = Depends(get_db)
):
    """Update a doctor (admin only)."""
    doctor_service = DoctorService(db)
    return DoctorResponse.model_validate(doctor_service.update_doctor(doctor_id, doctor_data))

@router.delete("/{doctor_id}")
def delete_doctor(
    doctor_id: int,
    admin_id: int = Depends(get_current_admin_id),
    db: Session = Depends(get_db)
):
    """Delete a doctor and all of its appointments (admin only)."""
    doctor_service = DoctorService(db)
    doctor_service.delete_doctor(doctor_id)

    return {"message": "Doctor deleted successfully", "id": doctor_id}

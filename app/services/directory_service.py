from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import time
from typing import Callable, Dict, List, Optional
import logging

from ..core.security import UserRole
from ..models.admin import Admin
from ..models.doctor import Doctor
from ..models.patient import Patient

logger = logging.getLogger(__name__)

NOON = time(12, 0)

class DirectoryService:
    """Existence and identity lookups over admins, doctors and patients."""

    def __init__(self, db: Session):
        self.db = db
        self._existence_checks: Dict[UserRole, Callable[[int], bool]] = {
            UserRole.ADMIN: self.admin_exists,
            UserRole.DOCTOR: self.doctor_exists,
            UserRole.PATIENT: self.patient_exists,
        }

    def admin_exists(self, admin_id: int) -> bool:
        return self._exists(Admin, admin_id)

    def doctor_exists(self, doctor_id: int) -> bool:
        return self._exists(Doctor, doctor_id)

    def patient_exists(self, patient_id: int) -> bool:
        return self._exists(Patient, patient_id)

    def exists(self, role: UserRole, subject_id: int) -> bool:
        """Check that subject_id is a live entity of the given role."""
        check = self._existence_checks.get(role)
        if check is None:
            return False
        return check(subject_id)

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.db.get(Doctor, doctor_id)

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.get(Patient, patient_id)

    def find_admin_by_username(self, username: str) -> Optional[Admin]:
        return self.db.query(Admin).filter(Admin.username == username).first()

    def find_doctor_by_email(self, email: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(
            func.lower(Doctor.email) == email.strip().lower()
        ).first()

    def find_patient_by_email(self, email: str) -> Optional[Patient]:
        return self.db.query(Patient).filter(
            func.lower(Patient.email) == email.strip().lower()
        ).first()

    def list_doctors(self) -> List[Doctor]:
        return self.db.query(Doctor).order_by(Doctor.id).all()

    def doctors_by_specialty(self, specialty: str) -> List[Doctor]:
        return self.db.query(Doctor).filter(
            func.lower(Doctor.specialty) == specialty.strip().lower()
        ).order_by(Doctor.id).all()

    def filter_doctors(
        self,
        name: Optional[str] = None,
        specialty: Optional[str] = None,
        time_period: Optional[str] = None,
    ) -> List[Doctor]:
        """Filter doctors by name, specialty and AM/PM availability.

        Name and specialty narrow the query in the store; the time period is
        applied in memory against each doctor's declared available times.
        Blank arguments do not filter. Lookup failures yield an empty list.
        """
        try:
            query = self.db.query(Doctor)
            if name and name.strip():
                query = query.filter(Doctor.name.ilike(f"%{name.strip()}%"))
            if specialty and specialty.strip():
                query = query.filter(
                    func.lower(Doctor.specialty) == specialty.strip().lower()
                )
            doctors = query.order_by(Doctor.id).all()
        except SQLAlchemyError as exc:
            logger.error(f"Doctor filter lookup failed: {str(exc)}")
            return []

        if time_period and time_period.strip():
            return filter_doctors_by_time_period(doctors, time_period)
        return doctors

    def _exists(self, model, entity_id) -> bool:
        if entity_id is None:
            return False
        return self.db.query(
            self.db.query(model).filter(model.id == entity_id).exists()
        ).scalar()


def filter_doctors_by_time_period(doctors: List[Doctor], time_period: str) -> List[Doctor]:
    """Keep doctors with at least one declared time in the AM or PM bucket."""
    period = time_period.strip().upper()
    if period == "AM":
        in_period = lambda t: t < NOON
    elif period == "PM":
        in_period = lambda t: t > NOON
    else:
        logger.warning(f"Unknown time period '{time_period}', no doctors matched")
        return []

    return [
        doctor for doctor in doctors
        if any(in_period(t) for t in _parse_times(doctor.available_times))
    ]


def _parse_times(values) -> List[time]:
    parsed = []
    for value in values or []:
        try:
            parsed.append(time.fromisoformat(str(value).strip()))
        except ValueError:
            logger.warning(f"Skipping unparseable available time '{value}'")
    return parsed

from datetime import date, datetime, timedelta
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Callable, List, Optional
import logging

from ..core.exceptions import (
    EntityNotFound, Forbidden, InternalFailure, MalformedInput, SlotConflict
)
from ..core.locking import DoctorLockRegistry, doctor_locks
from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor
from ..models.patient import Patient
from .availability_service import day_bounds
from .directory_service import DirectoryService
from .token_service import TokenAuthority

logger = logging.getLogger(__name__)

# No two appointments for one doctor may start within this distance
CONFLICT_WINDOW = timedelta(minutes=30)

CONDITION_STATUSES = {
    "past": AppointmentStatus.COMPLETED,
    "future": AppointmentStatus.SCHEDULED,
}

class BookingService:
    """Books, reschedules and cancels appointments.

    Every write that depends on a conflict scan runs under the doctor's lock,
    and the scan and the commit both happen while it is held.
    """

    def __init__(
        self,
        db: Session,
        token_authority: Optional[TokenAuthority] = None,
        directory: Optional[DirectoryService] = None,
        locks: DoctorLockRegistry = doctor_locks,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.directory = directory or DirectoryService(db)
        self.token_authority = token_authority
        self.locks = locks
        self.clock = clock

    # ------------------- VALIDATE -------------------
    def validate(self, appointment: Appointment) -> bool:
        """Check required fields, future start and the conflict window."""
        if appointment is None:
            return False
        return self._rejection_reason(
            appointment.doctor_id,
            appointment.patient_id,
            appointment.appointment_time,
            exclude_id=appointment.id,
        ) is None

    # ------------------- BOOK -------------------
    def book(self, doctor_id: int, patient_id: int, appointment_time: datetime) -> Appointment:
        """Create an appointment after checking entities and conflicts."""
        if doctor_id is None or patient_id is None or appointment_time is None:
            raise MalformedInput("Doctor, patient and appointment time are required")
        _require_naive(appointment_time)

        with self.locks.hold(doctor_id):
            self._require_entities(doctor_id, patient_id)

            reason = self._rejection_reason(doctor_id, patient_id, appointment_time)
            if reason:
                logger.warning(
                    f"Rejected booking for doctor {doctor_id} at {appointment_time}: {reason}"
                )
                raise SlotConflict(reason)

            appointment = Appointment(
                doctor_id=doctor_id,
                patient_id=patient_id,
                appointment_time=appointment_time,
                status=AppointmentStatus.SCHEDULED.value,
                prescription_added=False,
            )
            self.db.add(appointment)
            self._commit()
            self.db.refresh(appointment)

        logger.info(
            f"Booked appointment {appointment.id} for doctor {doctor_id} "
            f"and patient {patient_id} at {appointment_time}"
        )
        return appointment

    # ------------------- UPDATE -------------------
    def update(self, appointment_id: int, changes, patient_id: int) -> Appointment:
        """Apply changes to an appointment owned by patient_id.

        Ownership is checked against the stored record. The conflict check
        runs again only when the doctor or the start time changes. Status is
        not editable here; doctors change it through set_status.
        """
        data = _as_dict(changes)
        if data.get("appointment_time") is not None:
            _require_naive(data["appointment_time"])
        existing = self._get_or_404(appointment_id)
        self._check_owner(existing, patient_id)

        new_doctor_id = data.get("doctor_id") or existing.doctor_id

        with self.locks.hold(existing.doctor_id, new_doctor_id):
            existing = self._reload_or_404(appointment_id)
            self._check_owner(existing, patient_id)

            new_patient_id = data.get("patient_id") or existing.patient_id
            if new_patient_id != existing.patient_id:
                raise Forbidden("Appointments cannot be reassigned to another patient")

            new_time = data.get("appointment_time") or existing.appointment_time
            self._require_entities(new_doctor_id, existing.patient_id)

            if new_time != existing.appointment_time or new_doctor_id != existing.doctor_id:
                reason = self._rejection_reason(
                    new_doctor_id, existing.patient_id, new_time, exclude_id=existing.id
                )
                if reason:
                    logger.warning(
                        f"Rejected reschedule of appointment {existing.id} to {new_time}: {reason}"
                    )
                    raise SlotConflict(reason)

            existing.doctor_id = new_doctor_id
            existing.appointment_time = new_time

            self._commit()
            self.db.refresh(existing)

        logger.info(f"Updated appointment {existing.id}")
        return existing

    # ------------------- CANCEL -------------------
    def cancel(self, appointment_id: int, token: str) -> None:
        """Delete an appointment on behalf of the patient the token names."""
        if appointment_id is None or not token:
            raise MalformedInput("Appointment id and token are required")

        existing = self._get_or_404(appointment_id)

        # MalformedToken / IdentityNotFound surface as Unauthorized
        patient_id = self._token_authority().subject_id_for(token, UserRole.PATIENT)
        self._check_owner(existing, patient_id, action="cancel")

        with self.locks.hold(existing.doctor_id):
            # A concurrent cancel may have removed the row while we waited
            existing = self._reload_or_404(appointment_id)
            self._check_owner(existing, patient_id, action="cancel")
            self.db.delete(existing)
            self._commit()

        logger.info(f"Cancelled appointment {appointment_id} for patient {patient_id}")

    # ------------------- QUERY -------------------
    def query(self, doctor_id: int, patient_name: Optional[str], day: date) -> List[Appointment]:
        """All appointments for a doctor on a day, optionally by patient name."""
        start, end = day_bounds(day)
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_time >= start,
            Appointment.appointment_time < end,
        )
        if patient_name and patient_name.strip():
            query = query.join(Patient, Appointment.patient_id == Patient.id).filter(
                Patient.name.ilike(f"%{patient_name.strip()}%")
            )
        return query.order_by(Appointment.id).all()

    def patient_appointments(self, patient_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id
        ).order_by(Appointment.appointment_time).all()

    def filter_patient_appointments(
        self,
        patient_id: int,
        condition: Optional[str] = None,
        doctor_name: Optional[str] = None,
    ) -> List[Appointment]:
        """Patient appointments narrowed by 'past'/'future' and doctor name."""
        query = self.db.query(Appointment).filter(Appointment.patient_id == patient_id)

        if condition and condition.strip():
            status = CONDITION_STATUSES.get(condition.strip().lower())
            if status is None:
                raise MalformedInput(f"Invalid condition: {condition}")
            query = query.filter(Appointment.status == status.value)

        if doctor_name and doctor_name.strip():
            query = query.join(Doctor, Appointment.doctor_id == Doctor.id).filter(
                Doctor.name.ilike(f"%{doctor_name.strip()}%")
            )

        return query.order_by(Appointment.appointment_time).all()

    # ------------------- CHANGE STATUS -------------------
    def set_status(self, appointment_id: int, status: int, doctor_id: Optional[int] = None) -> bool:
        """Overwrite the status code; False if the appointment is missing.

        When doctor_id is given, only that doctor's appointments may change.
        """
        appointment = self._find(appointment_id)
        if appointment is None:
            return False
        self._check_doctor(appointment, doctor_id, action="change status of")
        appointment.status = int(status)
        self._commit()
        return True

    def mark_prescription_added(self, appointment_id: int, doctor_id: Optional[int] = None) -> bool:
        appointment = self._find(appointment_id)
        if appointment is None:
            return False
        self._check_doctor(appointment, doctor_id, action="add a prescription to")
        appointment.prescription_added = True
        self._commit()
        return True

    # ------------------- HELPERS -------------------
    def _rejection_reason(
        self,
        doctor_id: Optional[int],
        patient_id: Optional[int],
        appointment_time: Optional[datetime],
        exclude_id: Optional[int] = None,
    ) -> Optional[str]:
        if doctor_id is None or patient_id is None or appointment_time is None:
            return "Doctor, patient and appointment time are required"
        if appointment_time.tzinfo is not None:
            return "Appointment time must not carry a UTC offset"

        if appointment_time <= self.clock():
            return "Appointment time must be in the future"

        query = self.db.query(Appointment.id).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_time >= appointment_time - CONFLICT_WINDOW,
            Appointment.appointment_time <= appointment_time + CONFLICT_WINDOW,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)

        if query.first() is not None:
            return "Doctor is unavailable at the requested time"
        return None

    def _require_entities(self, doctor_id: int, patient_id: int) -> None:
        if not self.directory.patient_exists(patient_id):
            raise EntityNotFound("Patient does not exist")
        if not self.directory.doctor_exists(doctor_id):
            raise EntityNotFound("Doctor does not exist")

    def _find(self, appointment_id: Optional[int]) -> Optional[Appointment]:
        if appointment_id is None:
            return None
        return self.db.get(Appointment, appointment_id)

    def _get_or_404(self, appointment_id: int) -> Appointment:
        appointment = self._find(appointment_id)
        if appointment is None:
            raise EntityNotFound("Appointment not found")
        return appointment

    def _reload_or_404(self, appointment_id: int) -> Appointment:
        """Re-read the row from the store, bypassing the session's cached copy."""
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).populate_existing().first()
        if appointment is None:
            raise EntityNotFound("Appointment not found")
        return appointment

    def _check_owner(self, appointment: Appointment, patient_id: int, action: str = "update") -> None:
        if appointment.patient_id != patient_id:
            logger.warning(
                f"Patient {patient_id} attempted to {action} appointment {appointment.id}"
            )
            raise Forbidden(f"Unauthorized {action} attempt")

    def _check_doctor(self, appointment: Appointment, doctor_id: Optional[int], action: str) -> None:
        if doctor_id is not None and appointment.doctor_id != doctor_id:
            logger.warning(
                f"Doctor {doctor_id} attempted to {action} appointment {appointment.id}"
            )
            raise Forbidden("Appointment belongs to another doctor")

    def _token_authority(self) -> TokenAuthority:
        if self.token_authority is None:
            raise InternalFailure("Token authority is not configured")
        return self.token_authority

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(f"Store rejected appointment write: {str(exc.orig)}")
            raise SlotConflict() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Appointment write failed: {str(exc)}")
            raise InternalFailure() from exc


def _require_naive(appointment_time: datetime) -> None:
    if appointment_time.tzinfo is not None:
        raise MalformedInput("Appointment time must be a local time without a UTC offset")


def _as_dict(changes) -> dict:
    if changes is None:
        return {}
    if isinstance(changes, dict):
        return {key: value for key, value in changes.items() if value is not None}
    return changes.model_dump(exclude_unset=True, exclude_none=True)

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from ..core.exceptions import DuplicateEntity, EntityNotFound, InternalFailure
from ..core.locking import DoctorLockRegistry, doctor_locks
from ..core.security import get_password_hash
from ..models.appointment import Appointment
from ..models.doctor import Doctor
from ..schemas.doctor import DoctorCreate, DoctorUpdate
from .directory_service import DirectoryService

logger = logging.getLogger(__name__)

class DoctorService:
    def __init__(self, db: Session, locks: DoctorLockRegistry = doctor_locks):
        self.db = db
        self.directory = DirectoryService(db)
        self.locks = locks

    def create_doctor(self, doctor_data: DoctorCreate) -> Doctor:
        """Register a doctor; emails must be unique."""
        if self.directory.find_doctor_by_email(doctor_data.email):
            raise DuplicateEntity("Doctor already exists")

        doctor = Doctor(
            name=doctor_data.name,
            specialty=doctor_data.specialty,
            email=doctor_data.email,
            password_hash=get_password_hash(doctor_data.password),
            phone=doctor_data.phone,
            available_times=list(doctor_data.available_times),
        )
        self.db.add(doctor)
        self._commit("create doctor")
        self.db.refresh(doctor)

        logger.info(f"Created doctor {doctor.id}")
        return doctor

    def update_doctor(self, doctor_id: int, doctor_data: DoctorUpdate) -> Doctor:
        doctor = self.directory.get_doctor(doctor_id)
        if not doctor:
            raise EntityNotFound("Doctor not found")

        changes = doctor_data.model_dump(exclude_unset=True, exclude_none=True)

        if "email" in changes:
            other = self.directory.find_doctor_by_email(changes["email"])
            if other and other.id != doctor.id:
                raise DuplicateEntity("Email already registered to another doctor")

        password = changes.pop("password", None)
        if password:
            doctor.password_hash = get_password_hash(password)

        for field, value in changes.items():
            setattr(doctor, field, value)

        self._commit("update doctor")
        self.db.refresh(doctor)
        return doctor

    def delete_doctor(self, doctor_id: int) -> None:
        """Delete a doctor together with all of its appointments.

        Both deletes are committed together, so either the doctor and its
        appointments are gone or nothing changed.
        """
        with self.locks.hold(doctor_id):
            doctor = self.directory.get_doctor(doctor_id)
            if not doctor:
                raise EntityNotFound("Doctor not found")

            removed = self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor_id
            ).delete(synchronize_session=False)
            self.db.query(Doctor).filter(Doctor.id == doctor_id).delete(synchronize_session=False)
            self._commit("delete doctor")

        logger.info(f"Deleted doctor {doctor_id} and {removed} appointment(s)")

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateEntity("Doctor already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Failed to {action}: {str(exc)}")
            raise InternalFailure() from exc

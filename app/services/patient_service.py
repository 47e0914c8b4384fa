from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from ..core.exceptions import DuplicateEntity, EntityNotFound, InternalFailure
from ..core.locking import DoctorLockRegistry, doctor_locks
from ..core.security import UserRole, get_password_hash
from ..models.appointment import Appointment
from ..models.patient import Patient
from ..schemas.patient import PatientCreate
from .directory_service import DirectoryService
from .token_service import TokenAuthority

logger = logging.getLogger(__name__)

class PatientService:
    def __init__(self, db: Session, locks: DoctorLockRegistry = doctor_locks):
        self.db = db
        self.directory = DirectoryService(db)
        self.locks = locks

    def patient_exists(self, email: str, phone: str) -> bool:
        """True if the email or phone is already registered."""
        email_taken = bool(email) and self.directory.find_patient_by_email(email) is not None
        phone_taken = bool(phone) and self.db.query(Patient).filter(
            Patient.phone == phone
        ).first() is not None
        return email_taken or phone_taken

    def register_patient(self, patient_data: PatientCreate) -> Patient:
        if self.patient_exists(patient_data.email, patient_data.phone):
            raise DuplicateEntity("Patient with this email or phone already exists")

        patient = Patient(
            name=patient_data.name,
            email=patient_data.email,
            password_hash=get_password_hash(patient_data.password),
            phone=patient_data.phone,
            address=patient_data.address,
        )
        self.db.add(patient)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateEntity("Patient with this email or phone already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Failed to register patient: {str(exc)}")
            raise InternalFailure() from exc
        self.db.refresh(patient)

        logger.info(f"Registered patient {patient.id}")
        return patient

    def get_patient_details(self, token: str, token_authority: TokenAuthority) -> Patient:
        patient_id = token_authority.subject_id_for(token, UserRole.PATIENT)
        patient = self.directory.get_patient(patient_id)
        if not patient:
            raise EntityNotFound("Patient not found")
        return patient

    def delete_patient(self, patient_id: int) -> None:
        """Delete a patient and its appointments in one commit.

        Tokens issued to the patient stop verifying as soon as this commits.
        """
        patient = self.directory.get_patient(patient_id)
        if not patient:
            raise EntityNotFound("Patient not found")

        doctor_ids = [
            doctor_id for (doctor_id,) in self.db.query(Appointment.doctor_id).filter(
                Appointment.patient_id == patient_id
            ).distinct()
        ]

        with self.locks.hold(*doctor_ids):
            self.db.query(Appointment).filter(
                Appointment.patient_id == patient_id
            ).delete(synchronize_session=False)
            self.db.query(Patient).filter(Patient.id == patient_id).delete(synchronize_session=False)
            try:
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.error(f"Failed to delete patient {patient_id}: {str(exc)}")
                raise InternalFailure() from exc

        logger.info(f"Deleted patient {patient_id}")

from sqlalchemy.orm import Session
from typing import Callable, Optional
import logging

from ..core.exceptions import MalformedInput, Unauthorized
from ..core.security import UserRole, verify_password
from ..schemas.auth import TokenResponse
from .directory_service import DirectoryService
from .token_service import TokenAuthority

logger = logging.getLogger(__name__)

class AuthService:
    """Checks credentials and hands out tokens for each role.

    The password check is delegated to `password_verifier` so the storage
    scheme stays opaque here.
    """

    def __init__(
        self,
        db: Session,
        token_authority: TokenAuthority,
        password_verifier: Callable[[str, Optional[str]], bool] = verify_password,
    ):
        self.db = db
        self.directory = DirectoryService(db)
        self.token_authority = token_authority
        self.password_verifier = password_verifier

    def login_admin(self, username: str, password: str) -> TokenResponse:
        """Authenticate an admin by username and return a token."""
        if not username or not password:
            raise MalformedInput("Invalid credentials")

        admin = self.directory.find_admin_by_username(username)
        if not admin:
            logger.info(f"Admin login failed, unknown username '{username}'")
            raise Unauthorized("Invalid username or password")

        if not self.password_verifier(password, admin.password_hash):
            logger.info(f"Admin login failed for admin {admin.id}")
            raise Unauthorized("Invalid username or password")

        return self._token_response(admin.id, UserRole.ADMIN)

    def login_doctor(self, email: str, password: str) -> TokenResponse:
        """Authenticate a doctor by email and return a token."""
        if not email or not password:
            raise MalformedInput("Invalid credentials")

        doctor = self.directory.find_doctor_by_email(email)
        if not doctor or not self.password_verifier(password, doctor.password_hash):
            logger.info(f"Doctor login failed for '{email}'")
            raise Unauthorized("Invalid email or password")

        return self._token_response(doctor.id, UserRole.DOCTOR)

    def login_patient(self, email: str, password: str) -> TokenResponse:
        """Authenticate a patient by email and return a token."""
        if not email or not password:
            raise MalformedInput("Invalid credentials")

        patient = self.directory.find_patient_by_email(email)
        if not patient or not self.password_verifier(password, patient.password_hash):
            logger.info(f"Patient login failed for '{email}'")
            raise Unauthorized("Invalid email or password")

        return self._token_response(patient.id, UserRole.PATIENT)

    def _token_response(self, subject_id: int, role: UserRole) -> TokenResponse:
        token = self.token_authority.issue(subject_id, role)
        logger.info(f"Issued {role.value} token for subject {subject_id}")
        return TokenResponse(
            access_token=token,
            expires_in=self.token_authority.token_settings.expires_in,
            role=role,
            subject_id=subject_id,
        )

from datetime import datetime, timedelta
from typing import Optional, Union
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
import logging

from ..core.config import Settings
from ..core.exceptions import IdentityNotFound, MalformedToken, Unauthorized
from ..core.security import UserRole
from .directory_service import DirectoryService

logger = logging.getLogger(__name__)

class TokenSettings(BaseModel):
    """Signing configuration, fixed for the life of the process."""
    secret_key: str
    algorithm: str = "HS256"
    expire_days: int = 7

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenSettings":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expire_days=settings.TOKEN_EXPIRE_DAYS,
        )

    @property
    def expires_in(self) -> int:
        return self.expire_days * 24 * 60 * 60

class TokenAuthority:
    """Issues and verifies role-scoped access tokens.

    Tokens are never stored. A token is valid while its signature checks
    out, it has not expired, its role claim matches the role it is
    presented for, and its subject still exists in that role's directory.
    Deleting an account therefore invalidates every token issued to it.
    """

    def __init__(self, token_settings: TokenSettings, directory: DirectoryService):
        self.token_settings = token_settings
        self.directory = directory

    def issue(
        self,
        subject_id: int,
        role: Union[UserRole, str],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a signed token for an entity id acting in the given role."""
        user_role = UserRole.parse(role)
        if user_role is None:
            raise ValueError(f"Unknown role: {role}")

        now = datetime.utcnow()
        if expires_delta is None:
            expires_delta = timedelta(days=self.token_settings.expire_days)

        to_encode = {
            "sub": str(subject_id),
            "role": user_role.value,
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(
            to_encode,
            self.token_settings.secret_key,
            algorithm=self.token_settings.algorithm
        )

    def verify(self, token: str, expected_role: Union[UserRole, str]) -> bool:
        """Return True if the token is valid for a live subject of the role."""
        try:
            self.subject_id_for(token, expected_role)
            return True
        except Unauthorized as exc:
            logger.debug(f"Token rejected for role {expected_role}: {exc.message}")
            return False
        except SQLAlchemyError as exc:
            logger.error(f"Directory lookup failed during token verification: {str(exc)}")
            return False

    def subject_id_for(self, token: str, role: Union[UserRole, str]) -> int:
        """Recover the acting identity from a token.

        Raises MalformedToken when the token cannot be decoded, carries a
        non-numeric subject or names a different role, and IdentityNotFound
        when the subject no longer exists under the role.
        """
        user_role = UserRole.parse(role)
        if user_role is None:
            raise Unauthorized(f"Unknown role: {role}")

        payload = self._decode(token)
        if payload.get("role") != user_role.value:
            raise MalformedToken(f"Token was not issued for role {user_role.value}")

        subject_id = _subject_of(payload)
        if not self.directory.exists(user_role, subject_id):
            raise IdentityNotFound(f"{user_role.value.capitalize()} not found")
        return subject_id

    def extract_subject(self, token: str) -> int:
        """Decode the token and return its numeric subject claim."""
        return _subject_of(self._decode(token))

    def _decode(self, token: str) -> dict:
        if not token or not isinstance(token, str):
            raise MalformedToken("Missing token")
        try:
            payload = jwt.decode(
                token,
                self.token_settings.secret_key,
                algorithms=[self.token_settings.algorithm]
            )
        except (JWTError, ValueError, TypeError) as exc:
            raise MalformedToken(str(exc) or None) from exc
        return payload


def _subject_of(payload: dict) -> int:
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        raise MalformedToken("Invalid identifier in token")

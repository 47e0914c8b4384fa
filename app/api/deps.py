from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from functools import lru_cache

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import Unauthorized
from ..core.security import security, AuthenticationError, UserRole
from ..services.directory_service import DirectoryService
from ..services.token_service import TokenAuthority, TokenSettings

@lru_cache()
def get_token_settings() -> TokenSettings:
    """Signing configuration, built once per process."""
    return TokenSettings.from_settings(settings)

def get_token_authority(
    db: Session = Depends(get_db),
    token_settings: TokenSettings = Depends(get_token_settings)
) -> TokenAuthority:
    """Token authority bound to the request's database session."""
    return TokenAuthority(token_settings, DirectoryService(db))

async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> str:
    """Extract the raw token from the Authorization header."""
    token = credentials.credentials
    if not token:
        raise AuthenticationError("Missing token")
    return token

# Role-based access control dependencies
def require_role(role: UserRole):
    """Create a dependency that resolves the token's subject id for a role."""
    async def role_checker(
        token: str = Depends(get_bearer_token),
        token_authority: TokenAuthority = Depends(get_token_authority)
    ) -> int:
        try:
            return token_authority.subject_id_for(token, role)
        except Unauthorized as exc:
            raise AuthenticationError(exc.message)

    return role_checker

# Specific role dependencies
async def get_current_admin_id(
    admin_id: int = Depends(require_role(UserRole.ADMIN))
) -> int:
    """Require an admin token."""
    return admin_id

async def get_current_doctor_id(
    doctor_id: int = Depends(require_role(UserRole.DOCTOR))
) -> int:
    """Require a doctor token."""
    return doctor_id

async def get_current_patient_id(
    patient_id: int = Depends(require_role(UserRole.PATIENT))
) -> int:
    """Require a patient token."""
    return patient_id

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic rate limiting for registration endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_REQUESTS:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)

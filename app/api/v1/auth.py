from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_bearer_token, get_token_authority
from ...services.auth_service import AuthService
from ...services.token_service import TokenAuthority
from ...schemas.auth import AdminLogin, UserLogin, TokenResponse, TokenValidation

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/admin/login", response_model=TokenResponse)
async def admin_login(
    login_data: AdminLogin,
    db: Session = Depends(get_db),
    token_authority: TokenAuthority = Depends(get_token_authority)
):
    """Authenticate an admin and return an access token."""
    auth_service = AuthService(db, token_authority)
    return auth_service.login_admin(login_data.username, login_data.password)

@router.post("/doctor/login", response_model=TokenResponse)
async def doctor_login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    token_authority: TokenAuthority = Depends(get_token_authority)
):
    """Authenticate a doctor and return an access token."""
    auth_service = AuthService(db, token_authority)
    return auth_service.login_doctor(login_data.email, login_data.password)

@router.post("/patient/login", response_model=TokenResponse)
async def patient_login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    token_authority: TokenAuthority = Depends(get_token_authority)
):
    """Authenticate a patient and return an access token."""
    auth_service = AuthService(db, token_authority)
    return auth_service.login_patient(login_data.email, login_data.password)

@router.get("/verify/{role}", response_model=TokenValidation)
async def verify_token_endpoint(
    role: str,
    token: str = Depends(get_bearer_token),
    token_authority: TokenAuthority = Depends(get_token_authority)
):
    """Check whether a token is valid for the given role."""
    if not token_authority.verify(token, role):
        return TokenValidation(valid=False, role=role)

    return TokenValidation(
        valid=True,
        role=role,
        subject_id=token_authority.subject_id_for(token, role)
    )

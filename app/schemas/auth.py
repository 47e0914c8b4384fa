from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from ..core.security import UserRole

class AdminLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: UserRole
    subject_id: int

class TokenValidation(BaseModel):
    valid: bool
    role: str
    subject_id: Optional[int] = None

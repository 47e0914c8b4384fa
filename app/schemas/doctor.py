from datetime import time
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional

def _normalize_times(values):
    if values is None:
        return values
    normalized = []
    for value in values:
        if isinstance(value, time):
            parsed = value
        else:
            parsed = time.fromisoformat(str(value).strip())
        normalized.append(parsed.strftime("%H:%M"))
    return normalized

class DoctorBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    specialty: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    available_times: List[str] = Field(default_factory=list)

    @field_validator("available_times")
    @classmethod
    def validate_available_times(cls, value):
        return _normalize_times(value)

class DoctorCreate(DoctorBase):
    password: str = Field(..., min_length=6)

class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    specialty: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    available_times: Optional[List[str]] = None
    password: Optional[str] = Field(None, min_length=6)

    @field_validator("available_times")
    @classmethod
    def validate_available_times(cls, value):
        return _normalize_times(value)

class DoctorResponse(BaseModel):
    id: int
    name: str
    specialty: str
    email: str
    phone: Optional[str] = None
    available_times: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True

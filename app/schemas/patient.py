from pydantic import BaseModel, EmailStr, Field

class PatientCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: str = Field(..., pattern=r"^[0-9]{10}$")
    address: str = Field(..., max_length=255)

class PatientResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    address: str

    class Config:
        from_attributes = True

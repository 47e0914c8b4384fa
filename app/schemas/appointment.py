from datetime import date, datetime, time
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

def _as_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    # Stored times are naive local wall-clock times
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value

class AppointmentCreate(BaseModel):
    doctor_id: int
    appointment_time: datetime

    @field_validator("appointment_time")
    @classmethod
    def normalize_appointment_time(cls, value):
        return _as_local_naive(value)

class AppointmentUpdate(BaseModel):
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None
    appointment_time: Optional[datetime] = None

    @field_validator("appointment_time")
    @classmethod
    def normalize_appointment_time(cls, value):
        return _as_local_naive(value)

class StatusUpdate(BaseModel):
    status: int

class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    appointment_time: datetime
    end_time: datetime
    appointment_date: date
    status: int
    prescription_added: bool

    class Config:
        from_attributes = True

class AvailabilityResponse(BaseModel):
    doctor_id: int
    date: date
    slots: List[time] = Field(default_factory=list)

from datetime import timedelta
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Boolean, Index, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

APPOINTMENT_DURATION = timedelta(hours=1)

class AppointmentStatus(enum.IntEnum):
    # Other integer codes are stored as given and carry no meaning here
    SCHEDULED = 0
    COMPLETED = 1

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("doctor_id", "appointment_time", name="uq_appointment_doctor_start"),
        Index("ix_appointment_doctor_start", "doctor_id", "appointment_time"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)

    # Appointment details
    appointment_time = Column(DateTime, nullable=False)
    status = Column(Integer, nullable=False, default=AppointmentStatus.SCHEDULED.value)
    prescription_added = Column(Boolean, nullable=False, default=False)

    # Relationships
    doctor = relationship("Doctor", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")

    @property
    def end_time(self):
        return self.appointment_time + APPOINTMENT_DURATION

    @property
    def appointment_date(self):
        return self.appointment_time.date()

    @property
    def appointment_time_only(self):
        return self.appointment_time.time()

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, time='{self.appointment_time}')>"

from datetime import date, datetime, time, timedelta
from sqlalchemy.orm import Session
from typing import List

from ..models.appointment import Appointment
from .directory_service import DirectoryService

FIRST_SLOT = time(9, 0)
LAST_SLOT = time(17, 0)
SLOT_INCREMENT_MINUTES = 30


def generate_time_slots() -> List[time]:
    """The bookable grid: every half hour from 09:00 to 17:00 inclusive."""
    slots = []
    current = datetime.combine(date.min, FIRST_SLOT)
    last = datetime.combine(date.min, LAST_SLOT)
    while current <= last:
        slots.append(current.time())
        current += timedelta(minutes=SLOT_INCREMENT_MINUTES)
    return slots


def day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class AvailabilityService:
    def __init__(self, db: Session, directory: DirectoryService = None):
        self.db = db
        self.directory = directory or DirectoryService(db)

    def availability(self, doctor_id: int, day: date) -> List[time]:
        """Free slots for a doctor on a day, in grid order.

        A slot is taken only by an appointment starting at exactly that time.
        Unknown doctors have no slots.
        """
        if not self.directory.doctor_exists(doctor_id):
            return []

        start, end = day_bounds(day)
        booked_times = {
            appointment_time.time()
            for (appointment_time,) in self.db.query(Appointment.appointment_time).filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_time >= start,
                Appointment.appointment_time < end,
            )
        }
        return [slot for slot in generate_time_slots() if slot not in booked_times]


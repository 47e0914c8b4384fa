from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterable, Iterator


class DoctorLockRegistry:
    """Hands out one mutex per doctor id.

    Booking, rescheduling, cancelling and deleting a doctor all scan the
    doctor's appointments and then write; holding the doctor's lock across
    both steps keeps two requests from passing the same conflict check.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, Lock] = {}
        self._global_lock = Lock()

    def _get_lock(self, doctor_id: int) -> Lock:
        with self._global_lock:
            if doctor_id not in self._locks:
                self._locks[doctor_id] = Lock()
            return self._locks[doctor_id]

    @contextmanager
    def hold(self, *doctor_ids: int) -> Iterator[None]:
        """Acquire the locks for the given doctors, in id order."""
        locks = [self._get_lock(doctor_id) for doctor_id in _ordered(doctor_ids)]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


def _ordered(doctor_ids: Iterable[int]):
    return sorted({doctor_id for doctor_id in doctor_ids if doctor_id is not None})


# Shared across request-scoped services for the life of the process
doctor_locks = DoctorLockRegistry()

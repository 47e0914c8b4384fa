from datetime import date, datetime, time

from app.services.availability_service import AvailabilityService, generate_time_slots

DAY = date(2025, 6, 10)


def test_grid_is_seventeen_half_hour_slots_from_nine_to_five():
    slots = generate_time_slots()

    assert len(slots) == 17
    assert slots[0] == time(9, 0)
    assert slots[-1] == time(17, 0)
    assert slots == sorted(slots)
    assert all(slot.minute in (0, 30) for slot in slots)


def test_doctor_without_appointments_gets_full_grid(db, make_doctor):
    doctor = make_doctor()

    assert AvailabilityService(db).availability(doctor.id, DAY) == generate_time_slots()


def test_unknown_doctor_gets_no_slots(db):
    assert AvailabilityService(db).availability(999, DAY) == []


def test_booked_start_times_are_removed(db, make_doctor, make_patient, make_appointment):
    doctor = make_doctor()
    patient = make_patient()
    make_appointment(doctor, patient, datetime(2025, 6, 10, 10, 0))
    make_appointment(doctor, patient, datetime(2025, 6, 10, 15, 30))

    slots = AvailabilityService(db).availability(doctor.id, DAY)

    assert time(10, 0) not in slots
    assert time(15, 30) not in slots
    assert time(9, 0) in slots
    assert time(10, 30) in slots
    assert len(slots) == 15


def test_only_exact_start_times_block_a_slot(db, make_doctor, make_patient, make_appointment):
    doctor = make_doctor()
    patient = make_patient()
    make_appointment(doctor, patient, datetime(2025, 6, 10, 10, 15))

    slots = AvailabilityService(db).availability(doctor.id, DAY)

    assert slots == generate_time_slots()


def test_other_days_and_other_doctors_do_not_affect_slots(db, make_doctor, make_patient, make_appointment):
    doctor = make_doctor()
    other_doctor = make_doctor(name="Bob Jones")
    patient = make_patient()
    make_appointment(doctor, patient, datetime(2025, 6, 9, 10, 0))
    make_appointment(doctor, patient, datetime(2025, 6, 11, 0, 0))
    make_appointment(other_doctor, patient, datetime(2025, 6, 10, 10, 0))

    assert AvailabilityService(db).availability(doctor.id, DAY) == generate_time_slots()


def test_result_reflects_latest_writes(db, make_doctor, make_patient, make_appointment):
    doctor = make_doctor()
    patient = make_patient()
    service = AvailabilityService(db)

    assert time(11, 0) in service.availability(doctor.id, DAY)
    make_appointment(doctor, patient, datetime(2025, 6, 10, 11, 0))
    assert time(11, 0) not in service.availability(doctor.id, DAY)

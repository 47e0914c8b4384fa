from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.api.deps import get_token_settings
from app.core.security import UserRole
from app.models.admin import Admin
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.services.directory_service import DirectoryService
from app.services.token_service import TokenAuthority

# Far enough ahead that the booking clock never catches up during a run
VISIT_DAY = date.today() + timedelta(days=14)

def visit(hour, minute=0):
    return datetime.combine(VISIT_DAY, time(hour, minute)).isoformat()

@pytest.fixture
def auth_headers(db):
    """Bearer headers signed with the application's own key."""
    authority = TokenAuthority(get_token_settings(), DirectoryService(db))

    roles = {Admin: UserRole.ADMIN, Doctor: UserRole.DOCTOR, Patient: UserRole.PATIENT}

    def _headers(subject):
        token = authority.issue(subject.id, roles[type(subject)])
        return {"Authorization": f"Bearer {token}"}

    return _headers

class TestAppointmentsAPI:

    def test_book_then_slot_disappears(self, client, make_doctor, make_patient, auth_headers):
        doctor = make_doctor()
        patient = make_patient()
        headers = auth_headers(patient)

        response = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10)},
            headers=headers
        )
        assert response.status_code == 201

        data = response.json()
        assert data["patient_id"] == patient.id
        assert data["status"] == 0
        assert data["end_time"] == visit(11)

        response = client.get(
            f"/api/v1/doctors/{doctor.id}/availability",
            params={"date": VISIT_DAY.isoformat(), "role": "patient"},
            headers=headers
        )
        assert response.status_code == 200

        slots = response.json()["slots"]
        assert len(slots) == 16
        assert "10:00:00" not in slots
        assert "10:30:00" in slots

    def test_conflicting_booking_returns_409(self, client, make_doctor, make_patient, auth_headers):
        doctor = make_doctor()
        first = make_patient()
        second = make_patient(name="Second Patient")

        client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10)},
            headers=auth_headers(first)
        )
        response = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10, 15)},
            headers=auth_headers(second)
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    def test_booking_with_utc_offset_is_stored_as_local_time(
        self, client, make_doctor, make_patient, auth_headers
    ):
        doctor = make_doctor()
        patient = make_patient()
        requested = datetime.combine(VISIT_DAY, time(10, 0), tzinfo=timezone.utc)

        response = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": requested.isoformat()},
            headers=auth_headers(patient)
        )
        assert response.status_code == 201

        expected = requested.astimezone().replace(tzinfo=None)
        assert response.json()["appointment_time"] == expected.isoformat()

    def test_booking_with_unknown_doctor_returns_404(self, client, make_patient, auth_headers):
        patient = make_patient()

        response = client.post(
            "/api/v1/appointments",
            json={"doctor_id": 999, "appointment_time": visit(10)},
            headers=auth_headers(patient)
        )
        assert response.status_code == 404

    def test_doctor_token_cannot_book(self, client, make_doctor, auth_headers):
        doctor = make_doctor()

        response = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10)},
            headers=auth_headers(doctor)
        )
        assert response.status_code == 401

    def test_reschedule(self, client, make_doctor, make_patient, auth_headers):
        doctor = make_doctor()
        patient = make_patient()
        headers = auth_headers(patient)
        booked = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10)},
            headers=headers
        ).json()

        response = client.put(
            f"/api/v1/appointments/{booked['id']}",
            json={"appointment_time": visit(15)},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["appointment_time"] == visit(15)

    def test_patient_cannot_set_status(self, client, make_doctor, make_patient, auth_headers):
        doctor = make_doctor()
        patient = make_patient()
        headers = auth_headers(patient)
        booked = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10)},
            headers=headers
        ).json()

        response = client.put(
            f"/api/v1/appointments/{booked['id']}",
            json={"status": 1},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == 0

    def test_cancel_by_owner_wrong_patient_and_garbled_token(
        self, client, make_doctor, make_patient, auth_headers
    ):
        doctor = make_doctor()
        owner = make_patient()
        intruder = make_patient(name="Eve Intruder")
        booked = client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.id, "appointment_time": visit(10)},
            headers=auth_headers(owner)
        ).json()
        url = f"/api/v1/appointments/{booked['id']}"

        response = client.delete(url, headers=auth_headers(intruder))
        assert response.status_code == 403

        response = client.delete(url, headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

        response = client.delete(url, headers=auth_headers(owner))
        assert response.status_code == 200

        response = client.delete(url, headers=auth_headers(owner))
        assert response.status_code == 404

    def test_doctor_lists_and_updates_appointments(
        self, client, make_doctor, make_patient, make_appointment, auth_headers
    ):
        doctor = make_doctor()
        patient = make_patient(name="Alice Walker")
        appointment = make_appointment(
            doctor, patient, datetime.combine(VISIT_DAY, time(9, 0))
        )
        headers = auth_headers(doctor)

        response = client.get(
            "/api/v1/appointments",
            params={"date": VISIT_DAY.isoformat(), "patient_name": "walk"},
            headers=headers
        )
        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [appointment.id]

        response = client.patch(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": 1},
            headers=headers
        )
        assert response.status_code == 200

        response = client.patch(
            f"/api/v1/appointments/{appointment.id}/prescription",
            headers=headers
        )
        assert response.status_code == 200

        response = client.patch("/api/v1/appointments/999/status", json={"status": 1}, headers=headers)
        assert response.status_code == 404

    def test_other_doctor_cannot_touch_appointment(
        self, client, make_doctor, make_patient, make_appointment, auth_headers
    ):
        doctor = make_doctor()
        other_doctor = make_doctor(name="Bob Jones")
        patient = make_patient()
        appointment = make_appointment(
            doctor, patient, datetime.combine(VISIT_DAY, time(9, 0))
        )
        headers = auth_headers(other_doctor)

        response = client.patch(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": 1},
            headers=headers
        )
        assert response.status_code == 403

        response = client.patch(
            f"/api/v1/appointments/{appointment.id}/prescription",
            headers=headers
        )
        assert response.status_code == 403

    def test_patient_filter_rejects_unknown_condition(self, client, make_patient, auth_headers):
        patient = make_patient()

        response = client.get(
            "/api/v1/patients/me/appointments/filter",
            params={"condition": "someday"},
            headers=auth_headers(patient)
        )
        assert response.status_code == 400

class TestDoctorsAPI:

    def test_availability_needs_valid_role_token(self, client, make_doctor, make_patient, auth_headers):
        doctor = make_doctor()
        patient = make_patient()
        params = {"date": VISIT_DAY.isoformat(), "role": "doctor"}

        response = client.get(
            f"/api/v1/doctors/{doctor.id}/availability", params=params, headers=auth_headers(patient)
        )
        assert response.status_code == 401

        response = client.get(
            f"/api/v1/doctors/{doctor.id}/availability", params=params, headers=auth_headers(doctor)
        )
        assert response.status_code == 200
        assert len(response.json()["slots"]) == 17

    def test_filter_doctors(self, client, make_doctor):
        make_doctor(name="Alice Smith", specialty="Cardiology", available_times=["09:00"])
        make_doctor(name="Bob Jones", specialty="Dermatology", available_times=["15:00"])

        response = client.get("/api/v1/doctors/filter", params={"time_period": "PM"})
        assert response.status_code == 200
        assert [d["name"] for d in response.json()] == ["Bob Jones"]

    def test_admin_manages_doctors(self, client, make_admin, auth_headers):
        admin = make_admin()
        headers = auth_headers(admin)

        response = client.post(
            "/api/v1/doctors",
            json={
                "name": "Gregory House",
                "specialty": "Diagnostics",
                "email": "house@example.com",
                "phone": "5551234567",
                "password": "vicodin1",
                "available_times": ["09:00", "13:30"]
            },
            headers=headers
        )
        assert response.status_code == 201
        doctor = response.json()
        assert "password" not in doctor
        assert "password_hash" not in doctor

        response = client.put(
            f"/api/v1/doctors/{doctor['id']}",
            json={"specialty": "Nephrology"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["specialty"] == "Nephrology"

        response = client.delete(f"/api/v1/doctors/{doctor['id']}", headers=headers)
        assert response.status_code == 200

        assert client.get("/api/v1/doctors").json() == []

    def test_patient_token_does_not_pass_as_admin(self, client, make_admin, make_patient, auth_headers):
        admin = make_admin()
        patient = make_patient()
        assert admin.id == patient.id

        response = client.post(
            "/api/v1/doctors",
            json={
                "name": "Gregory House",
                "specialty": "Diagnostics",
                "email": "house@example.com",
                "password": "vicodin1"
            },
            headers=auth_headers(patient)
        )
        assert response.status_code == 401

class TestPatientsAPI:

    patient_data = {
        "name": "Jane Roe",
        "email": "jane@example.com",
        "password": "secret123",
        "phone": "4441234567",
        "address": "12 Elm Street"
    }

    def test_register_and_read_details(self, client, test_db):
        response = client.post("/api/v1/patients", json=self.patient_data)
        assert response.status_code == 201
        assert "password" not in response.json()

        login = client.post(
            "/api/v1/auth/patient/login",
            json={"email": "jane@example.com", "password": "secret123"}
        ).json()
        headers = {"Authorization": f"Bearer {login['access_token']}"}

        response = client.get("/api/v1/patients/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["email"] == "jane@example.com"

    def test_duplicate_registration(self, client, test_db):
        client.post("/api/v1/patients", json=self.patient_data)

        response = client.post("/api/v1/patients", json=self.patient_data)
        assert response.status_code == 409

    def test_invalid_phone(self, client, test_db):
        data = dict(self.patient_data, phone="12345")

        response = client.post("/api/v1/patients", json=data)
        assert response.status_code == 422

    def test_admin_deletes_patient_and_token_stops_working(
        self, client, make_admin, make_patient, auth_headers
    ):
        admin = make_admin()
        patient = make_patient()
        patient_headers = auth_headers(patient)

        response = client.delete(f"/api/v1/patients/{patient.id}", headers=auth_headers(admin))
        assert response.status_code == 200

        response = client.get("/api/v1/patients/me/appointments", headers=patient_headers)
        assert response.status_code == 401

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"
        assert response.json()["path"] == "/api/v1/nowhere"

import os
from datetime import datetime

import pytest

# Set testing environment before the app is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.core.database import Base, get_db, redis_client
from app.core.locking import DoctorLockRegistry
from app.core.security import get_password_hash
from app.models.admin import Admin
from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.services.booking_service import BookingService
from app.services.directory_service import DirectoryService
from app.services.token_service import TokenAuthority, TokenSettings

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Clock used by booking tests; every test date below lies after it
FIXED_NOW = datetime(2025, 6, 1, 8, 0)

TEST_TOKEN_SETTINGS = TokenSettings(secret_key="test-secret-key", algorithm="HS256", expire_days=7)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(test_db):
    redis_client.flushall()
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def token_authority(db):
    return TokenAuthority(TEST_TOKEN_SETTINGS, DirectoryService(db))

@pytest.fixture
def booking_service(db, token_authority):
    return BookingService(
        db,
        token_authority=token_authority,
        locks=DoctorLockRegistry(),
        clock=lambda: FIXED_NOW,
    )

@pytest.fixture
def make_doctor(db):
    counter = {"n": 0}

    def _make(name="Alice Smith", specialty="Cardiology", available_times=("09:00", "14:00"),
              email=None, password=None):
        counter["n"] += 1
        doctor = Doctor(
            name=name,
            specialty=specialty,
            email=email or f"doctor{counter['n']}@example.com",
            password_hash=get_password_hash(password) if password else "unset",
            phone=f"555000{counter['n']:04d}",
            available_times=list(available_times),
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make

@pytest.fixture
def make_patient(db):
    counter = {"n": 0}

    def _make(name="John Doe", email=None, password=None):
        counter["n"] += 1
        patient = Patient(
            name=name,
            email=email or f"patient{counter['n']}@example.com",
            password_hash=get_password_hash(password) if password else "unset",
            phone=f"444000{counter['n']:04d}",
            address="1 Main Street",
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make

@pytest.fixture
def make_admin(db):
    def _make(username="admin", password=None):
        admin = Admin(
            username=username,
            password_hash=get_password_hash(password) if password else "unset",
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _make

@pytest.fixture
def make_appointment(db):
    """Insert an appointment directly, bypassing validation."""
    def _make(doctor, patient, appointment_time, status=0):
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_time=appointment_time,
            status=status,
            prescription_added=False,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make

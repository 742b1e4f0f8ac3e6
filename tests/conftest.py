"""Pytest configuration and shared fixtures for ledger tests."""

import os
from datetime import datetime, timezone
from decimal import Decimal

# Point settings at an in-memory database BEFORE any imports from src
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.models import Appointment, Base, Patient, Tenant  # noqa: E402
from src.services.config import Settings  # noqa: E402
from src.services.patient_locks import PatientLockRegistry  # noqa: E402
from src.services.payment_service import PaymentService  # noqa: E402


@pytest.fixture
def db_engine():
    """Fresh in-memory database with all tables."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Create test database session."""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def settings():
    """Settings isolated from the developer's .env file."""
    return Settings(_env_file=None, patient_lock_timeout_seconds=2.0)


@pytest.fixture
def locks():
    return PatientLockRegistry(timeout_seconds=2.0)


@pytest.fixture
def tenant(db_session):
    clinic = Tenant(name="Sonrisa Dental", slug="sonrisa", currency="USD")
    db_session.add(clinic)
    db_session.commit()
    return clinic


@pytest.fixture
def other_tenant(db_session):
    clinic = Tenant(name="Other Clinic", slug="other", currency="USD")
    db_session.add(clinic)
    db_session.commit()
    return clinic


@pytest.fixture
def patient(db_session, tenant):
    person = Patient(tenant_id=tenant.id, first_name="John", last_name="Doe")
    db_session.add(person)
    db_session.commit()
    return person


@pytest.fixture
def payment_service(db_session, locks, settings):
    return PaymentService(db_session, locks=locks, settings=settings)


@pytest.fixture
def three_appointments(db_session, tenant, patient):
    """$100 appointments on Jan 1, Feb 1 and Mar 1, inserted out of order."""
    appointments = {}
    for month in (3, 1, 2):
        start = datetime(2025, month, 1, 10, 0, tzinfo=timezone.utc)
        appt = Appointment(
            tenant_id=tenant.id,
            patient_id=patient.id,
            start_time=start,
            end_time=start.replace(hour=11),
            cost=Decimal("100.00"),
        )
        db_session.add(appt)
        appointments[month] = appt
    db_session.commit()
    return [appointments[1], appointments[2], appointments[3]]


def paid_flags(db_session, rows):
    """Reload rows and return their is_paid flags in order."""
    for row in rows:
        db_session.refresh(row)
    return [row.is_paid for row in rows]


@pytest.fixture
def flags(db_session):
    return lambda rows: paid_flags(db_session, rows)

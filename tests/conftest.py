"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all PillWatch tests.
Fixtures include an in-memory store, fake transports, the reminder
components and a FastAPI test client.
"""

import asyncio
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List

# Test settings must be in place before config is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["EMAIL_PROVIDER"] = "console"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, build_engine
from actions.dedup_ledger import DedupLedger
from actions.reminder_engine import ReminderEngine
from actions.reminder_scheduler import ReminderScheduler
from actions.schedule_model import PatientSchedule
from api.deps import get_adherence_service, get_notifier, get_patient_service, get_scheduler
from services.adherence_service import AdherenceService
from services.patient_service import PatientService
from services.store import DocumentStore
from tools.email_client import EmailClient, EmailResult
from tools.push_client import PushClient
from tools.notification_service import NotificationService
from app import app


# ==================== FAKE TRANSPORTS ====================

class FakeEmailClient(EmailClient):
    """Records sends; can be told to fail, raise or hang"""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.fail = False
        self.error: Exception = None
        self.delay = 0.0
        self.gate: asyncio.Event = None

    async def send_email(self, to: str, subject: str, html: str) -> EmailResult:
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html})
        if self.fail:
            return EmailResult(success=False, error="provider rejected message")
        return EmailResult(success=True, message_id=f"msg_{len(self.sent)}")


class FakePushClient(PushClient):
    def __init__(self):
        self.shown: List[Dict[str, Any]] = []
        self.error: Exception = None

    async def show_notification(self, title: str, options: Dict[str, Any]) -> bool:
        if self.error is not None:
            raise self.error
        self.shown.append({"title": title, "options": options})
        return True


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = build_engine("sqlite:///:memory:")

    # Create all tables
    import models  # noqa: F401
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def store(test_engine) -> DocumentStore:
    """Document store over the test database"""
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    return DocumentStore(session_factory)


@pytest.fixture
def patient_svc(store: DocumentStore) -> PatientService:
    return PatientService(store)


@pytest.fixture
def adherence_svc(store: DocumentStore) -> AdherenceService:
    return AdherenceService(store)


# ==================== REMINDER FIXTURES ====================

@pytest.fixture
def ledger() -> DedupLedger:
    return DedupLedger()


@pytest.fixture
def reminder_engine(ledger: DedupLedger) -> ReminderEngine:
    return ReminderEngine(ledger)


@pytest.fixture
def fake_email() -> FakeEmailClient:
    return FakeEmailClient()


@pytest.fixture
def fake_push() -> FakePushClient:
    return FakePushClient()


@pytest.fixture
def notifier(fake_email, fake_push, ledger) -> NotificationService:
    return NotificationService(
        email_client=fake_email,
        push_client=fake_push,
        ledger=ledger,
        channels=["email", "push"],
        timeout=1.0,
        low_stock_threshold=10
    )


@pytest.fixture
def scheduler(store, reminder_engine, notifier) -> ReminderScheduler:
    return ReminderScheduler(store, reminder_engine, notifier, interval=3600)


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def sample_patient_data() -> Dict[str, Any]:
    """Caregiver settings for a fully configured patient"""
    return {
        "morning_dose_time": "08:00",
        "evening_dose_time": "20:00",
        "morning_pill_count": 30,
        "evening_pill_count": 30,
        "caregiver_email": "carer@example.com",
        "caregiver_uid": "caregiver-1",
        "timezone": "UTC",
    }


@pytest.fixture
def test_patient(store: DocumentStore, sample_patient_data: Dict[str, Any]) -> PatientSchedule:
    """Create and return a configured test patient"""
    schedule, _ = store.create_patient("U101", **sample_patient_data)
    return schedule


@pytest.fixture
def morning_schedule() -> PatientSchedule:
    """In-memory schedule with only a morning dose"""
    return PatientSchedule(
        patient_id="U101",
        morning_dose_time="08:00",
        morning_pill_count=30,
        evening_pill_count=30,
        caregiver_email="carer@example.com",
        timezone="UTC",
    )


@pytest.fixture
def day() -> datetime:
    """Midnight UTC of a fixed test day"""
    return datetime(2024, 7, 1, tzinfo=timezone.utc)


# ==================== CLIENT FIXTURES ====================

@pytest.fixture(scope="function")
def client(patient_svc, adherence_svc, notifier, scheduler) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client wired to the test store and fake transports"""
    app.dependency_overrides[get_patient_service] = lambda: patient_svc
    app.dependency_overrides[get_adherence_service] = lambda: adherence_svc
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ==================== MARKERS ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")

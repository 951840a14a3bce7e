from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.db import Base, get_db
from app.deps.notifier import get_notifier
from app.main import app
from app.services.enrollment_service import enroll_customer
from app.services.program_service import create_business, create_program

CUSTOMER_ID = "customer-42"

# One shared in-memory connection, so requests served by TestClient's
# worker thread see the same database as the test body.
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


class FailingNotifier:
    def notify(self, event):
        raise RuntimeError("notification service down")


@pytest.fixture(scope="function")
def db_session() -> Session:
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings() -> Settings:
    return Settings(award_max_attempts=3, award_retry_backoff_seconds=0)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def business(db_session):
    return create_business(db_session, "Iron Fitness")


@pytest.fixture
def program(db_session, business):
    return create_program(
        db_session,
        business_id=business.id,
        name="Gym Rewards",
        points_per_dollar=Decimal("2"),
        points_per_visit=5,
        first_purchase_bonus=50,
    )


@pytest.fixture
def enrollment(db_session, program):
    return enroll_customer(db_session, CUSTOMER_ID, program.id)


@pytest.fixture
def client(db_session, notifier):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def customer_id() -> str:
    return CUSTOMER_ID


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()

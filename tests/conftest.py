import os

# Settings are read at import time, so the test environment goes in first
os.environ["USE_MOCK_DB"] = "true"
os.environ["MOCK_DB_PATH"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["OTP_DELIVERY_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from temple_hub.config.firebase import get_db
from temple_hub.core.security import create_session_token, hash_password
from temple_hub.core.session import SessionContext
from temple_hub.models.otp import OtpChannel
from temple_hub.models.user import AccountStatus, Role
from temple_hub.services.delivery import OtpDispatcher, OtpSender
from temple_hub.services.user_service import UserService


class RecordingSender(OtpSender):
    """Keeps every delivered code instead of sending it."""

    def __init__(self):
        self.sent = []

    def send(self, target: str, code: str) -> None:
        self.sent.append((target, code))

    def last_code(self, target: Optional[str] = None) -> str:
        for sent_to, code in reversed(self.sent):
            if target is None or sent_to == target:
                return code
        raise AssertionError(f"no code sent to {target}")


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def db():
    database = get_db()
    database.clear()
    yield database
    database.clear()


@pytest.fixture
def users(db):
    return UserService(db)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def dispatcher(sender):
    return OtpDispatcher({OtpChannel.EMAIL: sender, OtpChannel.PHONE: sender})


@pytest.fixture
def make_user(users):
    counter = {"n": 0}

    def _make(role: Role = Role.VOLUNTEER, name: Optional[str] = None, email: Optional[str] = None,
              phone: Optional[str] = None, password: Optional[str] = "secret123",
              status: AccountStatus = AccountStatus.ACTIVE, **extra):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "name": name or f"{role.value.title()} {n}",
            "email": email or f"{role.value}{n}@example.org",
            "phone": phone,
            "role": role.value,
            "status": status.value,
            **extra,
        }
        if password:
            data["password"] = hash_password(password)
        return users.create_account(data)

    return _make


def session_for(user) -> SessionContext:
    return SessionContext(user_id=user["id"], role=Role(user["role"]), name=user.get("name"))


@pytest.fixture
def client(db):
    from temple_hub.main import app

    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user) -> dict:
    token = create_session_token(user["id"], user["role"], user.get("name"))
    return {"Authorization": f"Bearer {token}"}

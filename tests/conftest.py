"""Shared fixtures: in-memory database, seeded catalog, captured OTP codes and a test client."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OTP_BCRYPT_ROUNDS"] = "4"
os.environ["OTP_BYPASS"] = "true"
os.environ["SEED_CHECKPOINTS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "true"
os.environ["RATE_LIMIT_REDIS_URL"] = ""
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:1/0"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from scavenger_hunt.db.database import Base, SessionLocal, engine, init_db  # noqa: E402
from scavenger_hunt.db.models import User  # noqa: E402
from scavenger_hunt.dependencies import get_sms_service  # noqa: E402
from scavenger_hunt.main import create_app  # noqa: E402
from scavenger_hunt.services.checkpoint_service import checkpoint_service  # noqa: E402
from scavenger_hunt.services.rate_limit_service import FixedWindowRateLimiter  # noqa: E402
from scavenger_hunt.services.sms_service import normalize_phone  # noqa: E402

PHONE = "+97412345678"
ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


class FakeSMS:
    """Captures OTP codes instead of sending them"""

    def __init__(self):
        self.codes = {}
        self.fail = False

    async def send_otp(self, phone_number, otp_code):
        if self.fail:
            return {"success": False, "error": "gateway down"}
        self.codes[phone_number] = otp_code
        return {"success": True, "bypass": True, "to": phone_number}


@pytest.fixture(autouse=True)
def tables():
    init_db()
    session = SessionLocal()
    try:
        checkpoint_service.seed_default_catalog(session)
    finally:
        session.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_sms():
    return FakeSMS()


@pytest.fixture
def app(fake_sms):
    application = create_app()
    application.dependency_overrides[get_sms_service] = lambda: fake_sms
    application.state.rate_limiter = FixedWindowRateLimiter()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login(client, fake_sms):
    """Register and verify a phone number; returns bearer headers"""

    def _login(phone=PHONE):
        resp = client.post("/api/auth/register", json={"phoneNumber": phone})
        assert resp.status_code == 200, resp.text
        code = fake_sms.codes[normalize_phone(phone)]
        resp = client.post("/api/auth/verify-otp", json={"phoneNumber": phone, "otpCode": code})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['data']['token']}"}

    return _login


def get_user(db, phone=PHONE):
    db.expire_all()
    return db.query(User).filter(User.phone_number == normalize_phone(phone)).one()

from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

os.environ.setdefault("JWT_SECRET_KEY", "fest-registrations-test-secret-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_TIMEZONE", "UTC")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from event_catalog import create_event
from models import Admin, CcUser, NcpUser, VerificationStatus
from schemas import EventCreate, ParticipantIdentity

POINTS = {
    "registration": 10,
    "qualification": 20,
    "npr": 5,
    "npq": 3,
    "first_podium": 50,
    "second_podium": 30,
    "third_podium": 20,
}


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class Factory:
    def __init__(self, db):
        self.db = db
        self._phone = 9000000000

    def phone(self) -> str:
        self._phone += 1
        return str(self._phone)

    def cc(self, cc_id: str = "CC001", points: int = 0) -> CcUser:
        user = CcUser(
            cc_id=cc_id,
            email=f"{cc_id.lower()}@college.edu",
            hashed_password="x",
            points=points,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def ncp(self, ncp_id: str = "NCP001", points: int = 0, verified=VerificationStatus.VERIFIED) -> NcpUser:
        user = NcpUser(
            ncp_id=ncp_id,
            first_name="Direct",
            last_name=ncp_id,
            email=f"{ncp_id.lower()}@mail.com",
            hashed_password="x",
            phone_number=self.phone(),
            points=points,
            verified=verified,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def admin(self, username: str = "admin") -> Admin:
        admin = Admin(username=username, hashed_password="x", is_active=True)
        self.db.add(admin)
        self.db.commit()
        return admin

    def event(self, name: str = "Quiz", slots=3, event_format: str = "SOLO", **overrides):
        payload = {
            "name": name,
            "description": f"{name} description",
            "event_type": "POPULAR",
            "format": event_format,
            "slots": slots,
            "date": datetime.now(timezone.utc) + timedelta(days=30),
            "points": POINTS,
        }
        if event_format == "TEAM":
            payload.setdefault("team_size", {"min": 1, "max": 4})
            payload.setdefault("npa_amount", 2)
        payload.update(overrides)
        return create_event(self.db, EventCreate(**payload))

    def identity(self, first_name: str = "Asha", last_name: str = "Rao", phone_number: str = None, email: str = None):
        phone_number = phone_number or self.phone()
        return ParticipantIdentity(
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            email=email or f"{first_name.lower()}.{last_name.lower()}@mail.com",
        )

    def upload(self, name: str = "proof.png"):
        return SimpleNamespace(filename=name, content_type="image/png")


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def fake_uploader():
    uploaded = []

    def _upload(file):
        uploaded.append(file.filename)
        return f"https://files.test/{file.filename}"

    _upload.uploaded = uploaded
    return _upload


def bucket_slots(event, name: str = "open") -> int:
    for bucket in event.buckets:
        if bucket.name == name:
            return bucket.slots
    raise KeyError(name)


@pytest.fixture
def slots_of(db):
    def _slots(event, name: str = "open") -> int:
        db.expire_all()
        return bucket_slots(event, name)

    return _slots

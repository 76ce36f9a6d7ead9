import os
import tempfile

# Must be set before wellness_api is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="wellness-uploads-"))
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wellness_api.database.connection import Base, get_db
from wellness_api.database.models import Doctor, Lab, Medicine, User, UserRole
from wellness_api.errors import UpstreamFailure
from wellness_api.integrations.blob_store import LocalBlobStore, get_blob_store
from wellness_api.integrations.credentials import create_access_token, hash_password
from wellness_api.integrations.notifier import get_notifier
from wellness_api.main import app
from wellness_api.services.user_service import principal_for

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeNotifier:
    """Records outgoing mail instead of talking to SMTP"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, recipient, subject, body):
        if self.fail:
            raise UpstreamFailure("Email could not be sent")
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


# ==================== FACTORIES ====================

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.USER.value, **fields):
        counter["n"] += 1
        user = User(
            name=fields.pop("name", f"User {counter['n']}"),
            email=fields.pop("email", f"user{counter['n']}@example.com"),
            password_hash=PASSWORD_HASH,
            role=role,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_medicine(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        values = {
            "name": f"Medicine {counter['n']}",
            "description": "Test medicine",
            "price": 10.0,
            "stock": 100,
            "category": "Other",
        }
        values.update(fields)
        medicine = Medicine(**values)
        db.add(medicine)
        db.commit()
        db.refresh(medicine)
        return medicine

    return _make


@pytest.fixture
def make_doctor(db, make_user):
    counter = {"n": 0}

    def _make(user=None, **fields):
        counter["n"] += 1
        user = user or make_user(role=UserRole.DOCTOR.value)
        values = {
            "name": f"Dr. Test {counter['n']}",
            "specialization": "General Physician",
            "experience": 5,
            "clinic_address": f"{counter['n']} Clinic Road",
            "longitude": 74.79,
            "latitude": 34.08,
            "phone": "+911234567890",
            "email": f"doctor{counter['n']}@example.com",
        }
        values.update(fields)
        doctor = Doctor(user_id=user.id, **values)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make


@pytest.fixture
def make_lab(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        values = {
            "name": f"Lab {counter['n']}",
            "address": f"{counter['n']} Lab Street",
            "phone": "+911234567891",
            "services": ["Blood Test"],
            "longitude": 74.80,
            "latitude": 34.07,
        }
        values.update(fields)
        lab = Lab(**values)
        db.add(lab)
        db.commit()
        db.refresh(lab)
        return lab

    return _make


@pytest.fixture
def principal(db):
    """Principal for a stored user"""
    def _principal(user):
        return principal_for(db, user)
    return _principal


# ==================== HTTP ====================

@pytest.fixture
def api_client(db, notifier, tmp_path):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_blob_store] = lambda: LocalBlobStore(root=tmp_path, url_prefix="/uploads")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _headers

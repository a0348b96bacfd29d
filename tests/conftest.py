import json
import os
import sys

import pytest

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Тестовая БД в памяти: одно соединение на все сессии и потоки
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Переопределяем engine в infrastructure.db и main.py для тестов
import lms.infrastructure.db
import lms.main
lms.infrastructure.db.engine = test_engine
lms.main.engine = test_engine
lms.infrastructure.db.SessionLocal = TestingSessionLocal

# Импортируем app после переопределения engine
from lms.main import app
from lms.config import settings
from lms.domain.entities import User
from lms.domain.errors import ExternalServiceFailure, InvalidInput
from lms.infrastructure.db import get_db
from lms.infrastructure.models import Base, UserORM
from lms.infrastructure.protection import Decision, auth_limiter
from lms.interfaces.http.authz import require_admin, require_user
from lms.interfaces.http.deps import get_guard, get_payments, get_storage


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


class AllowAllGuard:
    def __init__(self):
        self.decision = Decision(allowed=True)
        self.fingerprints = []

    def protect(self, request, fingerprint):
        self.fingerprints.append(fingerprint)
        return self.decision


class FakePayments:
    """Платёжный шлюз без сети: запоминает вызовы."""

    def __init__(self):
        self.customers = []
        self.sessions = []
        self.fail_checkout = False

    def create_customer(self, *, email, name, user_id):
        self.customers.append({"email": email, "name": name, "user_id": user_id})
        return f"cus_test_{user_id}"

    def create_checkout_session(self, **kwargs):
        if self.fail_checkout:
            raise ExternalServiceFailure("Payment system error. Please try again later.")
        self.sessions.append(kwargs)
        return f"https://checkout.stripe.test/session/{len(self.sessions)}"

    def parse_webhook_event(self, payload, signature):
        if signature != "valid":
            raise InvalidInput("Invalid webhook signature")
        return json.loads(payload)


class FakeStorage:
    def __init__(self):
        self.presigned = []
        self.deleted = []

    def presign_upload(self, *, key, content_type, expires_in):
        self.presigned.append({"key": key, "content_type": content_type, "expires_in": expires_in})
        return f"https://storage.test/{key}?X-Amz-Signature=test"

    def delete_object(self, *, key):
        self.deleted.append(key)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Настройка тестового окружения"""
    # Отключаем кэш и лимиты slowapi для тестов
    monkeypatch.setattr(settings, "CACHE_ENABLED", False)
    monkeypatch.setattr(auth_limiter, "enabled", False)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def tables():
    # Создаем таблицы перед каждым тестом
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    # Очищаем после теста
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db(tables):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def guard():
    return AllowAllGuard()

@pytest.fixture
def payments():
    return FakePayments()

@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(tables, guard, payments, storage):
    app.dependency_overrides[get_guard] = lambda: guard
    app.dependency_overrides[get_payments] = lambda: payments
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    for dep in (get_guard, get_payments, get_storage):
        app.dependency_overrides.pop(dep, None)


def make_user(email: str, role: str = "user", name: str = "Test User") -> UserORM:
    with TestingSessionLocal() as session:
        row = UserORM(email=email, name=name, role=role, password_hash="not-a-real-hash")
        session.add(row)
        session.commit()
        session.refresh(row)
        return row


@pytest.fixture
def admin_user(tables):
    return make_user("admin@example.com", role="admin", name="Admin")


@pytest.fixture
def admin_override(admin_user):
    """Фикстура для переопределения require_admin"""
    def mock_require_admin():
        return {"sub": admin_user.email, "role": "admin", "uid": admin_user.id}

    app.dependency_overrides[require_admin] = mock_require_admin
    yield admin_user
    app.dependency_overrides.pop(require_admin, None)


@pytest.fixture
def student(tables):
    return make_user("student@example.com", name="Student")


@pytest.fixture
def user_override(student):
    """Фикстура для переопределения require_user"""
    def mock_require_user():
        return User(id=student.id, email=student.email, name=student.name, role="user")

    app.dependency_overrides[require_user] = mock_require_user
    yield student
    app.dependency_overrides.pop(require_user, None)


AUTH = {"Authorization": "Bearer test"}

COURSE_PAYLOAD = {
    "title": "Python Basics",
    "slug": "python-basics",
    "description": "Learn Python from scratch",
    "small_description": "Intro to Python",
    "price": 49,
    "duration": 10,
    "level": "Beginner",
    "category": "Development",
    "status": "Published",
}

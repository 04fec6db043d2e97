from __future__ import annotations

import mongomock
import pytest
from fastapi.testclient import TestClient

from backend.config import Settings
from backend.main import create_app
from backend.security import create_access_token, hash_password
from database import ConnectionSupervisor


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


@pytest.fixture
def timers():
    created: list[FakeTimer] = []

    def factory(interval, function):
        timer = FakeTimer(interval, function)
        created.append(timer)
        return timer

    factory.created = created
    return factory


def make_settings(**overrides) -> Settings:
    values = dict(
        mongo_uri="mongodb://localhost:27017/school_test",
        database_name="school_test",
        jwt_secret="test-secret-key-for-the-school-api-suite",
        environment="testing",
        connect_retries=1,
        cors_origins=["*"],
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def db(mongo_client, settings):
    return mongo_client[settings.database_name]


@pytest.fixture
def supervisor(settings, mongo_client):
    return ConnectionSupervisor(
        settings.mongo_uri,
        settings.database_name,
        connector=lambda uri, **options: mongo_client,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def client(settings, supervisor):
    with TestClient(create_app(settings, supervisor)) as c:
        yield c


def _add_user(db, settings, *, username, role, class_name=None, **extra):
    doc = {"username": username, "email": f"{username}@greenfield.edu", "role": role,
           "password": hash_password("secret123"), **extra}
    if class_name:
        doc["class"] = class_name
    doc["_id"] = db["users"].insert_one(doc).inserted_id
    token = create_access_token(settings, subject=str(doc["_id"]), role=role,
                                username=username, class_name=class_name)
    doc["headers"] = {"Authorization": f"Bearer {token}"}
    return doc


@pytest.fixture
def admin(client, db, settings):
    return _add_user(db, settings, username="admin", role="admin")


@pytest.fixture
def teacher(client, db, settings):
    return _add_user(db, settings, username="teacher", role="teacher", fullName="Ms. Teacher")


@pytest.fixture
def student(client, db, settings):
    return _add_user(db, settings, username="asha", role="student", class_name="10A",
                     fullName="Asha Rao", rollNumber=7, section="B")


@pytest.fixture
def other_student(client, db, settings):
    return _add_user(db, settings, username="ravi", role="student", class_name="10A",
                     fullName="Ravi Kumar", rollNumber=8)

import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="school-roster-")
os.environ.setdefault("DATA_DIR", _tmp)
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_tmp, 'app.db')}")
os.environ["AUTO_MIGRATE"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from school_roster.core.tokens import create_access_token
from school_roster.crud.user import user_crud
from school_roster.db.base import Base
from school_roster.db.session import build_engine, get_db
from school_roster.main import api
from school_roster.schemas.user import UserCreate


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'roster.db'}", timeout=10)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    api.dependency_overrides[get_db] = _get_db
    yield TestClient(api)
    api.dependency_overrides.clear()


@pytest.fixture
def student_payload():
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "full_name": f"Student Number {n}",
            "class_name": "Class 5",
            "section": "B",
            "gender": "Male",
            "date_of_birth": "2014-05-17",
            "parent_name": f"Parent {n}",
            "parent_phone": f"98765{n:05d}",
            "address": "12 School Lane",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def make_user(db):
    def _make(role: str, username: str | None = None, student_id: int | None = None):
        username = username or f"{role}-user"
        user = user_crud.create(db, UserCreate(
            username=username,
            email=f"{username}@school.edu",
            password="secret123",
            role=role,
            first_name=role.title(),
            last_name="Tester",
        ))
        if student_id is not None:
            user = user_crud.link_student(db, user, student_id)
        return user
    return _make


def headers_for(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(sub=user.username, role=user.role)}"}


@pytest.fixture
def admin_headers(make_user):
    return headers_for(make_user("admin"))


@pytest.fixture
def teacher_headers(make_user):
    return headers_for(make_user("teacher"))

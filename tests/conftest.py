"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests.
Every test that writes gets its own student (random auth subject), so
rows from other tests never land in the same user's windows.
"""
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from classmetrics.db.base import Base, get_db
from classmetrics.main import app
from classmetrics.models import Assignment, AssignmentStatus, Course, Term, TermStatus, User

SQLITE_URL = "sqlite:///./test_classmetrics.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEMO_SUBJECT = "demo-student"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    # The anonymous read fallback resolves to the lowest user id.
    db = TestingSessionLocal()
    try:
        db.add(User(auth_subject=DEMO_SUBJECT, email="demo@example.edu", first_name="Demo"))
        db.commit()
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------

class Factory:
    """Inserts planner rows for a test and commits each one."""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, **kwargs) -> User:
        kwargs.setdefault("auth_subject", f"student-{uuid.uuid4().hex}")
        kwargs.setdefault("email", f"{kwargs['auth_subject']}@example.edu")
        return self._save(User(**kwargs))

    def term(self, user: User, name: str = "Spring 2024", **kwargs) -> Term:
        kwargs.setdefault("status", TermStatus.current)
        return self._save(Term(user_id=user.id, name=name, **kwargs))

    def course(self, user: User, term: Term, credit_hours: int = 3, **kwargs) -> Course:
        kwargs.setdefault("title", "Intro to Testing")
        kwargs.setdefault("code", f"CS-{uuid.uuid4().hex[:4]}")
        return self._save(
            Course(user_id=user.id, term_id=term.id, credit_hours=credit_hours, **kwargs)
        )

    def assignment(self, user: User, course: Course, due_at: int, **kwargs) -> Assignment:
        kwargs.setdefault("title", "Problem set")
        kwargs.setdefault("status", AssignmentStatus.todo)
        return self._save(
            Assignment(user_id=user.id, course_id=course.id, due_at=due_at, **kwargs)
        )


@pytest.fixture()
def make(db):
    return Factory(db)


@pytest.fixture()
def student(make):
    return make.user(first_name="Ada", last_name="Student")


@pytest.fixture()
def auth(student):
    """Request headers identifying `student`."""
    return {"X-User-Subject": student.auth_subject}

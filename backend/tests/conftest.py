"""
Shared fixtures: an isolated SQLite store per test, a mocked asset store
and services wired to both.
"""
import os
import tempfile

# Configuration is read at import time, so the environment goes first
os.environ.setdefault("DATABASE_PATH", os.path.join(tempfile.mkdtemp(prefix="lms-test-"), "lms.db"))
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PASSWORD_HASH_METHOD", "pbkdf2:sha256:1000")
os.environ.setdefault("APP_ENV", "development")

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient

from core.asset_store import StoredAsset, UploadedFile
from core.database import Database
from services.catalog.course_service import CourseService
from services.identity.dashboard_service import DashboardService
from services.identity.identity_service import IdentityService
from services.learning.enrollment_service import EnrollmentService


@pytest.fixture
def database(tmp_path):
    return Database(tmp_path / "lms.db")


@pytest.fixture
def assets():
    """Asset store double; every upload succeeds with a predictable URL."""
    store = Mock()
    counter = {"n": 0}

    def upload(content, filename, folder, resource_type="auto", transformation=None):
        counter["n"] += 1
        return StoredAsset(
            url=f"https://assets.test/{folder}/{counter['n']}/{filename}",
            public_id=f"{folder}/{counter['n']}",
            duration=125.4 if resource_type == "video" else None,
        )

    store.upload.side_effect = upload
    store.delete.return_value = {"result": "ok"}
    return store


@pytest.fixture
def identity(database, assets):
    return IdentityService(database, assets)


@pytest.fixture
def catalog(database, assets):
    return CourseService(database, assets)


@pytest.fixture
def enrollments(database):
    return EnrollmentService(database)


@pytest.fixture
def dashboard(database):
    return DashboardService(database)


@pytest.fixture
def make_user(identity):
    """Register an account and return (user, token)."""
    counter = {"n": 0}

    def factory(role="student", email=None, password="secret123"):
        counter["n"] += 1
        return identity.register(
            "Test",
            f"User{counter['n']}",
            email or f"user{counter['n']}@example.com",
            password,
            role,
        )

    return factory


@pytest.fixture
def educator(make_user):
    user, _ = make_user(role="educator")
    return user


@pytest.fixture
def student(make_user):
    user, _ = make_user()
    return user


def course_payload(**overrides):
    data = {
        "title": "Python Basics",
        "description": "Learn Python from scratch",
        "category": "Programming",
        "level": "Beginner",
        "price": {"amount": 0},
        "tags": ["Python", "beginner", "python"],
        "course_content": [
            {
                "title": "Getting started",
                "lectures": [
                    {"title": "Intro", "duration": 90, "is_preview": True, "video_url": "https://v/intro"},
                    {"title": "Setup", "duration": 30, "video_url": "https://v/setup"},
                ],
            },
            {
                "title": "Syntax",
                "lectures": [
                    {"title": "Variables", "duration": 61, "video_url": "https://v/vars"},
                ],
            },
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_course(catalog):
    """Create (and by default publish) a course owned by ``owner``."""

    def factory(owner, publish=True, **overrides):
        course = catalog.create_course(owner, course_payload(**overrides))
        if publish:
            course = catalog.publish_course(course["id"], owner)
        return course

    return factory


@pytest.fixture
def image():
    return UploadedFile(filename="cover.png", content=b"\x89PNG fake", content_type="image/png")


@pytest.fixture
def client(catalog, enrollments, identity, dashboard):
    from api import dependencies
    from api.main import app

    app.dependency_overrides[dependencies.get_course_service] = lambda: catalog
    app.dependency_overrides[dependencies.get_enrollment_service] = lambda: enrollments
    app.dependency_overrides[dependencies.get_identity_service] = lambda: identity
    app.dependency_overrides[dependencies.get_dashboard_service] = lambda: dashboard
    yield TestClient(app)
    app.dependency_overrides.clear()

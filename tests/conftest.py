"""
Test configuration and fixtures for the Perfwatch API.

The environment is pointed at a throwaway SQLite file, a temp artifact
directory and an in-memory Celery broker before any perfwatch module is
imported, since settings are read at import time.
"""

import os
import tempfile
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

_test_dir = tempfile.mkdtemp(prefix="perfwatch-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_test_dir, 'test.db')}"
os.environ["DATA_DIR"] = os.path.join(_test_dir, "data")
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"

from perfwatch.features.scan.models.scan import Scan  # noqa: E402,F401
from perfwatch.features.scan.schemas.audit import (  # noqa: E402
    MergedOutcome,
    RunOutcome,
    ScreenshotArtifact,
)
from perfwatch.features.scan.services.audit.summary_extractor import extract_summary  # noqa: E402
from perfwatch.features.scan.services.scan.artifacts import ScanArtifacts  # noqa: E402
from perfwatch.platform.db.base import Base  # noqa: E402
from perfwatch.platform.storage import FileStore  # noqa: E402

TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def build_lhr(
    performance=0.9,
    accessibility=0.8,
    fcp=1200.0,
    final_url="https://example.com/",
    frames=3,
    extra_audits=None,
):
    """Minimal Lighthouse result with the fields the pipeline reads."""
    audits = {
        "first-contentful-paint": {"numericValue": fcp, "displayValue": f"{fcp / 1000:.1f} s"},
        "largest-contentful-paint": {"numericValue": 2500.0, "displayValue": "2.5 s"},
        "total-blocking-time": {"numericValue": 150.0, "displayValue": "150 ms"},
        "cumulative-layout-shift": {"numericValue": 0.02, "displayValue": "0.02"},
        "speed-index": {"numericValue": 3000.0, "displayValue": "3.0 s"},
        "interactive": {"numericValue": 4000.0, "displayValue": "4.0 s"},
        "screenshot-thumbnails": {
            "details": {
                "type": "filmstrip",
                "items": [
                    {"timing": 100 * (i + 1), "data": f"data:image/jpeg;base64,frame{i}"}
                    for i in range(frames)
                ],
            }
        },
    }
    if extra_audits:
        audits.update(extra_audits)
    return {
        "finalUrl": final_url,
        "requestedUrl": "https://example.com",
        "environment": {"hostUserAgent": "Mozilla/5.0 HeadlessChrome/120.0.6099.109 Safari/537.36"},
        "categories": {
            "performance": {"score": performance},
            "accessibility": {"score": accessibility},
        },
        "audits": audits,
    }


def build_run(performance=0.9, screenshot=b"img", **kwargs) -> RunOutcome:
    lhr = build_lhr(performance=performance, **kwargs)
    return RunOutcome(
        report=lhr,
        summary=extract_summary(lhr),
        screenshot=ScreenshotArtifact(buffer=screenshot) if screenshot else None,
    )


def build_outcome(**kwargs) -> MergedOutcome:
    run = build_run(**kwargs)
    return MergedOutcome(report=run.report, summary=run.summary, screenshot=run.screenshot)


@pytest.fixture
def make_lhr():
    return build_lhr


@pytest.fixture
def make_run():
    return build_run


@pytest.fixture
def make_outcome():
    return build_outcome


@pytest.fixture(scope="function")
def db_session() -> Generator:
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def artifacts(tmp_path) -> ScanArtifacts:
    return ScanArtifacts(FileStore(tmp_path))


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from perfwatch.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    This fixture provides a clean TestClient instance for each test function.
    """
    with TestClient(test_app) as test_client:
        yield test_client


# Dependency Override function
def override_get_current_user_id():
    """Mock dependency that always returns a fixed authenticated user."""
    return TEST_USER_ID


@pytest.fixture
def auth_client(client, test_app):
    """Client with the get_current_user_id dependency overridden for authenticated tests."""
    from perfwatch.platform.dependencies import get_current_user_id

    test_app.dependency_overrides[get_current_user_id] = override_get_current_user_id

    yield client

    # Cleanup: restore the original dependency after the test runs
    test_app.dependency_overrides.pop(get_current_user_id, None)

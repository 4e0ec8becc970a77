import os
import sys
import tempfile

BASE_DIR = tempfile.mkdtemp(prefix="framenote-tests-")

os.environ["FRAMENOTE_DB_PATH"] = os.path.join(BASE_DIR, "framenote.sqlite3")
os.environ["FRAMENOTE_REDIS_URL"] = ""
os.environ["FRAMENOTE_LOG_FORMAT"] = "plain"
os.environ["FRAMENOTE_METRICS_ENABLED"] = "false"
os.environ["FRAMENOTE_RATE_LIMIT_ENABLED"] = "false"
os.environ["FRAMENOTE_OTEL_ENABLED"] = "false"
os.environ["FRAMENOTE_SENTRY_DSN"] = ""
os.environ["FRAMENOTE_PUBLIC_BASE_URL"] = "https://review.test"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from unittest.mock import MagicMock

import pytest


@pytest.fixture()
def realtime():
    return MagicMock()


@pytest.fixture()
def app(realtime):
    from framenote.server import create_app
    from framenote.services.container import ServiceContainer

    app = create_app(ServiceContainer(realtime=realtime))
    app.config.update(TESTING=True)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def project():
    from framenote.services.projects import _create_project

    return _create_project(
        title="Cut 3",
        video_url="https://www.youtube.com/watch?v=abc123",
        video_metadata={"provider": "youtube", "title": "Cut 3", "duration": 95},
    )


@pytest.fixture()
def temp_project():
    from framenote.services.projects import _create_temp_project

    return _create_temp_project(
        video_url="https://vimeo.com/12345",
        video_metadata={"provider": "vimeo", "title": "Rough cut"},
    )

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from api.main import create_app
from common.config import Settings
from common.db import create_session_factory
from grading.types import Grade, GradingResult, GradingScores
from modules import grading_service

AUTH = {"Authorization": "Bearer test-token"}
REPO_URL = "https://github.com/student/todo-api"


class FakeRedis:
    def __init__(self, healthy=True):
        self.healthy = healthy

    def ping(self):
        if not self.healthy:
            raise RedisConnectionError("down")
        return True


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def app(engine, dispatched):
    app = create_app()
    app.state.settings = Settings(static_token="test-token", llm_api_key="k")
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.redis_client = FakeRedis()
    app.state.dispatch_grading = dispatched.append
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _submit(client, **overrides):
    body = {"repository_url": REPO_URL, "submitter_id": "student-1"}
    body.update(overrides)
    return client.post("/api/v1/submissions", json=body, headers=AUTH)


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["data"] == {"status": "healthy"}


def test_health_reports_broker_outage(app, client):
    app.state.redis_client = FakeRedis(healthy=False)

    response = client.get("/api/v1/health")

    assert response.json()["data"]["status"] == "unhealthy"


def test_requires_token(client):
    response = client.get(
        "/api/v1/submissions",
        headers={"Authorization": "Bearer wrong"},
    )

    assert response.status_code == 401


def test_create_submission_dispatches_grading(client, dispatched):
    response = _submit(client, project_type="react", rubric="Use hooks")

    assert response.status_code == 202
    data = response.json()["data"]
    assert data["status"] == "uploading"
    assert data["grade"] == "pending"
    assert dispatched == [data["submission_id"]]


@pytest.mark.parametrize("url", [
    "https://gitlab.com/student/todo-api",
    "https://github.com/student",
    "not a url",
])
def test_create_submission_rejects_bad_urls(client, dispatched, url):
    response = _submit(client, repository_url=url)

    assert response.status_code == 422
    assert dispatched == []


def test_create_submission_rejects_unknown_project_type(client):
    assert _submit(client, project_type="cobol").status_code == 422


def test_create_submission_rejects_escaping_selectors(client):
    response = _submit(client, file_selectors=["../secrets/*"])

    assert response.status_code == 422


def test_dispatch_failure_marks_submission_failed(app, client, engine):
    def broken_dispatch(submission_id):
        raise ConnectionError("broker down")

    app.state.dispatch_grading = broken_dispatch

    response = _submit(client)

    assert response.status_code == 503
    db = create_session_factory(engine)()
    [submission] = grading_service.list_submissions(db)
    assert submission.status == "failed"
    db.close()


def test_get_submission_lifecycle(client, engine):
    submission_id = _submit(client).json()["data"]["submission_id"]

    pending = client.get(
        f"/api/v1/submissions/{submission_id}", headers=AUTH
    ).json()["data"]
    assert pending["status"] == "uploading"
    assert pending["scores"] is None
    assert pending["report"] is None

    db = create_session_factory(engine)()
    grading_service.complete_submission(db, submission_id, GradingResult(
        grade=Grade.passed,
        scores=GradingScores(total=98, test_score=100, quality_score=90),
        report="# Grading Report",
    ))
    db.close()

    done = client.get(
        f"/api/v1/submissions/{submission_id}", headers=AUTH
    ).json()["data"]
    assert done["status"] == "completed"
    assert done["grade"] == "pass"
    assert done["scores"]["total"] == 98
    assert done["report"] == "# Grading Report"


def test_get_missing_submission(client):
    response = client.get("/api/v1/submissions/sub-missing", headers=AUTH)

    assert response.status_code == 404


def test_list_and_stats(client):
    _submit(client, submitter_id="alice")
    _submit(client, submitter_id="bob")

    listed = client.get(
        "/api/v1/submissions",
        params={"submitter_id": "alice"},
        headers=AUTH,
    ).json()["data"]
    stats = client.get("/api/v1/submissions/stats", headers=AUTH).json()

    assert [s["submitter_id"] for s in listed] == ["alice"]
    assert stats["data"]["total_submissions"] == 2
    assert stats["data"]["completed_submissions"] == 0


def test_missing_token_is_unauthorized(client):
    response = client.get("/api/v1/submissions/stats")

    assert response.status_code == 401
    assert response.json()["success"] is False

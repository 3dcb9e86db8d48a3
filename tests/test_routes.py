"""Tests for the HTTP layer."""

import uuid

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from factcheck.database import get_db
from factcheck.main import app
from factcheck.routes.deps import get_external_client, get_pipeline
from factcheck.schemas.results import AnalysisResult
from factcheck.services.final_result import FinalResultStore
from factcheck.services.orchestrator import JobOrchestrator
from factcheck.services.pipeline import VerificationPipeline
from factcheck.services.questions import QuestionStore
from factcheck.services.sources import SourceStore
from factcheck.services.state_machine import VerificationStateMachine

CLAIM = "The city council doubled the transport budget in 2023."
OWNER = {"X-User-Id": "user-1"}
STRANGER = {"X-User-Id": "user-2"}


@pytest.fixture
def client(session_factory, fake_client):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_get_pipeline(db: Session = Depends(get_db)):
        orchestrator = JobOrchestrator(db, client=fake_client, sleep=lambda seconds: None)
        return VerificationPipeline(db, orchestrator=orchestrator)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_external_client] = lambda: fake_client
    app.dependency_overrides[get_pipeline] = override_get_pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def _start(client):
    response = client.post("/verifications", json={"text": CLAIM}, headers=OWNER)
    assert response.status_code == 200
    return uuid.UUID(response.json()["verification_id"])


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_missing_user_header(client):
    """Test that requests without a caller id are rejected."""
    assert client.post("/verifications", json={"text": CLAIM}).status_code == 401


def test_start_verification(client, fake_client):
    response = client.post("/verifications", json={"text": CLAIM, "language": "gl"}, headers=OWNER)

    body = response.json()
    assert response.status_code == 200
    assert body["job_id"] == fake_client.submitted[0][2]

    status = client.get(f"/verifications/{body['verification_id']}/status", headers=OWNER).json()
    assert status["status"] == "processing_questions"


def test_start_verification_short_text(client):
    """Test that domain validation errors map to 400 with a code."""
    response = client.post("/verifications", json={"text": "short"}, headers=OWNER)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_submission_failure_maps_to_502(client, fake_client):
    fake_client.failures["generate_questions"] = [RuntimeError("down")] * 3

    response = client.post("/verifications", json={"text": CLAIM}, headers=OWNER)

    assert response.status_code == 502
    assert response.json() == {"code": "TRANSIENT", "message": "generate_questions: down"}


def test_owner_only_access(client):
    """Test not-found and forbidden responses."""
    verification_id = _start(client)

    assert client.get(f"/verifications/{verification_id}", headers=STRANGER).status_code == 403
    assert client.get(f"/verifications/{uuid.uuid4()}", headers=OWNER).status_code == 404
    assert client.get(f"/verifications/{verification_id}", headers=OWNER).json()["status"] == "processing_questions"


def test_list_own_verifications(client):
    _start(client)

    assert len(client.get("/verifications", headers=OWNER).json()) == 1
    assert client.get("/verifications", headers=STRANGER).json() == []


def test_permissions_and_logs(client):
    verification_id = _start(client)

    permissions = client.get(f"/verifications/{verification_id}/permissions", headers=STRANGER).json()
    logs = client.get(f"/verifications/{verification_id}/logs", headers=OWNER).json()
    stats = client.get(f"/verifications/{verification_id}/logs/statistics", headers=OWNER).json()

    assert permissions == {"exists": True, "is_owner": False, "status": "processing_questions", "can_edit": False}
    assert [entry["status"] for entry in logs] == ["completed", "started"]
    assert stats["total"] == 2


def test_question_editing(client, test_db):
    """Test add, update, reorder and delete through the API."""
    verification_id = _start(client)
    QuestionStore(test_db).save_batch(
        verification_id,
        [{"question_text": "Who approved the budget?"}, {"question_text": "What did it cost in 2022?"}],
    )
    base = f"/verifications/{verification_id}/questions"

    added = client.post(base, json={"question_text": "Was it published?"}, headers=OWNER).json()
    assert added["order_index"] == 2

    updated = client.put(f"{base}/{added['id']}", json={"question_text": "Was it ever published?"}, headers=OWNER)
    assert updated.json()["is_edited"]

    questions = client.get(base, headers=OWNER).json()
    reordered = client.put(
        f"{base}/order",
        json={"questions": [{"id": questions[2]["id"], "order_index": 0}]},
        headers=OWNER,
    ).json()
    assert [q["question_text"] for q in reordered] == [
        "Was it ever published?",
        "Who approved the budget?",
        "What did it cost in 2022?",
    ]

    assert client.delete(f"{base}/{questions[0]['id']}", headers=OWNER).status_code == 200
    assert len(client.get(base, headers=OWNER).json()) == 2


def test_question_editing_forbidden_for_stranger(client):
    verification_id = _start(client)

    response = client.post(
        f"/verifications/{verification_id}/questions", json={"question_text": "Who approved it?"}, headers=STRANGER
    )

    assert response.status_code == 403


def test_reorder_foreign_question(client, test_db):
    """Test that a question of another verification is refused."""
    verification_id = _start(client)
    other_id = _start(client)
    store = QuestionStore(test_db)
    store.save_batch(verification_id, [{"question_text": "Who approved the budget?"}])
    store.save_batch(other_id, [{"question_text": "Who wrote the report?"}])
    foreign = store.list(other_id)[0]

    response = client.put(
        f"/verifications/{verification_id}/questions/order",
        json={"questions": [{"id": str(foreign.id), "order_index": 0}]},
        headers=OWNER,
    )

    assert response.status_code == 403
    assert response.json()["code"] == "OWNERSHIP_VIOLATION"


def _set_status(test_db, verification_id, status):
    verification = VerificationStateMachine(test_db).get(verification_id)
    verification.status = status
    test_db.commit()


def test_editing_after_completion(client, test_db):
    """Test that a completed verification is read-only."""
    verification_id = _start(client)
    _set_status(test_db, verification_id, "completed")

    response = client.post(
        f"/verifications/{verification_id}/questions", json={"question_text": "Who approved it?"}, headers=OWNER
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATE"
    assert "completed" in response.json()["message"]


def test_sources_analysis_and_share(client, test_db, fake_client):
    """Test source selection, analysis request, result and public share link."""
    verification_id = _start(client)
    SourceStore(test_db).save_batch(
        verification_id,
        [
            {"url": "https://www.ine.es/budget-2023", "title": "Budget report 2023", "domain": "ine.es"},
            {"url": "https://news.example.com/council", "title": "Council vote", "domain": "news.example.com"},
        ],
    )
    _set_status(test_db, verification_id, "sources_ready")
    base = f"/verifications/{verification_id}"

    assert client.post(f"{base}/analysis", headers=OWNER).status_code == 400

    sources = client.get(f"{base}/sources", params={"domain": "ine.es"}, headers=OWNER).json()
    selected = client.put(f"{base}/sources/{sources[0]['id']}", json={"is_selected": True}, headers=OWNER).json()
    assert selected["is_selected"]

    started = client.post(f"{base}/analysis", headers=OWNER).json()
    assert started["job_id"] == fake_client.submitted[-1][2]
    assert client.get(f"{base}/status", headers=OWNER).json()["status"] == "generating_summary"
    assert client.get(f"{base}/result", headers=OWNER).status_code == 404

    FinalResultStore(test_db).save(
        verification_id, AnalysisResult(answer="The transport budget grew by 12%, it did not double.")
    )
    _set_status(test_db, verification_id, "completed")

    result = client.get(f"{base}/result", headers=OWNER).json()
    assert result["final_text"].startswith("The transport budget")

    token = client.post(f"/share/{verification_id}", headers=OWNER).json()["share_token"]
    assert client.post(f"/share/{verification_id}", headers=STRANGER).status_code == 403

    shared = client.get(f"/share/{token}").json()
    assert shared["id"] == str(verification_id)
    assert [s["url"] for s in shared["sources"]] == ["https://www.ine.es/budget-2023"]
    assert "user_id" not in shared
    assert client.get("/share/unknown-token").status_code == 404

"""
Integration tests for the HTTP API.

Uses TestClient with the test database and mocked AI / search collaborators.
Dramatiq sends are patched so submissions stay in-process.
"""
import json
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from feedback_radar.models import Case, CaseFeedback, WorkflowInstance
from feedback_radar.services.feedback_store import FeedbackStore, PersistenceError
from feedback_radar.services.workflow_service import WorkflowRunner
from tests.factories import create_case, create_feedback, create_flag

pytestmark = pytest.mark.integration


@pytest.fixture
def send():
    with patch("feedback_radar.services.workflow_queue_service.run_workflow") as actor:
        yield actor.send


# =============================================================================
# Feedback
# =============================================================================

class TestFeedbackApi:
    def test_create_feedback_indexes_and_submits(self, client, db: Session, mock_search, send):
        response = client.post(
            "/api/feedback",
            json={
                "source": "github",
                "content": "Checkout fails with 500",
                "timestamp": 1760832000000,
                "user_id": "u-9",
                "metadata": {"repo": "shop"},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["workflowInstanceId"] == f"feedback-{data['id']}"
        assert mock_search.indexed[data["id"]] == {
            "content": "Checkout fails with 500",
            "source": "github",
            "timestamp": 1760832000000,
        }
        send.assert_called_once_with(data["workflowInstanceId"])
        instance = db.get(WorkflowInstance, data["workflowInstanceId"])
        assert json.loads(instance.params)["metadata"] == '{"repo": "shop"}'

    def test_create_feedback_requires_fields(self, client, send):
        response = client.post("/api/feedback", json={"source": "github", "content": "x"})

        assert response.status_code == 422
        send.assert_not_called()

    def test_submitted_workflow_runs_to_completion(
        self, client, db: Session, mock_judgment, mock_search, send
    ):
        data = client.post(
            "/api/feedback",
            json={"source": "discord", "content": "Login loops", "timestamp": 1},
        ).json()

        WorkflowRunner(db, judgment=mock_judgment, search=mock_search,
                       sleep=lambda s: None).run(data["workflowInstanceId"])
        status = client.get(f"/api/workflows/{data['workflowInstanceId']}").json()

        assert status["status"] == "completed"
        assert [s["name"] for s in status["steps"]] == [
            "sentiment-analysis",
            "find-similar",
            "group-feedback",
        ]
        assert status["result"]["feedbackId"] == data["id"]

    def test_list_and_filter(self, client, db: Session):
        create_feedback(db, source="github", timestamp=1)
        discord = create_feedback(db, source="discord", timestamp=2)

        all_items = client.get("/api/feedback").json()["feedback"]
        filtered = client.get("/api/feedback", params={"source": "discord"}).json()["feedback"]

        assert len(all_items) == 2
        assert [f["id"] for f in filtered] == [discord.id]

    def test_get_feedback(self, client, db: Session):
        feedback = create_feedback(db, content="Hello")

        assert client.get(f"/api/feedback/{feedback.id}").json()["feedback"]["content"] == "Hello"
        assert client.get("/api/feedback/999").status_code == 404


# =============================================================================
# Under-the-radar
# =============================================================================

class TestUnderRadarApi:
    def test_analyze_flags_severe_item(self, client, db: Session):
        feedback = create_feedback(db, content="Production is down, urgent!!")

        data = client.post("/api/analyze", json={"feedbackId": feedback.id}).json()

        assert data["flagged"] is True
        assert data["created"] is True
        assert data["flag"]["severity_score"] == 9
        assert data["feedback"]["id"] == feedback.id

    def test_analyze_twice_returns_existing_flag(self, client, db: Session, mock_judgment):
        feedback = create_feedback(db, content="Production is down, urgent!!")

        client.post("/api/analyze", json={"feedbackId": feedback.id})
        data = client.post("/api/analyze", json={"feedbackId": feedback.id}).json()

        assert data["created"] is False
        assert mock_judgment.call_count("detect_under_radar") == 1

    def test_analyze_missing_feedback(self, client):
        assert client.post("/api/analyze", json={"feedbackId": 999}).status_code == 404

    def test_list_flags(self, client, db: Session):
        low = create_flag(db, create_feedback(db, content="meh"), severity_score=5)
        high = create_flag(db, create_feedback(db, content="awful"), severity_score=9)

        flags = client.get("/api/under-radar").json()["underRadar"]

        assert [f["id"] for f in flags] == [high.id, low.id]
        assert flags[0]["content"] == "awful"


# =============================================================================
# Cases
# =============================================================================

class TestCasesApi:
    def test_create_case_with_ids(self, client, db: Session):
        a = create_feedback(db)
        b = create_feedback(db)

        data = client.post("/api/cases", json={"title": "Manual", "feedbackIds": [a.id, b.id]}).json()

        assert data["success"] is True
        links = db.query(CaseFeedback).filter(CaseFeedback.case_id == data["id"]).count()
        assert links == 2

    def test_create_case_with_similar(self, client, db: Session, mock_search):
        seed = create_feedback(db, content="Search is empty")
        other = create_feedback(db, content="Docs search broken")
        mock_search.set_results(seed.content, [seed.id, other.id])

        data = client.post(
            "/api/cases",
            json={"title": "Search", "feedbackIds": [seed.id], "includeSimilar": True,
                  "similarLimit": 3},
        ).json()

        ids = {
            row.feedback_id
            for row in db.query(CaseFeedback).filter(CaseFeedback.case_id == data["id"])
        }
        assert ids == {seed.id, other.id}
        assert mock_search.calls["find_similar_feedback"][0]["limit"] == 3

    def test_create_case_with_missing_seed(self, client, db: Session):
        data = client.post(
            "/api/cases", json={"title": "Ghost", "feedbackIds": [999], "includeSimilar": True}
        ).json()

        assert db.get(Case, data["id"]).title == "Ghost"
        assert db.query(CaseFeedback).count() == 0

    def test_create_case_requires_title(self, client):
        assert client.post("/api/cases", json={"feedbackIds": [1]}).status_code == 422

    def test_list_and_review_case(self, client, db: Session):
        case = create_case(db, title="Crashes", feedback=[
            create_feedback(db, content="Production is down, urgent!!")
        ])

        cases = client.get("/api/cases").json()["cases"]
        review = client.get(f"/api/cases/{case.id}").json()

        assert [c["title"] for c in cases] == ["Crashes"]
        assert review["prosecution"] == "Users report crashes in production."
        assert review["verdict"]["urgency"] == "high"
        assert len(review["feedback"]) == 1

    def test_review_missing_case(self, client):
        assert client.get("/api/cases/999").status_code == 404


# =============================================================================
# Editions and workflows
# =============================================================================

class TestEditionsApi:
    def test_latest_when_empty(self, client):
        assert client.get("/api/edition/latest").json() == {"edition": None}

    def test_latest_and_by_date(self, client, db: Session):
        FeedbackStore(db).upsert_daily_edition("2026-10-19", '{"topStory": {"headline": "Hi"}}')

        latest = client.get("/api/edition/latest").json()
        by_date = client.get("/api/edition/2026-10-19").json()

        assert latest["edition_date"] == "2026-10-19"
        assert latest["content"]["topStory"]["headline"] == "Hi"
        assert by_date == latest

    def test_non_json_content_is_wrapped(self, client, db: Session):
        FeedbackStore(db).upsert_daily_edition("2026-10-19", "plain text")

        assert client.get("/api/edition/2026-10-19").json()["content"] == {"raw": "plain text"}

    def test_missing_date(self, client):
        assert client.get("/api/edition/2020-01-01").status_code == 404

    def test_list_editions(self, client, db: Session):
        store = FeedbackStore(db)
        store.upsert_daily_edition("2026-10-18", "{}")
        store.upsert_daily_edition("2026-10-19", "{}")

        editions = client.get("/api/editions", params={"limit": 1}).json()["editions"]

        assert [e["edition_date"] for e in editions] == ["2026-10-19"]

    def test_regenerate_uses_timestamped_instance(self, client, db: Session, send):
        data = client.post("/api/edition/regenerate").json()

        assert data["success"] is True
        assert data["workflowInstanceId"].startswith(f"daily-{data['edition_date']}-")
        send.assert_called_once_with(data["workflowInstanceId"])
        params = json.loads(db.get(WorkflowInstance, data["workflowInstanceId"]).params)
        assert params == {"edition_date": data["edition_date"]}


class TestWorkflowsApi:
    def test_missing_instance(self, client):
        assert client.get("/api/workflows/feedback-1").status_code == 404


class TestErrors:
    def test_persistence_error_is_500(self, client):
        with patch.object(FeedbackStore, "list_cases", side_effect=PersistenceError("db gone")):
            response = client.get("/api/cases")

        assert response.status_code == 500
        assert response.json() == {"detail": "Storage failure"}

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

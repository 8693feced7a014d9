"""Tests for the matching and assignment endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from fastapi.testclient import TestClient

from claimlink.api.v1.endpoints import assignments, matching
from claimlink.core.database import get_async_session
from claimlink.core.exceptions import (
    AssignmentNotFoundError,
    DocumentNotFoundError,
    RematchInProgressError,
    ValidationError,
)
from claimlink.main import app
from claimlink.schemas.enums import AssignmentStatus
from claimlink.services.matching.rematch_runner import get_rematch_runner
from tests.factories import make_assignment, make_claim, make_document


async def _fake_session():
    yield MagicMock()


class TestMatchingEndpoints:

    def test_run_matching(self, test_client: TestClient) -> None:
        assignment = make_assignment(make_document(), make_claim())
        runner = AsyncMock()
        runner.rematch_all.return_value = [assignment]
        app.dependency_overrides[get_async_session] = _fake_session
        app.dependency_overrides[get_rematch_runner] = lambda: runner

        response = test_client.post("/api/v1/matching/run")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["created"] == 1
        assert data["assignments"][0]["id"] == str(assignment.id)
        assert data["assignments"][0]["match_reason_type"] == "exact_amount"

    def test_run_matching_while_running(self, test_client: TestClient) -> None:
        runner = AsyncMock()
        runner.rematch_all.side_effect = RematchInProgressError("A rematch is already running")
        app.dependency_overrides[get_async_session] = _fake_session
        app.dependency_overrides[get_rematch_runner] = lambda: runner

        response = test_client.post("/api/v1/matching/run")

        assert response.status_code == 409

    def test_match_unknown_document(self, test_client: TestClient) -> None:
        document_id = uuid4()
        engine = AsyncMock()
        engine.match_document_by_id.side_effect = DocumentNotFoundError(document_id)
        app.dependency_overrides[matching.get_assignment_engine] = lambda: engine

        response = test_client.post(f"/api/v1/matching/documents/{document_id}")

        assert response.status_code == 404

    def test_match_documents_requires_ids(self, test_client: TestClient) -> None:
        app.dependency_overrides[matching.get_assignment_engine] = lambda: AsyncMock()

        response = test_client.post("/api/v1/matching/documents", json={"document_ids": []})

        assert response.status_code == 422


class TestAssignmentEndpoints:

    def test_confirm(self, test_client: TestClient) -> None:
        assignment = make_assignment(
            make_document(), make_claim(), status=AssignmentStatus.CONFIRMED
        )
        service = AsyncMock()
        service.confirm_assignment.return_value = assignment
        app.dependency_overrides[assignments.get_review_service] = lambda: service
        illness_id = uuid4()

        response = test_client.post(
            f"/api/v1/assignments/{assignment.id}/confirm",
            json={"illness_id": str(illness_id), "review_notes": "ok"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "confirmed"
        service.confirm_assignment.assert_awaited_once_with(
            str(assignment.id), illness_id, review_notes="ok", confirmed_by=None
        )

    def test_confirm_without_illness(self, test_client: TestClient) -> None:
        service = AsyncMock()
        service.confirm_assignment.side_effect = ValidationError(
            "illness_id is required to confirm an assignment"
        )
        app.dependency_overrides[assignments.get_review_service] = lambda: service

        response = test_client.post(f"/api/v1/assignments/{uuid4()}/confirm", json={})

        assert response.status_code == 400

    def test_reject_unknown(self, test_client: TestClient) -> None:
        assignment_id = uuid4()
        service = AsyncMock()
        service.reject_assignment.side_effect = AssignmentNotFoundError(assignment_id)
        app.dependency_overrides[assignments.get_review_service] = lambda: service

        response = test_client.post(f"/api/v1/assignments/{assignment_id}/reject", json={})

        assert response.status_code == 404


class TestHealthAndRoot:

    def test_root(self, test_client: TestClient) -> None:
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Server is running"

    def test_health_reports_degraded_database(self, test_client: TestClient) -> None:
        with patch(
            "claimlink.api.v1.endpoints.health.db_client.health_check",
            AsyncMock(return_value={"status": "unhealthy", "connected": False}),
        ):
            response = test_client.get("/health/")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["database"] == "unhealthy"

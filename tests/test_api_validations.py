"""Tests for validation pipeline endpoints."""

from unittest.mock import AsyncMock

from clm.db.models import ExtractionJob, JobStatus
from clm.db.repository import create_contract
from clm.services.validation import CanonicalExtraction, attach_canonical
from worker.workflows import ValidationRequest, ValidationWorkflow

DRAFT = {"value": 100, "data_termo": "2025-12-31"}


def _contract(sessionmaker) -> str:
    with sessionmaker() as session:
        contract = create_contract(session, organization_id="org-1", title="Contrato")
        session.commit()
        return contract.id


def _start(client, contract_id, **body):
    body.setdefault("draft", DRAFT)
    return client.post(f"/api/contracts/{contract_id}/validations", json=body)


class TestStartValidation:
    def test_draft_opens_job_and_starts_workflow(self, api_client, sqlite_sessionmaker, mock_temporal):
        contract_id = _contract(sqlite_sessionmaker)

        response = _start(api_client, contract_id, confidence=0.9)

        assert response.status_code == 202
        data = response.json()
        assert data["validation_status"] == "draft_only"
        assert data["workflow_id"] == f"validation-{data['job_id']}"

        mock_temporal.start_workflow.assert_awaited_once()
        args, kwargs = mock_temporal.start_workflow.call_args
        assert args[0] == ValidationWorkflow.run
        assert isinstance(args[1], ValidationRequest)
        assert args[1].job_id == data["job_id"]
        assert args[1].document_text is None
        assert kwargs["id"] == data["workflow_id"]
        assert kwargs["task_queue"] == "validation-queue"

    def test_second_start_conflicts(self, api_client, sqlite_sessionmaker):
        contract_id = _contract(sqlite_sessionmaker)
        first = _start(api_client, contract_id).json()

        response = _start(api_client, contract_id)

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "JobAlreadyInFlight"
        assert detail["job_id"] == first["job_id"]

    def test_text_path_defers_job_to_worker(self, api_client, sqlite_sessionmaker, mock_temporal):
        contract_id = _contract(sqlite_sessionmaker)

        response = api_client.post(
            f"/api/contracts/{contract_id}/validations",
            json={"document_text": "CONTRATO DE PRESTACAO DE SERVICOS ..."},
        )

        assert response.status_code == 202
        assert response.json()["job_id"] is None
        request = mock_temporal.start_workflow.call_args.args[1]
        assert request.job_id is None
        assert request.document_text.startswith("CONTRATO")
        with sqlite_sessionmaker() as session:
            assert session.query(ExtractionJob).count() == 0

    def test_requires_draft_or_text(self, api_client, sqlite_sessionmaker):
        contract_id = _contract(sqlite_sessionmaker)
        response = api_client.post(f"/api/contracts/{contract_id}/validations", json={"confidence": 0.5})
        assert response.status_code == 422

    def test_unknown_contract(self, api_client):
        assert _start(api_client, "missing").status_code == 404

    def test_temporal_unavailable(self, api_client, sqlite_sessionmaker):
        from clm.main import app

        contract_id = _contract(sqlite_sessionmaker)
        app.state.temporal = None

        response = _start(api_client, contract_id)

        assert response.status_code == 503
        with sqlite_sessionmaker() as session:
            assert session.query(ExtractionJob).count() == 0

    def test_workflow_start_failure_fails_job(self, api_client, sqlite_sessionmaker, mock_temporal):
        contract_id = _contract(sqlite_sessionmaker)
        mock_temporal.start_workflow = AsyncMock(side_effect=RuntimeError("temporal down"))

        response = _start(api_client, contract_id)

        assert response.status_code == 503
        with sqlite_sessionmaker() as session:
            job = session.query(ExtractionJob).one()
            assert job.status == JobStatus.failed
            assert "temporal down" in job.error

        # The contract is free for a new attempt
        mock_temporal.start_workflow = AsyncMock()
        assert _start(api_client, contract_id).status_code == 202


class TestShowJob:
    def test_job_with_diffs(self, api_client, sqlite_sessionmaker):
        contract_id = _contract(sqlite_sessionmaker)
        job_id = _start(api_client, contract_id).json()["job_id"]
        with sqlite_sessionmaker() as session:
            attach_canonical(session, job_id, CanonicalExtraction(payload={"value": 120, "data_termo": "2025-12-31"}))
            session.commit()

        response = api_client.get(f"/api/validations/{job_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "succeeded"
        assert data["validation_status"] == "needs_review"
        assert data["diffs"] == [
            {"field_path": "value", "draft_value": 100, "canonical_value": 120, "material": True}
        ]

        latest = api_client.get(f"/api/contracts/{contract_id}/validations/latest").json()
        assert latest["id"] == job_id

    def test_unknown_job(self, api_client):
        response = api_client.get("/api/validations/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "JobNotFound"

    def test_no_validation_yet(self, api_client, sqlite_sessionmaker):
        contract_id = _contract(sqlite_sessionmaker)
        assert api_client.get(f"/api/contracts/{contract_id}/validations/latest").status_code == 404


class TestFailJob:
    def test_fail_running_job(self, api_client, sqlite_sessionmaker):
        contract_id = _contract(sqlite_sessionmaker)
        job_id = _start(api_client, contract_id).json()["job_id"]

        response = api_client.post(f"/api/validations/{job_id}/fail", json={"error": "supervisor timeout"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["validation_status"] == "failed"
        assert data["error"] == "supervisor timeout"
        assert data["draft_extraction_id"] is not None

    def test_fail_succeeded_job_conflicts(self, api_client, sqlite_sessionmaker):
        contract_id = _contract(sqlite_sessionmaker)
        job_id = _start(api_client, contract_id).json()["job_id"]
        with sqlite_sessionmaker() as session:
            attach_canonical(session, job_id, CanonicalExtraction(payload=dict(DRAFT)))
            session.commit()

        response = api_client.post(f"/api/validations/{job_id}/fail", json={"error": "late"})
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "JobNotActive"

"""End-to-end tests for the stage flows with a fake job API."""

import httpx
import pytest

from factcheck.errors import InvalidState, JobFailed, TransientError, ValidationError
from factcheck.models.job import Job
from factcheck.schemas.results import JobStatus
from factcheck.services.orchestrator import JobOrchestrator
from factcheck.services.pipeline import (
    COLLECT_ANALYSIS,
    COLLECT_QUESTIONS,
    COLLECT_SOURCES,
    GENERATE_ARTICLE,
    GENERATE_QUESTIONS,
    SEARCH_SOURCES,
    VerificationPipeline,
)

CLAIM = "The city council doubled the transport budget in 2023."

QUESTIONS_RESULT = {
    "questions": [
        {"question_text": "Who approved the 2023 transport budget?"},
        {"question_text": "What was the 2022 transport budget?"},
        {"question_text": "abc"},
    ]
}

SOURCES_RESULT = {
    "sources": [
        {"url": "https://www.ine.es/budget-2023", "title": "Budget report 2023", "domain": "ine.es"},
        {"url": "https://news.example.com/council", "title": "Council vote", "domain": "news.example.com"},
    ]
}

ANALYSIS_RESULT = {
    "answer": "The transport budget grew by 12%, it did not double.",
    "metadata": {"title": "Transport budget", "categories": ["economy"], "label": "false"},
    "sources": [{"title": "Budget report 2023", "link": "https://www.ine.es/budget-2023"}],
    "related_questions": [],
}


@pytest.fixture
def pipeline(test_db, fake_client):
    orchestrator = JobOrchestrator(
        test_db,
        client=fake_client,
        retry_delay_ms=0,
        poll_max_attempts=3,
        sleep=lambda seconds: None,
    )
    return VerificationPipeline(test_db, orchestrator=orchestrator)


def _jobs(test_db, verification_id):
    return test_db.query(Job).filter(Job.verification_id == verification_id).order_by(Job.created_at).all()


def test_full_flow(test_db, fake_client, pipeline):
    """Test a claim from submission to a completed verification."""
    verification, job_id = pipeline.start_verification("user-1", CLAIM, "eu")

    assert verification.status == "processing_questions"
    assert verification.language == "eu"
    step, payload, _ = fake_client.submitted[0]
    assert step == GENERATE_QUESTIONS
    assert payload["input"] == CLAIM
    assert payload["language"] == "eu"
    assert _jobs(test_db, verification.id)[0].stage == COLLECT_QUESTIONS
    assert _jobs(test_db, verification.id)[0].payload == {"external_job_id": job_id}

    fake_client.complete(job_id, QUESTIONS_RESULT)
    saved = pipeline.collect_questions(verification.id, job_id)
    assert saved.count == 2

    sources_job = pipeline.confirm_questions("user-1", verification.id)
    step, payload, _ = fake_client.submitted[1]
    assert step == SEARCH_SOURCES
    assert payload["questions"] == [
        "Who approved the 2023 transport budget?",
        "What was the 2022 transport budget?",
    ]

    fake_client.complete(sources_job, SOURCES_RESULT)
    assert pipeline.collect_sources(verification.id, sources_job) == 2
    assert pipeline.state.get(verification.id).status == "sources_ready"

    source = pipeline.sources.list(verification.id, domain="ine.es")[0]
    pipeline.select_source("user-1", verification.id, source.id, True)

    analysis_job = pipeline.request_analysis("user-1", verification.id)
    assert pipeline.state.get(verification.id).status == "generating_summary"
    step, payload, _ = fake_client.submitted[2]
    assert step == GENERATE_ARTICLE
    assert payload["sources"][0]["link"] == "https://www.ine.es/budget-2023"

    fake_client.complete(analysis_job, ANALYSIS_RESULT)
    result = pipeline.collect_analysis(verification.id, analysis_job)

    assert result.final_text == ANALYSIS_RESULT["answer"]
    assert pipeline.state.get(verification.id).status == "completed"
    assert [j.stage for j in _jobs(test_db, verification.id)] == [
        COLLECT_QUESTIONS,
        COLLECT_SOURCES,
        COLLECT_ANALYSIS,
    ]
    for step in (GENERATE_QUESTIONS, SEARCH_SOURCES, GENERATE_ARTICLE):
        assert pipeline.audit.is_step_completed(verification.id, step)


def test_start_rejects_short_claim(test_db, fake_client, pipeline):
    with pytest.raises(ValidationError):
        pipeline.start_verification("user-1", "short")

    assert fake_client.submitted == []


def test_submission_failure_forces_error(test_db, fake_client, pipeline):
    """Test that exhausted retries leave the verification in error with one log pair."""
    fake_client.failures[GENERATE_QUESTIONS] = [
        httpx.ConnectError("refused 1"),
        httpx.ConnectError("refused 2"),
        httpx.ConnectError("refused 3"),
    ]

    with pytest.raises(TransientError):
        pipeline.start_verification("user-1", CLAIM)

    verification = pipeline.state.list_for_user("user-1")[0]
    entries = pipeline.audit.list_for_verification(verification.id)

    assert verification.status == "error"
    assert sorted(e.status for e in entries) == ["error", "started"]
    assert pipeline.audit.errors(verification.id)[0].error_message == "refused 3"
    assert _jobs(test_db, verification.id) == []


def test_failed_job_forces_error(test_db, fake_client, pipeline):
    """Test that a job reported as failed ends the verification in error."""
    verification, job_id = pipeline.start_verification("user-1", CLAIM)
    fake_client.statuses[job_id] = [JobStatus(status="error", error="generation crashed")]

    with pytest.raises(JobFailed):
        pipeline.collect_questions(verification.id, job_id)

    test_db.expire_all()
    assert pipeline.state.get(verification.id).status == "error"
    assert pipeline.audit.errors(verification.id)[0].error_message == "generation crashed"


def test_confirm_requires_editable_status(test_db, fake_client, pipeline):
    verification, job_id = pipeline.start_verification("user-1", CLAIM)
    fake_client.complete(job_id, QUESTIONS_RESULT)
    pipeline.collect_questions(verification.id, job_id)
    pipeline.state.force_error(verification.id, "stopped")

    with pytest.raises(InvalidState):
        pipeline.confirm_questions("user-1", verification.id)


def test_analysis_requires_selected_source(test_db, fake_client, pipeline):
    """Test that analysis is refused while no source is selected."""
    verification, job_id = pipeline.start_verification("user-1", CLAIM)
    fake_client.complete(job_id, QUESTIONS_RESULT)
    pipeline.collect_questions(verification.id, job_id)
    sources_job = pipeline.confirm_questions("user-1", verification.id)
    fake_client.complete(sources_job, SOURCES_RESULT)
    pipeline.collect_sources(verification.id, sources_job)

    with pytest.raises(ValidationError):
        pipeline.request_analysis("user-1", verification.id)

    assert pipeline.state.get(verification.id).status == "sources_ready"


def test_select_source_requires_sources_ready(test_db, fake_client, pipeline):
    verification, _ = pipeline.start_verification("user-1", CLAIM)

    with pytest.raises(InvalidState):
        pipeline.select_source("user-1", verification.id, verification.id, True)


def test_run_stage_unknown(pipeline):
    with pytest.raises(ValueError):
        pipeline.run_stage("collect_everything", None, "job-1")


def test_repeated_confirmation_returns_queued_job(test_db, fake_client, pipeline):
    """Test that a retried confirmation does not submit a second search."""
    verification, job_id = pipeline.start_verification("user-1", CLAIM)
    fake_client.complete(job_id, QUESTIONS_RESULT)
    pipeline.collect_questions(verification.id, job_id)

    first = pipeline.confirm_questions("user-1", verification.id)
    second = pipeline.confirm_questions("user-1", verification.id)

    assert first == second
    assert [step for step, _, _ in fake_client.submitted] == [GENERATE_QUESTIONS, SEARCH_SOURCES]
    assert [j.stage for j in _jobs(test_db, verification.id)] == [COLLECT_QUESTIONS, COLLECT_SOURCES]


def test_confirm_while_search_submission_in_flight(test_db, fake_client, pipeline):
    verification, job_id = pipeline.start_verification("user-1", CLAIM)
    fake_client.complete(job_id, QUESTIONS_RESULT)
    pipeline.collect_questions(verification.id, job_id)
    pipeline.audit.log_start(verification.id, SEARCH_SOURCES)

    with pytest.raises(InvalidState):
        pipeline.confirm_questions("user-1", verification.id)

    assert len(fake_client.submitted) == 1


def test_duplicate_collection_is_skipped(test_db, fake_client, pipeline):
    """Test that collecting an already applied stage again changes nothing."""
    verification, job_id = pipeline.start_verification("user-1", CLAIM)
    fake_client.complete(job_id, QUESTIONS_RESULT)
    pipeline.collect_questions(verification.id, job_id)

    repeated = pipeline.collect_questions(verification.id, job_id)
    assert repeated.existed
    assert repeated.count == 2

    sources_job = pipeline.confirm_questions("user-1", verification.id)
    fake_client.complete(sources_job, SOURCES_RESULT)
    pipeline.collect_sources(verification.id, sources_job)
    assert pipeline.collect_sources(verification.id, sources_job) is None
    assert pipeline.collect_questions(verification.id, job_id) is None

    source = pipeline.sources.list(verification.id, domain="ine.es")[0]
    pipeline.select_source("user-1", verification.id, source.id, True)
    analysis_job = pipeline.request_analysis("user-1", verification.id)
    fake_client.complete(analysis_job, ANALYSIS_RESULT)
    pipeline.collect_analysis(verification.id, analysis_job)
    queries = len(fake_client.status_queries)

    assert pipeline.collect_analysis(verification.id, analysis_job) is None
    assert len(fake_client.status_queries) == queries
    assert pipeline.state.get(verification.id).status == "completed"
    assert pipeline.sources.count(verification.id) == 2
    assert pipeline.audit.errors(verification.id) == []

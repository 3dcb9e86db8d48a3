"""Tests for the external job API client."""

import json

import httpx
import pytest

from factcheck.services.external_api import ExternalApiClient


def _client(handler):
    return ExternalApiClient(
        base_url="http://jobs.test/api/",
        api_key="secret",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_submit_posts_to_step_endpoint():
    """Test the submission request and the returned job id."""
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "job_id": 42})

    job_id = _client(handler).submit("generate_questions", {"input": "claim"})

    assert job_id == "42"
    assert seen["url"] == "http://jobs.test/api/generate-questions"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"input": "claim"}


def test_submit_raises_on_server_error():
    def handler(request):
        return httpx.Response(503, json={"error": "busy"})

    with pytest.raises(httpx.HTTPStatusError):
        _client(handler).submit("search_sources", {})


def test_submit_rejected_job():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error": "quota", "message": "limit reached"})

    with pytest.raises(ValueError):
        _client(handler).submit("search_sources", {})


def test_submit_without_job_id():
    def handler(request):
        return httpx.Response(200, json={"success": True})

    with pytest.raises(ValueError):
        _client(handler).submit("generate_article", {})


def test_unknown_step():
    with pytest.raises(ValueError):
        _client(lambda request: httpx.Response(200)).endpoint_url("summarize")


def test_get_job_status():
    """Test that status values are normalised."""

    def handler(request):
        assert str(request.url) == "http://jobs.test/api/jobs/abc"
        return httpx.Response(200, json={"status": "COMPLETED", "result": {"questions": []}})

    status = _client(handler).get_job_status("abc")

    assert status.status == "completed"
    assert status.result == {"questions": []}
    assert status.error is None

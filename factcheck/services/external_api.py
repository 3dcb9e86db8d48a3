"""HTTP client for the external asynchronous job API."""

import hashlib
import json
import logging
from typing import Any, Dict, Optional

import httpx

from factcheck.config import settings
from factcheck.schemas.results import JobStatus

logger = logging.getLogger(__name__)

# Step name -> endpoint path under EXTERNAL_API_BASE_URL
STEP_ENDPOINTS = {
    "generate_questions": "generate-questions",
    "search_sources": "search-sources",
    "generate_article": "generate-article",
}


class ExternalApiClient:
    """Submits jobs and reads their status. Retries live in the orchestrator."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the client from settings, with optional overrides."""
        self.base_url = (base_url or settings.EXTERNAL_API_BASE_URL).rstrip("/")
        self.api_key = api_key or settings.EXTERNAL_API_KEY
        self.timeout = timeout if timeout is not None else settings.EXTERNAL_API_TIMEOUT
        self.transport = transport
        self.endpoint_overrides = {
            "generate_questions": settings.EXTERNAL_API_GENERATE_QUESTIONS_URL,
            "search_sources": settings.EXTERNAL_API_SEARCH_SOURCES_URL,
            "generate_article": settings.EXTERNAL_API_GENERATE_ARTICLE_URL,
        }
        self.job_status_url = settings.EXTERNAL_API_JOB_STATUS_URL

    def _hash_text(self, text: str) -> str:
        """Hash text using SHA256."""
        return hashlib.sha256(text.encode()).hexdigest()

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def endpoint_url(self, step: str) -> str:
        override = self.endpoint_overrides.get(step)
        if override:
            return override
        if step not in STEP_ENDPOINTS:
            raise ValueError(f"No endpoint configured for step {step}")
        return f"{self.base_url}/{STEP_ENDPOINTS[step]}"

    def status_url(self, job_id: str) -> str:
        if self.job_status_url:
            return self.job_status_url.replace("{job_id}", job_id)
        return f"{self.base_url}/jobs/{job_id}"

    def submit(self, step: str, payload: Dict[str, Any]) -> str:
        """
        Submit a job for a step and return the external job id.

        Raises:
            httpx.HTTPError: On transport errors, timeouts and non-2xx responses
            ValueError: If the API rejects the job or omits the job id
        """
        url = self.endpoint_url(step)
        request_hash = self._hash_text(json.dumps(payload, sort_keys=True, default=str))
        logger.info(f"Submitting {step} job to {url}, hash: {request_hash[:16]}")

        with self._client() as client:
            response = client.post(url, headers=self._build_headers(), json=payload)

            if response.status_code in [429, 500, 502, 503, 504]:
                logger.warning(f"Retryable error {response.status_code} from job API")

            response.raise_for_status()
            result = response.json()

        if result.get("success") is False:
            raise ValueError(f"API returned error: {result.get('error')} - {result.get('message')}")

        job_id = result.get("job_id")
        if not job_id:
            raise ValueError(f"API response for {step} carried no job_id")

        logger.info(f"{step} job accepted: {job_id}")
        return str(job_id)

    def get_job_status(self, job_id: str) -> JobStatus:
        """Fetch the current status (and result, once completed) of a job."""
        with self._client() as client:
            response = client.get(self.status_url(job_id), headers=self._build_headers())
            response.raise_for_status()
            data = response.json()

        return JobStatus(
            status=str(data.get("status", "pending")).lower(),
            result=data.get("result"),
            error=data.get("error") or data.get("message"),
        )

"""SQLAlchemy ORM models."""

from factcheck.models.final_result import FinalResult
from factcheck.models.job import Job
from factcheck.models.process_log import ProcessLog
from factcheck.models.question import Question
from factcheck.models.source import Source
from factcheck.models.verification import Verification

__all__ = [
    "Verification",
    "Question",
    "Source",
    "FinalResult",
    "ProcessLog",
    "Job",
]

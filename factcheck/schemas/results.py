"""Typed payloads returned by the external job API, one model per step."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class JobStatus(BaseModel):
    """Status envelope returned when querying an external job."""

    status: str  # 'pending', 'processing', 'completed', 'failed', 'error'
    result: Optional[Any] = None
    error: Optional[str] = None


# Questions step
class ReceivedQuestion(BaseModel):
    """Candidate question; validated and possibly skipped by the question store."""

    question_text: Optional[str] = None
    original_question: Optional[str] = None
    order_index: Optional[int] = None


class QuestionsResult(BaseModel):
    """Output of the generate_questions job."""

    kind: Literal["questions"] = "questions"
    questions: List[ReceivedQuestion]


# Sources step
class ReceivedSource(BaseModel):
    """Candidate source from the search_sources job."""

    url: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    domain: Optional[str] = None
    favicon: Optional[str] = None
    is_selected: bool = False


class SourcesResult(BaseModel):
    """Output of the search_sources job."""

    kind: Literal["sources"] = "sources"
    sources: List[ReceivedSource]


# Analysis step
class AnalysisMetadata(BaseModel):
    title: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    label: Optional[str] = None
    main_claim: Optional[str] = None


class RelatedQuestion(BaseModel):
    question: str
    answer: str
    sources_id: List[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Output of the generate_article job."""

    kind: Literal["analysis"] = "analysis"
    question: Optional[str] = None
    answer: str = Field(min_length=10)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)
    sources: List[Dict[str, Any]] = Field(default_factory=list)
    related_questions: List[RelatedQuestion] = Field(default_factory=list)

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field


# --- Structured model outputs ---


class SerpQuery(BaseModel):
    query: str
    rationale: str  # informational only, never returned to callers


class SerpQueryList(BaseModel):
    queries: list[SerpQuery]


class FindingsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    learnings: list[str]
    follow_up_questions: list[str] = Field(alias="followUpQuestions")


class ReportPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    report_markdown: str = Field(alias="reportMarkdown")


# --- Pipeline data ---


class RunState(str, Enum):
    PLANNING = "planning"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SearchHit:
    """One ranked search result; content is the page Markdown when available."""

    url: str | None
    content: str | None = None


@dataclass
class Extraction:
    learnings: list[str] = field(default_factory=list)
    follow_up_questions: list[str] = field(default_factory=list)


@dataclass
class ResearchResult:
    """Findings and visited URLs of one sub-query task or of a whole run.

    Both collections are sets: duplicates collapse and order carries no meaning.
    """

    learnings: set[str] = field(default_factory=set)
    visited_urls: set[str] = field(default_factory=set)

    @classmethod
    def merge(cls, results: Iterable[ResearchResult]) -> ResearchResult:
        merged = cls()
        for result in results:
            merged.learnings.update(result.learnings)
            merged.visited_urls.update(result.visited_urls)
        return merged

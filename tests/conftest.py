from __future__ import annotations

import json
import os
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Must be set before fathom.config is imported.
os.environ.setdefault("OPENROUTER_API_KEY", "sk-or-test")
os.environ.setdefault("DEFAULT_MODEL", "openai/gpt-4o-mini")
os.environ.setdefault("LOG_TO_FILE", "false")

from fathom.models.schemas import Extraction, SearchHit  # noqa: E402


def make_completion(payload: Any, *, prompt_tokens: int = 12, completion_tokens: int = 7):
    """Fake chat-completions response carrying ``payload`` as message text."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def make_llm(*payloads: Any) -> SimpleNamespace:
    """Fake AsyncOpenAI client returning ``payloads`` in order."""
    create = AsyncMock(side_effect=[make_completion(p) for p in payloads])
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def user_prompt(llm: SimpleNamespace, call_index: int = 0) -> str:
    call = llm.chat.completions.create.await_args_list[call_index]
    return call.kwargs["messages"][1]["content"]


class RecordingProgress:
    def __init__(self):
        self.messages: list[str] = []

    async def __call__(self, message: str) -> None:
        self.messages.append(message)


class FakeFetcher:
    """In-memory search/crawl provider keyed by sub-query."""

    def __init__(
        self,
        responses: dict[str, list[SearchHit] | Exception] | None = None,
        *,
        crawl_error: Exception | None = None,
    ):
        self.responses = responses or {}
        self.crawl_error = crawl_error
        self.searches: list[str] = []
        self.crawled: list[str] = []
        self.search_kwargs: list[dict[str, Any]] = []
        self.closed = False

    async def search(self, query: str, *, timeout_ms=None, max_results=None) -> list[SearchHit]:
        self.searches.append(query)
        self.search_kwargs.append({"timeout_ms": timeout_ms, "max_results": max_results})
        response = self.responses.get(query, [])
        if isinstance(response, Exception):
            raise response
        return response

    async def crawl(self, url: str, *, timeout_ms=None, formats=None) -> None:
        self.crawled.append(url)
        if self.crawl_error is not None:
            raise self.crawl_error

    async def aclose(self) -> None:
        self.closed = True


class StubPlanner:
    def __init__(self, queries: list[str] | Exception):
        self.queries = queries
        self.calls: list[dict[str, Any]] = []

    async def plan(self, query, learnings=None, *, max_count=3, notifier=None) -> list[str]:
        self.calls.append({"query": query, "learnings": learnings, "max_count": max_count})
        if isinstance(self.queries, Exception):
            raise self.queries
        return self.queries[:max_count]


class StubExtractor:
    def __init__(self, learnings_by_query: dict[str, list[str] | Exception] | None = None):
        self.learnings_by_query = learnings_by_query or {}
        self.calls: list[str] = []

    async def extract(self, user_query, sub_query, hits, *, max_findings=None, notifier=None) -> Extraction:
        self.calls.append(sub_query)
        learnings = self.learnings_by_query.get(sub_query, [])
        if isinstance(learnings, Exception):
            raise learnings
        return Extraction(learnings=list(learnings), follow_up_questions=[])


@pytest.fixture
def recording_progress() -> RecordingProgress:
    return RecordingProgress()

from __future__ import annotations

from typing import Any, Sequence

from loguru import logger

from fathom import llm_client
from fathom.config import settings
from fathom.models.schemas import Extraction, FindingsPayload, SearchHit
from fathom.services import progress
from fathom.services.progress import ProgressNotifier
from fathom.services.prompt_store import render_prompt
from fathom.tools.web_utils import trim_prompt


class FindingsExtractor:
    """Distills findings and follow-up questions from one sub-query's pages."""

    name = "findings_extractor"

    def __init__(
        self,
        model: str | None = None,
        *,
        max_findings: int | None = None,
        content_char_budget: int | None = None,
        snippet_chars: int | None = None,
    ):
        self.model = model or llm_client.get_model()
        self.max_findings = max(int(max_findings or settings.max_findings), 1)
        self.content_char_budget = max(
            int(content_char_budget or settings.findings_content_char_budget), 1
        )
        self.snippet_chars = max(int(snippet_chars or settings.findings_snippet_chars), 1)
        self.client: Any | None = None

    def prepare_contents(self, hits: Sequence[SearchHit]) -> list[str]:
        """Drop hits without content, then apply both trimming stages."""
        contents = [hit.content for hit in hits if hit.content]
        return [
            trim_prompt(content, self.content_char_budget)[: self.snippet_chars]
            for content in contents
        ]

    @staticmethod
    def _render_snippets(contents: list[str]) -> str:
        return "\n".join(f"### Snippet\n{content}\n---\n" for content in contents)

    async def extract(
        self,
        user_query: str,
        sub_query: str,
        hits: Sequence[SearchHit],
        *,
        max_findings: int | None = None,
        notifier: ProgressNotifier | None = None,
    ) -> Extraction:
        limit = max(int(max_findings or self.max_findings), 1)
        notifier = notifier or ProgressNotifier()

        contents = self.prepare_contents(hits)
        await notifier.notify(progress.ran(sub_query, len(contents)))
        if not contents:
            # No data, no claim.
            logger.info(f"No usable content for {sub_query!r}, skipping extraction")
            return Extraction()

        prompt = render_prompt(
            "findings_extractor.prompt",
            user_query=user_query,
            sub_query=sub_query,
            snippets=self._render_snippets(contents),
            max_findings=limit,
        )
        payload = await llm_client.generate_object(
            model=self.model,
            system=llm_client.system_prompt(),
            prompt=prompt,
            schema=FindingsPayload,
            caller=self.name,
            llm=self.client,
        )

        extraction = Extraction(
            learnings=payload.learnings[:limit],
            follow_up_questions=list(payload.follow_up_questions),
        )
        logger.debug(
            f"Extraction for {sub_query!r}: {len(extraction.learnings)} findings, "
            f"{len(extraction.follow_up_questions)} follow-ups"
        )
        await notifier.notify(progress.generated(len(extraction.learnings), sub_query))
        return extraction

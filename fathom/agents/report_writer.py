from __future__ import annotations

from typing import Any, Sequence

from fathom import llm_client
from fathom.models.schemas import ReportPayload
from fathom.services.prompt_store import render_prompt

REPORT_TITLE = "# Research Report"
REFERENCES_HEADING = "## References"


def render_references(visited_urls: Sequence[str]) -> str:
    """References section in the given order, or "" when there are no URLs."""
    if not visited_urls:
        return ""
    return f"\n\n{REFERENCES_HEADING}\n" + "\n".join(f"- {url}" for url in visited_urls)


class ReportWriter:
    """Synthesizes the final Markdown report from accumulated findings."""

    name = "report_writer"

    def __init__(self, model: str | None = None):
        self.model = model or llm_client.get_model()
        self.client: Any | None = None

    async def write(
        self,
        prompt: str,
        learnings: Sequence[str],
        visited_urls: Sequence[str],
    ) -> str:
        bullet_points = "\n".join(f"- {learning}" for learning in learnings)
        payload = await llm_client.generate_object(
            model=self.model,
            system=llm_client.system_prompt(),
            prompt=render_prompt("report_writer.prompt", prompt=prompt, bullets=bullet_points),
            schema=ReportPayload,
            caller=self.name,
            llm=self.client,
        )
        return f"{REPORT_TITLE}\n\n{payload.report_markdown}{render_references(visited_urls)}"


async def compose_report(
    prompt: str,
    learnings: Sequence[str],
    visited_urls: Sequence[str],
    model: str | None = None,
) -> str:
    """Write the final report; model failures propagate."""
    return await ReportWriter(model=model).write(prompt, learnings, visited_urls)

from __future__ import annotations

from typing import Any, Sequence

from loguru import logger

from fathom import llm_client
from fathom.models.schemas import SerpQueryList
from fathom.services import progress
from fathom.services.progress import ProgressNotifier
from fathom.services.prompt_store import render_prompt


class QueryPlanner:
    """Turns a user query into search sub-queries via one structured model call."""

    name = "query_planner"

    def __init__(self, model: str | None = None):
        self.model = model or llm_client.get_model()
        self.client: Any | None = None

    async def plan(
        self,
        query: str,
        learnings: Sequence[str] | None = None,
        *,
        max_count: int = 3,
        notifier: ProgressNotifier | None = None,
    ) -> list[str]:
        """Return at most ``max_count`` sub-queries, in model order.

        Extra queries are dropped and missing ones are not padded. Model
        failures propagate.
        """
        if not query.strip():
            raise ValueError("query must not be empty")
        max_count = max(int(max_count), 1)
        notifier = notifier or ProgressNotifier()

        await notifier.notify(progress.generating(max_count, query))

        prompt = render_prompt(
            "query_planner.prompt",
            count=max_count,
            query=query,
            learnings="\n".join(learnings) if learnings else "(none)",
        )
        result = await llm_client.generate_object(
            model=self.model,
            system=llm_client.system_prompt(),
            prompt=prompt,
            schema=SerpQueryList,
            caller=self.name,
            llm=self.client,
        )

        for item in result.queries:
            logger.debug(f"Planned query {item.query!r}: {item.rationale}")
        if len(result.queries) > max_count:
            logger.info(
                f"Model proposed {len(result.queries)} queries, keeping first {max_count}"
            )

        queries = [item.query for item in result.queries[:max_count]]
        await notifier.notify(progress.created(len(queries), queries))
        return queries

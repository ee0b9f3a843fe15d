from __future__ import annotations

import asyncio
from typing import Iterable, Sequence
from uuid import uuid4

from loguru import logger

from fathom.agents.findings_extractor import FindingsExtractor
from fathom.agents.query_planner import QueryPlanner
from fathom.agents.report_writer import compose_report
from fathom.config import settings
from fathom.llm_client import get_model
from fathom.models.schemas import ResearchResult, RunState
from fathom.services import logger as log_service
from fathom.services import progress
from fathom.services.progress import ProgressCallback, ProgressNotifier
from fathom.tools import web_utils
from fathom.tools.firecrawl import ContentFetcher, FirecrawlClient

__all__ = ["ResearchOrchestrator", "run_research", "compose_report"]


class ResearchOrchestrator:
    """Runs one breadth-wise research pass.

    Flow:
      1. PLANNING: generate up to ``breadth`` sub-queries (failure is fatal)
      2. FETCHING: per sub-query, search -> submit crawls -> extract findings,
         at most ``concurrency`` sub-queries in flight
      3. AGGREGATING: wait for every task, then union findings and URLs
      4. DONE: return the aggregated ResearchResult

    A failing sub-query degrades to an empty result and never aborts the run.
    With ``concurrency`` above 1 tasks may finish in any order; aggregation is
    a set union over all settled tasks, so the result is unaffected.
    """

    def __init__(
        self,
        model: str | None = None,
        *,
        fetcher: ContentFetcher | None = None,
        firecrawl_key: str | None = None,
        concurrency: int | None = None,
        planner: QueryPlanner | None = None,
        extractor: FindingsExtractor | None = None,
    ):
        self.model = model or get_model()
        self.concurrency = max(int(concurrency or settings.research_concurrency), 1)
        self.search_timeout_ms = max(int(settings.search_timeout_ms), 1000)
        self.search_max_results = max(int(settings.search_max_results), 1)
        self.crawl_enabled = bool(settings.crawl_enabled)
        self.crawl_formats = list(settings.crawl_formats)
        self._owns_fetcher = fetcher is None
        self.fetcher: ContentFetcher = fetcher or FirecrawlClient(api_key=firecrawl_key)
        self.planner = planner or QueryPlanner(model=self.model)
        self.extractor = extractor or FindingsExtractor(model=self.model)

    async def run(
        self,
        query: str,
        *,
        breadth: int | None = None,
        depth: int | None = None,
        learnings: Sequence[str] | None = None,
        visited_urls: Sequence[str] | None = None,
        notifier: ProgressNotifier | None = None,
    ) -> ResearchResult:
        run_id = uuid4().hex[:12]
        breadth = max(int(breadth or settings.research_breadth), 1)
        depth = depth if depth is not None else settings.research_depth
        notifier = notifier or ProgressNotifier()
        logger.info(f"Starting research run {run_id} for query: {query[:100]}")
        logger.debug(
            f"Run {run_id}: depth={depth} accepted, running a single level; "
            f"{len(visited_urls or [])} previously visited URLs"
        )

        log_service.log_research_step(run_id, RunState.PLANNING.value, "started", {"breadth": breadth})
        try:
            sub_queries = await self.planner.plan(
                query,
                list(learnings or []),
                max_count=breadth,
                notifier=notifier,
            )
        except Exception as exc:
            log_service.log_research_step(run_id, RunState.FAILED.value, "error", {"error": str(exc)})
            logger.exception(f"Research run {run_id} failed during planning: {exc}")
            raise

        log_service.log_research_step(
            run_id,
            RunState.FETCHING.value,
            "started",
            {"sub_queries": sub_queries, "concurrency": self.concurrency},
        )
        crawls: list[asyncio.Task] = []
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(sub_query: str) -> ResearchResult:
            async with semaphore:
                return await self._research_sub_query(query, sub_query, notifier, crawls)

        try:
            settled = await asyncio.gather(
                *(run_one(sub_query) for sub_query in sub_queries),
                return_exceptions=True,
            )

            log_service.log_research_step(run_id, RunState.AGGREGATING.value, "started")
            aggregated = ResearchResult.merge(self._completed_results(sub_queries, settled))
        except BaseException:
            for crawl in crawls:
                crawl.cancel()
            raise
        finally:
            await self._drain_crawls(crawls)

        log_service.log_research_step(
            run_id,
            RunState.DONE.value,
            "completed",
            {
                "learnings": len(aggregated.learnings),
                "visited_urls": len(aggregated.visited_urls),
            },
        )
        return aggregated

    @staticmethod
    def _completed_results(
        sub_queries: Sequence[str], settled: Iterable[object]
    ) -> list[ResearchResult]:
        results: list[ResearchResult] = []
        for sub_query, item in zip(sub_queries, settled):
            if isinstance(item, ResearchResult):
                results.append(item)
            elif isinstance(item, Exception):
                logger.error(f"Sub-query task {sub_query!r} escaped isolation: {item}")
            elif isinstance(item, BaseException):
                raise item
        return results

    async def _research_sub_query(
        self,
        user_query: str,
        sub_query: str,
        notifier: ProgressNotifier,
        crawls: list[asyncio.Task],
    ) -> ResearchResult:
        """Search, crawl and extract for one sub-query; any failure yields an empty result."""
        try:
            await notifier.notify(progress.researching(sub_query))

            hits = await self.fetcher.search(
                sub_query,
                timeout_ms=self.search_timeout_ms,
                max_results=self.search_max_results,
            )
            found_urls = [hit.url for hit in hits if web_utils.is_valid_url(hit.url)]
            crawls.extend(self._schedule_crawls(found_urls))

            await notifier.notify(progress.found(len(hits), sub_query))
            if not hits:
                return ResearchResult()

            extraction = await self.extractor.extract(
                user_query,
                sub_query,
                hits,
                notifier=notifier,
            )
            return ResearchResult(
                learnings=set(extraction.learnings),
                visited_urls=set(found_urls),
            )
        except Exception as exc:
            logger.error(f"Research failed for sub-query {sub_query!r}: {exc}")
            await notifier.notify(progress.failed(sub_query, exc))
            return ResearchResult()

    def _schedule_crawls(self, urls: Sequence[str]) -> list[asyncio.Task]:
        if not self.crawl_enabled:
            return []
        return [asyncio.create_task(self._crawl_quietly(url)) for url in urls]

    async def _crawl_quietly(self, url: str) -> None:
        try:
            await self.fetcher.crawl(
                url,
                timeout_ms=self.search_timeout_ms,
                formats=self.crawl_formats,
            )
        except Exception as exc:
            logger.warning(f"Crawl failed for {url}: {exc}")

    @staticmethod
    async def _drain_crawls(crawls: list[asyncio.Task]) -> None:
        if crawls:
            await asyncio.gather(*crawls, return_exceptions=True)

    async def aclose(self) -> None:
        if self._owns_fetcher:
            await self.fetcher.aclose()


async def run_research(
    query: str,
    *,
    breadth: int = 3,
    depth: int = 2,
    learnings: Sequence[str] | None = None,
    visited_urls: Sequence[str] | None = None,
    on_progress: ProgressCallback | None = None,
    model: str | None = None,
    firecrawl_key: str | None = None,
) -> ResearchResult:
    """Run one research pass; only planning failures propagate."""
    orchestrator = ResearchOrchestrator(model=model, firecrawl_key=firecrawl_key)
    try:
        return await orchestrator.run(
            query,
            breadth=breadth,
            depth=depth,
            learnings=learnings,
            visited_urls=visited_urls,
            notifier=ProgressNotifier(on_progress),
        )
    finally:
        await orchestrator.aclose()

"""Best-effort progress delivery to an optional external observer."""
from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Union

from loguru import logger

ProgressCallback = Callable[[str], Union[Awaitable[None], None]]


class ProgressNotifier:
    """Delivers human-readable status lines; never fails the caller.

    Safe to call from concurrently running tasks: each call is independent and
    delivery order across tasks is whatever the event loop interleaves.
    """

    def __init__(self, callback: ProgressCallback | None = None):
        self._callback = callback

    async def notify(self, message: str) -> None:
        logger.debug(f"progress: {message}")
        if self._callback is None:
            return
        try:
            result = self._callback(message)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            # Typically the client disconnected mid-run.
            logger.warning(f"Progress update failed (client may be disconnected): {exc}")


def generating(count: int, query: str) -> str:
    return f"Generating up to {count} search queries for: {query}"


def created(count: int, queries: list[str]) -> str:
    return f"Created {count} search queries: {', '.join(queries)}"


def researching(query: str) -> str:
    return f"Researching: {query}"


def found(count: int, query: str) -> str:
    return f"Found {count} search results for: {query}"


def ran(query: str, count: int) -> str:
    return f'Ran query "{query}", got {count} content items'


def generated(count: int, query: str) -> str:
    return f'Generated {count} findings for query "{query}"'


def failed(query: str, error: BaseException) -> str:
    return f"Error ({query}): {error}"

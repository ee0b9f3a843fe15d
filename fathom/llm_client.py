"""OpenRouter LLM client factory and structured-output helper."""
from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel

from fathom.config import settings
from fathom.services import logger as log_service
from fathom.services.env_safety import sanitize_ssl_keylogfile
from fathom.services.prompt_store import render_prompt

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class StructuredOutputError(ValueError):
    """The model reply did not contain a JSON object."""


def get_client() -> Any:
    """Get OpenRouter client via OpenAI-compatible SDK."""
    from openai import AsyncOpenAI

    if not settings.openrouter_api_key:
        raise ValueError("OPENROUTER_API_KEY not configured")

    sanitize_ssl_keylogfile()
    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_client: Any | None = None


def client() -> Any:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


def system_prompt() -> str:
    """Research-analyst system prompt stamped with the current time."""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return render_prompt("system", now=now)


def temperature_for_model(model: str) -> int:
    # Some OpenAI GPT-5-compatible gateways reject temperature=0.
    lowered = (model or "").lower()
    if "gpt-5" in lowered:
        return 1
    return 0


def extract_json_object(raw_text: str) -> str:
    """Return the outermost JSON object in a reply, tolerating code fences."""
    text = raw_text.strip()
    if text.startswith("```"):
        # Only the wrapping fence lines are removed; values may hold fences too.
        first_newline = text.find("\n")
        text = text[first_newline + 1 :] if first_newline >= 0 else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise StructuredOutputError(f"No JSON object in model reply: {raw_text[:200]!r}")
    return text[start : end + 1]


async def generate_object(
    *,
    model: str,
    system: str,
    prompt: str,
    schema: type[SchemaT],
    caller: str = "llm",
    max_tokens: int | None = None,
    llm: Any | None = None,
) -> SchemaT:
    """Ask the model for a JSON object and validate it against ``schema``.

    Transport errors, replies without JSON and pydantic validation errors all
    propagate to the caller.
    """
    active_client = llm or client()
    schema_instructions = render_prompt(
        "structured_output.instructions",
        schema=json.dumps(schema.model_json_schema(), ensure_ascii=False),
    )

    t0 = time.monotonic()
    try:
        response = await active_client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": f"{system}\n\n{schema_instructions}"},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens or settings.llm_max_tokens,
            temperature=temperature_for_model(model),
            response_format={"type": "json_object"},
        )
    except Exception as exc:
        log_service.log_llm_call(
            model=model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(exc),
        )
        raise

    usage = getattr(response, "usage", None)
    log_service.log_llm_call(
        model=model,
        caller=caller,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )

    text = response.choices[0].message.content or ""
    return schema.model_validate_json(extract_json_object(text))

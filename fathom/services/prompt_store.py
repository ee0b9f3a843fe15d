from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"

# Prompts the pipeline renders on every run; a catalog lacking one is rejected at load.
REQUIRED_PROMPTS = (
    "system",
    "structured_output.instructions",
    "query_planner.prompt",
    "findings_extractor.prompt",
    "report_writer.prompt",
)

_catalog_cache: dict[str, Any] | None = None
_catalog_mtime_ns: int | None = None


def _load_catalog() -> dict[str, Any]:
    global _catalog_cache, _catalog_mtime_ns
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _catalog_cache is not None and _catalog_mtime_ns == mtime_ns:
        return _catalog_cache

    payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Prompt catalog must be a JSON object.")
    missing = [key for key in REQUIRED_PROMPTS if not _is_prompt_text(_lookup(payload, key))]
    if missing:
        raise ValueError(f"Prompt catalog {PROMPTS_PATH} is missing: {', '.join(missing)}")
    _catalog_cache = payload
    _catalog_mtime_ns = mtime_ns
    return payload


def _lookup(catalog: dict[str, Any], key: str) -> Any:
    node: Any = catalog
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _is_prompt_text(node: Any) -> bool:
    # Multi-line prompts are stored as a list of lines.
    if isinstance(node, list):
        return all(isinstance(line, str) for line in node)
    return isinstance(node, str)


def _resolve_prompt_entry(key: str) -> str:
    node = _lookup(_load_catalog(), key)
    if node is None:
        raise KeyError(f"Prompt key not found: {key}")
    if not _is_prompt_text(node):
        raise TypeError(f"Prompt key must map to a string: {key}")
    return "\n".join(node) if isinstance(node, list) else node


def render_prompt(key: str, **values: Any) -> str:
    template = Template(_resolve_prompt_entry(key))
    try:
        return template.substitute(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    global _catalog_cache, _catalog_mtime_ns
    _catalog_cache = None
    _catalog_mtime_ns = None

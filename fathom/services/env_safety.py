from __future__ import annotations

import os
from pathlib import Path

from loguru import logger


def sanitize_ssl_keylogfile() -> bool:
    """Unset SSLKEYLOGFILE when it points to an unusable path.

    httpx (and the OpenAI SDK on top of it) opens this file while building an
    SSL context, so a stale value would break every Firecrawl and OpenRouter
    call. Returns True when the variable was removed.
    """
    keylog_path = os.getenv("SSLKEYLOGFILE", "").strip()
    if not keylog_path:
        return False

    try:
        path = Path(keylog_path)
        if not path.parent.exists():
            raise FileNotFoundError(path.parent)

        # Validate writability without truncating existing files.
        with open(path, "a", encoding="utf-8"):
            pass
    except OSError as exc:
        logger.warning(f"Ignoring unusable SSLKEYLOGFILE={keylog_path!r}: {exc}")
        os.environ.pop("SSLKEYLOGFILE", None)
        return True
    return False

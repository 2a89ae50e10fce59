from __future__ import annotations

import os
import time
import uuid
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


HOST = os.environ.get("WD_HOST", "0.0.0.0")
PORT = _env_int("WD_PORT", 8080)
DOWNLOAD_HOST = os.environ.get("WD_DOWNLOAD_HOST", "0.0.0.0")
DOWNLOAD_PORT = _env_int("WD_DOWNLOAD_PORT", 8081)
LOG_LEVEL = os.environ.get("WD_LOG_LEVEL", "info")
CACHE_DIR = Path(os.path.expanduser(os.environ.get("WD_CACHE_DIR") or "~/.cache/webdesk"))
SETTINGS_FILE = CACHE_DIR / "settings.json"


def ensure_run_id() -> str:
    """Return the run id of this host, generating one on first use."""
    run_id = os.environ.get("WD_RUN_ID")
    if not run_id:
        run_id = f"run_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        os.environ["WD_RUN_ID"] = run_id
    return run_id

"""CrashMap configuration, read from the environment (and an optional .env)."""

import os
from pathlib import Path

from dotenv import load_dotenv

_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_ROOT / ".env")

# ── Data ──
DATA_PATH = Path(os.environ.get("CRASHMAP_DATA_PATH", _ROOT / "data" / "processed" / "crashes.parquet"))

# ── Query service ──
# Unset: the dashboard queries DuckDB in-process.
API_URL = os.environ.get("CRASHMAP_API_URL") or None
DEFAULT_LIMIT = 1000
MAX_LIMIT = 40_000
MAP_LIMIT = int(os.environ.get("CRASHMAP_MAP_LIMIT", "5000"))

# ── Rate limiting (per process) ──
RATE_LIMIT_WINDOW = float(os.environ.get("RATE_LIMIT_WINDOW", "60"))
RATE_LIMIT_MAX = int(os.environ.get("RATE_LIMIT_MAX", "60"))

# ── Logging ──
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

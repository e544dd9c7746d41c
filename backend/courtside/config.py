import os
from datetime import timedelta

def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_timeout(raw, default=10.0):
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///./courtside.db"

# Remote authority that owns confirmed match state.
REMOTE_API_URL = (os.getenv("REMOTE_API_URL") or "http://localhost:8080").rstrip("/")
REMOTE_TIMEOUT_SECONDS = _parse_timeout(os.getenv("REMOTE_TIMEOUT_SECONDS"))

# Age is measured from creation, not from the last update.
MATCH_RETENTION = timedelta(hours=24)
TEMP_PLAYER_TTL = timedelta(hours=24)

CURRENT_MATCH_KEY = "current"

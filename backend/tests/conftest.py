import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Keep the module-level app in courtside.main away from any real database.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from courtside.db import Storage  # noqa: E402

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class Clock:
    """Controllable replacement for ``utcnow`` in stores and services."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def make_storage():
    """Return a factory for fresh, unopened in-memory storage handles."""

    def factory() -> Storage:
        return Storage(MEMORY_URL)

    return factory

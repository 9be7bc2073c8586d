"""Pytest configuration for doc_share tests."""
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src/ to path for src-layout imports
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from doc_share.app.sharing.passwords import PasswordGuard
from doc_share.observability.logging import configure_logging

# Route structlog through stdlib before any module logger caches its config,
# so caplog sees every event.
configure_logging()


class FakeClock:
    """Mutable clock for deterministic expiry tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def password_guard():
    """Argon2id with minimal cost so tests stay fast."""
    return PasswordGuard(time_cost=1, memory_cost=8, parallelism=1)

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SHARE_DATA_DIR", "/tmp/lanshare-test")
os.environ.setdefault("SHARE_REAPER_INTERVAL_SECONDS", "3600")

from lanshare.config.runtime_config import ShareSettings  # noqa: E402


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> ShareSettings:
    return ShareSettings(
        data_dir=tmp_path / "data",
        public_base_url="http://share.test:3000",
        start_reaper=False,
    )


class EventRecorder(list):
    """Stands in for an EventLogger and keeps every entry."""

    def __call__(self, entry) -> None:
        self.append(entry)

    def types(self):
        return [entry.event_type for entry in self]


@pytest.fixture
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def anyio_backend():
    return "asyncio"

"""
Shared pytest fixtures.

The environment is configured before any ``bed_booking`` import because
``bed_booking.config`` reads it at import time.
"""

from __future__ import annotations

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="bed-booking-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_DB_DIR, 'default.db')}")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ["NOTIFIER_URL"] = ""

from pathlib import Path  # noqa: E402
from typing import Any, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from bed_booking.cache import calendar_cache  # noqa: E402
from bed_booking.db.engine import build_engine  # noqa: E402
from bed_booking.models.base import Base  # noqa: E402
from bed_booking.schemas.principal import Principal  # noqa: E402
from bed_booking.services import inventory  # noqa: E402


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Fresh SQLite database file with all tables, one per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def clear_calendar_cache() -> Generator[None, None, None]:
    calendar_cache.clear()
    yield
    calendar_cache.clear()


@pytest.fixture
def host() -> Principal:
    return Principal(user_id="host-1", role="host")


@pytest.fixture
def other_host() -> Principal:
    return Principal(user_id="host-2", role="host")


@pytest.fixture
def guest() -> Principal:
    return Principal(user_id="guest-1", role="guest")


@pytest.fixture
def other_guest() -> Principal:
    return Principal(user_id="guest-2", role="guest")


@pytest.fixture
def two_bed_property(db_engine: Engine, host: Principal) -> Any:
    """One shared room with two beds priced 30 and 40 per night."""
    return inventory.create_property(
        db_engine,
        host,
        {
            "title": "Harbour Hostel",
            "price_per_night": 150,
            "latitude": 40.7128,
            "longitude": -74.0060,
            "rooms": [
                {
                    "name": "Dorm A",
                    "is_private": False,
                    "beds": [
                        {"label": "Bed 1", "price_per_bed": 30},
                        {"label": "Bed 2", "price_per_bed": 40},
                    ],
                }
            ],
        },
    )


@pytest.fixture
def client(db_engine: Engine) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the per-test database."""
    from bed_booking.dependencies import get_db_engine
    from bed_booking.main import app

    app.dependency_overrides[get_db_engine] = lambda: db_engine
    yield TestClient(app)
    app.dependency_overrides.clear()

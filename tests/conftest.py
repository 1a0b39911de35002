import os
import sys
from datetime import date, timedelta

import pytest

# ensure workspace root is on sys.path so our application packages can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import store.client as client


@pytest.fixture(autouse=True)
def clear_fallback(monkeypatch):
    """Force every store call onto the in-memory fallback and wipe it around each test."""
    client.reset_fallback()

    async def no_redis():
        return None

    monkeypatch.setattr(client, "get_redis", no_redis)
    yield
    client.reset_fallback()


def make_points(subject_values, start=date(2026, 1, 1)):
    """Raw series points, one per day, for ``{"subject": [values...]}``."""
    length = max(len(v) for v in subject_values.values())
    points = []
    for i in range(length):
        point = {"date": (start + timedelta(days=i)).isoformat()}
        for subject, values in subject_values.items():
            if i < len(values):
                point[subject] = values[i]
        points.append(point)
    return points


@pytest.fixture
def points_factory():
    return make_points


@pytest.fixture
def sqlite_db():
    import database

    database.dispose_database()
    database.init_database("sqlite://")
    database.init_db()
    yield database
    database.dispose_database()

# tests/conftest.py
"""
Pytest configuration and fixtures for STARS tests.

License: MIT
"""
import tempfile
from pathlib import Path
import pytest

from STARS.core.backends import MemoryBackend, SQLiteBackend
from STARS.core.raters import RaterRoster
from STARS.core.service import StarsService


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "cli: marks tests that run the command-line tools in a subprocess"
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _make_service(backend):
    raters = RaterRoster([{"id": "A", "label": "Rater A"}, {"id": "B", "label": "Rater B"}])
    return StarsService(backend, raters=raters)


@pytest.fixture
def service():
    """Empty in-memory service with raters A and B and no criteria."""
    with _make_service(MemoryBackend()) as svc:
        yield svc


@pytest.fixture(params=["memory", "sqlite"])
def any_service(request, temp_dir):
    """Same as `service`, once per storage backend."""
    backend = MemoryBackend() if request.param == "memory" else SQLiteBackend(temp_dir / "stars.db")
    with _make_service(backend) as svc:
        yield svc


@pytest.fixture
def ca_scenario(service):
    """
    Cost (w=1.0) and Climate (w=2.0); in CA rater A gives 8/4 and rater B 6/6.

    Cost average 7, Climate average 5, combined (7*1 + 5*2) / 3 = 17/3.
    """
    cost = service.create_criterion("Cost", 1.0, "#1976D2")
    climate = service.create_criterion("Climate", 2.0, "#DC004E")
    service.upsert_rating("A", "CA", cost.id, 8)
    service.upsert_rating("A", "CA", climate.id, 4)
    service.upsert_rating("B", "CA", cost.id, 6)
    service.upsert_rating("B", "CA", climate.id, 6)
    return {"service": service, "cost": cost, "climate": climate}

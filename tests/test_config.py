# tests/test_config.py
"""
Configuration resolution: config file < environment < explicit overrides.

License: MIT
"""
import json
import os
from unittest.mock import patch
import pytest

from STARS.core import config as config_mod
from STARS.core.config import load_config
from STARS.core.errors import ValidationError
from STARS.core.service import create_service


@pytest.fixture(autouse=True)
def isolated(monkeypatch, temp_dir):
    """No user config files or STARS_* variables leak into these tests."""
    monkeypatch.setattr(config_mod, "CONFIG_PATHS", [temp_dir / "missing.json"])
    for name in config_mod.ENV_VARS.values():
        monkeypatch.delenv(name, raising=False)


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults(self):
        cfg = load_config()
        assert cfg.backend == "memory"
        assert cfg.agreement_tolerance == 2
        assert [r["id"] for r in cfg.raters] == ["primary", "secondary"]

    def test_config_file(self, temp_dir):
        path = _write(temp_dir / "stars.json", {
            "backend": "sqlite",
            "db_path": str(temp_dir / "x.db"),
            "raters": [{"id": "me", "label": "Me"}, {"id": "you", "label": "You"}],
        })
        cfg = load_config(path)
        assert cfg.backend == "sqlite"
        assert cfg.raters[1]["id"] == "you"

    def test_default_locations(self, monkeypatch, temp_dir):
        path = _write(temp_dir / "home.json", {"agreement_tolerance": 1})
        monkeypatch.setattr(config_mod, "CONFIG_PATHS", [temp_dir / "nope.json", path])
        assert load_config().agreement_tolerance == 1

    def test_env_beats_file(self, temp_dir):
        path = _write(temp_dir / "stars.json", {"agreement_tolerance": 1})
        with patch.dict(os.environ, {"STARS_AGREEMENT_TOLERANCE": "3", "STARS_LOG_LEVEL": "debug"}):
            cfg = load_config(path)
        assert cfg.agreement_tolerance == 3
        assert cfg.log_level == "DEBUG"

    def test_overrides_beat_env(self):
        with patch.dict(os.environ, {"STARS_BACKEND": "sqlite"}):
            assert load_config(backend="memory").backend == "memory"
            assert load_config(backend=None).backend == "sqlite"

    def test_bad_file_is_skipped(self, temp_dir):
        bad = temp_dir / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        assert load_config(bad).backend == "memory"

    def test_unknown_file_keys_ignored(self, temp_dir):
        path = _write(temp_dir / "stars.json", {"colour": "red"})
        assert load_config(path).backend == "memory"

    @pytest.mark.parametrize("overrides", [
        {"backend": "postgres"},
        {"agreement_tolerance": -1},
        {"agreement_tolerance": "lots"},
        {"log_level": "LOUD"},
        {"raters": []},
        {"no_such_option": 1},
        {"agreement_tolerance": 2.7},
        {"agreement_tolerance": True},
        {"raters": "primary"},
        {"raters": ["alice", "bob"]},
        {"raters": [{"id": "a"}, 3]},
        {"raters": [{"label": "no id"}]},
        {"raters": {"id": "a"}},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            load_config(**overrides)

    def test_integral_tolerance_accepted(self):
        assert load_config(agreement_tolerance=3.0).agreement_tolerance == 3

    @pytest.mark.parametrize("raters", ["primary", ["alice", "bob"], [{"id": "a"}, 3]])
    def test_bad_raters_in_file(self, temp_dir, raters):
        path = _write(temp_dir / "stars.json", {"raters": raters})
        with pytest.raises(ValidationError):
            create_service(load_config(path))


class TestCreateService:
    def test_memory_seeds_defaults(self):
        with create_service() as svc:
            assert len(svc.list_criteria()) == 4
            assert [r.id for r in svc.list_raters()] == ["primary", "secondary"]

    def test_sqlite_persists(self, temp_dir):
        db = temp_dir / "stars.db"
        with create_service(backend="sqlite", db_path=str(db)) as svc:
            crit = svc.list_criteria()[0]
            svc.upsert_rating("primary", "CA", crit.id, 9)

        with create_service(backend="sqlite", db_path=str(db)) as svc:
            assert len(svc.list_criteria()) == 4
            assert [r.value for r in svc.list_ratings()] == [9]

    def test_sqlite_rejects_memory_path(self):
        with pytest.raises(ValueError):
            create_service(backend="sqlite", db_path=":memory:")

    def test_config_and_overrides_exclusive(self):
        with pytest.raises(ValueError):
            create_service(load_config(), backend="memory")

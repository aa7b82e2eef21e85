# tests/test_cli.py
"""
CLI integration tests for STARS.

Tests the command-line tools for criteria, ratings and scores against a
temporary SQLite store. These tests use subprocess to simulate actual CLI
usage.

License: MIT

Run tests:
    pytest tests/test_cli.py -v
    pytest -m "not cli"          # skip them
"""
import json
import os
import subprocess
import sys
from pathlib import Path
import pytest

ROOT = Path(__file__).resolve().parent.parent

pytestmark = pytest.mark.cli


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def run_cli(module: str, args: list, check: bool = True) -> subprocess.CompletedProcess:
    """Run a CLI module with arguments."""
    cmd = [sys.executable, "-m", f"STARS.cli.{module}"] + args
    env = {k: v for k, v in os.environ.items() if not k.startswith("STARS_")}
    env["PYTHONIOENCODING"] = "utf-8"
    result = subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8",
                            cwd=str(ROOT), env=env)
    if check and result.returncode != 0:
        print(f"STDOUT: {result.stdout}")
        print(f"STDERR: {result.stderr}")
    return result


@pytest.fixture
def store(temp_dir):
    """Base arguments pointing every CLI at one temporary store."""
    config = temp_dir / "stars.json"
    config.write_text(json.dumps({
        "raters": [{"id": "primary", "label": "You"}, {"id": "secondary", "label": "Partner"}],
    }), encoding="utf-8")
    return ["--db", str(temp_dir / "stars.db"), "--config", str(config)]


def _criteria(store):
    result = run_cli("criteria", store + ["--format", "json"])
    assert result.returncode == 0
    return json.loads(result.stdout)


def _rate(store, rater, state, criterion, value):
    return run_cli("rate", store + ["--rater", rater, "--state", state,
                                    "--criterion", criterion, "--value", str(value),
                                    "--format", "json"])


# ---------------------------------------------------------------------------
# Criteria CLI Tests
# ---------------------------------------------------------------------------

class TestCriteriaCLI:
    """Tests for the criteria CLI."""

    def test_help(self):
        result = run_cli("criteria", ["--help"], check=False)
        assert result.returncode == 0
        assert "Manage STARS criteria" in result.stdout

    def test_defaults_seeded(self, store):
        names = [c["name"] for c in _criteria(store)]
        assert names == ["Cost of Living", "Climate", "Job Market", "Culture & Entertainment"]

    def test_add_and_deactivate(self, store):
        result = run_cli("criteria", store + ["--add", "Outdoors", "--weight", "1.5", "--format", "json"])
        assert result.returncode == 0
        added = json.loads(result.stdout)[0]
        assert added["weight"] == 1.5

        assert run_cli("criteria", store + ["--deactivate", added["id"]]).returncode == 0
        assert "Outdoors" not in [c["name"] for c in _criteria(store)]

    def test_invalid_weight(self, store):
        result = run_cli("criteria", store + ["--add", "Bad", "--weight", "0"], check=False)
        assert result.returncode == 1
        assert "weight" in result.stderr


# ---------------------------------------------------------------------------
# Rate CLI Tests
# ---------------------------------------------------------------------------

class TestRateCLI:
    """Tests for the rate CLI."""

    def test_upsert_by_name_is_idempotent(self, store):
        first = _rate(store, "primary", "ca", "climate", 4)
        second = _rate(store, "primary", "CA", "Climate", 8)
        assert first.returncode == 0 and second.returncode == 0
        assert json.loads(first.stdout)["id"] == json.loads(second.stdout)["id"]

        listed = run_cli("rate", store + ["--list", "--rater", "primary", "--format", "json"])
        rows = json.loads(listed.stdout)
        assert [(r["state_code"], r["value"]) for r in rows] == [("CA", 8)]

    def test_out_of_range(self, store):
        result = _rate(store, "primary", "CA", "Climate", 11)
        assert result.returncode == 1
        assert "Error" in result.stderr

    def test_unknown_criterion(self, store):
        result = _rate(store, "primary", "CA", "Beaches", 5)
        assert result.returncode == 1
        assert "Unknown criterion" in result.stderr

    def test_missing_arguments(self, store):
        result = run_cli("rate", store + ["--rater", "primary"], check=False)
        assert result.returncode == 2
        assert "--state" in result.stderr

    def test_delete(self, store):
        rid = json.loads(_rate(store, "secondary", "TX", "Climate", 5).stdout)["id"]
        assert run_cli("rate", store + ["--delete", rid]).returncode == 0
        assert run_cli("rate", store + ["--delete", rid], check=False).returncode == 1


# ---------------------------------------------------------------------------
# Scores CLI Tests
# ---------------------------------------------------------------------------

class TestScoresCLI:
    """Tests for the scores CLI."""

    @pytest.fixture
    def rated(self, store):
        for rater, value in (("primary", 8), ("secondary", 6)):
            assert _rate(store, rater, "CA", "Cost of Living", value).returncode == 0
        assert _rate(store, "primary", "TX", "Cost of Living", 3).returncode == 0
        return store

    def test_scores_json(self, rated):
        result = run_cli("scores", rated + ["--format", "json"])
        assert result.returncode == 0
        body = json.loads(result.stdout)
        assert body["rated"] == 2
        assert body["top_state"] == "CA"
        assert [s["state_code"] for s in body["states"]] == ["CA", "TX"]
        assert body["states"][0]["score"] == 7.0

    def test_scores_text(self, rated):
        result = run_cli("scores", rated + ["--view", "secondary"])
        assert result.returncode == 0
        assert "States rated: 1/50" in result.stdout

    def test_table_csv(self, rated):
        result = run_cli("scores", rated + ["--table", "--sort", "primary", "--format", "csv"])
        assert result.returncode == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0] == "state,code,combined,primary,secondary"
        assert lines[1] == "California,CA,7.0,8.0,6.0"
        assert len(lines) == 51

    def test_agreement(self, rated):
        result = run_cli("scores", rated + ["--agreement", "--format", "json"])
        assert result.returncode == 0
        body = json.loads(result.stdout)
        assert body["agreement_rate_pct"] == 100
        assert body["rated_state_count"] == 2
        assert body["top_state"] == "CA"

    def test_bad_sort(self, rated):
        result = run_cli("scores", rated + ["--table", "--sort", "nobody"], check=False)
        assert result.returncode == 1

# tests/test_app.py
"""
REST binding tests (FastAPI TestClient over an in-memory service).

License: MIT
"""
import pytest
from fastapi.testclient import TestClient

from STARS.cli.app import create_app


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as c:
        yield c


@pytest.fixture
def cost_id(client):
    resp = client.post("/api/criteria", json={"name": "Cost", "weight": 1.0, "color": "#1976D2"})
    assert resp.status_code == 201
    return resp.json()["id"]


class TestReference:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["ok"] is True
        assert body["backend"] == "memory"

    def test_states(self, client):
        states = client.get("/api/states").json()
        assert len(states) == 50
        assert client.get("/api/states/ca").json()["name"] == "California"
        assert client.get("/api/states/ZZ").status_code == 404

    def test_raters(self, client):
        assert [r["id"] for r in client.get("/api/raters").json()] == ["A", "B"]


class TestCriteriaRoutes:
    def test_create_update_deactivate(self, client, cost_id):
        resp = client.put(f"/api/criteria/{cost_id}", json={"weight": 3})
        assert resp.status_code == 200
        assert resp.json()["weight"] == 3.0

        assert client.delete(f"/api/criteria/{cost_id}").status_code == 204
        assert client.get("/api/criteria").json() == []
        listed = client.get("/api/criteria", params={"include_inactive": True}).json()
        assert listed[0]["active"] is False

    def test_invalid_weight_is_400(self, client):
        resp = client.post("/api/criteria", json={"name": "Cost", "weight": 0})
        assert resp.status_code == 400
        assert "weight" in resp.json()["error"]

    def test_unknown_criterion_is_404(self, client):
        assert client.put("/api/criteria/nope", json={"weight": 2}).status_code == 404
        assert client.delete("/api/criteria/nope").status_code == 404


class TestRatingRoutes:
    def test_upsert_is_idempotent(self, client, cost_id):
        body = {"rater_id": "A", "state_code": "ca", "criterion_id": cost_id, "value": 4}
        first = client.post("/api/ratings", json=body).json()
        second = client.post("/api/ratings", json={**body, "value": 9}).json()
        assert first["id"] == second["id"]
        assert second["state_code"] == "CA"

        rows = client.get("/api/ratings", params={"rater_id": "A"}).json()
        assert [r["value"] for r in rows] == [9]

    @pytest.mark.parametrize("value", [0, 11])
    def test_out_of_range_is_400(self, client, cost_id, value):
        body = {"rater_id": "A", "state_code": "CA", "criterion_id": cost_id, "value": value}
        assert client.post("/api/ratings", json=body).status_code == 400

    def test_unknown_rater_is_400(self, client, cost_id):
        body = {"rater_id": "Z", "state_code": "CA", "criterion_id": cost_id, "value": 5}
        assert client.post("/api/ratings", json=body).status_code == 400

    def test_get_update_delete(self, client, cost_id):
        body = {"rater_id": "A", "state_code": "TX", "criterion_id": cost_id, "value": 5}
        rid = client.post("/api/ratings", json=body).json()["id"]

        updated = client.put(f"/api/ratings/{rid}", json={"value": 6, "notes": "ok"}).json()
        assert (updated["value"], updated["notes"]) == (6, "ok")
        assert client.get(f"/api/ratings/{rid}").json()["value"] == 6

        assert client.delete(f"/api/ratings/{rid}").status_code == 204
        assert client.get(f"/api/ratings/{rid}").status_code == 404
        assert client.delete(f"/api/ratings/{rid}").status_code == 404


class TestDerivedRoutes:
    @pytest.fixture
    def rated(self, client, cost_id):
        for rater, value in (("A", 8), ("B", 6)):
            client.post("/api/ratings", json={
                "rater_id": rater, "state_code": "CA", "criterion_id": cost_id, "value": value})
        return cost_id

    def test_scores(self, client, rated):
        body = client.get("/api/scores").json()
        assert body["rated"] == 1
        assert body["top_state"] == "CA"
        ca = next(s for s in body["states"] if s["state_code"] == "CA")
        assert (ca["score"], ca["stars"]) == (7.0, 7)

    def test_scores_unknown_filter(self, client, rated):
        body = client.get("/api/scores", params={"criterion": "nope"}).json()
        assert body["rated"] == 0
        assert body["top_state"] is None

    def test_table_and_breakdown(self, client, rated):
        rows = client.get("/api/table", params={"sort": "A"}).json()["rows"]
        assert rows[0]["state"]["code"] == "CA"
        assert rows[0]["raters"]["A"]["average"] == 8.0

        detail = client.get("/api/states/CA/breakdown").json()
        assert detail["criteria"][0]["values"] == {"A": 8, "B": 6}
        assert client.get("/api/table", params={"sort": "bogus"}).status_code == 400

    def test_agreement(self, client, rated):
        body = client.get("/api/agreement").json()
        assert body["agreement_rate_pct"] == 100
        assert body["comparisons"] == 1
        assert client.get("/api/agreement", params={"rater_a": "A", "rater_b": "A"}).status_code == 400


class TestUnexpectedErrors:
    def test_storage_failure_is_500(self, service, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr(service, "compute_state_scores", broken)
        with TestClient(create_app(service), raise_server_exceptions=False) as c:
            resp = c.get("/api/scores")
        assert resp.status_code == 500
        assert "disk I/O error" in resp.json()["error"]


class TestServedApp:
    def test_import_builds_nothing(self):
        import STARS.cli.app as app_module
        assert "app" not in vars(app_module)

    def test_app_built_on_first_access(self, monkeypatch, temp_dir):
        import STARS.cli.app as app_module
        from STARS.core import config as config_mod

        monkeypatch.setattr(config_mod, "CONFIG_PATHS", [temp_dir / "missing.json"])
        for name in config_mod.ENV_VARS.values():
            monkeypatch.delenv(name, raising=False)
        try:
            served = app_module.app
            assert served is app_module.app
            assert served.state.service.backend.name == "memory"
        finally:
            served = vars(app_module).pop("app", None)
            if served is not None:
                served.state.service.close()

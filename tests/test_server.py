"""
HTTP surface tests via FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

import server
from forge.admin_auth import SignedRoleAuthorizer, issue_admin_token
from forge.allocation_service import AllocationService
from forge.forge_status import FORGE_LOCKED_MESSAGE
from forge.seed_pool import SeedPool
from forge.style_store import FingerprintStore

from conftest import make_seeds, store_corrupt_style

KEY = "server-test-key"


@pytest.fixture
def client(service):
    server.app.dependency_overrides[server.get_service] = lambda: service
    server.app.dependency_overrides[server.get_authorizer] = lambda: SignedRoleAuthorizer(KEY)
    try:
        yield TestClient(server.app)
    finally:
        server.app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {issue_admin_token('ops', KEY)}"}


class TestSeedEndpoints:
    def test_preview_and_consume(self, client, service):
        service.pool.load(make_seeds(2))

        preview = client.get("/seed")
        assert preview.status_code == 200
        assert preview.json()["seed"] in make_seeds(2)

        consumed = client.post("/seed", json={"callerId": "user-1"})
        assert consumed.status_code == 200
        seed = consumed.json()["seed"]
        assert service.pool.get(seed).used_by == "user-1"

    def test_consume_without_body(self, client, service):
        service.pool.load(make_seeds(1))
        response = client.post("/seed")
        assert response.status_code == 200
        assert service.pool.get(response.json()["seed"]).used_by is None

    def test_exhausted_pool_returns_429(self, client, service):
        service.pool.load(make_seeds(1))
        assert client.post("/seed").status_code == 200

        for method in (client.post, client.get):
            response = method("/seed")
            assert response.status_code == 429
            assert response.json() == {"error": FORGE_LOCKED_MESSAGE}

    def test_caller_id_too_long(self, client, service):
        service.pool.load(make_seeds(1))
        response = client.post("/seed", json={"callerId": "x" * 300})
        assert response.status_code == 422
        assert service.pool.stats().used == 0

    def test_stats_and_status(self, client, service):
        service.pool.load(make_seeds(4))
        client.post("/seed")

        stats = client.get("/seed/stats").json()
        assert stats == {"total": 4, "used": 1, "available": 3, "percentageUsed": 25.0}

        status = client.get("/seed/status").json()
        assert status["state"] == "critical"
        assert status["isLocked"] is False
        assert status["available"] == 3


class TestStyleEndpoints:
    def test_consumed_seed_has_style(self, client, service):
        service.pool.load(make_seeds(1))
        seed = client.post("/seed").json()["seed"]

        response = client.get(f"/style/{seed}")
        assert response.status_code == 200
        assert set(response.json()) == {
            "palette", "gradient", "glow", "chrome", "bloom", "texture", "lighting",
        }
        assert "max-age" in response.headers["cache-control"]

        filters = client.get(f"/style/{seed}/filters").json()
        assert filters["seed"] == seed
        assert filters["filters"][0]["kind"] == "lighting"
        assert filters["filters"][-1]["kind"] == "bloom"

    def test_unknown_seed_is_404_and_not_created(self, client, service):
        seed = make_seeds(1)[0]
        for path in (f"/style/{seed}", f"/style/{seed}/filters"):
            response = client.get(path)
            assert response.status_code == 404
            assert response.json() == {"error": "Demo style not found for this seed"}
        assert service.get_style(seed) is None


class TestAdminEndpoints:
    def test_admin_style_requires_token(self, client):
        response = client.post("/admin/style", json={"seed": make_seeds(1)[0]})
        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized - admin access required"}

    def test_admin_style_rejects_bad_token(self, client):
        response = client.post(
            "/admin/style",
            json={"seed": make_seeds(1)[0]},
            headers={"Authorization": "Bearer ops:admin:1:deadbeef"},
        )
        assert response.status_code == 403

    def test_admin_style_is_idempotent(self, client, admin_headers):
        seed = make_seeds(1)[0]
        first = client.post("/admin/style", json={"seed": seed}, headers=admin_headers)
        second = client.post("/admin/style", json={"seed": seed}, headers=admin_headers)
        assert first.status_code == 200
        assert first.json() == second.json()
        assert client.get(f"/style/{seed}").json() == first.json()

    def test_admin_style_validates_seed(self, client, admin_headers):
        response = client.post("/admin/style", json={"seed": ""}, headers=admin_headers)
        assert response.status_code == 422

    def test_admin_stats(self, client, admin_headers, service):
        for seed in make_seeds(3):
            service.get_or_create_style(seed)

        assert client.get("/admin/style/stats").status_code == 403

        report = client.get("/admin/style/stats?top=2", headers=admin_headers).json()
        assert report["total"] == 3
        assert len(report["palette"]) <= 2


class TestPersistenceFailure:
    def test_missing_schema_is_500(self, tmp_path):
        from forge.db_helpers import create_session_factory, get_db_engine

        engine = get_db_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        factory = create_session_factory(engine)
        broken = AllocationService(SeedPool(factory), FingerprintStore(factory))
        server.app.dependency_overrides[server.get_service] = lambda: broken
        try:
            client = TestClient(server.app)
            for method, path in (("post", "/seed"), ("get", "/seed/stats"), ("get", f"/style/{'a' * 64}")):
                response = getattr(client, method)(path)
                assert response.status_code == 500
                assert response.json() == {"error": "Internal server error"}
        finally:
            server.app.dependency_overrides.clear()
            engine.dispose()

    def test_corrupt_style_row_is_500(self, client, session_factory):
        seed = make_seeds(1)[0]
        store_corrupt_style(session_factory, seed)
        for path in (f"/style/{seed}", f"/style/{seed}/filters"):
            response = client.get(path)
            assert response.status_code == 500
            assert response.json() == {"error": "Internal server error"}


class TestAdminSearch:
    def test_search_requires_admin(self, client):
        response = client.get("/admin/style/search", params={"dimension": "chrome", "value": "darkChrome"})
        assert response.status_code == 403

    def test_search_finds_matching_seeds(self, client, admin_headers, service):
        styles = {seed: service.get_or_create_style(seed) for seed in make_seeds(5)}
        glow = styles[make_seeds(1)[0]].glow

        response = client.get(
            "/admin/style/search",
            params={"dimension": "glow", "value": glow.value},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["dimension"] == "glow"
        assert set(body["seeds"]) == {seed for seed, fp in styles.items() if fp.glow is glow}

    def test_search_limit(self, client, admin_headers, service):
        for seed in make_seeds(4):
            service.get_or_create_style(seed)
        response = client.get(
            "/admin/style/search",
            params={"dimension": "lighting", "value": "front", "limit": 1},
            headers=admin_headers,
        )
        assert len(response.json()["seeds"]) <= 1

    @pytest.mark.parametrize("dimension, value", [("font", "comicSans"), ("chrome", "goldLeaf")])
    def test_search_rejects_unknown_variant(self, client, admin_headers, dimension, value):
        response = client.get(
            "/admin/style/search",
            params={"dimension": dimension, "value": value},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "error" in response.json()

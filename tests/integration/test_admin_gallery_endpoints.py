"""Testes de integração de monitoramento, admin e galeria."""

from __future__ import annotations


class TestMonitoring:
    def test_public_budget_report(self, client) -> None:
        response = client.get("/api/monitoring/budget")
        assert response.status_code == 200
        status = response.json()["data"]["status"]
        assert status["totalBudget"] == 300.0
        assert status["alertLevel"] == "safe"

    def test_budget_report_reflects_generation(self, client) -> None:
        client.post("/api/generate-video", json={"prompt": "A cat surfing at sunset"})
        data = client.get("/api/monitoring/budget").json()["data"]
        assert data["breakdown"]["veo"] == 1.5
        assert data["status"]["currentSpend"] == 1.5


class TestAdminAuth:
    """Autenticação das rotas admin."""

    def test_missing_credentials(self, client) -> None:
        response = client.get("/api/admin/monitoring")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_wrong_key(self, client) -> None:
        response = client.get(
            "/api/admin/monitoring", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 401

    def test_dashboard(self, client, admin_headers) -> None:
        response = client.get("/api/admin/monitoring", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert set(data) >= {"budget", "jobs", "rateLimiter", "veoCircuitBreaker", "system"}


class TestBudgetReset:
    def test_reset_clears_spend(self, client, admin_headers) -> None:
        client.post("/api/generate-video", json={"prompt": "A cat surfing at sunset"})

        response = client.post("/api/admin/budget/reset", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["currentSpend"] == 0.0

    def test_reset_with_new_budget(self, client, admin_headers) -> None:
        response = client.post(
            "/api/admin/budget/reset", json={"totalBudget": 50}, headers=admin_headers
        )
        assert response.json()["data"]["totalBudget"] == 50.0

    def test_invalid_budget(self, client, admin_headers) -> None:
        response = client.post(
            "/api/admin/budget/reset", json={"totalBudget": -5}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestGallery:
    def test_empty_gallery(self, client) -> None:
        response = client.get("/api/gallery/videos")
        assert response.status_code == 200
        body = response.json()
        assert body["data"] == []
        assert body["pagination"]["totalCount"] == 0
        assert body["pagination"]["hasNext"] is False

    def test_invalid_page(self, client) -> None:
        response = client.get("/api/gallery/videos?page=0")
        assert response.status_code == 400

    def test_invalid_sort(self, client) -> None:
        response = client.get("/api/gallery/videos?sortBy=random")
        assert response.status_code == 400

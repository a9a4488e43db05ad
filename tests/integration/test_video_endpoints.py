"""Testes de integração das rotas de vídeo, chat e envelope de erro."""

from __future__ import annotations

import pytest


def _generate(client, **overrides):
    body = {"prompt": "A cat surfing at sunset", "duration": 15, "aspectRatio": "16:9"}
    body.update(overrides)
    return client.post("/api/generate-video", json=body)


class TestHealth:
    def test_health(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_correlation_id_is_propagated(self, client) -> None:
        response = client.get("/health", headers={"X-Correlation-ID": "corr-123"})
        assert response.headers["X-Correlation-ID"] == "corr-123"

    def test_correlation_id_is_generated(self, client) -> None:
        assert client.get("/health").headers["X-Correlation-ID"]


class TestGenerateVideo:
    """POST /api/generate-video."""

    def test_accepted(self, client) -> None:
        response = _generate(client)

        assert response.status_code == 202
        body = response.json()
        assert body["success"] is True
        assert body["data"]["jobId"].startswith("job-")
        assert body["data"]["status"] == "pending"
        assert body["data"]["estimatedCost"] == 1.5
        assert body["timestamp"]
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"

    def test_validation_error_envelope(self, client) -> None:
        response = _generate(client, prompt="cat")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["userMessage"] == "Please check your input and try again."
        assert error["details"]["errors"]

    def test_missing_prompt(self, client) -> None:
        response = client.post("/api/generate-video", json={"duration": 5})
        assert response.status_code == 400
        fields = [e["field"] for e in response.json()["error"]["details"]["errors"]]
        assert "prompt" in fields

    def test_japanese_error_from_body_locale(self, client) -> None:
        response = _generate(client, prompt="cat", locale="ja")
        assert response.json()["error"]["userMessage"] == "入力内容を確認して、もう一度お試しください。"

    def test_japanese_error_from_header(self, client) -> None:
        response = client.post(
            "/api/generate-video",
            json={"prompt": "cat"},
            headers={"Accept-Language": "ja-JP,ja;q=0.9"},
        )
        assert response.json()["error"]["userMessage"] == "入力内容を確認して、もう一度お試しください。"

    def test_unknown_session(self, client) -> None:
        response = _generate(client, sessionId="sess-missing")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"

    def test_rate_limit(self, client) -> None:
        for _ in range(3):
            assert _generate(client).status_code == 202

        response = _generate(client)
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert int(response.headers["Retry-After"]) > 0

    def test_rate_limit_is_per_client(self, client) -> None:
        for _ in range(3):
            _generate(client)
        response = client.post(
            "/api/generate-video",
            json={"prompt": "A cat surfing at sunset"},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )
        assert response.status_code == 202

    def test_insufficient_budget(self, client, admin_headers) -> None:
        client.post(
            "/api/admin/budget/reset", json={"totalBudget": 1.0}, headers=admin_headers
        )
        response = _generate(client)
        assert response.status_code == 402
        assert response.json()["error"]["code"] == "INSUFFICIENT_BUDGET"

    def test_budget_exceeded_after_spend(self, client, admin_headers) -> None:
        client.post(
            "/api/admin/budget/reset", json={"totalBudget": 1.6}, headers=admin_headers
        )
        assert _generate(client).status_code == 202

        response = _generate(client)
        assert response.status_code == 402
        assert response.json()["error"]["code"] == "BUDGET_EXCEEDED"


class TestJobStatus:
    """GET/DELETE /api/status/{job_id}."""

    def test_status_of_new_job(self, client) -> None:
        job_id = _generate(client).json()["data"]["jobId"]

        response = client.get(f"/api/status/{job_id}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["jobId"] == job_id
        assert data["status"] == "pending"
        assert data["statusMessage"]
        assert "videoUrl" not in data

    def test_unknown_job(self, client) -> None:
        response = client.get("/api/status/job-0-missing")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "JOB_NOT_FOUND"

    def test_invalid_job_id(self, client) -> None:
        response = client.get("/api/status/bad$id")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_JOB_ID"

    def test_cancel_then_cancel_again(self, client) -> None:
        job_id = _generate(client).json()["data"]["jobId"]

        response = client.delete(f"/api/status/{job_id}")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

        status = client.get(f"/api/status/{job_id}").json()["data"]
        assert status["status"] == "failed"
        assert status["error"] == "Job cancelled by user"

        again = client.delete(f"/api/status/{job_id}")
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "CANNOT_CANCEL"

    def test_cancel_shares_status_check_quota(self, client) -> None:
        job_id = _generate(client).json()["data"]["jobId"]

        cancelled = client.delete(f"/api/status/{job_id}")
        assert cancelled.headers["X-RateLimit-Limit"] == "60"
        assert cancelled.headers["X-RateLimit-Remaining"] == "59"

        status = client.get(f"/api/status/{job_id}")
        assert status.headers["X-RateLimit-Remaining"] == "58"

    def test_cancel_is_rate_limited(self, client) -> None:
        headers = {"X-Forwarded-For": "203.0.113.50"}
        for _ in range(60):
            client.get("/api/status/job-0-missing", headers=headers)

        response = client.delete("/api/status/job-0-missing", headers=headers)
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert "Retry-After" in response.headers


class TestChatRefine:
    """POST /api/chat/refine."""

    def test_refine(self, client) -> None:
        session_id = _generate(client).json()["data"]["sessionId"]
        response = client.post(
            "/api/chat/refine",
            json={"sessionId": session_id, "message": "Make it warmer"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["response"]
        assert len(data["suggestions"]) == 3

    def test_empty_message(self, client) -> None:
        session_id = _generate(client).json()["data"]["sessionId"]
        response = client.post(
            "/api/chat/refine",
            json={"sessionId": session_id, "message": "<script>x</script>", "locale": "ja"},
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "EMPTY_MESSAGE"
        assert error["userMessage"] == "メッセージを入力してください。"

    @pytest.mark.parametrize("session_id", ["sess-missing"])
    def test_unknown_session(self, client, session_id) -> None:
        response = client.post(
            "/api/chat/refine", json={"sessionId": session_id, "message": "hello"}
        )
        assert response.status_code == 404

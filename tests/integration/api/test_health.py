"""Integration tests for health endpoints."""

from httpx import AsyncClient


class TestHealth:
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] is None

    async def test_detailed_checks_database(self, client: AsyncClient) -> None:
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "healthy"
        assert body["status"] == "healthy"
        assert "push_configured" in body

    async def test_request_id_header(self, client: AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-ID": "probe-1"})

        assert response.headers["x-request-id"] == "probe-1"

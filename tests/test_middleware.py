"""
Tests for the correlation ID and CSRF protection middleware.
"""
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from roleguard.core.config import settings
from roleguard.core.middleware import CsrfProtectionMiddleware, correlation_id_middleware
from roleguard.core.rate_limiter import FixedWindowRateLimiter
from roleguard.core.security import generate_csrf_token


def build_app(limiter: FixedWindowRateLimiter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(CsrfProtectionMiddleware, limiter=limiter)
    app.middleware("http")(correlation_id_middleware)

    @app.get("/api/roles")
    async def list_roles():
        return {"ok": True}

    @app.post("/api/roles")
    async def create_role():
        return {"ok": True}

    @app.post("/api/auth/login")
    async def login():
        return {"ok": True}

    return app


def token_headers(token: str = None, cookie: str = None) -> dict:
    headers = {}
    if token is not None:
        headers[settings.csrf_header_name] = token
    if cookie is not None:
        headers["cookie"] = f"{settings.csrf_cookie_name}={cookie}"
    return headers


@pytest.fixture
def now():
    return [1000.0]


@pytest.fixture
def limiter(now) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(max_attempts=10, window_seconds=300, clock=lambda: now[0])


@pytest.fixture
def client(limiter):
    transport = ASGITransport(app=build_app(limiter))
    return AsyncClient(transport=transport, base_url="http://test")


class TestCsrfProtection:

    @pytest.mark.asyncio
    async def test_post_without_tokens_rejected(self, client):
        async with client:
            response = await client.post("/api/roles")

        assert response.status_code == 403
        assert response.json() == {"error": "CSRF_ERROR", "detail": "CSRF token missing"}

    @pytest.mark.asyncio
    async def test_header_without_cookie_rejected(self, client):
        async with client:
            response = await client.post("/api/roles", headers=token_headers(token=generate_csrf_token()))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_mismatched_pair_rejected(self, client):
        async with client:
            response = await client.post(
                "/api/roles",
                headers=token_headers(token=generate_csrf_token(), cookie=generate_csrf_token()),
            )

        assert response.status_code == 403
        assert response.json()["detail"] == "Invalid CSRF token"

    @pytest.mark.asyncio
    async def test_matching_pair_accepted(self, client):
        token = generate_csrf_token()
        async with client:
            response = await client.post("/api/roles", headers=token_headers(token=token, cookie=token))

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_safe_method_needs_no_token(self, client):
        async with client:
            response = await client.get("/api/roles")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_excluded_route_passes(self, client):
        async with client:
            response = await client.post("/api/auth/login")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_api_key_bypasses_check(self, client, limiter):
        async with client:
            response = await client.post("/api/roles", headers={"X-API-Key": "service-key"})

        assert response.status_code == 200
        assert limiter.size == 0


class TestCsrfFailureLimit:

    @pytest.mark.asyncio
    async def test_limited_after_threshold(self, client, limiter):
        async with client:
            for _ in range(11):
                response = await client.post("/api/roles")
                assert response.status_code == 403

            limited = await client.post("/api/roles")

        assert limited.status_code == 429
        assert limited.json()["error"] == "RATE_LIMITED"
        assert limited.headers["Retry-After"] == "300"
        assert limiter.failure_count("127.0.0.1") == 11

    @pytest.mark.asyncio
    async def test_limited_client_rejected_even_with_valid_pair(self, client):
        token = generate_csrf_token()
        async with client:
            for _ in range(11):
                await client.post("/api/roles")
            response = await client.post("/api/roles", headers=token_headers(token=token, cookie=token))

        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_retry_after_counts_down_and_window_resets(self, client, now):
        async with client:
            for _ in range(11):
                await client.post("/api/roles")

            now[0] += 100.5
            limited = await client.post("/api/roles")
            assert limited.headers["Retry-After"] == "200"

            now[0] += 200
            response = await client.post("/api/roles")

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_clients_counted_separately(self, client):
        async with client:
            for _ in range(11):
                await client.post("/api/roles", headers={"X-Forwarded-For": "10.0.0.1"})

            other = await client.post("/api/roles", headers={"X-Forwarded-For": "10.0.0.2"})

        assert other.status_code == 403

    @pytest.mark.asyncio
    async def test_forwarded_header_ignored_from_untrusted_peer(self, client, limiter, monkeypatch):
        monkeypatch.setattr(settings, "trusted_proxies", "10.9.9.9")

        async with client:
            for n in range(11):
                await client.post("/api/roles", headers={"X-Forwarded-For": f"10.0.0.{n}"})

            rotated = await client.post("/api/roles", headers={"X-Forwarded-For": "10.0.0.99"})

        assert rotated.status_code == 429
        assert limiter.failure_count("127.0.0.1") == 11


class TestCorrelationId:

    @pytest.mark.asyncio
    async def test_generated_when_absent(self, client):
        async with client:
            response = await client.get("/api/roles")

        assert len(response.headers["X-Correlation-ID"]) == 36

    @pytest.mark.asyncio
    async def test_echoes_incoming_id(self, client):
        async with client:
            response = await client.get("/api/roles", headers={"X-Correlation-ID": "req-123"})

        assert response.headers["X-Correlation-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_set_on_rejected_requests(self, client):
        async with client:
            response = await client.post("/api/roles", headers={"X-Correlation-ID": "req-456"})

        assert response.status_code == 403
        assert response.headers["X-Correlation-ID"] == "req-456"

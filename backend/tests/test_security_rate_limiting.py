"""
Security tests for rate limiting and the HTTP middleware stack.
"""
import pytest
import asyncio

from middleware.security import redact_path
from services.rate_limiter import InMemoryRateLimiter, get_rate_limiter, rate_limiter
from services.security import security_config

class TestRateLimiting:
    """Test rate limiting functionality and configurations."""

    async def test_basic_rate_limiting(self):
        """Requests within the budget count down; the next one is refused."""
        limiter = InMemoryRateLimiter()
        client_key = "test_client_123"

        for i in range(10):
            result = await limiter.check_rate_limit(client_key, window_seconds=60, max_requests=10)
            assert result.allowed is True
            assert result.remaining == 10 - i - 1

        result = await limiter.check_rate_limit(client_key, window_seconds=60, max_requests=10)
        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after >= 1

    async def test_rate_limit_window_expiry(self):
        """Test that rate limits reset after window expiry."""
        limiter = InMemoryRateLimiter()
        client_key = "test_window_expiry"

        for _ in range(5):
            assert (await limiter.check_rate_limit(client_key, window_seconds=1, max_requests=5)).allowed

        assert not (await limiter.check_rate_limit(client_key, window_seconds=1, max_requests=5)).allowed

        await asyncio.sleep(1.1)

        assert (await limiter.check_rate_limit(client_key, window_seconds=1, max_requests=5)).allowed

    async def test_different_client_isolation(self):
        """Test that different clients have isolated rate limits."""
        limiter = InMemoryRateLimiter()

        for _ in range(5):
            await limiter.check_rate_limit("login:1.1.1.1", window_seconds=60, max_requests=5)

        assert not (await limiter.check_rate_limit("login:1.1.1.1", window_seconds=60, max_requests=5)).allowed
        assert (await limiter.check_rate_limit("login:2.2.2.2", window_seconds=60, max_requests=5)).allowed
        assert (await limiter.check_rate_limit("share:1.1.1.1", window_seconds=60, max_requests=5)).allowed

    async def test_refused_requests_do_not_extend_the_window(self):
        limiter = InMemoryRateLimiter()
        await limiter.check_rate_limit("k", window_seconds=60, max_requests=1)

        for _ in range(3):
            await limiter.check_rate_limit("k", window_seconds=60, max_requests=1)

        assert len(limiter._requests["k"]) == 1

    async def test_cleanup_drops_idle_clients(self):
        limiter = InMemoryRateLimiter()
        await limiter.check_rate_limit("idle", window_seconds=60, max_requests=5)
        limiter._requests["idle"][0] = limiter._requests["idle"][0].replace(year=2000)

        await limiter.cleanup_expired()

        assert "idle" not in limiter._requests

    def test_global_instance(self):
        assert get_rate_limiter() is rate_limiter

class TestMiddleware:
    """Behaviour of the middleware stack as seen by HTTP clients."""

    async def test_security_headers(self, client):
        response = await client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert "X-Process-Time" in response.headers

    async def test_global_limit(self, client, monkeypatch):
        monkeypatch.setattr(security_config, "rate_limit_requests_per_minute", 3)

        responses = [await client.get("/health") for _ in range(4)]

        assert [r.status_code for r in responses[:3]] == [200, 200, 200]
        assert responses[0].headers["X-RateLimit-Limit"] == "3"
        assert responses[3].status_code == 429
        assert responses[3].json() == {"error": "Too many requests"}
        assert int(responses[3].headers["Retry-After"]) >= 1

    async def test_oversized_body_rejected_before_auth(self, client, monkeypatch, recwarn):
        monkeypatch.setattr(security_config, "max_upload_mb", 0)

        response = await client.post(
            "/api/photos",
            content=b"\0" * (1024 * 1024 + 1),
            headers={"content-type": "application/octet-stream"}
        )

        assert response.status_code == 413
        assert response.json() == {"error": "File too large"}
        assert not [w for w in recwarn if "TOO_LARGE" in str(w.message)]

@pytest.mark.parametrize("path,expected", [
    ("/api/share/abcdef0123456789/media/320/x", "/api/share/abcdef.../media/320/x"),
    ("/api/photos/123", "/api/photos/123"),
])
def test_share_tokens_are_redacted_in_logged_paths(path, expected):
    assert redact_path(path) == expected

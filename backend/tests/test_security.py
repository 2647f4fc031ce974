"""Security tests: sessions, CSRF, origin checks and rate limiting"""
import pytest
from unittest.mock import Mock, patch
from fastapi import status

from app.core.security import get_cookie_domain, validate_origin_referer


def make_batch(size: int = 10):
    return [f"Guarded{i}" for i in range(size)]


@pytest.mark.critical
class TestCSRFEndpoint:
    """Test the CSRF bootstrap endpoint"""

    def test_public_endpoint_accessible(self, client):
        """Anonymous visitors get a token and a session cookie to bind it to"""
        response = client.get("/api/auth/csrf")
        assert response.status_code == status.HTTP_200_OK
        assert "csrf_token" in response.json()
        assert response.headers["X-CSRF-Token"] == response.json()["csrf_token"]
        assert "session_id" in response.cookies

    def test_token_is_stable_for_session(self, authenticated_client):
        first = authenticated_client.get("/api/auth/csrf").json()["csrf_token"]
        second = authenticated_client.get("/api/auth/csrf").json()["csrf_token"]
        assert first == second

    def test_anonymous_token_does_not_authorize_words(self, client):
        token = client.get("/api/auth/csrf").json()["csrf_token"]

        response = client.post(
            "/api/words?action=submit",
            json={"words": make_batch()},
            headers={"X-CSRF-Token": token}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_session_cookie_set_on_login(self, client, test_user):
        response = client.post(
            "/api/auth/login",
            json={"email": test_user.email, "password": "TestPassword123!"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert "session_id" in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()


@pytest.mark.high
class TestOriginValidation:
    """Test Origin/Referer checks on state-changing requests"""

    def test_foreign_origin_rejected(self, authenticated_client):
        response = authenticated_client.post(
            "/api/words?action=validate",
            json={"words": make_batch()},
            headers={"Origin": "https://evil.example.com"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "Invalid origin or referer"}

    def test_frontend_origin_allowed(self, authenticated_client):
        response = authenticated_client.post(
            "/api/words?action=validate",
            json={"words": make_batch()},
            headers={"Origin": "http://localhost:5173"}
        )
        assert response.status_code == status.HTTP_200_OK

    def test_referer_fallback(self):
        request = Mock()
        request.headers = {"Referer": "http://localhost:5173/words/new"}
        assert validate_origin_referer(request)

    def test_missing_headers_rejected_outside_development(self):
        request = Mock()
        request.headers = {}
        with patch("app.core.security.settings.ENVIRONMENT", "production"):
            assert not validate_origin_referer(request)


@pytest.mark.high
class TestRateLimiting:
    """Test Redis-backed rate limits"""

    def test_strict_limit_on_posts(self, authenticated_client):
        with patch("app.db.redis.RATE_LIMIT_STRICT_REQUESTS", 2):
            statuses = [
                authenticated_client.post("/api/words?action=validate", json={"words": make_batch()}).status_code
                for _ in range(3)
            ]
        assert statuses == [200, 200, 429]

    def test_reads_use_separate_counter(self, authenticated_client):
        with patch("app.db.redis.RATE_LIMIT_STRICT_REQUESTS", 1):
            authenticated_client.post("/api/words?action=validate", json={"words": make_batch()})
            response = authenticated_client.get("/api/words")
        assert response.status_code == status.HTTP_200_OK

    def test_limit_window_expires(self, mock_redis):
        from app.db.redis import check_rate_limit

        assert check_rate_limit("ip:10.0.0.1")
        assert 0 < mock_redis.ttl("ratelimit:ip:10.0.0.1") <= 60


@pytest.mark.medium
class TestCookieDomain:
    """Test cookie domain selection"""

    @pytest.mark.parametrize("host,expected", [
        ("api.vocab.example.com", ".example.com"),
        ("vocab.example.com:443", ".example.com"),
        ("localhost:8000", None),
        ("127.0.0.1:8000", None),
        ("testserver", None),
    ])
    def test_cookie_domain(self, host, expected):
        request = Mock()
        request.headers = {"host": host}
        assert get_cookie_domain(request) == expected

"""Unit tests for client.py - Cloudflare API client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from client import CloudflareClient, calculate_backoff, format_api_errors
from config import CloudflareConfig
from errors import NotFoundError, RequestError

# ==================== Test Helpers ====================


def mock_response(status, body):
    """Build an async context manager yielding a response."""
    response = MagicMock()
    response.status = status
    text = body if isinstance(body, str) else json.dumps(body)
    response.text = AsyncMock(return_value=text)
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=response)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


def mock_session(*responses):
    """Build a ClientSession double whose request() yields ``responses`` in order."""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    session.request = MagicMock(side_effect=list(responses))
    return session


def envelope(result, success=True, errors=None):
    return {"success": success, "errors": errors or [], "messages": [], "result": result}


# ==================== Helper Function Tests ====================


class TestCalculateBackoff:
    """Tests for calculate_backoff."""

    def test_grows_exponentially(self):
        with patch("client.random.random", return_value=0.5):
            assert calculate_backoff(0, 1.0, 100.0, 0.1) == 1.0
            assert calculate_backoff(1, 1.0, 100.0, 0.1) == 2.0
            assert calculate_backoff(3, 1.0, 100.0, 0.1) == 8.0

    def test_capped_at_max_delay(self):
        with patch("client.random.random", return_value=0.5):
            assert calculate_backoff(20, 1.0, 5.0, 0.1) == 5.0

    def test_jitter_bounds(self):
        for _ in range(50):
            delay = calculate_backoff(2, 1.0, 100.0, 0.25)
            assert 3.0 <= delay <= 5.0


class TestFormatApiErrors:
    """Tests for format_api_errors."""

    def test_formats_code_and_message(self):
        body = {"errors": [{"code": 10000, "message": "Authentication error"}]}
        assert format_api_errors(body) == "10000: Authentication error"

    def test_joins_multiple_errors(self):
        body = {"errors": [{"message": "first"}, {"code": 7, "message": "second"}]}
        assert format_api_errors(body) == "first; 7: second"

    def test_non_dict_body(self):
        assert format_api_errors("Bad Gateway") == "Bad Gateway"
        assert format_api_errors(None) == ""


# ==================== Client Tests ====================


class TestCloudflareClientHeaders:
    """Tests for credential and user agent headers."""

    def test_bearer_token(self):
        client = CloudflareClient(CloudflareConfig(api_token="tok"))
        headers = client._get_headers()
        assert headers["Authorization"] == "Bearer tok"
        assert "X-Auth-Key" not in headers

    def test_api_key_and_email(self):
        client = CloudflareClient(CloudflareConfig(api_key="key", email="ops@example.com"))
        headers = client._get_headers()
        assert headers["X-Auth-Key"] == "key"
        assert headers["X-Auth-Email"] == "ops@example.com"
        assert "Authorization" not in headers

    def test_user_service_key(self):
        client = CloudflareClient(CloudflareConfig(api_user_service_key="svc"))
        assert client._get_headers()["X-Auth-User-Service-Key"] == "svc"

    def test_user_service_key_with_token(self):
        client = CloudflareClient(
            CloudflareConfig(api_token="tok", api_user_service_key="svc")
        )
        headers = client._get_headers()
        assert headers["Authorization"] == "Bearer tok"
        assert headers["X-Auth-User-Service-Key"] == "svc"

    def test_user_agent_suffix(self):
        client = CloudflareClient(
            CloudflareConfig(api_token="tok", user_agent_operator_suffix="ci/1.0")
        )
        assert client.user_agent == "cloudflare-extended/0.1.0 ci/1.0"

    def test_url_for(self):
        client = CloudflareClient(CloudflareConfig(api_token="tok"))
        assert (
            client.url_for("/accounts/a/queues")
            == "https://api.cloudflare.com/client/v4/accounts/a/queues"
        )


@pytest.mark.asyncio
class TestCloudflareClientRequests:
    """Async tests for CloudflareClient.request."""

    @pytest.fixture
    def client(self):
        return CloudflareClient(CloudflareConfig(api_token="tok", retries=2))

    async def test_get_returns_result(self, client):
        session = mock_session(mock_response(200, envelope({"name": "idx"})))
        with patch("client.aiohttp.ClientSession", return_value=session):
            result = await client.get("accounts/a/vectorize/v2/indexes/idx")

        assert result == {"name": "idx"}
        args, kwargs = session.request.call_args
        assert args == (
            "GET",
            "https://api.cloudflare.com/client/v4/accounts/a/vectorize/v2/indexes/idx",
        )
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    async def test_post_sends_json(self, client):
        session = mock_session(mock_response(200, envelope({"id": "1"})))
        with patch("client.aiohttp.ClientSession", return_value=session):
            await client.post("accounts/a/queues/q/consumers", json_body={"type": "worker"})

        _, kwargs = session.request.call_args
        assert kwargs["json"] == {"type": "worker"}
        assert kwargs["data"] is None

    async def test_not_found(self, client):
        session = mock_session(
            mock_response(404, envelope(None, False, [{"code": 10007, "message": "not found"}]))
        )
        with patch("client.aiohttp.ClientSession", return_value=session):
            with pytest.raises(NotFoundError) as exc_info:
                await client.get("accounts/a/queues/q/consumers")

        assert exc_info.value.status == 404
        assert "10007: not found" in exc_info.value.detail

    async def test_client_error_not_retried(self, client):
        session = mock_session(
            mock_response(400, envelope(None, False, [{"code": 1, "message": "bad"}]))
        )
        with patch("client.aiohttp.ClientSession", return_value=session):
            with pytest.raises(RequestError) as exc_info:
                await client.post("accounts/a/queues/q/consumers", json_body={})

        assert exc_info.value.status == 400
        assert session.request.call_count == 1

    async def test_unsuccessful_envelope(self, client):
        session = mock_session(
            mock_response(200, envelope(None, False, [{"code": 9, "message": "nope"}]))
        )
        with patch("client.aiohttp.ClientSession", return_value=session):
            with pytest.raises(RequestError, match="was not successful"):
                await client.get("accounts/a")

    async def test_retries_server_errors(self, client):
        session = mock_session(
            mock_response(503, "unavailable"),
            mock_response(200, envelope({"ok": True})),
        )
        with patch("client.aiohttp.ClientSession", return_value=session), patch(
            "client.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            result = await client.get("accounts/a")

        assert result == {"ok": True}
        assert session.request.call_count == 2
        mock_sleep.assert_awaited_once()

    async def test_retries_exhausted(self, client):
        session = mock_session(*[mock_response(429, "slow down") for _ in range(3)])
        with patch("client.aiohttp.ClientSession", return_value=session), patch(
            "client.asyncio.sleep", new_callable=AsyncMock
        ):
            with pytest.raises(RequestError) as exc_info:
                await client.get("accounts/a")

        assert exc_info.value.status == 429
        assert session.request.call_count == 3

    async def test_transport_error_retried_then_raised(self, client):
        session = mock_session(*[aiohttp.ClientConnectionError("refused") for _ in range(3)])
        with patch("client.aiohttp.ClientSession", return_value=session), patch(
            "client.asyncio.sleep", new_callable=AsyncMock
        ):
            with pytest.raises(RequestError, match="failed") as exc_info:
                await client.get("accounts/a")

        assert "refused" in exc_info.value.detail
        assert session.request.call_count == 3

    async def test_empty_body(self, client):
        session = mock_session(mock_response(200, ""))
        with patch("client.aiohttp.ClientSession", return_value=session):
            assert await client.delete("accounts/a/workers/scripts/s") is None

    async def test_request_logging(self, client, caplog):
        client.log_requests = True
        session = mock_session(mock_response(200, envelope([])))
        with patch("client.aiohttp.ClientSession", return_value=session):
            with caplog.at_level("INFO", logger="client"):
                await client.get("accounts/a/queues")

        assert "GET https://api.cloudflare.com/client/v4/accounts/a/queues -> 200" in caplog.text

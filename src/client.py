"""
Cloudflare API Client - Authenticated access to the REST control plane.

A single client is built by the provider and shared by every resource
plugin. It attaches credentials, unwraps the Cloudflare response envelope and
retries throttled or failed requests with exponential backoff.
"""

import asyncio
import json
import logging
import random
from typing import Any, Dict, List, Optional

import aiohttp

from config import CloudflareConfig
from errors import NotFoundError, RequestError

logger = logging.getLogger(__name__)

CLIENT_VERSION = "0.1.0"

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


def calculate_backoff(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter_factor: float,
) -> float:
    """
    Calculate the delay before retry number ``attempt``.

    Exponential backoff capped at ``max_delay`` with ±``jitter_factor``
    jitter.
    """
    delay = min(base_delay * (2 ** min(attempt, 10)), max_delay)
    return max(0.0, delay * (1 + (random.random() * 2 - 1) * jitter_factor))


def format_api_errors(body: Any) -> str:
    """Render the ``errors`` array of a Cloudflare envelope as one line."""
    if not isinstance(body, dict):
        return str(body) if body else ""
    errors: List[Dict[str, Any]] = body.get("errors") or []
    rendered = []
    for error in errors:
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message", "")
            rendered.append(f"{code}: {message}" if code else message)
        else:
            rendered.append(str(error))
    return "; ".join(rendered)


class CloudflareClient:
    """
    Client for the Cloudflare v4 REST API.

    Each call opens its own HTTP session; there is no connection pooling
    and no cached state besides the immutable configuration.
    """

    def __init__(self, config: CloudflareConfig):
        self.config = config
        self.base_url = config.base_url
        self.retries = config.retries
        self.log_requests = config.api_client_logging

    @property
    def user_agent(self) -> str:
        agent = f"cloudflare-extended/{CLIENT_VERSION}"
        if self.config.user_agent_operator_suffix:
            agent = f"{agent} {self.config.user_agent_operator_suffix}"
        return agent

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for API requests."""
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        elif self.config.api_key:
            headers["X-Auth-Key"] = self.config.api_key
            headers["X-Auth-Email"] = self.config.email
        if self.config.api_user_service_key:
            headers["X-Auth-User-Service-Key"] = self.config.api_user_service_key
        return headers

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json_body: Any = None) -> Any:
        return await self.request("POST", path, json_body=json_body)

    async def put(self, path: str, json_body: Any = None, data: Any = None) -> Any:
        return await self.request("PUT", path, json_body=json_body, data=data)

    async def delete(self, path: str, json_body: Any = None) -> Any:
        return await self.request("DELETE", path, json_body=json_body)

    async def request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        data: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue a request and return the ``result`` of the response envelope.

        Args:
            method: HTTP method
            path: API path relative to the base URL
            json_body: JSON-serializable request body
            data: Raw request body (e.g. an ``aiohttp.MultipartWriter``)
            params: Query string parameters

        Returns:
            The envelope's ``result`` member, or the decoded body when the
            response is not an envelope.

        Raises:
            NotFoundError: If the API answers 404.
            RequestError: On any other non-2xx answer or transport failure
                once retries are exhausted.
        """
        url = self.url_for(path)
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        attempt = 0

        while True:
            try:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.request(
                        method,
                        url,
                        headers=self._get_headers(),
                        json=json_body,
                        data=data,
                        params=params,
                    ) as response:
                        status = response.status
                        text = await response.text()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < self.retries:
                    await self._sleep_before_retry(method, url, attempt, str(e))
                    attempt += 1
                    continue
                raise RequestError(
                    f"{method} {path} failed", str(e) or type(e).__name__
                ) from e

            if self.log_requests:
                logger.info(f"{method} {url} -> {status}")
                logger.debug(f"Response body: {text}")

            if status in RETRYABLE_STATUSES and attempt < self.retries:
                await self._sleep_before_retry(method, url, attempt, f"HTTP {status}")
                attempt += 1
                continue

            body = self._decode(text)

            if status == 404:
                raise NotFoundError(
                    f"{method} {path} returned 404", format_api_errors(body)
                )
            if status >= 400:
                raise RequestError(
                    f"{method} {path} returned {status}",
                    format_api_errors(body) or text,
                    status=status,
                )

            if isinstance(body, dict) and "result" in body:
                if body.get("success") is False:
                    raise RequestError(
                        f"{method} {path} was not successful",
                        format_api_errors(body),
                        status=status,
                    )
                return body["result"]
            return body

    async def _sleep_before_retry(
        self, method: str, url: str, attempt: int, reason: str
    ) -> None:
        delay = calculate_backoff(
            attempt,
            self.config.backoff_base_delay,
            self.config.backoff_max_delay,
            self.config.backoff_jitter_factor,
        )
        logger.warning(
            f"{method} {url} failed ({reason}), retry {attempt + 1}/{self.retries} "
            f"in {delay:.2f}s"
        )
        await asyncio.sleep(delay)

    @staticmethod
    def _decode(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

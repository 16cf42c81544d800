"""Async client for the Coinsetter REST API.

- Every call carries the adapter's client session id header so the venue can
  correlate all requests from one gateway instance.
- Calls are not queued or rate limited: each one runs independently and a
  burst of calls is a burst of concurrent requests.
- Failures are raised to the awaiting caller and never retried.

The HTTP call uses `requests` executed in a thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Final

import requests #type: ignore

from config import CoinsetterConfig
from trading.models import Timestamped, utc_now

logger = logging.getLogger(__name__)

SESSION_HEADER: Final[str] = "coinsetter-client-session-id"
HTTP_TIMEOUT_S: Final[float] = 5.0


class CoinsetterHttpError(RuntimeError):
    """Base class for failed Coinsetter HTTP calls."""

    def __init__(self, message: str, *, url: str):
        self.url = url
        super().__init__(message)


class CoinsetterTransportError(CoinsetterHttpError):
    """The request never produced a response (timeout, refused, DNS, ...)."""

    def __init__(self, *, url: str, cause: BaseException):
        self.cause = cause
        super().__init__(f"Coinsetter request failed: url={url} err={cause}", url=url)


class CoinsetterDecodeError(CoinsetterHttpError):
    """The response body was not valid JSON."""

    def __init__(self, *, url: str, body: str):
        self.body = body
        super().__init__(f"Coinsetter returned non-JSON body: url={url}", url=url)


class CoinsetterHttp:
    """REST client bound to one account and one client session.

    Members:
    - Base URL: `base_url`
    - Account uuid: `account_uuid`
    - Customer uuid: `customer_uuid`
    """

    def __init__(self, config: CoinsetterConfig):
        self.config = config
        self.base_url: str = config.http_url
        self.account_uuid: str = config.account_uuid
        self.customer_uuid: str = config.customer_uuid
        self._client_session_id: str = config.client_session_id

    async def get(self, path: str) -> Timestamped:
        return await self._send_request("GET", path, None)

    async def delete(self, path: str) -> Timestamped:
        return await self._send_request("DELETE", path, None)

    async def post(self, path: str, body: Any) -> Timestamped:
        return await self._send_request("POST", path, body)

    async def _send_request(self, method: str, path: str, body: Any | None) -> Timestamped:
        """Send a request and return the decoded JSON stamped with its receive time.

        Raises:
        - `CoinsetterTransportError` when the call itself fails
        - `CoinsetterDecodeError` when the body is not JSON
        """
        url = f"{self.base_url}/{path}"
        headers = {SESSION_HEADER: self._client_session_id}

        def _do_request() -> requests.Response:
            """Execute the HTTP request synchronously (runs in a worker thread)."""
            return requests.request(method, url, headers=headers, json=body, timeout=HTTP_TIMEOUT_S)

        try:
            resp = await asyncio.to_thread(_do_request)
        except requests.RequestException as exc:
            logger.error("Error returned: url=%s err=%s", url, exc)
            raise CoinsetterTransportError(url=url, cause=exc) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("Error parsing JSON url=%s err=%s body=%r", url, exc, resp.text)
            raise CoinsetterDecodeError(url=url, body=resp.text) from exc

        return Timestamped(data=data, time=utc_now())

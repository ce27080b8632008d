"""
Discord Webhook Sink

Posts formatted messages to a single Discord webhook.

PRINCIPLES:
===========
1. Failed deliveries are first-class results, never exceptions
2. Rate limiting is surfaced with its retry_after, never retried here
3. One message per call; the caller decides ordering
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
import logging

import httpx

logger = logging.getLogger(__name__)


DEFAULT_RETRY_AFTER = 5.0


class DeliveryStatus(Enum):
    DELIVERED = "delivered"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one webhook POST."""
    status: DeliveryStatus
    status_code: Optional[int] = None
    retry_after: Optional[float] = None
    error_message: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    @property
    def rate_limited(self) -> bool:
        return self.status == DeliveryStatus.RATE_LIMITED

    @staticmethod
    def ok(status_code: int = 204) -> DeliveryResult:
        return DeliveryResult(status=DeliveryStatus.DELIVERED, status_code=status_code)

    @staticmethod
    def limited(retry_after: float = DEFAULT_RETRY_AFTER) -> DeliveryResult:
        return DeliveryResult(
            status=DeliveryStatus.RATE_LIMITED,
            status_code=429,
            retry_after=retry_after,
            error_message="Discord rate limit exceeded",
        )

    @staticmethod
    def failed(status_code: Optional[int], message: str) -> DeliveryResult:
        return DeliveryResult(status=DeliveryStatus.FAILED, status_code=status_code, error_message=message)


class DiscordWebhookSink:
    """
    Delivers webhook payloads over HTTP.

    GUARANTEES:
    ===========
    1. 2xx -> DELIVERED
    2. 429 -> RATE_LIMITED with Retry-After header, JSON retry_after, or 5s
    3. Any other status or transport error -> FAILED
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "NostrDiscordBridge/1.0",
    ):
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._client = client
        self._user_agent = user_agent

    async def deliver(self, message: Dict[str, Any]) -> DeliveryResult:
        try:
            if self._client is not None:
                response = await self._post(self._client, message)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await self._post(client, message)

        except httpx.TimeoutException:
            logger.error("Discord webhook timed out")
            return DeliveryResult.failed(None, "Request timed out")

        except httpx.HTTPError as e:
            logger.error(f"Network error sending to Discord: {e}")
            return DeliveryResult.failed(None, str(e) or type(e).__name__)

        if 200 <= response.status_code < 300:
            return DeliveryResult.ok(response.status_code)

        if response.status_code == 429:
            retry_after = _retry_after(response)
            logger.warning(f"Discord rate limited, retry after {retry_after}s")
            return DeliveryResult.limited(retry_after)

        logger.error(f"Discord API error: {response.status_code} {response.text[:200]}")
        return DeliveryResult.failed(
            response.status_code,
            f"Discord API error: {response.status_code}",
        )

    async def _post(self, client: httpx.AsyncClient, message: Dict[str, Any]) -> httpx.Response:
        return await client.post(
            self._webhook_url,
            json=message,
            headers={'User-Agent': self._user_agent},
        )

    @property
    def webhook_url(self) -> str:
        return self._webhook_url


def _retry_after(response: httpx.Response) -> float:
    header = response.headers.get('retry-after')
    if header:
        try:
            return max(0.0, float(header))
        except ValueError:
            pass
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_RETRY_AFTER
    if isinstance(body, dict):
        value = body.get('retry_after')
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0.0, float(value))
    return DEFAULT_RETRY_AFTER

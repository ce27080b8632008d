"""
Discord Webhook Sink Tests

AXIOM UNDER TEST:
=================
Every webhook response maps to exactly one DeliveryResult; nothing raises.
"""

import asyncio
import json

import httpx
import pytest

from bridge.delivery.sink import DEFAULT_RETRY_AFTER, DeliveryStatus, DiscordWebhookSink

from ..fixtures import WEBHOOK_URL


MESSAGE = {'username': "alice", 'embeds': [{'description': "gm"}]}


def deliver_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def run():
        async with client:
            return await DiscordWebhookSink(WEBHOOK_URL, client=client).deliver(MESSAGE)

    return asyncio.run(run())


class TestSuccess:

    def test_no_content_is_delivered(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        result = deliver_with(handler)
        assert result.delivered
        assert result.status_code == 204

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == WEBHOOK_URL
        assert json.loads(request.content) == MESSAGE
        assert request.headers['user-agent'].startswith("NostrDiscordBridge")

    def test_any_2xx_is_delivered(self):
        assert deliver_with(lambda request: httpx.Response(200, json={'id': "1"})).delivered


class TestRateLimits:

    def test_retry_after_header(self):
        result = deliver_with(lambda request: httpx.Response(429, headers={'Retry-After': "7"}))
        assert result.status == DeliveryStatus.RATE_LIMITED
        assert result.rate_limited
        assert result.retry_after == 7.0
        assert result.status_code == 429

    def test_retry_after_json_body(self):
        result = deliver_with(lambda request: httpx.Response(429, json={'retry_after': 1.5, 'global': False}))
        assert result.retry_after == 1.5

    def test_retry_after_defaults(self):
        result = deliver_with(lambda request: httpx.Response(429, text="slow down"))
        assert result.retry_after == DEFAULT_RETRY_AFTER


class TestFailures:

    @pytest.mark.parametrize("status", [400, 401, 404, 500, 503])
    def test_error_status_is_failed(self, status):
        result = deliver_with(lambda request: httpx.Response(status, text="nope"))
        assert result.status == DeliveryStatus.FAILED
        assert result.status_code == status
        assert str(status) in result.error_message

    def test_connect_error_is_failed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = deliver_with(handler)
        assert result.status == DeliveryStatus.FAILED
        assert result.status_code is None
        assert "connection refused" in result.error_message

    def test_timeout_is_failed(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = deliver_with(handler)
        assert result.status == DeliveryStatus.FAILED
        assert result.error_message == "Request timed out"

"""
Tests for Email and Push Transports
===================================
"""

import json

import httpx
import pytest

from tools.email_client import HttpEmailClient, LoggingEmailClient
from tools.push_client import LoggingPushClient, WebhookPushClient


API_URL = "https://mail.test/emails"


def email_client(handler):
    return HttpEmailClient(
        api_url=API_URL,
        api_key="key-123",
        sender="PillWatch <alerts@pillwatch.test>",
        transport=httpx.MockTransport(handler)
    )


class TestHttpEmailClient:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_posts_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_42"})

        result = await email_client(handler).send_email("carer@example.com", "Hi", "<p>x</p>")

        assert result.success
        assert result.message_id == "email_42"
        assert seen["auth"] == "Bearer key-123"
        assert seen["body"] == {
            "from": "PillWatch <alerts@pillwatch.test>",
            "to": ["carer@example.com"],
            "subject": "Hi",
            "html": "<p>x</p>",
        }

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_provider_rejection(self):
        client = email_client(lambda request: httpx.Response(422, json={"message": "bad sender"}))

        result = await client.send_email("carer@example.com", "Hi", "<p>x</p>")

        assert not result.success
        assert result.error == "HTTP 422"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await email_client(handler).send_email("carer@example.com", "Hi", "<p>x</p>")

        assert not result.success
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_missing_recipient(self):
        def handler(request):
            raise AssertionError("should not send")

        result = await email_client(handler).send_email("", "Hi", "<p>x</p>")

        assert not result.success


class TestLoggingClients:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_logging_email_client(self):
        client = LoggingEmailClient()

        result = await client.send_email("carer@example.com", "Hi", "<p>x</p>")

        assert result.message_id == "console_1"
        assert client.sent[0].subject == "Hi"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_logging_push_client(self):
        client = LoggingPushClient()

        assert await client.show_notification("Title", {"body": "text"})
        assert client.shown == [{"title": "Title", "options": {"body": "text"}}]


class TestWebhookPushClient:

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_posts_notification(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(204)

        client = WebhookPushClient("https://push.test/notify", transport=httpx.MockTransport(handler))

        assert await client.show_notification("Title", {"tag": "t"})
        assert seen["body"] == {"type": "SHOW_NOTIFICATION", "title": "Title", "options": {"tag": "t"}}

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_gateway_error_raises(self):
        client = WebhookPushClient(
            "https://push.test/notify",
            transport=httpx.MockTransport(lambda request: httpx.Response(502))
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.show_notification("Title", {})

"""Tests for webhook delivery with retries."""
import asyncio
import json

import httpx

from publisher_royalties.services.webhook_delivery import WebhookDeliveryService, serialize_event
from publisher_royalties.services.webhook_signing import derive_signing_key, verify

SECRET = "server-secret"
URL = "https://hooks.example.com/royalties"
EVENT = {"type": "statement.generated", "data": {"statement_id": "st_1", "net_payable": "2500.00"}}


def make_service(handler, sleeps, max_attempts=3, backoff=1.0):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return WebhookDeliveryService(
        transport=httpx.MockTransport(handler),
        max_attempts=max_attempts,
        backoff_seconds=backoff,
        server_secret=SECRET,
        sleep=fake_sleep,
    )


def deliver(service, **kwargs):
    return asyncio.run(service.deliver("sub_1", URL, EVENT, **kwargs))


class TestSuccessfulDelivery:

    def test_signed_post(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text="ok")

        result = deliver(make_service(handler, []), delivery_id="dlv_1")

        assert result.success
        assert result.attempts == 1
        assert result.status_code == 200
        assert result.response_body == "ok"

        request = requests[0]
        assert request.method == "POST"
        assert request.headers["X-Webhook-Id"] == "dlv_1"
        assert request.headers["X-Webhook-Event"] == "statement.generated"
        assert json.loads(request.content) == EVENT
        assert verify(request.content, request.headers["X-Webhook-Signature"], derive_signing_key("sub_1", SECRET))

    def test_serialization_is_stable(self):
        assert serialize_event({"b": 1, "a": 2}) == '{"a":2,"b":1}'


class TestRetries:

    def test_retries_server_errors_with_backoff(self):
        calls = []
        sleeps = []

        def handler(request):
            calls.append(request.headers["X-Webhook-Signature"])
            return httpx.Response(503 if len(calls) < 3 else 200)

        result = deliver(make_service(handler, sleeps, max_attempts=5, backoff=0.5))

        assert result.success
        assert result.attempts == 3
        assert sleeps == [0.5, 1.0]
        key = derive_signing_key("sub_1", SECRET)
        assert all(verify(serialize_event(EVENT), signature, key) for signature in calls)

    def test_rate_limited_until_attempts_exhausted(self):
        sleeps = []

        result = deliver(make_service(lambda request: httpx.Response(429), sleeps, max_attempts=3))

        assert not result.success
        assert result.attempts == 3
        assert result.error == "HTTP 429"
        assert sleeps == [1.0, 2.0]

    def test_client_error_not_retried(self):
        sleeps = []

        result = deliver(make_service(lambda request: httpx.Response(400, text="bad"), sleeps))

        assert not result.success
        assert result.attempts == 1
        assert result.error == "HTTP 400"
        assert sleeps == []

    def test_network_error_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(204)

        result = deliver(make_service(handler, []))

        assert result.success
        assert result.attempts == 2
        assert result.status_code == 204

    def test_network_error_reported_after_last_attempt(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = deliver(make_service(handler, [], max_attempts=2))

        assert not result.success
        assert result.status_code is None
        assert result.error == "connection refused"

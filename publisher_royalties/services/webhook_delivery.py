"""
Outbound webhook delivery.

Each attempt re-signs the payload with a fresh timestamp, so a retried
delivery never fails verification for being stale. Network errors, 5xx and
429 responses are retried with exponential backoff:

    delay = backoff_seconds * 2 ** (attempt - 1)

Other 4xx responses mean the receiver rejected the event and are final.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from publisher_royalties.core.config import settings
from publisher_royalties.services.webhook_signing import derive_signing_key, sign

logger = logging.getLogger(__name__)

USER_AGENT = "PublisherRoyalties-Webhook/1.0"
# Stored response bodies are truncated
MAX_RESPONSE_BODY = 1000


@dataclass
class DeliveryResult:
    delivery_id: str
    success: bool
    attempts: int
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0


def serialize_event(event: Dict[str, Any]) -> str:
    """Stable JSON encoding; the signature covers these exact bytes."""
    return json.dumps(event, sort_keys=True, separators=(",", ":"), default=str)


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


class WebhookDeliveryService:
    """Signs and POSTs webhook events, retrying transient failures."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        server_secret: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.transport = transport
        self.max_attempts = max_attempts or settings.WEBHOOK_MAX_ATTEMPTS
        self.backoff_seconds = settings.WEBHOOK_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.timeout_seconds = timeout_seconds or settings.WEBHOOK_TIMEOUT_SECONDS
        self.server_secret = server_secret
        self._sleep = sleep

    def _headers(self, delivery_id: str, event_type: str, payload: str, key: str) -> Dict[str, str]:
        timestamp = int(time.time())
        return {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-Webhook-Id": delivery_id,
            "X-Webhook-Event": event_type,
            "X-Webhook-Timestamp": str(timestamp),
            "X-Webhook-Signature": sign(payload, key, timestamp),
        }

    async def deliver(
        self,
        subscription_id: str,
        url: str,
        event: Dict[str, Any],
        delivery_id: Optional[str] = None,
    ) -> DeliveryResult:
        """
        Deliver one event to a subscriber.

        Args:
            subscription_id: Subscription the signing key is derived from
            url: Subscriber endpoint
            event: Event body; its "type" is sent as X-Webhook-Event
            delivery_id: Idempotency id sent as X-Webhook-Id (generated if None)

        Returns:
            DeliveryResult for the last attempt made
        """
        delivery_id = delivery_id or str(uuid.uuid4())
        event_type = str(event.get("type", ""))
        payload = serialize_event(event)
        key = derive_signing_key(subscription_id, self.server_secret)

        result = DeliveryResult(delivery_id=delivery_id, success=False, attempts=0)

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout_seconds) as client:
            for attempt in range(1, self.max_attempts + 1):
                result.attempts = attempt
                started = time.monotonic()
                retryable = True

                try:
                    response = await client.post(
                        url,
                        content=payload,
                        headers=self._headers(delivery_id, event_type, payload, key),
                    )
                    result.status_code = response.status_code
                    result.response_body = response.text[:MAX_RESPONSE_BODY]
                    result.success = response.is_success
                    result.error = None if response.is_success else f"HTTP {response.status_code}"
                    retryable = is_retryable_status(response.status_code)
                except httpx.TimeoutException:
                    result.status_code = None
                    result.response_body = None
                    result.error = f"Request timed out ({self.timeout_seconds}s)"
                except httpx.TransportError as e:
                    result.status_code = None
                    result.response_body = None
                    result.error = str(e) or type(e).__name__
                finally:
                    result.duration_ms = int((time.monotonic() - started) * 1000)

                if result.success:
                    logger.info(f"Delivered webhook {delivery_id} to {url} on attempt {attempt}")
                    return result

                if not retryable:
                    logger.warning(f"Webhook {delivery_id} rejected by {url}: {result.error}")
                    return result

                if attempt < self.max_attempts:
                    delay = self.backoff_seconds * 2 ** (attempt - 1)
                    logger.warning(
                        f"Webhook {delivery_id} attempt {attempt}/{self.max_attempts} failed "
                        f"({result.error}); retrying in {delay}s"
                    )
                    await self._sleep(delay)

        logger.error(f"Webhook {delivery_id} to {url} failed after {result.attempts} attempts: {result.error}")
        return result

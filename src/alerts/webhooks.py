"""Webhook classification and delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from src.alerts.models import Webhook, WebhookKind
from src.helpers.config import mask_webhook_url
from src.helpers.constants import WEBHOOK_MAX_RETRIES, WEBHOOK_RETRY_DELAY
from src.helpers.http import retry_async
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Iterable


logger = get_logger(__name__)


def classify_webhooks(urls: Iterable[str]) -> list[Webhook]:
    """Resolve the kind of every configured webhook URL.

    Unrecognized URLs are dropped with a warning and never receive a request.

    Example:
        ```python
        from src.alerts.webhooks import classify_webhooks

        webhooks = classify_webhooks(config.alert.webhook)
        ```
    """
    webhooks: list[Webhook] = []
    for url in urls:
        if not url:
            continue
        kind = WebhookKind.from_url(url)
        if kind is None:
            logger.warning("Unsupported webhook url %s, it will be ignored", mask_webhook_url(url))
            continue
        webhooks.append(Webhook(kind=kind, url=url))
    return webhooks


@retry_async(max_retries=WEBHOOK_MAX_RETRIES, delay=WEBHOOK_RETRY_DELAY)
async def _post_webhook(client: httpx.AsyncClient, webhook: Webhook, message: str) -> None:
    response = await client.post(webhook.url, json=webhook.kind.payload(message))
    response.raise_for_status()


async def send_webhook(client: httpx.AsyncClient, webhook: Webhook, message: str) -> bool:
    """Deliver a message to one webhook, retrying on failure.

    Returns:
        bool: True on success, False once every attempt failed
    """
    try:
        await _post_webhook(client, webhook, message)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(
            "Failed to send %s webhook alert to %s: %s",
            webhook.kind,
            mask_webhook_url(webhook.url),
            e,
        )
        return False

    logger.info("Sent %s webhook alert", webhook.kind)
    return True


__all__ = [
    "classify_webhooks",
    "send_webhook",
]

"""Fan-out of alert events to every configured notification channel.

Channels are resolved once from the configuration: each webhook URL is
classified into a WebhookKind and mail is enabled only when SMTP is fully
configured. A dispatch sends to all channels concurrently and one failing
channel never affects the others.

Example:
    ```python
    from src.alerts.dispatcher import AlertDispatcher

    dispatcher = AlertDispatcher.from_config(config.alert, http_client)
    dispatcher.submit(event)
    ...
    await dispatcher.drain()
    ```
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from typing import TYPE_CHECKING

from src.alerts.mail import MailSender
from src.alerts.webhooks import classify_webhooks, send_webhook
from src.helpers.constants import ALERT_TITLE, TIME_FORMAT
from src.helpers.errors import AlertBuildError
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Awaitable

    import httpx

    from src.alerts.models import AlertEvent, Webhook
    from src.helpers.config_models import AlertConfig


logger = get_logger(__name__)


def alert_time(now: datetime | None = None) -> str:
    """Format a timestamp the way alert messages show it."""
    return (now or datetime.now()).strftime(TIME_FORMAT)


def build_message(event: AlertEvent) -> str:
    """Render an alert event as a plain text message.

    Raises:
        AlertBuildError: If alert time, host or description is empty
    """
    if not (event.alert_time and event.host and event.description):
        msg = "alert time, host and description are required"
        raise AlertBuildError(msg)

    lines = [
        ALERT_TITLE,
        f"Alert Time: {event.alert_time}",
        f"IP: {event.host}",
        f"Message: {event.description}",
    ]
    if event.detail_url:
        lines.append(f"Url: {event.detail_url}")
    if event.signature_acc:
        lines.append(f"Signature Account: {event.signature_acc}")
    if event.container_id:
        lines.append(f"Container ID: {event.container_id}")
    if event.container_name:
        lines.append(f"Container Name: {event.container_name}")
    if event.block_number:
        lines.append(f"Block Number: {event.block_number}")
    return "\n".join(lines)


class AlertDispatcher:
    """Sends alert events to webhooks and mail."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        webhooks: list[Webhook] | None = None,
        mail: MailSender | None = None,
        *,
        enabled: bool = True,
    ) -> None:
        self.http_client = http_client
        self.webhooks = list(webhooks or [])
        self.mail = mail
        self._enabled = enabled
        self._tasks: set[asyncio.Task[list[bool]]] = set()

    @classmethod
    def from_config(cls, alert: AlertConfig, http_client: httpx.AsyncClient) -> AlertDispatcher:
        """Resolve channels from the ``alert`` configuration section."""
        dispatcher = cls(
            http_client,
            classify_webhooks(alert.webhook),
            MailSender.from_config(alert.email),
            enabled=alert.enable,
        )
        logger.info(
            "Alerting %s with %d webhooks, mail %s",
            "enabled" if alert.enable else "disabled",
            len(dispatcher.webhooks),
            "configured" if dispatcher.mail else "not configured",
        )
        return dispatcher

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value
        logger.info("Alerting %s", "enabled" if value else "disabled")

    @property
    def pending(self) -> int:
        """Number of submitted dispatches still running."""
        return len(self._tasks)

    async def dispatch(self, event: AlertEvent) -> list[bool]:
        """Send one event to every channel and wait for all of them.

        Returns:
            One delivery result per channel; empty when alerting is
            disabled or the event is rejected
        """
        if not self._enabled:
            return []

        try:
            message = build_message(event)
        except AlertBuildError as e:
            logger.error("Dropping alert for %s: %s", event.host or "unknown host", e)
            return []

        sends: list[Awaitable[bool]] = [
            send_webhook(self.http_client, webhook, message) for webhook in self.webhooks
        ]
        if self.mail is not None:
            sends.append(self.mail.send(message))
        if not sends:
            logger.warning("Alerting is enabled but no channel is configured")
            return []

        results = await asyncio.gather(*sends, return_exceptions=True)
        delivered: list[bool] = []
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Alert channel failed: %s", result)
                delivered.append(False)
            else:
                delivered.append(result)
        return delivered

    def submit(self, event: AlertEvent) -> asyncio.Task[list[bool]]:
        """Dispatch in the background; the task is tracked until it finishes."""
        task = asyncio.create_task(self.dispatch(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every submitted dispatch to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()


__all__ = [
    "AlertDispatcher",
    "alert_time",
    "build_message",
]

"""Alert events and notification channel kinds."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class AlertEvent(BaseModel):
    """A condition worth notifying an operator about.

    ``alert_time``, ``host`` and ``description`` are mandatory for a message
    to be built; every other field is rendered only when set.
    """

    alert_time: str
    host: str
    description: str
    detail_url: str = ""
    signature_acc: str = ""
    container_id: str = ""
    container_name: str = ""
    block_number: int = 0

    model_config = ConfigDict(frozen=True)


class WebhookKind(StrEnum):
    """Supported webhook services, each with its own JSON payload shape."""

    DISCORD = "discord"
    SLACK = "slack"
    TEAMS = "teams"
    LARK = "lark"
    DINGTALK = "dingtalk"
    WECHAT_WORK = "wechat_work"

    @classmethod
    def from_url(cls, url: str) -> "WebhookKind | None":
        """Classify a webhook URL by substring; None if unrecognized."""
        lowered = url.lower()
        for fragment, kind in _URL_FRAGMENTS:
            if fragment in lowered:
                return kind
        return None

    def payload(self, message: str) -> dict[str, Any]:
        """Shape ``message`` into the JSON body this service expects."""
        match self:
            case WebhookKind.DISCORD:
                return {"content": message}
            case WebhookKind.SLACK | WebhookKind.TEAMS:
                return {"text": message}
            case WebhookKind.LARK:
                return {"msg_type": "text", "content": {"text": message}}
            case WebhookKind.DINGTALK | WebhookKind.WECHAT_WORK:
                return {"msgtype": "text", "text": {"content": message}}


_URL_FRAGMENTS: tuple[tuple[str, WebhookKind], ...] = (
    ("discord", WebhookKind.DISCORD),
    ("slack", WebhookKind.SLACK),
    ("office", WebhookKind.TEAMS),
    ("dingtalk", WebhookKind.DINGTALK),
    ("larksuite", WebhookKind.LARK),
    ("feishu", WebhookKind.LARK),
    ("weixin", WebhookKind.WECHAT_WORK),
    ("qyapi", WebhookKind.WECHAT_WORK),
)


class Webhook(BaseModel):
    """A webhook destination whose kind was resolved at configuration load."""

    kind: WebhookKind
    url: str

    model_config = ConfigDict(frozen=True)


__all__ = [
    "AlertEvent",
    "Webhook",
    "WebhookKind",
]

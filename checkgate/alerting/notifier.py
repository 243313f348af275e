"""Alert notifier — posts alert lifecycle changes to a webhook.

Auto-detects Slack and Discord webhook URLs and formats the payload
accordingly. Other URLs receive the raw alert JSON plus a ``text`` field.
"""

from typing import Iterable, Optional

import httpx

from ..schemas import AlertTransition, TransitionAction
from ..utils.logging import get_logger

logger = get_logger("alerting.notifier")

_EVENT_NAMES = {
    TransitionAction.CREATE: "alert_created",
    TransitionAction.UPDATE: "alert_escalated",
    TransitionAction.RESOLVE: "alert_resolved",
}


def is_notifiable(transition: AlertTransition) -> bool:
    """Created, escalated and resolved alerts are announced; plain value refreshes are not."""
    if transition.action == TransitionAction.UPDATE:
        return transition.escalated
    return True


def build_message(transition: AlertTransition) -> str:
    alert = transition.alert
    if transition.action == TransitionAction.RESOLVE:
        return f"[RESOLVED] {alert.title} ({alert.key})"
    prefix = "ESCALATED" if transition.action == TransitionAction.UPDATE else alert.severity.value.upper()
    return f"[{prefix}] {alert.description or alert.title}"


def build_payload(url: str, transition: AlertTransition) -> dict:
    message = build_message(transition)
    if "hooks.slack.com" in url:
        return {"text": message}
    if "discord.com" in url:
        return {"content": message}
    return {
        "text": message,
        "event_type": _EVENT_NAMES[transition.action],
        "alert": transition.alert.model_dump(mode="json"),
    }


class AlertNotifier:
    """Sends notifiable transitions to ``webhook_url``. Never raises."""

    def __init__(self, webhook_url: Optional[str] = None, timeout_seconds: float = 10.0):
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def notify(self, transitions: Iterable[AlertTransition]) -> int:
        """Post each notifiable transition. Returns how many were delivered."""
        if not self._webhook_url:
            return 0
        pending = [t for t in transitions if is_notifiable(t)]
        if not pending:
            return 0

        delivered = 0
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for transition in pending:
                if await self._send(client, transition):
                    delivered += 1
        return delivered

    async def _send(self, client: httpx.AsyncClient, transition: AlertTransition) -> bool:
        url = self._webhook_url
        try:
            response = await client.post(url, json=build_payload(url, transition))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "webhook_http_error",
                url=url,
                status=exc.response.status_code,
                body=exc.response.text[:500],
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("webhook_send_error", url=url, error=str(exc))
            return False
        logger.info("webhook_sent", url=url, alert_id=transition.alert.id, action=transition.action.value)
        return True

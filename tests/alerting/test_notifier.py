"""Tests for AlertNotifier — webhook delivery and payload formatting."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from checkgate.alerting import AlertNotifier
from checkgate.alerting.notifier import build_payload, is_notifiable
from checkgate.engine.alert_evaluator import evaluate
from checkgate.schemas import AlertSeverity, AlertThresholds, AlertTransition, TransitionAction

from conftest import BASE_TIME, build_host_snapshot

WEBHOOK_URL = "https://hooks.example.com/checkgate"


def _created(cpu=97.0) -> AlertTransition:
    [transition] = evaluate(build_host_snapshot(cpu=cpu), None, AlertThresholds(), {}, BASE_TIME)
    return transition.model_copy(update={"alert": transition.alert.model_copy(update={"id": 7})})


def _mock_httpx_response(status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status = MagicMock()
    return response


def _mock_client(post):
    mock_client = AsyncMock()
    mock_client.post = post
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


class TestNotifiable:
    def test_create_and_resolve_are_notifiable(self):
        created = _created()
        resolved = AlertTransition(action=TransitionAction.RESOLVE, alert=created.alert)
        assert is_notifiable(created)
        assert is_notifiable(resolved)

    def test_plain_update_is_not(self):
        alert = _created().alert
        refresh = AlertTransition(
            action=TransitionAction.UPDATE, alert=alert, previous_severity=AlertSeverity.CRITICAL
        )
        escalation = AlertTransition(
            action=TransitionAction.UPDATE, alert=alert, previous_severity=AlertSeverity.WARNING
        )
        assert not is_notifiable(refresh)
        assert is_notifiable(escalation)


class TestPayload:
    def test_slack(self):
        payload = build_payload("https://hooks.slack.com/services/T00/B00/xxx", _created())
        assert list(payload) == ["text"]
        assert payload["text"].startswith("[CRITICAL]")
        assert "web-01" in payload["text"]

    def test_discord(self):
        payload = build_payload("https://discord.com/api/webhooks/1/abc", _created())
        assert list(payload) == ["content"]

    def test_generic(self):
        payload = build_payload(WEBHOOK_URL, _created())
        assert payload["event_type"] == "alert_created"
        assert payload["alert"]["id"] == 7
        assert payload["alert"]["severity"] == "critical"
        assert payload["alert"]["created_at"].startswith("2026-03-01T12:00:00")


class TestNotify:
    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        notifier = AlertNotifier()
        assert not notifier.enabled
        with patch("checkgate.alerting.notifier.httpx.AsyncClient") as MockClient:
            assert await notifier.notify([_created()]) == 0
        MockClient.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_each_notifiable_transition(self):
        post = AsyncMock(return_value=_mock_httpx_response())
        refresh = AlertTransition(
            action=TransitionAction.UPDATE, alert=_created().alert, previous_severity=AlertSeverity.CRITICAL
        )
        with patch("checkgate.alerting.notifier.httpx.AsyncClient") as MockClient:
            MockClient.return_value = _mock_client(post)
            delivered = await AlertNotifier(WEBHOOK_URL).notify([_created(), refresh])

        assert delivered == 1
        post.assert_called_once()
        assert post.call_args[0][0] == WEBHOOK_URL
        assert post.call_args[1]["json"]["event_type"] == "alert_created"

    @pytest.mark.asyncio
    async def test_http_error_is_not_raised(self):
        request = httpx.Request("POST", WEBHOOK_URL)
        response = _mock_httpx_response(status_code=500)
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "server error", request=request, response=httpx.Response(500, text="boom", request=request)
        )
        post = AsyncMock(return_value=response)
        with patch("checkgate.alerting.notifier.httpx.AsyncClient") as MockClient:
            MockClient.return_value = _mock_client(post)
            assert await AlertNotifier(WEBHOOK_URL).notify([_created()]) == 0

    @pytest.mark.asyncio
    async def test_connection_error_is_not_raised(self):
        post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        with patch("checkgate.alerting.notifier.httpx.AsyncClient") as MockClient:
            MockClient.return_value = _mock_client(post)
            assert await AlertNotifier(WEBHOOK_URL).notify([_created(), _created(cpu=85.0)]) == 0
        assert post.call_count == 2

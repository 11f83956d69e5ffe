"""Tests for the scheduled polling endpoints."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from factories import NOW

from intake.core.config import settings
from intake.orchestration.background import drain


class TestCronAuth:
    """Tests for cron bearer authentication."""

    @pytest.mark.asyncio
    async def test_missing_secret_configuration_is_503(self, client, monkeypatch) -> None:
        """Without CRON_SECRET the endpoints are unavailable."""
        monkeypatch.setattr(settings, "cron_secret", None)

        response = await client.get("/api/cron/poll-storage", headers={"Authorization": "Bearer x"})

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_wrong_secret_is_401(self, client, cron_secret) -> None:
        """A wrong or missing bearer token is rejected."""
        wrong = await client.get("/api/cron/poll-storage", headers={"Authorization": "Bearer nope"})
        missing = await client.get("/api/cron/poll-storage")

        assert wrong.status_code == 401
        assert missing.status_code == 401


class TestPollStorage:
    """Tests for GET /api/cron/poll-storage."""

    @pytest.mark.asyncio
    async def test_returns_queued_summary(self, client, cron_secret) -> None:
        """The default collecting engagement is queued; the body uses camelCase."""
        with patch("intake.orchestration.poller.poll_engagement", new_callable=AsyncMock) as poll_engagement:
            response = await client.get(
                "/api/cron/poll-storage", headers={"Authorization": f"Bearer {cron_secret}"}
            )
            await drain(timeout=5)

        assert response.status_code == 200
        assert response.json() == {"queued": 1, "retriedStuck": 0}
        poll_engagement.assert_awaited_once()


class TestCheckReminders:
    """Tests for GET /api/cron/check-reminders."""

    @pytest.mark.asyncio
    async def test_reports_reminded_engagements(self, client, cron_secret, store, mock_dispatcher) -> None:
        """Stale engagements are reminded and listed."""
        await store.update(
            "eng-1", last_activity_at=NOW - timedelta(days=settings.reminder_after_days + 30)
        )

        response = await client.get(
            "/api/cron/check-reminders", headers={"Authorization": f"Bearer {cron_secret}"}
        )
        await drain(timeout=5)

        assert response.status_code == 200
        assert response.json() == {"checked": 1, "engagementIds": ["eng-1"]}
        assert mock_dispatcher.dispatch.await_args.args[0].type == "stale_engagement"

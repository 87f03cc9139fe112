"""Tests for moderation API error mapping and route handlers."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from botdefend.core.exceptions import (
    AuthError,
    BotDefendError,
    ClassifierProviderError,
    CredentialError,
    CredentialPoolExhausted,
    InvalidUrlError,
    ModerationActionError,
    NoActiveSessionError,
    NotLiveError,
    QuotaExceededError,
    QuotaExhaustedError,
    TransportError,
)
from botdefend.modules.moderation import router as moderation_router
from botdefend.modules.moderation.models import ActionKind
from botdefend.modules.moderation.schemas import ManualActionRequest, StartSessionRequest


def make_orchestrator() -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.snapshot.return_value = {
        "running": True,
        "session_id": "chat-123",
        "stats": {"total_chat": 0},
        "moderator_status": None,
        "advisory": None,
        "polling_interval_ms": 3000,
        "bot_count": 1,
        "bot_source": "local",
        "last_error": None,
        "log": [],
    }
    return orchestrator


class TestErrorMapping:

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (InvalidUrlError("bad"), 400),
            (NotLiveError("offline"), 404),
            (AuthError("revoked"), 401),
            (CredentialError("refresh failed"), 401),
            (TransportError("down"), 502),
            (QuotaExceededError("quota"), 502),
            (CredentialPoolExhausted("no bots"), 503),
            (QuotaExhaustedError("no keys"), 503),
            (NoActiveSessionError("idle"), 409),
            (ModerationActionError("nope", forbidden=True), 403),
            (ModerationActionError("failed"), 502),
            (ClassifierProviderError("ai down"), 500),
            (BotDefendError("unknown"), 500),
        ],
    )
    def test_status_codes(self, error, status_code):
        exc = moderation_router.to_http_exception(error)

        assert exc.status_code == status_code
        assert exc.detail["reason"] == error.reason
        assert exc.detail["message"] == error.describe()


class TestRoutes:

    @pytest.mark.asyncio
    async def test_start_session_returns_snapshot(self):
        orchestrator = make_orchestrator()
        orchestrator.start_session = AsyncMock(return_value="chat-123")
        request = StartSessionRequest(url="https://youtu.be/dQw4w9WgXcQ")

        response = await moderation_router.start_session(request, orchestrator)

        assert response.session_id == "chat-123"
        orchestrator.start_session.assert_awaited_once_with(request.url, request.settings)

    @pytest.mark.asyncio
    async def test_start_session_maps_errors(self):
        orchestrator = make_orchestrator()
        orchestrator.start_session = AsyncMock(side_effect=NotLiveError("not live"))

        with pytest.raises(HTTPException) as exc_info:
            await moderation_router.start_session(StartSessionRequest(url="https://youtu.be/x"), orchestrator)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_stop_session(self):
        orchestrator = make_orchestrator()

        await moderation_router.stop_session(orchestrator)

        orchestrator.stop_session.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_manual_action(self):
        orchestrator = make_orchestrator()
        orchestrator.take_manual_action = AsyncMock(return_value=2)

        response = await moderation_router.take_manual_action(
            ManualActionRequest(kind="ban", target_id="UC-x"), orchestrator
        )

        assert response.kind == ActionKind.BAN
        assert response.success is True
        assert response.updated_entries == 2

    @pytest.mark.asyncio
    async def test_manual_action_forbidden(self):
        orchestrator = make_orchestrator()
        orchestrator.take_manual_action = AsyncMock(
            side_effect=ModerationActionError("not a moderator", forbidden=True)
        )

        with pytest.raises(HTTPException) as exc_info:
            await moderation_router.take_manual_action(
                ManualActionRequest(kind="delete", target_id="msg-1"), orchestrator
            )

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_export_log(self):
        orchestrator = make_orchestrator()
        orchestrator.export_filename.return_value = "moderation-log-2024-05-01.json"
        orchestrator.export_log.return_value = [
            {
                "time": "2024-05-01T10:00:00+00:00",
                "kind": "deleted",
                "author": "Spammer",
                "text": "slot gacor",
                "score": 70,
                "keywords": "slot, gacor",
                "actionTaken": True,
            }
        ]

        response = await moderation_router.export_log(orchestrator)

        assert response.filename == "moderation-log-2024-05-01.json"
        assert response.entries[0].actionTaken is True

    @pytest.mark.asyncio
    async def test_list_bots_without_api_keys(self):
        orchestrator = make_orchestrator()
        orchestrator.source.api_keys = None
        orchestrator.pool.source = "remote"
        orchestrator.pool.describe.return_value = [
            {"id": "1", "name": "Guard Bot", "channel_id": "UC1", "origin": "remote"}
        ]

        response = await moderation_router.list_bots(orchestrator)

        assert response.source == "remote"
        assert response.bots[0]["name"] == "Guard Bot"
        assert response.quota is None

"""Tests for moderator authority tracking."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from botdefend.core.exceptions import CredentialPoolExhausted, TransportError
from botdefend.modules.chat.youtube_api import YouTubeAPIError
from botdefend.modules.credentials.models import BotIdentity
from botdefend.modules.moderation.authority import ASSUMED_MODERATOR_NOTE, ModeratorAuthority
from botdefend.modules.moderation.models import ModeratorState


SESSION = "chat-123"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_source(list_result=None, list_error: Exception = None, acquire_error: Exception = None) -> MagicMock:
    source = MagicMock()
    if acquire_error is not None:
        source.pool.acquire = AsyncMock(side_effect=acquire_error)
    else:
        identity = BotIdentity(
            id="1", display_name="Guard Bot", access_token="tok", refresh_token="rt", channel_id="UC-bot"
        )
        source.pool.acquire = AsyncMock(return_value=(identity, "tok"))
    if list_error is not None:
        source.list_moderators = AsyncMock(side_effect=list_error)
    else:
        source.list_moderators = AsyncMock(return_value=list_result or {"items": []})
    return source


def forbidden() -> YouTubeAPIError:
    return YouTubeAPIError(
        "Failed to list moderators: 403",
        status_code=403,
        details={"error": {"message": "forbidden", "errors": [{"reason": "forbidden"}]}},
    )


class TestCheck:
    """Status checks distinguish owner, assumed moderator and failure."""

    @pytest.mark.asyncio
    async def test_owner_is_confirmed(self):
        authority = ModeratorAuthority(make_source(), clock=FakeClock())

        record = await authority.check(SESSION)

        assert record.state == ModeratorState.OWNER_CONFIRMED
        assert record.is_owner and record.is_moderator
        assert record.bot_name == "Guard Bot"
        assert record.channel_id == "UC-bot"
        assert authority.cached(SESSION) is record

    @pytest.mark.asyncio
    async def test_forbidden_means_assumed_moderator(self):
        source = make_source(list_error=forbidden())
        authority = ModeratorAuthority(source, clock=FakeClock())

        record = await authority.check(SESSION)
        again = await authority.check(SESSION)

        assert record.state == ModeratorState.MOD_ASSUMED
        assert record.is_moderator is True
        assert record.error == ASSUMED_MODERATOR_NOTE
        assert not record.is_confirmed
        assert again is record
        assert source.list_moderators.await_count == 1

    @pytest.mark.asyncio
    async def test_other_api_error_is_denied_and_not_cached(self):
        error = YouTubeAPIError("boom", status_code=500, details={})
        source = make_source(list_error=error)
        authority = ModeratorAuthority(source, clock=FakeClock())

        record = await authority.check(SESSION)
        await authority.check(SESSION)

        assert record.state == ModeratorState.MOD_DENIED
        assert record.is_moderator is False
        assert authority.cached(SESSION) is None
        assert authority.latest(SESSION).state == ModeratorState.MOD_DENIED
        assert source.list_moderators.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"acquire_error": CredentialPoolExhausted("no bots")},
            {"list_error": TransportError("network down")},
        ],
    )
    async def test_pipeline_errors_are_denied(self, kwargs):
        authority = ModeratorAuthority(make_source(**kwargs), clock=FakeClock())

        record = await authority.check(SESSION)

        assert record.state == ModeratorState.MOD_DENIED
        assert not authority.permits(SESSION)

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self):
        clock = FakeClock()
        source = make_source()
        authority = ModeratorAuthority(source, ttl_seconds=300, clock=clock)

        await authority.check(SESSION)
        clock.now += 299
        await authority.check(SESSION)
        assert source.list_moderators.await_count == 1

        clock.now += 1
        assert authority.cached(SESSION) is None
        await authority.check(SESSION)
        assert source.list_moderators.await_count == 2

    @pytest.mark.asyncio
    async def test_sessions_are_cached_separately(self):
        source = make_source()
        authority = ModeratorAuthority(source, clock=FakeClock())

        await authority.check("chat-a")
        await authority.check("chat-b")

        assert source.list_moderators.await_count == 2


class TestConfirm:
    """Real action outcomes settle the assumed status."""

    @pytest.mark.asyncio
    async def test_success_confirms_assumed_moderator(self):
        authority = ModeratorAuthority(make_source(list_error=forbidden()), clock=FakeClock())
        await authority.check(SESSION)

        record = authority.confirm(SESSION, True)

        assert record.state == ModeratorState.MOD_CONFIRMED
        assert record.is_confirmed
        assert record.bot_name == "Guard Bot"
        assert authority.cached(SESSION) is record

    @pytest.mark.asyncio
    async def test_confirm_keeps_owner_flag(self):
        authority = ModeratorAuthority(make_source(), clock=FakeClock())
        await authority.check(SESSION)

        assert authority.confirm(SESSION, True).is_owner

    @pytest.mark.asyncio
    async def test_forbidden_action_denies(self):
        authority = ModeratorAuthority(make_source(list_error=forbidden()), clock=FakeClock())
        await authority.check(SESSION)

        record = authority.confirm(SESSION, False)

        assert record.state == ModeratorState.MOD_DENIED
        assert record.is_moderator is False
        assert authority.cached(SESSION) is record
        assert not authority.permits(SESSION)


class TestPermitsAndInvalidate:

    def test_unknown_session_is_permitted(self):
        assert ModeratorAuthority(make_source()).permits(SESSION)

    def test_invalidate_one_session(self):
        authority = ModeratorAuthority(make_source(), clock=FakeClock())
        authority.confirm("chat-a", False)
        authority.confirm("chat-b", False)

        authority.invalidate("chat-a")

        assert authority.permits("chat-a")
        assert not authority.permits("chat-b")

    def test_invalidate_all(self):
        authority = ModeratorAuthority(make_source(), clock=FakeClock())
        authority.confirm("chat-a", False)
        authority.confirm("chat-b", False)

        authority.invalidate()

        assert authority.latest("chat-a") is None
        assert authority.latest("chat-b") is None

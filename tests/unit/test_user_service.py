import pytest

from presence_monitor.core.exceptions import ConflictError, MalformedInputError, NotFoundError, UnauthorizedError
from presence_monitor.core.models import DEFAULT_ALERT_THRESHOLD


class TestUserService:
    """Accounts, login and settings."""

    @pytest.mark.asyncio
    async def test_signup_creates_default_settings(self, user_service, clock):
        user = await user_service.signup("Owner@Example.com ", "secret-pass", "Owner")

        assert user.email == "owner@example.com"
        assert user.created_at == clock.now
        assert user.settings.notifications_enabled is True
        assert user.settings.alert_threshold == DEFAULT_ALERT_THRESHOLD
        assert user.password_hash and user.password_hash != "secret-pass"
        assert "password_hash" not in user.to_dict()

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, user_service):
        await user_service.signup("owner@example.com", "secret-pass")
        with pytest.raises(ConflictError):
            await user_service.signup("OWNER@example.com", "other")

    @pytest.mark.asyncio
    async def test_signup_requires_credentials(self, user_service):
        with pytest.raises(MalformedInputError):
            await user_service.signup("", "secret-pass")

    @pytest.mark.asyncio
    async def test_login_issues_token_for_user(self, user_service):
        user = await user_service.signup("owner@example.com", "secret-pass")
        result = await user_service.login("owner@example.com", "secret-pass")

        assert result["token_type"] == "bearer"
        assert result["user"]["id"] == user.id
        assert (await user_service.user_from_token(result["access_token"])).id == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, user_service):
        await user_service.signup("owner@example.com", "secret-pass")
        with pytest.raises(UnauthorizedError):
            await user_service.login("owner@example.com", "wrong")

    @pytest.mark.asyncio
    async def test_unknown_email(self, user_service):
        with pytest.raises(UnauthorizedError):
            await user_service.login("nobody@example.com", "secret-pass")

    @pytest.mark.asyncio
    async def test_garbage_token(self, user_service):
        with pytest.raises(UnauthorizedError):
            await user_service.user_from_token("not-a-jwt")

    @pytest.mark.asyncio
    async def test_update_settings_merges(self, user_service, clock):
        user = await user_service.signup("owner@example.com", "secret-pass")
        clock.advance(minutes=1)
        await user_service.update_settings(user.id, {"alert_threshold": 70, "quiet_mode": True})
        updated = await user_service.update_settings(user.id, {"notifications_enabled": False})

        assert updated.settings.alert_threshold == 70
        assert updated.settings.notifications_enabled is False
        assert updated.settings.extra == {"quiet_mode": True}
        assert updated.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_get_unknown_user(self, user_service):
        with pytest.raises(NotFoundError):
            await user_service.get_user("missing")

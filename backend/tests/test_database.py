"""
Database wiring, configuration validation and admin seeding tests.
"""
import pytest
from sqlalchemy import text

import init_db
from dao.user_dao import UserDAO
from models.user import UserRole
from services.auth import verify_password
from services.db import Base, get_db, DATABASE_URL
from services.security import SecurityConfig

class TestDatabaseConnection:
    """Test database connectivity and basic operations."""

    def test_database_url_from_environment(self):
        """conftest points the application engine at in-memory SQLite."""
        assert DATABASE_URL.startswith("sqlite+aiosqlite://")

    async def test_get_db_session(self):
        """The request dependency yields a working session."""
        async for db in get_db():
            result = await db.execute(text("SELECT 1"))
            assert result.scalar() == 1
            break

    def test_all_tables_registered(self):
        assert {
            "users", "sessions", "share_links", "invites", "photos", "albums", "album_photos", "tags", "photo_tags"
        } <= set(Base.metadata.tables)

class TestConfiguration:
    """Environment-driven settings and their validation."""

    def test_defaults(self, monkeypatch):
        for name in ("SESSION_EXPIRES_DAYS", "SHARE_EXPIRES_HOURS", "INVITE_EXPIRES_DAYS",
                     "MEDIA_DELIVERY", "MAX_UPLOAD_MB"):
            monkeypatch.delenv(name, raising=False)

        config = SecurityConfig()

        assert config.session_expires_days == 14
        assert config.share_expires_hours == 24
        assert config.invite_expires_days == 7
        assert config.media_delivery == "x-accel"
        assert config.max_upload_bytes == 25 * 1024 * 1024

    def test_unknown_delivery_mode_is_fatal(self, monkeypatch):
        monkeypatch.setenv("MEDIA_DELIVERY", "s3")
        with pytest.raises(ValueError):
            SecurityConfig()

    def test_non_positive_lifetime_is_fatal(self, monkeypatch):
        monkeypatch.setenv("SHARE_EXPIRES_HOURS", "0")
        with pytest.raises(ValueError):
            SecurityConfig()

    def test_weak_settings_only_warn(self, monkeypatch, caplog):
        monkeypatch.setenv("COOKIE_SECURE", "false")
        SecurityConfig()
        assert "COOKIE_SECURE is disabled" in caplog.text

class TestAdminSeed:
    """init_db.seed_admin creates the admin or repairs an existing account."""

    @pytest.fixture(autouse=True)
    def use_test_database(self, monkeypatch, session_factory):
        monkeypatch.setattr(init_db, "SessionLocal", session_factory)

    async def test_creates_admin(self, db_session):
        await init_db.seed_admin("Owner@Example.com", "first-password")

        user = await UserDAO(db_session).get_by_email("owner@example.com")
        assert user.role == UserRole.ADMIN
        assert verify_password("first-password", user.password_hash)

    async def test_reseeding_resets_password_and_role(self, db_session, viewer_user):
        email = viewer_user.email
        await init_db.seed_admin(email, "new-password")

        # seed_admin commits through its own session; drop our cached copy
        db_session.expire_all()
        user = await UserDAO(db_session).get_by_email(email)
        assert user.role == UserRole.ADMIN
        assert verify_password("new-password", user.password_hash)

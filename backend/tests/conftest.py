"""
Pytest configuration and fixtures.
Provides an in-memory database, users, a temporary media root, an ASGI client
per role and Pillow-generated images.
"""
import os

# Must be set before services.db builds the application engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("COOKIE_SECURE", "false")

import pytest
from io import BytesIO
from typing import AsyncGenerator, List, Tuple
from datetime import timedelta
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from services.db import Base, get_db
import models.invite  # noqa: F401
import models.photo  # noqa: F401
import models.session  # noqa: F401
import models.share_link  # noqa: F401
from models.user import User, UserRole
from dao.user_dao import UserDAO
from dao.session_dao import SessionDAO
from services.auth import get_password_hash
from services.email import InviteMailer, get_invite_mailer
from services.file_storage import MediaStore, get_media_store
from services.rate_limiter import rate_limiter
from services.security import SecurityUtils, SESSION_COOKIE_NAME

# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPassword123!"
VIEWER_EMAIL = "viewer@example.com"
VIEWER_PASSWORD = "ViewerPassword123!"

@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()

async def create_user(db: AsyncSession, email: str, password: str, role: UserRole) -> User:
    return await UserDAO(db).create_user(
        User(email=email, password_hash=get_password_hash(password), role=role)
    )

@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, ADMIN_EMAIL, ADMIN_PASSWORD, UserRole.ADMIN)

@pytest.fixture
async def viewer_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, VIEWER_EMAIL, VIEWER_PASSWORD, UserRole.VIEWER)

@pytest.fixture
def media_store(tmp_path) -> MediaStore:
    """Media root under tmp_path, served directly instead of through nginx."""
    return MediaStore(str(tmp_path / "media"), delivery="direct")

class RecordingMailer(InviteMailer):
    """Records invites instead of sending them."""

    def __init__(self):
        super().__init__(api_key="", sender="no-reply@example.com", app_url="http://gallery.test")
        self.sent: List[Tuple[str, str]] = []

    async def send_invite(self, to: str, token: str):
        self.sent.append((to, token))

@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()

@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()

@pytest.fixture
def app(session_factory, media_store, mailer):
    from main import app as fastapi_app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_media_store] = lambda: media_store
    fastapi_app.dependency_overrides[get_invite_mailer] = lambda: mailer
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()

def make_client(app) -> AsyncClient:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    return AsyncClient(transport=transport, base_url="http://testserver")

@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous client."""
    async with make_client(app) as ac:
        yield ac

async def login(client: AsyncClient, email: str, password: str):
    response = await client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response

@pytest.fixture
async def admin_client(app, admin_user) -> AsyncGenerator[AsyncClient, None]:
    async with make_client(app) as ac:
        await login(ac, ADMIN_EMAIL, ADMIN_PASSWORD)
        yield ac

@pytest.fixture
async def viewer_client(app, viewer_user) -> AsyncGenerator[AsyncClient, None]:
    async with make_client(app) as ac:
        await login(ac, VIEWER_EMAIL, VIEWER_PASSWORD)
        yield ac

@pytest.fixture
def make_image():
    """Encode a solid-colour test image; optionally tag it with an EXIF orientation."""
    def _make_image(width: int = 100, height: int = 80, format: str = "JPEG",
                    mode: str = "RGB", orientation: int = None) -> bytes:
        color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
        img = Image.new(mode, (width, height), color)
        buffer = BytesIO()
        save_kwargs = {}
        if orientation is not None:
            exif = Image.Exif()
            exif[0x0112] = orientation
            save_kwargs["exif"] = exif.tobytes()
        img.save(buffer, format=format, **save_kwargs)
        return buffer.getvalue()
    return _make_image

@pytest.fixture
def expire_session(db_session):
    """Push a session's expiry into the past."""
    async def _expire(token: str):
        record = await SessionDAO(db_session).get_by_token(token)
        record.expires_at = SecurityUtils.get_utc_now() - timedelta(minutes=1)
        await db_session.commit()
    return _expire

def session_cookie(client: AsyncClient) -> str:
    return client.cookies.get(SESSION_COOKIE_NAME)

"""
SpecDate Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment overrides are set before any `app` import so settings,
       the retry decorators and the storage root all pick them up.

Fixture Hierarchy (all function-scoped):
    db_engine        fresh SQLite file per test, schema from Base.metadata
    session_factory  async sessions bound to that engine
    db_session       one session for service-level tests
    client           httpx AsyncClient over ASGITransport; each request gets
                     its own session, committed like get_db_session does
    make_user        inserts a user (complete profile by default) and
                     returns (user_id, token)
"""

import itertools
import os
import tempfile

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any app import)
# ══════════════════════════════════════════════════════════════════════════

_TEST_ROOT = tempfile.mkdtemp(prefix="specdate_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/app.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_ROOT, "storage")
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-0123456789"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["RETRY_MAX_ATTEMPTS"] = "2"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["RETRY_JITTER"] = "0"
os.environ["PUSHER_APP_ID"] = ""
os.environ["PUSHER_KEY"] = ""
os.environ["PUSHER_SECRET"] = ""
os.environ["ONESIGNAL_APP_ID"] = ""
os.environ["ONESIGNAL_API_KEY"] = ""

from datetime import date  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.database import Base, enable_sqlite_foreign_keys, get_db_session  # noqa: E402
from app.models import User, UserProfile  # noqa: E402
from app.security import create_access_token, hash_password  # noqa: E402
from app.services.otp_service import otp_service  # noqa: E402
from app.services.spark_service import spark_service  # noqa: E402

PASSWORD = "secret123"

_mobile_numbers = itertools.count(1)

COMPLETE_PROFILE = {
    "full_name": "Test Person",
    "dob": date(1995, 6, 15),
    "sex": "Female",
    "height": 170,
    "city": "London",
    "state": "England",
    "country": "United Kingdom",
    "occupation": "Engineer",
    "qualification": "BSc",
    "sexual_orientation": "Straight",
    "hobbies": ["hiking", "chess"],
    "is_smoker": False,
    "is_drug_user": False,
    "religion": "None",
}


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def client(session_factory):
    from app.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_otp_store():
    otp_service.store.clear()
    yield
    otp_service.store.clear()


# ══════════════════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user(session_factory):
    """
    Factory: `await make_user("alice")` → (user_id, token).

    complete=False leaves the profile with only a city; blue_sparks overrides
    the starting balance.
    """

    async def _make_user(username, complete=True, blue_sparks=None, paused=False, **profile):
        async with session_factory() as session:
            user = User(
                name=username.capitalize(),
                username=username,
                email=f"{username}@example.com",
                mobile=f"+44700{next(_mobile_numbers):06d}",
                password_hash=hash_password(PASSWORD),
                terms_accepted=True,
                is_paused=paused,
                token_version=1,
            )
            fields = dict(COMPLETE_PROFILE) if complete else {"city": "London"}
            fields.update(profile)
            user.profile = UserProfile(**fields)
            spark_service.initialize_for_user(user)
            if blue_sparks is not None:
                user.balance.blue_sparks = blue_sparks
            session.add(user)
            await session.commit()
            return user.id, create_access_token(user.id, user.token_version)

    return _make_user


@pytest.fixture
def sample_image_bytes():
    """Smallest JPEG the validators accept: SOI + JFIF header + EOI."""
    return (
        b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
        b"\xff\xd9"
    )

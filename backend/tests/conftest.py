import socket
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from waypoint.core.auth import AccessTokenIssuer
from waypoint.core.config import AuthConfig, settings
from waypoint.models import Base

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user identity (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "test@example.com"

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

TEST_ISSUER = "waypoint"

TEST_AUTH_CONFIG = AuthConfig(signing_key=TEST_AUTH_SECRET, issuer=TEST_ISSUER)


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    email: str = TEST_USER_EMAIL,
    secret: str = TEST_AUTH_SECRET,
    issuer: str = TEST_ISSUER,
    expires_delta: timedelta | None = None,
    iat: datetime | None = None,
) -> str:
    """Create a signed access token for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        email: Value of the email claim.
        secret: Signing secret (must match TEST_AUTH_CONFIG in tests).
        issuer: Value of the iss claim.
        expires_delta: Time until expiration. Defaults to 15 minutes.
            Negative values produce an already expired token.
        iat: Issued-at time. Defaults to now.

    Returns:
        Encoded JWT string.
    """
    now = iat or datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iss": issuer,
        "iat": now,
        "exp": now + (expires_delta if expires_delta is not None else timedelta(minutes=15)),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest.fixture
def auth_config() -> AuthConfig:
    return TEST_AUTH_CONFIG


@pytest.fixture
def token_issuer(auth_config: AuthConfig) -> AccessTokenIssuer:
    return AccessTokenIssuer.from_config(auth_config)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession):
    """Create a verified test user in the database.

    Yields:
        User model instance.
    """
    from waypoint.models import User

    user = User(user_id=TEST_USER_ID, email=TEST_USER_EMAIL, email_verified=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    yield user


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client backed by the test database.

    Sets up:
    - get_db override with the same commit/rollback behaviour as production
    - Auth configuration signed with TEST_AUTH_SECRET
    - Rate limiting disabled
    - https base URL so Secure cookies round-trip

    Args:
        db_engine: Test database engine from db_engine fixture.

    Yields:
        AsyncClient for making API requests.
    """
    from waypoint.core.auth import get_access_token_issuer, get_auth_config
    from waypoint.core.database import get_db
    from waypoint.core.rate_limiting import limiter
    from waypoint.main import app

    test_session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_config] = lambda: TEST_AUTH_CONFIG
    app.dependency_overrides[get_access_token_issuer] = (
        lambda: AccessTokenIssuer.from_config(TEST_AUTH_CONFIG)
    )

    original_limiter_enabled = limiter.enabled
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        yield ac

    limiter.enabled = original_limiter_enabled
    app.dependency_overrides.clear()

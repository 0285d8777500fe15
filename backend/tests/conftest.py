"""
School Info Hub - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator, Awaitable, Callable, Dict

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

# Set testing environment before the settings object is created
_TMP_DIR = tempfile.mkdtemp(prefix="infohub-tests-")
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DEBUG'] = 'false'
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['CACHE_BACKEND'] = 'memory'
os.environ['UPLOAD_DIR'] = os.path.join(_TMP_DIR, 'uploads')
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''

from sqlalchemy.ext.asyncio import AsyncSession

from infohub.main import app
from infohub.core.database import AsyncSessionLocal, Base, close_db, get_engine, init_db
from infohub.core.rbac import Role
from infohub.core.security import create_access_token, get_password_hash
from infohub.models.user import ApprovalStatus, User
from infohub.services.email_queue import email_queue
from infohub.services.performance import performance_log, query_monitor
from infohub.services.response_cache import response_cache

fake = Faker()

TEST_PASSWORD = 'testpassword123'


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema for each test; the app's own engine so routes see the same data"""
    await init_db()

    async with AsyncSessionLocal() as session:
        yield session
        await session.rollback()

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


@pytest.fixture(autouse=True)
async def reset_process_state():
    """Response cache, metrics and the email queue are process-wide singletons"""
    await response_cache.clear()
    performance_log.clear()
    query_monitor.clear()
    email_queue.clear()
    yield
    await response_cache.clear()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client talking to the app in-process"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory for approved, active users of a given role"""

    async def _make(role: Role = Role.PARENT, password: str = TEST_PASSWORD, **overrides) -> User:
        fields = dict(
            email=fake.unique.email().lower(),
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            hashed_password=get_password_hash(password),
            role=role,
            is_active=True,
            approval_status=ApprovalStatus.APPROVED,
        )
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(Role.ADMIN)


@pytest.fixture
async def office_user(make_user) -> User:
    return await make_user(Role.OFFICE_MEMBER)


@pytest.fixture
async def teacher_user(make_user) -> User:
    return await make_user(Role.TEACHER)


@pytest.fixture
async def parent_user(make_user) -> User:
    return await make_user(Role.PARENT)


def headers_for(user: User) -> Dict[str, str]:
    """Bearer header carrying an access token for `user`"""
    token = create_access_token({
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value,
    })
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    return headers_for(admin_user)


@pytest.fixture
def office_headers(office_user: User) -> Dict[str, str]:
    return headers_for(office_user)


@pytest.fixture
def teacher_headers(teacher_user: User) -> Dict[str, str]:
    return headers_for(teacher_user)


@pytest.fixture
def parent_headers(parent_user: User) -> Dict[str, str]:
    return headers_for(parent_user)


@pytest.fixture
def auth_headers_for() -> Callable[[User], Dict[str, str]]:
    return headers_for

# tests/conftest.py

import os
from typing import AsyncGenerator, Callable, Awaitable
from contextlib import asynccontextmanager

# 설정 모듈이 임포트되기 전에 테스트용 환경 변수를 지정합니다.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./labdesk_test_import.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-labdesk"
os.environ["CURRENCY_CODE"] = "INR"
os.environ["CURRENCY_LOCALE"] = "en-IN"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.main import app as main_app
from labdesk.core import dependencies as deps
from labdesk.core import events
from labdesk.core.database import get_session
from labdesk.core.security import get_password_hash

# 모든 모델을 metadata에 등록
from labdesk.domains.models import *    # noqa: F401, F403

from labdesk.domains.usr import models as usr_models
from labdesk.domains.loc import models as loc_models


# --- 데이터베이스 픽스처 ---
# 테스트마다 임시 디렉토리에 새 SQLite 파일을 만들어 격리합니다.
@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'labdesk_test.db'}",
        echo=False,
        future=True,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture(autouse=True)
def clear_event_bus():
    """테스트 간 이벤트 구독자가 남지 않도록 버스를 비웁니다."""
    events.bus.clear()
    yield
    events.bus.clear()


# --- 검사실 / 장소 픽스처 ---
@pytest_asyncio.fixture(scope="function")
async def test_lab(db_session: AsyncSession) -> usr_models.Lab:
    lab = usr_models.Lab(code="LAB-A", name="테스트 검사실A")
    db_session.add(lab)
    await db_session.commit()
    await db_session.refresh(lab)
    return lab


@pytest_asyncio.fixture(scope="function")
async def other_lab(db_session: AsyncSession) -> usr_models.Lab:
    lab = usr_models.Lab(code="LAB-B", name="테스트 검사실B")
    db_session.add(lab)
    await db_session.commit()
    await db_session.refresh(lab)
    return lab


@pytest_asyncio.fixture(scope="function")
async def cash_location(db_session: AsyncSession, test_lab: usr_models.Lab) -> loc_models.Location:
    location = loc_models.Location(lab_id=test_lab.id, name="Main Counter", code="MAIN", supports_cash_collection=True)
    db_session.add(location)
    await db_session.commit()
    await db_session.refresh(location)
    return location


@pytest_asyncio.fixture(scope="function")
async def card_only_location(db_session: AsyncSession, test_lab: usr_models.Lab) -> loc_models.Location:
    location = loc_models.Location(lab_id=test_lab.id, name="Home Collection", code="HOME", supports_cash_collection=False)
    db_session.add(location)
    await db_session.commit()
    await db_session.refresh(location)
    return location


# --- 역할별 사용자 픽스처 ---
@pytest_asyncio.fixture(scope="function")
def user_factory(db_session: AsyncSession) -> Callable[..., Awaitable[usr_models.User]]:
    """역할과 검사실을 지정하여 테스트 사용자를 생성하는 팩토리 함수를 반환합니다."""
    async def _create_user(
        username: str,
        password: str,
        role: usr_models.UserRole,
        lab_id: int,
        is_active: bool = True,
        **kwargs,
    ) -> usr_models.User:
        user = usr_models.User(
            username=username,
            password_hash=get_password_hash(password),
            email=f"{username}@example.com",
            role=role,
            lab_id=lab_id,
            is_active=is_active,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _create_user


@pytest_asyncio.fixture(scope="function")
async def test_admin_user(user_factory: Callable, test_lab: usr_models.Lab) -> usr_models.User:
    """관리자(ADMIN) 사용자를 생성합니다."""
    return await user_factory("sysadm", "sysadmpass123", role=usr_models.UserRole.ADMIN,
                              lab_id=test_lab.id, full_name="System Admin")


@pytest_asyncio.fixture(scope="function")
async def test_lab_manager(user_factory: Callable, test_lab: usr_models.Lab) -> usr_models.User:
    """검사실 책임자(LAB_MANAGER)를 생성합니다."""
    return await user_factory("labmgr", "labmgrpass123", role=usr_models.UserRole.LAB_MANAGER,
                              lab_id=test_lab.id, full_name="Dr. Manager")


@pytest_asyncio.fixture(scope="function")
async def test_technician(user_factory: Callable, test_lab: usr_models.Lab) -> usr_models.User:
    """검사 담당자(TECHNICIAN)를 생성합니다."""
    return await user_factory("labtech", "labtechpass123", role=usr_models.UserRole.TECHNICIAN,
                              lab_id=test_lab.id, full_name="Lab Tech")


@pytest_asyncio.fixture(scope="function")
async def test_front_desk(user_factory: Callable, test_lab: usr_models.Lab) -> usr_models.User:
    """접수/수납 담당자(FRONT_DESK)를 생성합니다."""
    return await user_factory("frontdesk", "frontdeskpass123", role=usr_models.UserRole.FRONT_DESK,
                              lab_id=test_lab.id, full_name="Front Desk")


@pytest_asyncio.fixture(scope="function")
async def test_other_lab_user(user_factory: Callable, other_lab: usr_models.Lab) -> usr_models.User:
    """다른 검사실의 검사실 책임자를 생성합니다."""
    return await user_factory("otherlab", "otherlabpass123", role=usr_models.UserRole.LAB_MANAGER,
                              lab_id=other_lab.id, full_name="Other Lab")


# --- 역할별 인증 클라이언트 픽스처 ---
# /api/v1/usr/auth/token 로그인 API를 실제로 호출하고 받은 토큰을
# Authorization 헤더에 넣은 AsyncClient를 반환합니다.
@pytest_asyncio.fixture(scope="function")
def authorized_client_factory(db_session: AsyncSession):
    @asynccontextmanager
    async def _create_client_context(user: usr_models.User, password: str) -> AsyncGenerator[AsyncClient, None]:
        async def override_get_session():
            yield db_session

        original_overrides = main_app.dependency_overrides.copy()
        try:
            main_app.dependency_overrides.update({
                get_session: override_get_session,
                deps.get_db_session: override_get_session,
            })
            transport = ASGITransport(app=main_app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                res = await client.post("/api/v1/usr/auth/token", data={"username": user.username, "password": password})
                if res.status_code != 200:
                    pytest.fail(f"Login failed for {user.username}: {res.text}")
                client.headers["Authorization"] = f"Bearer {res.json()['access_token']}"
                yield client
        finally:
            main_app.dependency_overrides.clear()
            main_app.dependency_overrides.update(original_overrides)

    return _create_client_context


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """인증되지 않은 클라이언트를 반환합니다."""
    async def override_get_session():
        yield db_session

    main_app.dependency_overrides.update({
        get_session: override_get_session,
        deps.get_db_session: override_get_session,
    })
    try:
        transport = ASGITransport(app=main_app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        main_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def admin_client(authorized_client_factory, test_admin_user) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_admin_user, "sysadmpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def lab_manager_client(authorized_client_factory, test_lab_manager) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_lab_manager, "labmgrpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def technician_client(authorized_client_factory, test_technician) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_technician, "labtechpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def front_desk_client(authorized_client_factory, test_front_desk) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_front_desk, "frontdeskpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def other_lab_client(authorized_client_factory, test_other_lab_user) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_other_lab_user, "otherlabpass123") as c:
        yield c

# labdesk/main.py

import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager
from arq.connections import create_pool, RedisSettings
from arq.cron import cron

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from labdesk import API_PREFIX, APP_VERSION
from labdesk.core.config import settings
from labdesk.core.database import engine, get_session

# 태스크 모듈 임포트
from labdesk.core import tasks as core_tasks
from labdesk.domains.orders import tasks as orders_tasks
from labdesk.domains.dashboard import tasks as dashboard_tasks

# 도메인 라우터 임포트
from labdesk.domains.usr.routers import router as usr_router
from labdesk.domains.loc.routers import router as loc_router
from labdesk.domains.shared.routers import router as shared_router
from labdesk.domains.orders.routers import router as orders_router
from labdesk.domains.billing.routers import router as billing_router
from labdesk.domains.results.routers import router as results_router
from labdesk.domains.results.verification_routers import router as verification_router
from labdesk.domains.dashboard.routers import router as dashboard_router
from labdesk.domains.ai.routers import router as ai_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG_MODE else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# ARQ 워커가 실행할 태스크 함수 목록
worker_functions = [
    core_tasks.health_check_database_task,
    orders_tasks.fix_order_status_consistency_task,
    dashboard_tasks.refresh_dashboard_task,
]


# ARQ 워커 설정 클래스
class ArqWorkerSettings:
    redis_settings = RedisSettings(host=settings.REDIS_HOST, port=settings.REDIS_PORT)
    functions = worker_functions
    cron_jobs = [
        # 매일 00:00 데이터베이스 헬스 체크
        cron(core_tasks.health_check_database_task, name="daily_db_health_check",
             hour={0}, minute={0}, timeout=300, keep_result=600),
        # 매일 01:00 오더 상태 불일치 보정
        cron(orders_tasks.fix_order_status_consistency_task, name="daily_order_status_sync",
             hour={1}, minute={0}, timeout=1800, keep_result=3600),
        # 5분마다 대시보드 뷰 갱신
        cron(dashboard_tasks.refresh_dashboard_task, name="dashboard_view_refresh",
             minute=set(range(0, 60, 5)), timeout=300),
    ]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI 애플리케이션의 수명 주기 이벤트(데이터베이스, ARQ Redis)를 함께 처리합니다.
    """
    logger.info("Starting %s", settings.APP_NAME)
    try:
        app.state.redis = await create_pool(ArqWorkerSettings.redis_settings)
        logger.info("ARQ Redis connection pool created")
    except Exception:
        logger.exception("Application startup failed")
        raise

    yield

    logger.info("Shutting down %s", settings.APP_NAME)
    try:
        if app.state.redis:
            await app.state.redis.close()
        await engine.dispose()
    except Exception:
        logger.exception("Error during application shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    description="Laboratory information management (LIMS) API: cash reconciliation, order status tracking, "
                "batch result operations, analyte verification and dashboard aggregation.",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# -- CORS 미들웨어 설정 --
# 운영 환경에서는 allow_origins를 실제 프론트엔드 도메인으로 제한해야 합니다.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -- 도메인 라우터 포함 --
app.include_router(usr_router, prefix=f"{API_PREFIX}/usr")
app.include_router(loc_router, prefix=f"{API_PREFIX}/loc")
app.include_router(shared_router, prefix=f"{API_PREFIX}/shared")
app.include_router(orders_router, prefix=f"{API_PREFIX}/lims")
app.include_router(billing_router, prefix=f"{API_PREFIX}/billing")
app.include_router(results_router, prefix=f"{API_PREFIX}/lims")
app.include_router(verification_router, prefix=f"{API_PREFIX}/lims")
app.include_router(dashboard_router, prefix=f"{API_PREFIX}/lims")
app.include_router(ai_router, prefix=f"{API_PREFIX}/ai")


@app.get("/", summary="API Root", response_description="Welcome message and documentation link.")
async def read_root():
    return {"message": f"Welcome to {settings.APP_NAME}. Visit /docs for interactive API documentation."}


@app.get("/health-check", summary="Health Check", response_description="Status of the application and database connection.")
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    데이터베이스 연결을 테스트하여 서비스의 정상 작동 여부를 확인합니다.
    """
    try:
        result = await session.exec(select(1))
        if result.first():
            return {"status": "ok", "database_connection": "successful"}
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database health check failed: No result from test query"
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database connection error during health check: {e}"
        )

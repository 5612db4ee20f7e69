# labdesk/domains/dashboard/routers.py

"""
'dashboard' 도메인의 API 엔드포인트를 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser

from . import crud as dashboard_crud
from . import schemas as dashboard_schemas

router = APIRouter(
    tags=["Dashboard (대시보드)"],
    responses={404: {"description": "Not found"}},
)


@router.get("/dashboard", response_model=dashboard_schemas.DashboardResponse, summary="대시보드 오더 조회")
async def read_dashboard(
    from_date: Optional[date] = Query(None, alias="from", description="오더 시작일"),
    to_date: Optional[date] = Query(None, alias="to", description="오더 종료일"),
    state: dashboard_schemas.StatusFilter = Query("all", alias="status", description="대시보드 상태 필터"),
    q: Optional[str] = Query(None, description="환자명 검색어"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    오더 행과 KPI, 일자별 그룹을 반환합니다.
    - `status=overdue`: 기한 초과 오더
    - `status=balance_due`: 미수금이 남은 오더
    - 그 외: `dashboard_state`가 일치하는 오더
    """
    if from_date and to_date and to_date < from_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'to' must not be before 'from'")
    filters = dashboard_schemas.DashboardFilters(
        from_date=from_date, to_date=to_date, status=state, q=q, lab_id=current_user.lab_id
    )
    return await dashboard_crud.dashboard.load(db, filters=filters)


@router.post("/dashboard/refresh", status_code=status.HTTP_202_ACCEPTED, summary="대시보드 뷰 갱신 (관리자)")
async def refresh_dashboard(
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    refreshed = await dashboard_crud.dashboard.refresh_view(db)
    return {"refreshed": refreshed}

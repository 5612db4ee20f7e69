# labdesk/domains/orders/routers.py

"""
'orders' 도메인의 API 엔드포인트를 정의하는 모듈입니다.

오더 조회/생성, 상태 변경(자동 진행 포함), 검체 채취 표시,
상태 일관성 점검, 빠른 상태 전환 버튼, 진행률 조회를 제공합니다.
"""

from dataclasses import asdict
from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser

from . import crud as orders_crud
from . import models as orders_models
from . import schemas as orders_schemas
from . import status as order_status

router = APIRouter(
    tags=["Order Management (오더 관리)"],
    responses={404: {"description": "Not found"}},
)


async def _get_order_or_404(db: AsyncSession, order_id: int, user: UsrUser) -> orders_models.Order:
    db_order = await orders_crud.order.get_for_lab(db, id=order_id, lab_id=user.lab_id)
    if not db_order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return db_order


def _status_result(
    db_order: orders_models.Order, requested: str, auto_status: Optional[str]
) -> orders_schemas.StatusUpdateResult:
    message = f"Order status updated to: {requested}"
    if auto_status:
        message = f"Order status updated to: {auto_status} (auto from {requested})"
    return orders_schemas.StatusUpdateResult(
        message=message,
        auto_progressed=auto_status is not None,
        order=orders_crud.build_order_detail(db_order),
    )


# =============================================================================
# 1. 오더 조회/생성
# =============================================================================
@router.get("/orders", response_model=List[orders_schemas.OrderDetail], summary="오더 목록 조회")
async def read_orders(
    status_filter: Optional[str] = Query(None, alias="status", description="오더 상태"),
    priority: Optional[orders_models.OrderPriority] = Query(None, description="우선순위"),
    location_id: Optional[int] = Query(None, description="접수 장소 ID"),
    start_date: Optional[date] = Query(None, description="조회 시작일 (order_date)"),
    end_date: Optional[date] = Query(None, description="조회 종료일 (order_date)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    orders = await orders_crud.order.get_orders(
        db,
        lab_id=current_user.lab_id,
        status=status_filter,
        priority=priority,
        location_id=location_id,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return [orders_crud.build_order_detail(o) for o in orders]


@router.post("/orders", response_model=orders_schemas.OrderDetail, status_code=status.HTTP_201_CREATED, summary="새 오더 생성")
async def create_order(
    order_in: orders_schemas.OrderCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await orders_crud.order.create(db, obj_in=order_in, lab_id=current_user.lab_id)
    return orders_crud.build_order_detail(db_order)


@router.get("/orders/{order_id}", response_model=orders_schemas.OrderDetail, summary="오더 상세 조회")
async def read_order(
    order_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await _get_order_or_404(db, order_id, current_user)
    return orders_crud.build_order_detail(db_order)


@router.put("/orders/{order_id}", response_model=orders_schemas.OrderDetail, summary="오더 정보 수정")
async def update_order(
    order_id: int,
    order_in: orders_schemas.OrderUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """환자명, 의뢰의, 우선순위, 결과 예정일만 수정합니다. 상태는 상태 변경 API를 사용합니다."""
    db_order = await _get_order_or_404(db, order_id, current_user)
    db_order = await orders_crud.order.update(db, db_obj=db_order, obj_in=order_in)
    return orders_crud.build_order_detail(db_order)


# =============================================================================
# 2. 상태 변경 및 검체 채취
# =============================================================================
@router.put("/orders/{order_id}/status", response_model=orders_schemas.StatusUpdateResult, summary="오더 상태 변경")
async def update_order_status(
    order_id: int,
    status_in: orders_schemas.OrderStatusUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    오더 상태를 변경합니다.
    - 채취/진행 상태로 변경 시 채취 기록이 없으면 함께 기록합니다.
    - 채취 전 상태로 변경 시 채취 기록을 지웁니다.
    - 모든 검사가 검증된 진행 중 오더는 Completed 로 자동 전환됩니다.
    """
    db_order = await _get_order_or_404(db, order_id, current_user)
    db_order, auto_status = await orders_crud.order.update_status(
        db, db_obj=db_order, new_status=status_in.status, user=current_user
    )
    return _status_result(db_order, status_in.status, auto_status)


@router.post("/orders/{order_id}/mark-collected", response_model=orders_schemas.OrderDetail, summary="검체 채취 표시")
async def mark_sample_collected(
    order_id: int,
    collected_by: Optional[str] = Query(None, max_length=100, description="채취자 (생략 시 현재 사용자)"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await _get_order_or_404(db, order_id, current_user)
    db_order = await orders_crud.order.mark_sample_collected(
        db, db_obj=db_order, user=current_user, collected_by=collected_by
    )
    return orders_crud.build_order_detail(db_order)


@router.post("/orders/{order_id}/mark-not-collected", response_model=orders_schemas.OrderDetail, summary="검체 미채취 표시")
async def mark_sample_not_collected(
    order_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await _get_order_or_404(db, order_id, current_user)
    db_order = await orders_crud.order.mark_sample_not_collected(db, db_obj=db_order, user=current_user)
    return orders_crud.build_order_detail(db_order)


@router.get("/orders/{order_id}/consistency", response_model=orders_schemas.ConsistencyRead, summary="상태 일관성 점검")
async def check_order_consistency(
    order_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await _get_order_or_404(db, order_id, current_user)
    check = order_status.check_status_consistency(db_order)
    return orders_schemas.ConsistencyRead(
        order_id=db_order.id,
        current_status=db_order.status,
        sample_collected=order_status.has_collected_sample(
            db_order.sample_collected_at, db_order.sample_collected_by
        ),
        is_consistent=check.is_consistent,
        recommended_status=check.recommended_status,
        issue=check.issue,
    )


@router.post("/orders/status-sync", status_code=status.HTTP_202_ACCEPTED, summary="상태 불일치 일괄 보정")
async def sync_order_statuses(
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """
    관리자의 검사실 오더 중 채취 기록과 어긋난 상태를 보정합니다.
    작업 큐가 연결되어 있으면 백그라운드 작업으로 예약하고, 아니면 즉시 처리합니다.
    """
    task_queue_client = getattr(request.app.state, "redis", None)
    if task_queue_client is not None:
        await task_queue_client.enqueue_job("fix_order_status_consistency_task", current_user.lab_id)
        return {"queued": True, "fixed_count": None}

    fixed_count = await orders_crud.order.fix_status_inconsistencies(db, lab_id=current_user.lab_id)
    await db.commit()
    return {"queued": False, "fixed_count": fixed_count}


# =============================================================================
# 3. 빠른 상태 전환
# =============================================================================
@router.get("/orders/{order_id}/quick-actions", response_model=List[orders_schemas.QuickActionRead], summary="가능한 빠른 상태 전환 목록")
async def read_quick_actions(
    order_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await _get_order_or_404(db, order_id, current_user)
    action = order_status.next_quick_action(db_order.status)
    return [asdict(action)] if action else []


@router.post("/orders/{order_id}/quick-actions", response_model=orders_schemas.StatusUpdateResult, summary="빠른 상태 전환 실행")
async def execute_quick_action(
    order_id: int,
    action_in: orders_schemas.QuickActionExecute,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await _get_order_or_404(db, order_id, current_user)
    action = order_status.next_quick_action(db_order.status)
    if action is None or action.action != action_in.action:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Action '{action_in.action}' is not available for status '{db_order.status}'",
        )
    db_order, auto_status = await orders_crud.order.update_status(
        db, db_obj=db_order, new_status=action.target_status, user=current_user
    )
    return _status_result(db_order, action.target_status, auto_status)


# =============================================================================
# 4. 진행률
# =============================================================================
@router.get("/orders/{order_id}/progress", response_model=orders_schemas.OrderProgressRead, summary="오더 진행률 조회")
async def read_order_progress(
    order_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """진행률을 계산하여 반환하고, 진행률 갱신 이벤트를 발행합니다."""
    db_order = await _get_order_or_404(db, order_id, current_user)
    progress = await orders_crud.order.publish_progress(db, order_id=db_order.id)
    return {"order_id": db_order.id, **progress.to_dict()}

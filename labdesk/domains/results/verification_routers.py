# labdesk/domains/results/verification_routers.py

"""
분석 항목(analyte) 단위 및 결과(검사) 단위 검증 API 엔드포인트를 정의하는 모듈입니다.
승인/반려는 검사실 책임자 이상만 수행할 수 있습니다.
"""

from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser

from . import crud as results_crud
from . import schemas as results_schemas

router = APIRouter(
    tags=["Analyte Verification (분석 항목 검증)"],
    responses={404: {"description": "Not found"}},
)


@router.get("/analytes", response_model=List[results_schemas.AnalyteRow], summary="검증 대상 분석 항목 조회")
async def read_analytes(
    from_date: date = Query(..., alias="from", description="결과 입력일 시작"),
    to_date: date = Query(..., alias="to", description="결과 입력일 종료"),
    q: Optional[str] = Query(None, description="검사명/항목명/환자명/오더 ID 검색어"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    if to_date < from_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'to' must not be before 'from'")
    return await results_crud.result_value.list_analytes(
        db, lab_id=current_user.lab_id, from_date=from_date, to_date=to_date, q=q
    )


@router.post("/analytes/bulk-approve", response_model=List[results_schemas.AnalyteRow], summary="분석 항목 일괄 승인")
async def bulk_approve_analytes(
    bulk_in: results_schemas.BulkApproveRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    return await results_crud.result_value.bulk_approve(
        db, ids=bulk_in.ids, lab_id=current_user.lab_id, note=bulk_in.note, user=current_user
    )


@router.post("/analytes/{rv_id}/approve", response_model=results_schemas.AnalyteRow, summary="분석 항목 승인")
async def approve_analyte(
    rv_id: int,
    approve_in: Optional[results_schemas.ApproveRequest] = None,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    note = approve_in.note if approve_in else None
    return await results_crud.result_value.approve(
        db, id=rv_id, lab_id=current_user.lab_id, note=note, user=current_user
    )


@router.post("/analytes/{rv_id}/reject", response_model=results_schemas.AnalyteRow, summary="분석 항목 반려")
async def reject_analyte(
    rv_id: int,
    reject_in: results_schemas.RejectRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    """반려 사유(note)는 필수입니다."""
    return await results_crud.result_value.reject(
        db, id=rv_id, lab_id=current_user.lab_id, note=reject_in.note, user=current_user
    )


# =============================================================================
# 결과(검사) 단위 검증 화면
# =============================================================================
@router.get("/verification/results", response_model=results_schemas.VerificationQueue, summary="검증 대기 결과 목록")
async def read_verification_queue(
    date_filter: results_schemas.VerificationDateFilter = Query("today", description="today, last7days, custom, all"),
    start_date: Optional[date] = Query(None, description="custom 기간 시작일 (결과 입력일)"),
    end_date: Optional[date] = Query(None, description="custom 기간 종료일 (결과 입력일)"),
    search: Optional[str] = Query(None, description="검사명/환자명/오더 ID 검색어"),
    critical_only: bool = Query(False, description="위험 결과만 조회"),
    category: Optional[str] = Query(None, description="검사 그룹 또는 분류명"),
    pending_only: bool = Query(True, description="검증 대기 결과만 조회"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await results_crud.verification.get_queue(
        db,
        lab_id=current_user.lab_id,
        date_filter=date_filter,
        start_date=start_date,
        end_date=end_date,
        search=search,
        critical_only=critical_only,
        category=category,
        pending_only=pending_only,
    )


@router.post("/verification/results/bulk-approve", response_model=results_schemas.BulkVerifyResult, summary="결과 일괄 승인")
async def bulk_approve_results(
    bulk_in: results_schemas.BulkVerifyRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    """처리하지 못한 ID(없거나 다른 검사실)는 failed_ids로 돌려줍니다."""
    return await results_crud.verification.bulk_approve(
        db, ids=bulk_in.ids, lab_id=current_user.lab_id, notes=bulk_in.notes, user=current_user
    )


@router.post("/verification/results/bulk-reject", response_model=results_schemas.BulkVerifyResult, summary="결과 일괄 반려")
async def bulk_reject_results(
    bulk_in: results_schemas.BulkRejectRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    return await results_crud.verification.bulk_reject(
        db, ids=bulk_in.ids, lab_id=current_user.lab_id, reason=bulk_in.reason, user=current_user
    )


@router.post("/verification/results/{result_id}/approve", response_model=results_schemas.ResultRead, summary="결과 승인")
async def approve_result(
    result_id: int,
    approve_in: Optional[results_schemas.ApproveRequest] = None,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    notes = approve_in.note if approve_in else None
    return await results_crud.verification.approve(
        db, id=result_id, lab_id=current_user.lab_id, notes=notes, user=current_user
    )


@router.post("/verification/results/{result_id}/reject", response_model=results_schemas.ResultRead, summary="결과 반려")
async def reject_result(
    result_id: int,
    reject_in: results_schemas.ResultRejectRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_verifier_user),
):
    return await results_crud.verification.reject(
        db, id=result_id, lab_id=current_user.lab_id, reason=reject_in.reason, user=current_user
    )


@router.get(
    "/verification/results/{result_id}/previous",
    response_model=Optional[results_schemas.PreviousResultRead],
    summary="직전 검증 결과 (델타 비교)",
)
async def read_previous_result(
    result_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """같은 환자의 같은 검사 중 가장 최근에 검증된 결과입니다. 없으면 null을 반환합니다."""
    return await results_crud.verification.get_previous(db, id=result_id, lab_id=current_user.lab_id)

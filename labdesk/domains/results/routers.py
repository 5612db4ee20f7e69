# labdesk/domains/results/routers.py

"""
'results' 도메인의 결과 조회 및 일괄 처리 API 엔드포인트를 정의하는 모듈입니다.
"""

from typing import Any, Dict, List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser

from . import batch
from . import crud as results_crud
from . import models as results_models
from . import schemas as results_schemas

router = APIRouter(
    tags=["Results (검사 결과 및 일괄 처리)"],
    responses={404: {"description": "Not found"}},
)


def _csv_response(content: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{batch.export_filename()}"'},
    )


# =============================================================================
# 1. 결과 조회/입력
# =============================================================================
@router.get("/results", response_model=List[results_schemas.ResultRead], summary="결과 목록 조회")
async def read_results(
    order_id: Optional[int] = Query(None),
    result_status: Optional[results_models.ResultStatus] = Query(None, alias="status"),
    verification_status: Optional[results_models.VerificationStatus] = Query(None),
    start_date: Optional[date] = Query(None, description="조회 시작일 (entered_date)"),
    end_date: Optional[date] = Query(None, description="조회 종료일 (entered_date)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    filters: Dict[str, Any] = {"lab_id": current_user.lab_id}
    if order_id is not None:
        filters["order_id"] = order_id
    if result_status is not None:
        filters["status"] = result_status
    if verification_status is not None:
        filters["verification_status"] = verification_status
    return await results_crud.result.get_filtered(
        db,
        filters=filters,
        date_range_field="entered_date",
        start_date=start_date,
        end_date=end_date,
        order_by_field="entered_date",
        skip=skip,
        limit=limit,
    )


@router.post("/results", response_model=results_schemas.ResultDetail, status_code=status.HTTP_201_CREATED, summary="결과 입력")
async def create_result(
    result_in: results_schemas.ResultCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_result = await results_crud.result.create(db, obj_in=result_in, lab_id=current_user.lab_id, user=current_user)
    details = await results_crud.result.build_details(db, results=[db_result])
    return details[0]


# =============================================================================
# 2. 일괄 처리
# =============================================================================
@router.get("/results/batch-operations", response_model=List[results_schemas.BatchOperationRead], summary="일괄 처리 작업 목록")
async def read_batch_operations(
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return batch.list_operations()


@router.post("/results/batch", response_model=results_schemas.BatchResult, summary="일괄 처리 실행")
async def run_batch_operation(
    batch_in: results_schemas.BatchRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    선택한 결과에 일괄 작업을 실행합니다.
    `export-csv` 작업은 CSV 파일(`results_export_<날짜>.csv`)을 반환합니다.
    """
    if batch_in.operation == batch.EXPORT_CSV:
        content = await batch.export_csv(db, result_ids=batch_in.result_ids, lab_id=current_user.lab_id)
        return _csv_response(content)
    return await batch.run_batch(
        db,
        operation=batch_in.operation,
        result_ids=batch_in.result_ids,
        user=current_user,
        reviewer_id=batch_in.reviewer_id,
        notes=batch_in.notes,
    )


@router.post("/results/export", summary="선택한 결과 CSV 내보내기")
async def export_results_csv(
    export_in: results_schemas.ExportRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    content = await batch.export_csv(db, result_ids=export_in.result_ids, lab_id=current_user.lab_id)
    return _csv_response(content)


@router.get("/results/{result_id}", response_model=results_schemas.ResultDetail, summary="결과 상세 조회")
async def read_result(
    result_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_result = await results_crud.result.get_for_lab(db, id=result_id, lab_id=current_user.lab_id)
    if not db_result:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found")
    details = await results_crud.result.build_details(db, results=[db_result])
    return details[0]

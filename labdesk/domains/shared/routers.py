# labdesk/domains/shared/routers.py

"""
'shared' 도메인의 API 엔드포인트를 정의하는 모듈입니다.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser
from . import crud as shared_crud
from . import schemas as shared_schemas

router = APIRouter(
    tags=["Shared (공용 정보 관리)"],
    responses={404: {"description": "Not found"}},
)


@router.get("/audit-logs", response_model=List[shared_schemas.AuditLogRead], summary="감사 로그 조회")
async def read_audit_logs(
    entity_type: Optional[str] = Query(None, description="대상 종류"),
    entity_id: Optional[int] = Query(None, description="대상 행 ID"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """관리자의 검사실 감사 로그를 최신순으로 조회합니다."""
    filters = {"lab_id": current_user.lab_id}
    if entity_type:
        filters["entity_type"] = entity_type
    if entity_id is not None:
        filters["entity_id"] = entity_id
    return await shared_crud.audit_log.get_filtered(
        db, filters=filters, order_by_field="performed_at", skip=skip, limit=limit
    )

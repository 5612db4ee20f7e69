# labdesk/domains/shared/crud.py

"""
'shared' 도메인 (공용 데이터)과 관련된 CRUD 로직을 담당하는 모듈입니다.
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core.crud_base import CRUDBase
from . import models as shared_models
from . import schemas as shared_schemas


# =============================================================================
# 1. 감사 로그 (AuditLog) CRUD
# =============================================================================
class CRUDAuditLog(
    CRUDBase[
        shared_models.AuditLog,
        shared_schemas.AuditLogCreate,
        shared_schemas.AuditLogCreate,
    ]
):
    def __init__(self):
        super().__init__(model=shared_models.AuditLog)

    def record(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        entity_type: str,
        entity_id: int,
        action: str,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        performed_by: Optional[str] = None,
    ) -> shared_models.AuditLog:
        """
        감사 로그를 세션에 추가만 합니다.
        커밋은 호출한 쪽의 트랜잭션과 함께 이루어집니다.
        """
        entry = shared_models.AuditLog(
            lab_id=lab_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            old_values=jsonable_encoder(old_values) if old_values is not None else None,
            new_values=jsonable_encoder(new_values) if new_values is not None else None,
            performed_by=performed_by,
        )
        db.add(entry)
        return entry


audit_log = CRUDAuditLog()

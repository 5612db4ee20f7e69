# labdesk/domains/shared/models.py

"""
'shared' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from typing import Optional, Dict, Any
from datetime import datetime, UTC

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP

# 운영 DB(PostgreSQL)에서는 JSONB, 그 외 DB에서는 일반 JSON 타입으로 저장합니다.
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# 1. audit_logs 테이블 모델
# =============================================================================
class AuditLog(SQLModel, table=True):
    """
    업무 행의 변경 이력을 남기는 감사 로그 테이블입니다.
    """
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True, description="감사 로그 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="검사실 ID (FK)")
    entity_type: str = Field(max_length=50, index=True, description="대상 종류 (order, cash_register, result ...)")
    entity_id: int = Field(index=True, description="대상 행 ID")
    action: str = Field(max_length=50, description="수행 동작 (status_sync, reconcile ...)")
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType), description="변경 전 값")
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType), description="변경 후 값")
    performed_by: Optional[str] = Field(default=None, max_length=100, description="수행자 표시 이름")
    performed_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="수행 일시"
    )

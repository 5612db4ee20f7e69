# labdesk/domains/shared/schemas.py

"""
'shared' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Optional, Dict, Any
from datetime import datetime
from sqlmodel import SQLModel


class AuditLogCreate(SQLModel):
    entity_type: str
    entity_id: int
    action: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    performed_by: Optional[str] = None


class AuditLogRead(AuditLogCreate):
    id: int
    lab_id: int
    performed_at: Optional[datetime] = None

# labdesk/domains/loc/models.py

"""
'loc' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime, UTC

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 1. locations 테이블 모델
# =============================================================================
class Location(SQLModel, table=True):
    """
    검사실에 속한 접수/채혈 장소입니다.
    `supports_cash_collection`이 참인 장소만 현금 정산 대상입니다.
    """
    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("lab_id", "name", name="uq_location_lab_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True, description="장소 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="소속 검사실 ID (FK)")
    name: str = Field(max_length=100, description="장소명")
    code: Optional[str] = Field(default=None, max_length=20, description="장소 코드")
    address: Optional[str] = Field(default=None, max_length=255, description="주소")
    supports_cash_collection: bool = Field(default=False, description="현금 수납 가능 여부")
    is_active: bool = Field(default=True, description="사용 여부")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

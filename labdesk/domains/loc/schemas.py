# labdesk/domains/loc/schemas.py

"""
'loc' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime
from pydantic import Field
from sqlmodel import SQLModel


class LocationBase(SQLModel):
    name: str = Field(..., max_length=100, description="장소명")
    code: Optional[str] = Field(None, max_length=20, description="장소 코드")
    address: Optional[str] = Field(None, max_length=255, description="주소")
    supports_cash_collection: bool = Field(False, description="현금 수납 가능 여부")
    is_active: bool = Field(True, description="사용 여부")


class LocationCreate(LocationBase):
    pass


class LocationUpdate(SQLModel):
    """모든 필드는 선택 사항입니다 (부분 업데이트)."""
    name: Optional[str] = Field(None, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)
    supports_cash_collection: Optional[bool] = None
    is_active: Optional[bool] = None


class LocationRead(LocationBase):
    id: int
    lab_id: int
    created_at: Optional[datetime] = None

# labdesk/domains/usr/schemas.py

"""
'usr' 도메인 (검사실 및 사용자 관리)의 API 데이터 전송 객체(DTO)를 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field
from pydantic import BaseModel, EmailStr

from . import models as usr_models


# =============================================================================
# 1. 검사실 (Lab) 스키마
# =============================================================================
class LabCreate(SQLModel):
    code: str = Field(..., max_length=10)
    name: str = Field(..., max_length=255)
    is_active: bool = True


class LabRead(LabCreate):
    id: int
    created_at: Optional[datetime] = None


# =============================================================================
# 2. 사용자 (User) 스키마
# =============================================================================
class UserBase(SQLModel):
    """사용자 정보의 기본 필드를 정의하는 스키마"""
    username: str = Field(..., max_length=50)
    email: Optional[EmailStr] = Field(None, max_length=100)
    full_name: Optional[str] = Field(None, max_length=100)
    role: usr_models.UserRole = Field(default=usr_models.UserRole.GENERAL_USER, description="사용자 역할")
    is_active: bool = True


class UserCreate(UserBase):
    """사용자 생성을 위한 스키마. lab_id를 생략하면 생성자의 검사실로 지정됩니다."""
    password: str = Field(..., min_length=8)
    lab_id: Optional[int] = None


class UserUpdate(SQLModel):
    """사용자 정보 수정을 위한 스키마"""
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role: Optional[usr_models.UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8)


class UserRead(UserBase):
    """
    사용자 정보 조회를 위한 스키마.
    비밀번호 해시값 등 민감한 정보는 제외됩니다.
    """
    id: int
    lab_id: int
    created_at: Optional[datetime] = None


# =============================================================================
# 3. 인증 (Token) 스키마
# =============================================================================
class Token(BaseModel):
    access_token: str
    token_type: str

# labdesk/domains/usr/models.py

"""
'usr' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

검사실(labs)과 사용자(users) 테이블에 대한 SQLModel 클래스를 포함합니다.
"""

from typing import Optional
from datetime import datetime, UTC
from enum import IntEnum

from sqlmodel import Field, SQLModel, Column
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


class UserRole(IntEnum):
    """
    사용자 역할을 정의하는 정수형 Enum 클래스입니다.
    값이 작을수록 권한이 높습니다.
    """
    SUPERUSER = 1           # 최고 관리자
    ADMIN = 10              # 시스템 관리자
    LAB_MANAGER = 50        # 검사실 책임자 (결과 승인 권한)
    TECHNICIAN = 80         # 검사 담당자
    FRONT_DESK = 90         # 접수/수납 담당자
    GENERAL_USER = 100      # 일반 사용자


# =============================================================================
# 1. labs 테이블 모델
# =============================================================================
class Lab(SQLModel, table=True):
    """
    검사실 테이블입니다. 모든 업무 행은 하나의 검사실에 속합니다.
    """
    __tablename__ = "labs"

    id: Optional[int] = Field(default=None, primary_key=True, description="검사실 고유 ID")
    code: str = Field(max_length=10, sa_column_kwargs={"unique": True}, description="검사실 코드")
    name: str = Field(max_length=255, description="검사실명")
    is_active: bool = Field(default=True, description="활성 여부")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 2. users 테이블 모델
# =============================================================================
class User(SQLModel, table=True):
    """
    사용자 테이블입니다. lab_id가 사용자의 데이터 조회 범위를 결정합니다.
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True, description="사용자 고유 ID")
    username: str = Field(max_length=50, sa_column_kwargs={"unique": True}, description="로그인 사용자명")
    password_hash: str = Field(max_length=255, description="해싱된 비밀번호")
    email: Optional[str] = Field(default=None, max_length=100, sa_column_kwargs={"unique": True}, description="사용자 이메일")
    full_name: Optional[str] = Field(default=None, max_length=100, description="사용자 전체 이름")
    lab_id: int = Field(foreign_key="labs.id", description="소속 검사실 ID (FK)")
    role: UserRole = Field(default=UserRole.GENERAL_USER, description="사용자 역할 (권한)")
    is_active: bool = Field(default=True, description="계정 활성 여부")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="레코드 마지막 업데이트 일시"
    )

    @property
    def display_name(self) -> str:
        """상태 변경 기록 등에 남길 사용자 표시 이름 (이름 → 이메일 → 사용자명 순)."""
        return self.full_name or self.email or self.username

# labdesk/domains/results/models.py

"""
'results' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime, date, UTC
from enum import Enum

from sqlmodel import Field, SQLModel, Column
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


class ResultStatus(str, Enum):
    ENTERED = "Entered"
    REVIEWED = "Reviewed"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class VerificationStatus(str, Enum):
    PENDING_VERIFICATION = "pending_verification"
    NEEDS_CLARIFICATION = "needs_clarification"
    VERIFIED = "verified"
    REJECTED = "rejected"


class AnalyteVerifyStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# =============================================================================
# 1. results 테이블 모델
# =============================================================================
class Result(SQLModel, table=True):
    """
    오더에 속한 검사(검사 그룹) 단위 결과입니다.
    환자 정보는 검색을 위해 오더에서 복사해 둡니다.
    """
    __tablename__ = "results"

    id: Optional[int] = Field(default=None, primary_key=True, description="결과 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="검사실 ID (FK)")
    order_id: int = Field(foreign_key="orders.id", index=True, description="오더 ID (FK)")
    test_group_id: Optional[int] = Field(default=None, description="검사 그룹 ID")
    test_name: str = Field(max_length=200, description="검사명")
    patient_id: Optional[str] = Field(default=None, max_length=50, description="환자 ID")
    patient_name: str = Field(max_length=100, description="환자명")

    status: ResultStatus = Field(default=ResultStatus.ENTERED, description="결과 상태")
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.PENDING_VERIFICATION, description="검증 상태"
    )
    entered_date: date = Field(default_factory=date.today, index=True, description="결과 입력일")
    entered_by: Optional[str] = Field(default=None, max_length=100, description="결과 입력자")

    priority_level: int = Field(default=3, description="우선순위 (1: 긴급)")
    critical_flag: bool = Field(default=False, description="긴급(위험) 결과 여부")
    delta_check_flag: bool = Field(default=False, description="이전 결과 대비 변화(델타) 경고 여부")
    manually_verified: bool = Field(default=False, description="검증 화면에서 직접 승인/반려했는지 여부")

    reviewer_id: Optional[int] = Field(default=None, foreign_key="users.id", description="지정 검토자 ID (FK)")
    reviewed_by: Optional[str] = Field(default=None, max_length=100, description="검토자")
    reviewed_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="검토 일시")
    verified_by: Optional[str] = Field(default=None, max_length=100, description="검증자")
    verified_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="검증 일시")
    verification_notes: Optional[str] = Field(default=None, description="검증 메모")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 2. result_values 테이블 모델
# =============================================================================
class ResultValue(SQLModel, table=True):
    """
    결과에 속한 분석 항목(analyte) 값입니다. 항목 단위로 검증 상태를 가집니다.
    """
    __tablename__ = "result_values"

    id: Optional[int] = Field(default=None, primary_key=True, description="분석 항목 값 고유 ID")
    result_id: int = Field(foreign_key="results.id", index=True, description="결과 ID (FK)")
    parameter: str = Field(max_length=200, description="분석 항목명")
    value: Optional[str] = Field(default=None, max_length=100, description="측정값")
    unit: Optional[str] = Field(default=None, max_length=50, description="단위")
    reference_range: Optional[str] = Field(default=None, max_length=100, description="참고치")
    flag: Optional[str] = Field(default=None, max_length=10, description="이상 표시 (H, L 등)")

    verify_status: AnalyteVerifyStatus = Field(default=AnalyteVerifyStatus.PENDING, description="검증 상태")
    verify_note: Optional[str] = Field(default=None, description="검증 메모")
    verified_by: Optional[str] = Field(default=None, max_length=100, description="검증자")
    verified_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="검증 일시")

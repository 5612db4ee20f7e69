# labdesk/domains/results/schemas.py

"""
'results' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Literal, Optional, List
from datetime import datetime, date
from pydantic import Field, field_validator
from sqlmodel import SQLModel

from .models import ResultStatus, VerificationStatus, AnalyteVerifyStatus


# =============================================================================
# 1. 결과 / 분석 항목 값
# =============================================================================
class ResultValueCreate(SQLModel):
    parameter: str = Field(..., max_length=200)
    value: Optional[str] = Field(None, max_length=100)
    unit: Optional[str] = Field(None, max_length=50)
    reference_range: Optional[str] = Field(None, max_length=100)
    flag: Optional[str] = Field(None, max_length=10)


class ResultValueRead(ResultValueCreate):
    id: int
    result_id: int
    verify_status: AnalyteVerifyStatus
    verify_note: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None


class ResultCreate(SQLModel):
    """환자 정보는 오더에서 복사합니다."""
    order_id: int
    test_name: str = Field(..., max_length=200)
    test_group_id: Optional[int] = None
    entered_date: date = Field(default_factory=date.today)
    values: List[ResultValueCreate] = Field(default_factory=list)


class ResultRead(SQLModel):
    id: int
    lab_id: int
    order_id: int
    test_group_id: Optional[int] = None
    test_name: str
    patient_id: Optional[str] = None
    patient_name: str
    status: ResultStatus
    verification_status: VerificationStatus
    entered_date: date
    entered_by: Optional[str] = None
    priority_level: int
    critical_flag: bool
    delta_check_flag: bool = False
    manually_verified: bool = False
    reviewer_id: Optional[int] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None


class ResultDetail(ResultRead):
    values: List[ResultValueRead] = []


# =============================================================================
# 2. 일괄 처리
# =============================================================================
class BatchOperationRead(SQLModel):
    id: str
    label: str
    description: str
    requires_confirmation: bool = False
    confirmation_message: Optional[str] = None


class BatchRequest(SQLModel):
    operation: str = Field(..., description="일괄 처리 작업 ID")
    result_ids: List[int] = Field(default_factory=list, description="선택한 결과 ID 목록")
    reviewer_id: Optional[int] = Field(None, description="assign-reviewer 작업의 검토자 ID")
    notes: Optional[str] = Field(None, description="반려 사유 등 메모")


class ReportGroup(SQLModel):
    order_id: int
    patient_id: Optional[str] = None
    patient_name: str
    results: List[ResultDetail]


class BatchResult(SQLModel):
    operation: str
    affected_count: int
    message: str
    order_ids: List[int] = []
    reports: Optional[List[ReportGroup]] = None


class ExportRequest(SQLModel):
    result_ids: List[int] = Field(default_factory=list)


# =============================================================================
# 3. 분석 항목 검증
# =============================================================================
class AnalyteRow(SQLModel):
    rv_id: int
    result_id: int
    order_id: int
    test_group_id: Optional[int] = None
    test_name: str
    parameter: str
    value: Optional[str] = None
    unit: Optional[str] = None
    reference_range: Optional[str] = None
    flag: Optional[str] = None
    verify_status: AnalyteVerifyStatus
    verify_note: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    patient_name: str
    patient_id: Optional[str] = None
    order_date: date


class ApproveRequest(SQLModel):
    note: Optional[str] = None


class RejectRequest(SQLModel):
    note: str = Field(..., description="반려 사유 (필수)")

    @field_validator("note")
    @classmethod
    def note_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("A note is required to reject an analyte")
        return v.strip()


class BulkApproveRequest(SQLModel):
    ids: List[int] = Field(default_factory=list)
    note: Optional[str] = None


# =============================================================================
# 4. 결과 단위 검증 화면
# =============================================================================
VerificationDateFilter = Literal["today", "last7days", "custom", "all"]
ParameterFlag = Literal["normal", "abnormal", "critical"]


class VerificationParameter(SQLModel):
    rv_id: int
    name: str
    value: Optional[str] = None
    unit: Optional[str] = None
    reference_range: Optional[str] = None
    flag: ParameterFlag = "normal"


class VerificationFlags(SQLModel):
    critical: bool = False
    repeat: bool = False
    manual_override: bool = False


class VerificationQueueItem(SQLModel):
    id: int
    order_id: int
    test_name: str
    test_group: str
    test_category: str
    patient_name: str
    patient_id: Optional[str] = None
    status: Literal["pending", "abnormal", "critical"]
    verification_status: VerificationStatus
    parameters: List[VerificationParameter] = []
    flags: VerificationFlags
    entered_date: date
    sample_time: Optional[datetime] = None
    collection_time: Optional[datetime] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    review_comment: Optional[str] = None


class VerificationStats(SQLModel):
    total: int = 0
    pending: int = 0
    flagged: int = 0
    critical: int = 0


class VerificationQueue(SQLModel):
    results: List[VerificationQueueItem] = []
    stats: VerificationStats


class ResultRejectRequest(SQLModel):
    reason: str = Field(..., description="반려 사유 (필수)")

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Rejection reason is required")
        return v.strip()


class BulkVerifyRequest(SQLModel):
    ids: List[int] = Field(default_factory=list)
    notes: Optional[str] = None


class BulkRejectRequest(ResultRejectRequest):
    ids: List[int] = Field(default_factory=list)


class BulkVerifyResult(SQLModel):
    success: bool
    success_count: int
    failed_ids: List[int] = []


class DeltaRead(SQLModel):
    percent: float
    direction: Literal["up", "down", "none"]


class PreviousResultRead(SQLModel):
    """같은 환자/같은 검사의 직전 검증 결과(대표 항목)입니다."""
    result_id: int
    entered_date: date
    verified_at: Optional[datetime] = None
    parameter: str
    value: Optional[str] = None
    unit: Optional[str] = None
    delta: Optional[DeltaRead] = None

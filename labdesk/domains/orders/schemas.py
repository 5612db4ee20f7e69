# labdesk/domains/orders/schemas.py

"""
'orders' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime, date
from pydantic import Field, field_validator
from sqlmodel import SQLModel

from .models import OrderPriority
from .status import ORDER_STATUSES, normalize_status


# =============================================================================
# 1. 오더 생성/조회 스키마
# =============================================================================
class OrderBase(SQLModel):
    patient_name: str = Field(..., max_length=100, description="환자명")
    patient_id: Optional[str] = Field(None, max_length=50, description="환자 ID")
    doctor: Optional[str] = Field(None, max_length=100, description="의뢰 의사")
    priority: OrderPriority = Field(OrderPriority.NORMAL, description="우선순위")
    order_date: date = Field(default_factory=date.today, description="오더 일자")
    expected_date: Optional[date] = Field(None, description="결과 예정일")
    order_number: Optional[int] = Field(None, description="일자별 오더 번호")
    location_id: Optional[int] = Field(None, description="접수 장소 ID")
    total_amount: float = Field(0, ge=0, description="오더 총액")


class OrderCreate(OrderBase):
    pass


class OrderUpdate(SQLModel):
    patient_name: Optional[str] = Field(None, max_length=100)
    doctor: Optional[str] = Field(None, max_length=100)
    priority: Optional[OrderPriority] = None
    expected_date: Optional[date] = None


class OrderRead(OrderBase):
    id: int
    lab_id: int
    status: str
    status_updated_at: Optional[datetime] = None
    status_updated_by: Optional[str] = None
    sample_collected_at: Optional[datetime] = None
    sample_collected_by: Optional[str] = None
    delivered_at: Optional[datetime] = None
    delivered_by: Optional[str] = None
    created_at: Optional[datetime] = None


class DisplayStatusRead(SQLModel):
    label: str
    tone: str
    description: str


class OrderDetail(OrderRead):
    """화면 표시에 필요한 도출 상태를 포함한 오더 응답입니다."""
    consistent_status: str
    is_sample_collected: bool
    display_status: DisplayStatusRead


# =============================================================================
# 2. 상태 변경 스키마
# =============================================================================
class OrderStatusUpdate(SQLModel):
    status: str = Field(..., description="변경할 오더 상태")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v in ORDER_STATUSES:
            return v
        normalized = normalize_status(v)
        if normalized not in ORDER_STATUSES:
            raise ValueError(f"Unknown order status: {v}")
        return normalized


class StatusUpdateResult(SQLModel):
    success: bool = True
    message: str
    auto_progressed: bool = False
    order: OrderDetail


class ConsistencyRead(SQLModel):
    order_id: int
    current_status: str
    sample_collected: bool
    is_consistent: bool
    recommended_status: Optional[str] = None
    issue: Optional[str] = None


class QuickActionRead(SQLModel):
    action: str
    label: str
    target_status: str


class QuickActionExecute(SQLModel):
    action: str = Field(..., description="실행할 빠른 상태 전환 동작")


class OrderProgressRead(SQLModel):
    order_id: int
    total_tests: int
    pending_verification: int
    verified_tests: int
    completed_tests: int
    progress_percentage: int

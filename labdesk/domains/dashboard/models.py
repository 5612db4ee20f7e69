# labdesk/domains/dashboard/models.py

"""
'dashboard' 도메인의 읽기 전용 ORM 모델입니다.

`mv_dashboard_orders`는 운영 DB에서 구체화 뷰로 생성되며
(pgsql_scripts/views.py), 마이그레이션 비교 대상에서 제외됩니다.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, date
from enum import Enum

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import Numeric
from sqlalchemy.types import TIMESTAMP

from labdesk.domains.shared.models import JSONType

DASHBOARD_VIEW_NAME = "mv_dashboard_orders"


class DashboardState(str, Enum):
    PENDING = "pending"             # 입력된 값 없음
    FOR_APPROVAL = "for_approval"   # 일부 입력, 전체 검증 전
    APPROVED = "approved"           # 전체 검증 완료
    REPORT_READY = "report_ready"   # 승인 + 보고서 준비
    DELIVERED = "delivered"         # 결과 전달 완료


class DashboardOrder(SQLModel, table=True):
    __tablename__ = DASHBOARD_VIEW_NAME

    order_id: int = Field(primary_key=True)
    lab_id: int = Field(index=True)
    order_date: date
    expected_date: Optional[date] = None
    order_number: Optional[int] = None

    patient_id: Optional[str] = None
    patient_name: str
    doctor: Optional[str] = None
    priority: Optional[str] = None
    total_amount: Optional[float] = Field(default=None, sa_column=Column(Numeric(12, 2)))

    sample_collected_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)))
    sample_status: Optional[str] = None

    expected_total: int = 0
    entered_total: int = 0
    verified_total: int = 0
    percent_complete: int = 0
    any_partial: bool = False
    all_verified: bool = False

    report_status: Optional[str] = None
    report_pdf_ready: bool = False
    delivered_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)))

    invoice_total: Optional[float] = Field(default=None, sa_column=Column(Numeric(12, 2)))
    paid_total: Optional[float] = Field(default=None, sa_column=Column(Numeric(12, 2)))
    balance_due: Optional[float] = Field(default=None, sa_column=Column(Numeric(12, 2)))

    attachments_count: int = 0
    ai_used: bool = False
    is_overdue: bool = False
    dashboard_state: str = Field(default=DashboardState.PENDING.value, index=True)

    tests: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSONType))

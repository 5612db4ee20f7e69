# labdesk/domains/dashboard/schemas.py

"""
'dashboard' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Any, Dict, List, Literal, Optional
import datetime as dt
from datetime import datetime, date
from sqlmodel import SQLModel

StatusFilter = Literal[
    "all", "pending", "for_approval", "approved", "report_ready", "delivered", "overdue", "balance_due"
]


class DashboardFilters(SQLModel):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    status: StatusFilter = "all"
    q: Optional[str] = None
    lab_id: Optional[int] = None


class DashboardOrderRow(SQLModel):
    order_id: int
    lab_id: int
    order_date: date
    expected_date: Optional[date] = None
    order_number: Optional[int] = None
    patient_id: Optional[str] = None
    patient_name: str
    doctor: Optional[str] = None
    priority: Optional[str] = None
    total_amount: Optional[float] = None
    sample_collected_at: Optional[datetime] = None
    sample_status: Optional[str] = None
    expected_total: int = 0
    entered_total: int = 0
    verified_total: int = 0
    percent_complete: int = 0
    any_partial: bool = False
    all_verified: bool = False
    report_status: Optional[str] = None
    report_pdf_ready: bool = False
    delivered_at: Optional[datetime] = None
    invoice_total: Optional[float] = None
    paid_total: Optional[float] = None
    balance_due: Optional[float] = None
    attachments_count: int = 0
    ai_used: bool = False
    is_overdue: bool = False
    dashboard_state: str
    tests: Optional[List[Dict[str, Any]]] = None


class KpiCounters(SQLModel):
    pending: int = 0
    for_approval: int = 0
    approved: int = 0
    report_ready: int = 0
    delivered: int = 0
    overdue: int = 0
    balance_due: int = 0


class DateGroup(SQLModel):
    key: str
    date: dt.date
    orders: List[DashboardOrderRow]


class DashboardResponse(SQLModel):
    rows: List[DashboardOrderRow]
    groups: List[DateGroup]
    kpis: KpiCounters

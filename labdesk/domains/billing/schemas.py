# labdesk/domains/billing/schemas.py

"""
'billing' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
금액은 DB에서 Decimal로 저장하고, 응답에서는 float로 직렬화합니다.
"""

from typing import Optional, List
from datetime import datetime, date
from pydantic import Field
from sqlmodel import SQLModel

from .models import InvoiceStatus, PaymentMethod, Shift


# =============================================================================
# 1. 청구서 (Invoice)
# =============================================================================
class InvoiceCreate(SQLModel):
    order_id: Optional[int] = Field(None, description="오더 ID")
    location_id: Optional[int] = Field(None, description="장소 ID")
    patient_id: Optional[str] = Field(None, max_length=50)
    patient_name: str = Field(..., max_length=100)
    subtotal: float = Field(0, ge=0, allow_inf_nan=False)
    discount: float = Field(0, ge=0, allow_inf_nan=False)
    tax: float = Field(0, ge=0, allow_inf_nan=False)
    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceRead(SQLModel):
    id: int
    lab_id: int
    order_id: Optional[int] = None
    location_id: Optional[int] = None
    patient_id: Optional[str] = None
    patient_name: str
    subtotal: float
    discount: float
    tax: float
    total: float
    status: InvoiceStatus
    invoice_date: date
    due_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# =============================================================================
# 2. 수납 (Payment)
# =============================================================================
class PaymentCreate(SQLModel):
    invoice_id: int
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="수납액")
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[datetime] = Field(None, description="수납 일시 (생략 시 현재 시각)")
    location_id: Optional[int] = None
    notes: Optional[str] = None


class PaymentRead(SQLModel):
    id: int
    lab_id: int
    invoice_id: int
    location_id: Optional[int] = None
    amount: float
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    payment_date: datetime
    collected_by: Optional[str] = None
    notes: Optional[str] = None


# =============================================================================
# 3. 현금 정산 (CashRegister)
# =============================================================================
class CashRegisterRead(SQLModel):
    id: int
    lab_id: int
    register_date: date
    location_id: int
    shift: Shift
    opening_balance: float
    system_amount: float
    actual_amount: Optional[float] = None
    closing_balance: Optional[float] = None
    variance: Optional[float] = None
    notes: Optional[str] = None
    reconciled: bool
    reconciled_by: Optional[str] = None
    reconciled_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class RegisterFigures(SQLModel):
    opening_balance: float
    cash_collections: float
    system_amount: float
    actual_amount: Optional[float] = None
    variance: Optional[float] = None


class FormattedFigures(SQLModel):
    """통화 형식이 적용된 표시용 금액. 정산 전에는 실제 금액과 차액을 표시하지 않습니다."""
    opening_balance: str
    cash_collections: str
    system_amount: str
    actual_amount: Optional[str] = None
    variance: Optional[str] = None


class RegisterSummary(SQLModel):
    register: CashRegisterRead
    payments: List[PaymentRead]
    transaction_count: int
    figures: RegisterFigures
    formatted: FormattedFigures


class ReconcileRequest(SQLModel):
    actual_amount: float = Field(..., ge=0, allow_inf_nan=False, description="실제 계수 금액")
    notes: Optional[str] = Field(None, description="정산 메모")

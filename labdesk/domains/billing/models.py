# labdesk/domains/billing/models.py

"""
'billing' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from typing import Optional
from decimal import Decimal
from datetime import datetime, date, UTC
from enum import Enum

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import Numeric, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK = "bank"
    CREDIT_ADJUSTMENT = "credit_adjustment"


class Shift(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"
    FULL_DAY = "full_day"


def _money_column(nullable: bool = False) -> Column:
    if nullable:
        return Column(Numeric(12, 2), nullable=True)
    return Column(Numeric(12, 2), nullable=False, server_default="0")


# =============================================================================
# 1. invoices 테이블 모델
# =============================================================================
class Invoice(SQLModel, table=True):
    __tablename__ = "invoices"

    id: Optional[int] = Field(default=None, primary_key=True, description="청구서 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="검사실 ID (FK)")
    order_id: Optional[int] = Field(default=None, foreign_key="orders.id", description="오더 ID (FK)")
    location_id: Optional[int] = Field(default=None, foreign_key="locations.id", description="장소 ID (FK)")
    patient_id: Optional[str] = Field(default=None, max_length=50, description="환자 ID")
    patient_name: str = Field(max_length=100, description="환자명")

    subtotal: Decimal = Field(default=Decimal("0"), sa_column=_money_column(), description="소계")
    discount: Decimal = Field(default=Decimal("0"), sa_column=_money_column(), description="할인액")
    tax: Decimal = Field(default=Decimal("0"), sa_column=_money_column(), description="세액")
    total: Decimal = Field(default=Decimal("0"), sa_column=_money_column(), description="청구 총액")

    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, description="청구서 상태")
    invoice_date: date = Field(default_factory=date.today, description="청구일")
    due_date: Optional[date] = Field(default=None, description="납부 기한")
    notes: Optional[str] = Field(default=None, description="비고")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 2. payments 테이블 모델
# =============================================================================
class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True, description="수납 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="검사실 ID (FK)")
    invoice_id: int = Field(foreign_key="invoices.id", index=True, description="청구서 ID (FK)")
    location_id: Optional[int] = Field(default=None, foreign_key="locations.id", index=True, description="수납 장소 ID (FK)")

    amount: Decimal = Field(sa_column=_money_column(), description="수납액")
    payment_method: PaymentMethod = Field(description="수납 수단")
    payment_reference: Optional[str] = Field(default=None, max_length=100, description="승인/거래 번호")
    payment_date: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False, index=True),
        description="수납 일시"
    )
    collected_by: Optional[str] = Field(default=None, max_length=100, description="수납자")
    notes: Optional[str] = Field(default=None, description="비고")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 3. cash_registers 테이블 모델
# =============================================================================
class CashRegister(SQLModel, table=True):
    """
    일자/장소/근무조 단위의 현금 정산 장부입니다.
    정산(reconciled)이 끝난 장부의 금액은 다시 계산하지 않습니다.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        UniqueConstraint("lab_id", "register_date", "location_id", "shift", name="uq_cash_register_key"),
    )

    id: Optional[int] = Field(default=None, primary_key=True, description="정산 장부 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="검사실 ID (FK)")
    register_date: date = Field(description="정산 일자")
    location_id: int = Field(foreign_key="locations.id", description="장소 ID (FK)")
    shift: Shift = Field(default=Shift.FULL_DAY, description="근무조")

    opening_balance: Decimal = Field(default=Decimal("0"), sa_column=_money_column(), description="시재금")
    system_amount: Decimal = Field(default=Decimal("0"), sa_column=_money_column(), description="시스템 예상 금액")
    actual_amount: Optional[Decimal] = Field(default=None, sa_column=_money_column(nullable=True), description="실제 계수 금액")
    closing_balance: Optional[Decimal] = Field(default=None, sa_column=_money_column(nullable=True), description="마감 잔액")
    variance: Optional[Decimal] = Field(default=None, sa_column=_money_column(nullable=True), description="차액 (실제 - 시스템)")
    notes: Optional[str] = Field(default=None, description="정산 메모")

    reconciled: bool = Field(default=False, description="정산 완료 여부")
    reconciled_by: Optional[str] = Field(default=None, max_length=100, description="정산자")
    reconciled_at: Optional[datetime] = Field(
        default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="정산 일시"
    )
    created_by: Optional[str] = Field(default=None, max_length=100, description="생성자")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

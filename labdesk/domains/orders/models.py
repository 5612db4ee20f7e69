# labdesk/domains/orders/models.py

"""
'orders' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from typing import Optional
from decimal import Decimal
from datetime import datetime, date, UTC
from enum import Enum

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import Numeric
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP

from .status import ORDER_CREATED


class OrderPriority(str, Enum):
    NORMAL = "Normal"
    URGENT = "Urgent"
    STAT = "STAT"


# =============================================================================
# 1. orders 테이블 모델
# =============================================================================
class Order(SQLModel, table=True):
    """
    검사 오더 테이블입니다.
    `status`와 검체 채취 기록(`sample_collected_at`, `sample_collected_by`)은
    orders.crud의 상태 동기화 로직을 통해 함께 갱신됩니다.
    """
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True, description="오더 고유 ID")
    lab_id: int = Field(foreign_key="labs.id", index=True, description="검사실 ID (FK)")
    location_id: Optional[int] = Field(default=None, foreign_key="locations.id", description="접수 장소 ID (FK)")
    order_number: Optional[int] = Field(default=None, description="일자별 오더 번호")

    patient_id: Optional[str] = Field(default=None, max_length=50, description="환자 ID")
    patient_name: str = Field(max_length=100, description="환자명")
    doctor: Optional[str] = Field(default=None, max_length=100, description="의뢰 의사")
    priority: OrderPriority = Field(default=OrderPriority.NORMAL, description="우선순위")

    order_date: date = Field(default_factory=date.today, index=True, description="오더 일자")
    expected_date: Optional[date] = Field(default=None, description="결과 예정일")
    total_amount: Decimal = Field(
        default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False, server_default="0"),
        description="오더 총액"
    )

    status: str = Field(default=ORDER_CREATED, max_length=50, index=True, description="오더 상태")
    status_updated_at: Optional[datetime] = Field(
        default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="상태 변경 일시"
    )
    status_updated_by: Optional[str] = Field(default=None, max_length=100, description="상태 변경자")
    sample_collected_at: Optional[datetime] = Field(
        default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="검체 채취 일시"
    )
    sample_collected_by: Optional[str] = Field(default=None, max_length=100, description="검체 채취자")
    delivered_at: Optional[datetime] = Field(
        default=None, sa_column=Column(TIMESTAMP(timezone=True)), description="결과 전달 일시"
    )
    delivered_by: Optional[str] = Field(default=None, max_length=100, description="결과 전달자")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

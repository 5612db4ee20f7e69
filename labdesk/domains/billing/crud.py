# labdesk/domains/billing/crud.py

"""
'billing' 도메인의 CRUD 로직을 담당하는 모듈입니다.

- 청구서 생성 및 수납 등록 (수납 완료 시 청구서 상태 갱신).
- 기간/장소/수납 수단별 수납 조회.
- 현금 정산 장부의 생성, 시스템 금액 재계산, 정산 확정.
"""

import logging
import math
from decimal import Decimal
from datetime import date, datetime, time, timedelta, UTC
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core.crud_base import CRUDBase
from labdesk.core.formatting import format_currency
from labdesk.domains.loc import crud as loc_crud
from labdesk.domains.loc import models as loc_models
from labdesk.domains.orders import crud as orders_crud
from labdesk.domains.shared import crud as shared_crud
from labdesk.domains.usr import models as usr_models
from . import models as billing_models
from . import schemas as billing_schemas

logger = logging.getLogger(__name__)


def to_decimal(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def _day_bounds(start_date: date, end_date: date):
    """[start_date 00:00, end_date 다음날 00:00) 구간을 UTC 기준 datetime으로 반환합니다."""
    start = datetime.combine(start_date, time.min, tzinfo=UTC)
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC)
    return start, end


async def _get_location_or_404(db: AsyncSession, *, location_id: int, lab_id: int) -> loc_models.Location:
    db_location = await loc_crud.location.get_for_lab(db, id=location_id, lab_id=lab_id)
    if not db_location:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return db_location


# =============================================================================
# 1. 청구서 (Invoice) CRUD
# =============================================================================
class CRUDInvoice(CRUDBase[billing_models.Invoice, billing_schemas.InvoiceCreate, billing_schemas.InvoiceCreate]):
    def __init__(self):
        super().__init__(model=billing_models.Invoice)

    async def create(self, db: AsyncSession, *, obj_in: billing_schemas.InvoiceCreate, lab_id: int) -> billing_models.Invoice:
        if obj_in.order_id is not None:
            if not await orders_crud.order.get_for_lab(db, id=obj_in.order_id, lab_id=lab_id):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
        if obj_in.location_id is not None:
            await _get_location_or_404(db, location_id=obj_in.location_id, lab_id=lab_id)

        subtotal, discount, tax = to_decimal(obj_in.subtotal), to_decimal(obj_in.discount), to_decimal(obj_in.tax)
        total = subtotal - discount + tax
        if total < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Discount cannot exceed subtotal plus tax")
        return await super().create(
            db, obj_in=obj_in, lab_id=lab_id, subtotal=subtotal, discount=discount, tax=tax, total=total
        )

    async def get_paid_total(self, db: AsyncSession, *, invoice_id: int) -> Decimal:
        statement = select(func.coalesce(func.sum(billing_models.Payment.amount), 0)).where(
            billing_models.Payment.invoice_id == invoice_id
        )
        result = await db.execute(statement)
        return to_decimal(result.scalar_one())


invoice = CRUDInvoice()


# =============================================================================
# 2. 수납 (Payment) CRUD
# =============================================================================
class CRUDPayment(CRUDBase[billing_models.Payment, billing_schemas.PaymentCreate, billing_schemas.PaymentCreate]):
    def __init__(self):
        super().__init__(model=billing_models.Payment)

    async def create(
        self, db: AsyncSession, *, obj_in: billing_schemas.PaymentCreate, lab_id: int, user: usr_models.User
    ) -> billing_models.Payment:
        """
        수납을 등록합니다. 누적 수납액이 청구 총액 이상이 되면 청구서를 Paid 로 바꿉니다.
        """
        db_invoice = await invoice.get_for_lab(db, id=obj_in.invoice_id, lab_id=lab_id)
        if not db_invoice:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
        location_id = obj_in.location_id if obj_in.location_id is not None else db_invoice.location_id
        if location_id is not None:
            await _get_location_or_404(db, location_id=location_id, lab_id=lab_id)

        data = obj_in.model_dump(exclude_unset=False)
        data["amount"] = to_decimal(obj_in.amount)
        data["location_id"] = location_id
        data["payment_date"] = obj_in.payment_date or datetime.now(UTC)
        db_obj = billing_models.Payment(**data, lab_id=lab_id, collected_by=user.display_name)
        db.add(db_obj)
        await db.flush()

        paid_total = await invoice.get_paid_total(db, invoice_id=db_invoice.id)
        if paid_total >= to_decimal(db_invoice.total) and db_invoice.status != billing_models.InvoiceStatus.PAID:
            db_invoice.status = billing_models.InvoiceStatus.PAID
            db.add(db_invoice)

        await db.commit()
        await db.refresh(db_obj)
        logger.info(
            "Payment %s recorded for invoice %s: %s via %s",
            db_obj.id, db_invoice.id, db_obj.amount, db_obj.payment_method.value,
        )
        return db_obj

    async def get_by_date_range(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        start_date: date,
        end_date: date,
        location_id: Optional[int] = None,
        payment_method: Optional[billing_models.PaymentMethod] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[billing_models.Payment]:
        """
        수납 일시가 [start_date, end_date] 달력 일자 범위에 드는 수납을 조회합니다.
        필터 값은 가공 없이 그대로 조회 조건으로 전달합니다.
        """
        start, end = _day_bounds(start_date, end_date)
        statement = select(self.model).where(
            self.model.lab_id == lab_id,
            self.model.payment_date >= start,
            self.model.payment_date < end,
        )
        if location_id is not None:
            statement = statement.where(self.model.location_id == location_id)
        if payment_method is not None:
            statement = statement.where(self.model.payment_method == payment_method)
        statement = statement.order_by(self.model.payment_date.desc(), self.model.id.desc()).offset(skip)
        if limit is not None:
            statement = statement.limit(limit)
        result = await db.execute(statement)
        return result.scalars().all()


payment = CRUDPayment()


# =============================================================================
# 3. 현금 정산 (CashRegister) CRUD
# =============================================================================
class CRUDCashRegister(CRUDBase[billing_models.CashRegister, billing_schemas.CashRegisterRead, billing_schemas.CashRegisterRead]):
    def __init__(self):
        super().__init__(model=billing_models.CashRegister)

    async def get_by_key(
        self, db: AsyncSession, *, lab_id: int, register_date: date, location_id: int, shift: billing_models.Shift
    ) -> Optional[billing_models.CashRegister]:
        statement = select(self.model).where(
            self.model.lab_id == lab_id,
            self.model.register_date == register_date,
            self.model.location_id == location_id,
            self.model.shift == shift,
        )
        result = await db.execute(statement)
        return result.scalars().one_or_none()

    async def get_or_create(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        register_date: date,
        location_id: int,
        shift: billing_models.Shift,
        opening_balance: Any = 0,
        created_by: Optional[str] = None,
    ) -> billing_models.CashRegister:
        """
        (검사실, 일자, 장소, 근무조) 장부를 조회하고, 없으면 시재금으로 새로 만듭니다.
        장소는 같은 검사실의 현금 수납 장소여야 합니다.
        """
        db_location = await _get_location_or_404(db, location_id=location_id, lab_id=lab_id)
        if not db_location.supports_cash_collection:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Location does not support cash collection")

        db_register = await self.get_by_key(
            db, lab_id=lab_id, register_date=register_date, location_id=location_id, shift=shift
        )
        if db_register:
            return db_register

        opening = to_decimal(opening_balance)
        db_register = billing_models.CashRegister(
            lab_id=lab_id,
            register_date=register_date,
            location_id=location_id,
            shift=shift,
            opening_balance=opening,
            system_amount=opening,
            created_by=created_by,
        )
        db.add(db_register)
        try:
            await db.commit()
        except IntegrityError:
            # 동시에 같은 장부가 만들어진 경우 기존 장부를 사용합니다.
            await db.rollback()
            db_register = await self.get_by_key(
                db, lab_id=lab_id, register_date=register_date, location_id=location_id, shift=shift
            )
            if db_register is None:
                raise
            return db_register
        await db.refresh(db_register)
        logger.info(
            "Cash register %s opened for %s / location %s / %s",
            db_register.id, register_date, location_id, shift.value,
        )
        return db_register

    async def load_register(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        register_date: date,
        location_id: int,
        shift: billing_models.Shift,
        opening_balance: Any = 0,
        user: Optional[usr_models.User] = None,
        currency: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        정산 화면 데이터를 구성합니다.

        해당 일자/장소의 현금 수납을 모아, 정산 전 장부라면
        `system_amount = opening_balance + 현금 수납 합계`로 다시 계산하여 저장합니다.
        정산이 끝난 장부는 다시 계산하지 않습니다.
        """
        db_register = await self.get_or_create(
            db,
            lab_id=lab_id,
            register_date=register_date,
            location_id=location_id,
            shift=shift,
            opening_balance=opening_balance,
            created_by=user.display_name if user else None,
        )
        cash_payments = await payment.get_by_date_range(
            db,
            lab_id=lab_id,
            start_date=register_date,
            end_date=register_date,
            location_id=location_id,
            payment_method=billing_models.PaymentMethod.CASH,
        )

        if not db_register.reconciled:
            total_cash = sum((to_decimal(p.amount) for p in cash_payments), Decimal("0"))
            new_system_amount = to_decimal(db_register.opening_balance) + total_cash
            if to_decimal(db_register.system_amount) != new_system_amount:
                db_register.system_amount = new_system_amount
                db.add(db_register)
                await db.commit()
                await db.refresh(db_register)

        return {
            "register": billing_schemas.CashRegisterRead.model_validate(db_register),
            "payments": [billing_schemas.PaymentRead.model_validate(p) for p in cash_payments],
            "transaction_count": len(cash_payments),
            **self.build_figures(db_register, currency=currency, locale=locale),
        }

    @staticmethod
    def build_figures(
        db_register: billing_models.CashRegister,
        *,
        currency: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """장부의 금액 항목과 통화 형식이 적용된 표시 문자열을 만듭니다."""
        opening = to_decimal(db_register.opening_balance)
        system_amount = to_decimal(db_register.system_amount)
        cash_collections = max(Decimal("0"), system_amount - opening)

        actual = to_decimal(db_register.actual_amount) if db_register.reconciled else None
        variance = to_decimal(db_register.variance) if db_register.reconciled and db_register.variance is not None else None

        def fmt(value: Optional[Decimal]) -> Optional[str]:
            return None if value is None else format_currency(value, currency=currency, locale=locale)

        return {
            "figures": {
                "opening_balance": float(opening),
                "cash_collections": float(cash_collections),
                "system_amount": float(system_amount),
                "actual_amount": float(actual) if actual is not None else None,
                "variance": float(variance) if variance is not None else None,
            },
            "formatted": {
                "opening_balance": fmt(opening),
                "cash_collections": fmt(cash_collections),
                "system_amount": fmt(system_amount),
                "actual_amount": fmt(actual),
                "variance": fmt(variance),
            },
        }

    async def reconcile(
        self,
        db: AsyncSession,
        *,
        db_register: billing_models.CashRegister,
        actual_amount: Any,
        notes: Optional[str],
        user: usr_models.User,
    ) -> billing_models.CashRegister:
        """
        실제 계수 금액으로 장부를 정산합니다.
        금액이 없거나 음수/NaN이면 422, 이미 정산된 장부면 400을 발생시킵니다.
        """
        if actual_amount is None or isinstance(actual_amount, bool):
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Please enter a valid actual amount")
        try:
            actual_float = float(actual_amount)
        except (TypeError, ValueError):
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Please enter a valid actual amount")
        if math.isnan(actual_float) or math.isinf(actual_float) or actual_float < 0:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Please enter a valid actual amount")
        if db_register.reconciled:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cash register is already reconciled")

        actual = to_decimal(actual_amount)
        system_amount = to_decimal(db_register.system_amount)
        db_register.actual_amount = actual
        db_register.closing_balance = actual
        db_register.variance = actual - system_amount
        db_register.notes = notes
        db_register.reconciled = True
        db_register.reconciled_by = user.display_name
        db_register.reconciled_at = datetime.now(UTC)
        db.add(db_register)

        shared_crud.audit_log.record(
            db,
            lab_id=db_register.lab_id,
            entity_type="cash_register",
            entity_id=db_register.id,
            action="reconcile",
            old_values={"system_amount": system_amount},
            new_values={
                "actual_amount": actual,
                "variance": db_register.variance,
                "notes": notes,
            },
            performed_by=user.display_name,
        )
        await db.commit()
        await db.refresh(db_register)
        logger.info(
            "Cash register %s reconciled by %s (system=%s, actual=%s, variance=%s)",
            db_register.id, user.display_name, system_amount, actual, db_register.variance,
        )
        return db_register


cash_register = CRUDCashRegister()

# labdesk/domains/billing/routers.py

"""
'billing' 도메인의 API 엔드포인트를 정의하는 모듈입니다.
"""

from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.loc import crud as loc_crud
from labdesk.domains.loc import schemas as loc_schemas
from labdesk.domains.usr.models import User as UsrUser

from . import crud as billing_crud
from . import models as billing_models
from . import schemas as billing_schemas

router = APIRouter(
    tags=["Billing & Cash Reconciliation (수납 및 현금 정산)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 청구서 (Invoice)
# =============================================================================
@router.post("/invoices", response_model=billing_schemas.InvoiceRead, status_code=status.HTTP_201_CREATED, summary="청구서 생성")
async def create_invoice(
    invoice_in: billing_schemas.InvoiceCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """청구 총액은 `subtotal - discount + tax`로 계산됩니다."""
    return await billing_crud.invoice.create(db, obj_in=invoice_in, lab_id=current_user.lab_id)


@router.get("/invoices", response_model=List[billing_schemas.InvoiceRead], summary="청구서 목록 조회")
async def read_invoices(
    invoice_status: Optional[billing_models.InvoiceStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, description="조회 시작일 (invoice_date)"),
    end_date: Optional[date] = Query(None, description="조회 종료일 (invoice_date)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    filters = {"lab_id": current_user.lab_id}
    if invoice_status is not None:
        filters["status"] = invoice_status
    return await billing_crud.invoice.get_filtered(
        db,
        filters=filters,
        date_range_field="invoice_date",
        start_date=start_date,
        end_date=end_date,
        order_by_field="invoice_date",
        skip=skip,
        limit=limit,
    )


# =============================================================================
# 2. 수납 (Payment)
# =============================================================================
@router.post("/payments", response_model=billing_schemas.PaymentRead, status_code=status.HTTP_201_CREATED, summary="수납 등록")
async def create_payment(
    payment_in: billing_schemas.PaymentCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await billing_crud.payment.create(db, obj_in=payment_in, lab_id=current_user.lab_id, user=current_user)


@router.get("/payments", response_model=List[billing_schemas.PaymentRead], summary="기간별 수납 조회")
async def read_payments(
    start_date: date = Query(..., description="조회 시작일"),
    end_date: date = Query(..., description="조회 종료일"),
    location_id: Optional[int] = Query(None, description="수납 장소 ID"),
    payment_method: Optional[billing_models.PaymentMethod] = Query(None, description="수납 수단"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not be before start_date")
    return await billing_crud.payment.get_by_date_range(
        db,
        lab_id=current_user.lab_id,
        start_date=start_date,
        end_date=end_date,
        location_id=location_id,
        payment_method=payment_method,
        skip=skip,
        limit=limit,
    )


# =============================================================================
# 3. 현금 정산 (Cash Reconciliation)
# =============================================================================
@router.get("/cash-locations", response_model=List[loc_schemas.LocationRead], summary="현금 수납 장소 목록")
async def read_cash_locations(
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await loc_crud.location.list_cash_locations(db, lab_id=current_user.lab_id)


@router.get("/cash-register", response_model=billing_schemas.RegisterSummary, summary="현금 정산 장부 조회")
async def read_cash_register(
    register_date: date = Query(..., description="정산 일자"),
    location_id: int = Query(..., description="장소 ID"),
    shift: billing_models.Shift = Query(billing_models.Shift.FULL_DAY, description="근무조"),
    opening_balance: float = Query(0, ge=0, description="새 장부 생성 시 시재금"),
    currency: Optional[str] = Query(None, description="표시 통화 (기본: 설정값)"),
    locale: Optional[str] = Query(None, description="표시 로케일 (기본: 설정값)"),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    장부를 조회(없으면 생성)하고 당일 현금 수납과 금액 요약을 반환합니다.
    정산 전 장부는 시스템 금액을 다시 계산하여 저장합니다.
    """
    return await billing_crud.cash_register.load_register(
        db,
        lab_id=current_user.lab_id,
        register_date=register_date,
        location_id=location_id,
        shift=shift,
        opening_balance=opening_balance,
        user=current_user,
        currency=currency,
        locale=locale,
    )


@router.post("/cash-register/{register_id}/reconcile", response_model=billing_schemas.RegisterSummary, summary="현금 정산 확정")
async def reconcile_cash_register(
    register_id: int,
    reconcile_in: billing_schemas.ReconcileRequest,
    currency: Optional[str] = Query(None),
    locale: Optional[str] = Query(None),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_register = await billing_crud.cash_register.get_for_lab(db, id=register_id, lab_id=current_user.lab_id)
    if not db_register:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cash register not found")

    db_register = await billing_crud.cash_register.reconcile(
        db,
        db_register=db_register,
        actual_amount=reconcile_in.actual_amount,
        notes=reconcile_in.notes,
        user=current_user,
    )
    return await billing_crud.cash_register.load_register(
        db,
        lab_id=current_user.lab_id,
        register_date=db_register.register_date,
        location_id=db_register.location_id,
        shift=db_register.shift,
        user=current_user,
        currency=currency,
        locale=locale,
    )

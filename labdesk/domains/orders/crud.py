# labdesk/domains/orders/crud.py

"""
'orders' 도메인의 CRUD 로직을 담당하는 모듈입니다.

상태 변경은 항상 `status.build_status_update`를 거쳐 검체 채취 기록과 함께 저장되며,
변경 내용은 감사 로그에 남고 이벤트 버스로 알려집니다.
"""

import logging
from decimal import Decimal
from datetime import date, datetime, UTC
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status as http_status
from sqlalchemy import and_, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import events
from labdesk.core.crud_base import CRUDBase
from labdesk.domains.loc import crud as loc_crud
from labdesk.domains.results import models as results_models
from labdesk.domains.shared import crud as shared_crud
from labdesk.domains.usr import models as usr_models
from . import models as orders_models
from . import schemas as orders_schemas
from . import status as order_status

logger = logging.getLogger(__name__)

# 상태 변경 시 감사 로그에 남길 필드
_TRACKED_FIELDS = ("status", "sample_collected_at", "sample_collected_by")

# 자동 보정 작업이 상태 변경자로 남기는 이름
SYSTEM_ACTOR = "system"


def build_order_detail(order: orders_models.Order) -> orders_schemas.OrderDetail:
    """오더 행에 도출 상태(일관 상태, 표시 배지)를 더해 응답 스키마로 만듭니다."""
    data = orders_schemas.OrderRead.model_validate(order).model_dump()
    data["consistent_status"] = order_status.derive_consistent_status(
        order.status, order.sample_collected_at, order.sample_collected_by
    )
    data["is_sample_collected"] = order_status.has_collected_sample(
        order.sample_collected_at, order.sample_collected_by
    )
    data["display_status"] = order_status.derive_display_status(order).to_dict()
    return orders_schemas.OrderDetail.model_validate(data)


def _snapshot(order: orders_models.Order) -> Dict[str, Any]:
    return {field: getattr(order, field) for field in _TRACKED_FIELDS}


# =============================================================================
# 1. 오더 (Order) CRUD
# =============================================================================
class CRUDOrder(CRUDBase[orders_models.Order, orders_schemas.OrderCreate, orders_schemas.OrderUpdate]):
    def __init__(self):
        super().__init__(model=orders_models.Order)

    async def create(self, db: AsyncSession, *, obj_in: orders_schemas.OrderCreate, lab_id: int) -> orders_models.Order:
        if obj_in.location_id is not None:
            if not await loc_crud.location.get_for_lab(db, id=obj_in.location_id, lab_id=lab_id):
                raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail="Location not found")
        return await super().create(
            db, obj_in=obj_in, lab_id=lab_id, status=order_status.ORDER_CREATED,
            total_amount=Decimal(str(obj_in.total_amount)),
        )

    async def get_orders(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        location_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[orders_models.Order]:
        """필터 값은 가공 없이 그대로 조회 조건으로 전달합니다."""
        filters: Dict[str, Any] = {"lab_id": lab_id}
        if status is not None:
            filters["status"] = status
        if priority is not None:
            filters["priority"] = priority
        if location_id is not None:
            filters["location_id"] = location_id
        return await self.get_filtered(
            db,
            filters=filters,
            date_range_field="order_date",
            start_date=start_date,
            end_date=end_date,
            order_by_field="order_date",
            skip=skip,
            limit=limit,
        )

    # -------------------------------------------------------------------------
    # 상태 변경
    # -------------------------------------------------------------------------
    def _apply(self, db_obj: orders_models.Order, payload: Dict[str, Any]) -> None:
        for key, value in payload.items():
            setattr(db_obj, key, value)

    async def update_status(
        self,
        db: AsyncSession,
        *,
        db_obj: orders_models.Order,
        new_status: str,
        user: usr_models.User,
    ) -> Tuple[orders_models.Order, Optional[str]]:
        """
        오더 상태를 변경하고, 모든 검사가 검증된 경우 자동으로 Completed 까지 진행합니다.
        (변경된 오더, 자동 전환된 상태 또는 None)을 반환합니다.
        """
        updated_by = user.display_name
        old_values = _snapshot(db_obj)
        payload = order_status.build_status_update(
            new_status, updated_by, datetime.now(UTC), db_obj.sample_collected_at
        )
        self._apply(db_obj, payload)
        db.add(db_obj)
        shared_crud.audit_log.record(
            db,
            lab_id=db_obj.lab_id,
            entity_type="order",
            entity_id=db_obj.id,
            action="status_update",
            old_values=old_values,
            new_values=_snapshot(db_obj),
            performed_by=updated_by,
        )

        progress = await self.get_progress(db, order_id=db_obj.id)
        auto_status = order_status.auto_progress(db_obj.status, progress)
        if auto_status:
            before = _snapshot(db_obj)
            self._apply(db_obj, order_status.build_status_update(
                auto_status, updated_by, datetime.now(UTC), db_obj.sample_collected_at
            ))
            shared_crud.audit_log.record(
                db,
                lab_id=db_obj.lab_id,
                entity_type="order",
                entity_id=db_obj.id,
                action="auto_progress",
                old_values=before,
                new_values=_snapshot(db_obj),
                performed_by=updated_by,
            )

        await db.commit()
        await db.refresh(db_obj)
        logger.info(
            "Order %s status updated to '%s' by %s%s",
            db_obj.id, db_obj.status, updated_by,
            f" (auto from '{new_status}')" if auto_status else "",
        )
        events.bus.publish(events.ORDER_STATUS_UPDATE, {"order_id": db_obj.id, "status": db_obj.status})
        return db_obj, auto_status

    async def mark_sample_collected(
        self, db: AsyncSession, *, db_obj: orders_models.Order, user: usr_models.User,
        collected_by: Optional[str] = None,
    ) -> orders_models.Order:
        collector = collected_by or user.display_name
        now = datetime.now(UTC)
        old_values = _snapshot(db_obj)
        self._apply(db_obj, {
            "sample_collected_at": now,
            "sample_collected_by": collector,
            "status": order_status.SAMPLE_COLLECTED,
            "status_updated_at": now,
            "status_updated_by": collector,
        })
        return await self._commit_sync(db, db_obj, "sample_collected", old_values, collector)

    async def mark_sample_not_collected(
        self, db: AsyncSession, *, db_obj: orders_models.Order, user: usr_models.User
    ) -> orders_models.Order:
        updated_by = user.display_name
        old_values = _snapshot(db_obj)
        self._apply(db_obj, {
            "sample_collected_at": None,
            "sample_collected_by": None,
            "status": order_status.PENDING_COLLECTION,
            "status_updated_at": datetime.now(UTC),
            "status_updated_by": updated_by,
        })
        return await self._commit_sync(db, db_obj, "sample_uncollected", old_values, updated_by)

    async def _commit_sync(
        self, db: AsyncSession, db_obj: orders_models.Order, action: str,
        old_values: Dict[str, Any], performed_by: str,
    ) -> orders_models.Order:
        db.add(db_obj)
        shared_crud.audit_log.record(
            db,
            lab_id=db_obj.lab_id,
            entity_type="order",
            entity_id=db_obj.id,
            action=action,
            old_values=old_values,
            new_values=_snapshot(db_obj),
            performed_by=performed_by,
        )
        await db.commit()
        await db.refresh(db_obj)
        logger.info("Order %s %s by %s", db_obj.id, action.replace("_", " "), performed_by)
        events.bus.publish(events.ORDER_STATUS_UPDATE, {"order_id": db_obj.id, "status": db_obj.status})
        return db_obj

    # -------------------------------------------------------------------------
    # 진행률
    # -------------------------------------------------------------------------
    async def get_progress(self, db: AsyncSession, *, order_id: int) -> events.ProgressData:
        statement = select(results_models.Result).where(results_models.Result.order_id == order_id)
        result = await db.execute(statement)
        return order_status.compute_progress(result.scalars().all())

    async def publish_progress(self, db: AsyncSession, *, order_id: int) -> events.ProgressData:
        """진행률을 계산해 이벤트 버스로 발행합니다."""
        progress = await self.get_progress(db, order_id=order_id)
        events.publish_progress_update(order_id, progress)
        return progress

    # -------------------------------------------------------------------------
    # 상태 불일치 일괄 보정
    # -------------------------------------------------------------------------
    async def fix_status_inconsistencies(self, db: AsyncSession, *, lab_id: Optional[int] = None) -> int:
        """
        채취 기록과 어긋난 오더 상태를 권장 상태로 보정하고 보정한 건수를 반환합니다.
        커밋은 호출한 쪽에서 수행합니다.
        """
        collected = and_(
            self.model.sample_collected_at.is_not(None),
            self.model.sample_collected_by.is_not(None),
        )
        not_collected = or_(
            self.model.sample_collected_at.is_(None),
            self.model.sample_collected_by.is_(None),
        )
        statement = select(self.model).where(
            or_(
                and_(collected, self.model.status.in_(sorted(order_status.NOT_COLLECTED_STATUSES))),
                and_(not_collected, self.model.status.in_([order_status.SAMPLE_COLLECTED, order_status.IN_PROGRESS])),
            )
        )
        if lab_id is not None:
            statement = statement.where(self.model.lab_id == lab_id)

        rows = (await db.execute(statement)).scalars().all()
        now = datetime.now(UTC)
        for db_obj in rows:
            check = order_status.check_status_consistency(db_obj)
            old_values = _snapshot(db_obj)
            db_obj.status = check.recommended_status
            db_obj.status_updated_at = now
            db_obj.status_updated_by = SYSTEM_ACTOR
            db.add(db_obj)
            shared_crud.audit_log.record(
                db,
                lab_id=db_obj.lab_id,
                entity_type="order",
                entity_id=db_obj.id,
                action="bulk_status_sync_fix",
                old_values=old_values,
                new_values={"status": db_obj.status, "reason": check.issue},
                performed_by=SYSTEM_ACTOR,
            )
        return len(rows)


order = CRUDOrder()

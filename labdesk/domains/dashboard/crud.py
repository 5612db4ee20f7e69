# labdesk/domains/dashboard/crud.py

"""
'dashboard' 도메인의 조회 로직을 담당하는 모듈입니다.

행 조회와 필터링은 DB에 맡기고, KPI 집계와 일자별 그룹핑만 이미 조회한 행으로 계산합니다.
"""

import logging
from collections import OrderedDict
from typing import Dict, List

from sqlalchemy import text
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core.crud_base import CRUDBase
from . import models as dashboard_models
from . import schemas as dashboard_schemas

logger = logging.getLogger(__name__)

_STATE_KEYS = ("pending", "for_approval", "approved", "report_ready", "delivered")


def count_kpis(rows: List[dashboard_models.DashboardOrder]) -> dashboard_schemas.KpiCounters:
    counters: Dict[str, int] = {key: 0 for key in _STATE_KEYS}
    overdue = 0
    balance_due = 0
    for row in rows:
        if row.dashboard_state in counters:
            counters[row.dashboard_state] += 1
        if row.is_overdue:
            overdue += 1
        if (row.balance_due or 0) > 0:
            balance_due += 1
    return dashboard_schemas.KpiCounters(**counters, overdue=overdue, balance_due=balance_due)


def group_by_date(rows: List[dashboard_models.DashboardOrder]) -> List[dashboard_schemas.DateGroup]:
    """
    오더 일자별로 묶어 최신 일자부터 반환합니다.
    그룹 안에서는 오더 번호 내림차순이며, 번호가 없으면 0으로 취급합니다.
    """
    grouped: "OrderedDict[str, list]" = OrderedDict()
    for row in rows:
        grouped.setdefault(row.order_date.isoformat(), []).append(row)

    groups = []
    for key in sorted(grouped, reverse=True):
        members = sorted(grouped[key], key=lambda r: r.order_number or 0, reverse=True)
        groups.append(dashboard_schemas.DateGroup(
            key=key,
            date=members[0].order_date,
            orders=[dashboard_schemas.DashboardOrderRow.model_validate(r) for r in members],
        ))
    return groups


class CRUDDashboard(CRUDBase[dashboard_models.DashboardOrder, dashboard_schemas.DashboardOrderRow, dashboard_schemas.DashboardOrderRow]):
    def __init__(self):
        super().__init__(model=dashboard_models.DashboardOrder)

    async def fetch_rows(
        self, db: AsyncSession, *, filters: dashboard_schemas.DashboardFilters
    ) -> List[dashboard_models.DashboardOrder]:
        model = self.model
        statement = select(model)
        if filters.from_date:
            statement = statement.where(model.order_date >= filters.from_date)
        if filters.to_date:
            statement = statement.where(model.order_date <= filters.to_date)
        if filters.lab_id is not None:
            statement = statement.where(model.lab_id == filters.lab_id)

        if filters.status == "overdue":
            statement = statement.where(model.is_overdue.is_(True))
        elif filters.status == "balance_due":
            statement = statement.where(model.balance_due > 0)
        elif filters.status != "all":
            statement = statement.where(model.dashboard_state == filters.status)

        if filters.q:
            statement = statement.where(model.patient_name.ilike(f"%{filters.q}%"))

        statement = statement.order_by(model.order_date.desc(), model.order_number.desc().nulls_last())
        result = await db.execute(statement)
        return result.scalars().all()

    async def load(
        self, db: AsyncSession, *, filters: dashboard_schemas.DashboardFilters
    ) -> dashboard_schemas.DashboardResponse:
        rows = await self.fetch_rows(db, filters=filters)
        return dashboard_schemas.DashboardResponse(
            rows=[dashboard_schemas.DashboardOrderRow.model_validate(r) for r in rows],
            groups=group_by_date(rows),
            kpis=count_kpis(rows),
        )

    async def refresh_view(self, db: AsyncSession) -> bool:
        """
        PostgreSQL에서 구체화 뷰를 갱신합니다. 다른 DB에서는 아무것도 하지 않고 False를 반환합니다.
        """
        if db.bind.dialect.name != "postgresql":
            return False
        await db.execute(text(f"REFRESH MATERIALIZED VIEW {dashboard_models.DASHBOARD_VIEW_NAME}"))
        await db.commit()
        logger.info("Materialized view %s refreshed", dashboard_models.DASHBOARD_VIEW_NAME)
        return True


dashboard = CRUDDashboard()

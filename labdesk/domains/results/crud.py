# labdesk/domains/results/crud.py

"""
'results' 도메인의 CRUD 로직을 담당하는 모듈입니다.

- 결과 입력 및 조회 (분석 항목 값 포함).
- 분석 항목 단위 검증: 기간/검색어 조회, 승인, 반려, 일괄 승인.
- 결과 단위 검증 화면: 대기 목록과 통계, 승인/반려(일괄 포함), 직전 결과 비교.
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta, UTC
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import String, cast, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core.crud_base import CRUDBase
from labdesk.domains.orders import crud as orders_crud
from labdesk.domains.orders import models as orders_models
from labdesk.domains.shared import crud as shared_crud
from labdesk.domains.usr import models as usr_models
from . import models as results_models
from . import schemas as results_schemas

logger = logging.getLogger(__name__)


# =============================================================================
# 1. 결과 (Result) CRUD
# =============================================================================
class CRUDResult(CRUDBase[results_models.Result, results_schemas.ResultCreate, results_schemas.ResultCreate]):
    def __init__(self):
        super().__init__(model=results_models.Result)

    async def create(
        self, db: AsyncSession, *, obj_in: results_schemas.ResultCreate, lab_id: int, user: usr_models.User
    ) -> results_models.Result:
        """오더의 환자 정보를 복사하여 결과와 분석 항목 값을 함께 저장합니다."""
        db_order = await orders_crud.order.get_for_lab(db, id=obj_in.order_id, lab_id=lab_id)
        if not db_order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

        db_result = results_models.Result(
            lab_id=lab_id,
            order_id=db_order.id,
            test_group_id=obj_in.test_group_id,
            test_name=obj_in.test_name,
            patient_id=db_order.patient_id,
            patient_name=db_order.patient_name,
            entered_date=obj_in.entered_date,
            entered_by=user.display_name,
        )
        db.add(db_result)
        await db.flush()
        for value_in in obj_in.values:
            db.add(results_models.ResultValue(result_id=db_result.id, **value_in.model_dump()))
        await db.commit()
        await db.refresh(db_result)
        return db_result

    async def get_by_ids(self, db: AsyncSession, *, ids: Iterable[int], lab_id: int) -> List[results_models.Result]:
        statement = (
            select(self.model)
            .where(self.model.id.in_(list(ids)), self.model.lab_id == lab_id)
            .order_by(self.model.id)
        )
        result = await db.execute(statement)
        return result.scalars().all()

    async def get_values_for(
        self, db: AsyncSession, *, result_ids: Iterable[int]
    ) -> Dict[int, List[results_models.ResultValue]]:
        ids = list(result_ids)
        grouped: Dict[int, List[results_models.ResultValue]] = defaultdict(list)
        if not ids:
            return grouped
        statement = (
            select(results_models.ResultValue)
            .where(results_models.ResultValue.result_id.in_(ids))
            .order_by(results_models.ResultValue.id)
        )
        for value in (await db.execute(statement)).scalars().all():
            grouped[value.result_id].append(value)
        return grouped

    async def build_details(
        self, db: AsyncSession, *, results: List[results_models.Result]
    ) -> List[results_schemas.ResultDetail]:
        values = await self.get_values_for(db, result_ids=[r.id for r in results])
        details = []
        for r in results:
            data = results_schemas.ResultRead.model_validate(r).model_dump()
            data["values"] = [results_schemas.ResultValueRead.model_validate(v) for v in values.get(r.id, [])]
            details.append(results_schemas.ResultDetail.model_validate(data))
        return details


result = CRUDResult()


# =============================================================================
# 2. 분석 항목 값 (ResultValue) 검증 CRUD
# =============================================================================
def _to_analyte_row(value: results_models.ResultValue, parent: results_models.Result) -> results_schemas.AnalyteRow:
    return results_schemas.AnalyteRow(
        rv_id=value.id,
        result_id=value.result_id,
        order_id=parent.order_id,
        test_group_id=parent.test_group_id,
        test_name=parent.test_name,
        parameter=value.parameter,
        value=value.value,
        unit=value.unit,
        reference_range=value.reference_range,
        flag=value.flag,
        verify_status=value.verify_status,
        verify_note=value.verify_note,
        verified_by=value.verified_by,
        verified_at=value.verified_at,
        patient_name=parent.patient_name,
        patient_id=parent.patient_id,
        order_date=parent.entered_date,
    )


class CRUDResultValue(CRUDBase[results_models.ResultValue, results_schemas.ResultValueCreate, results_schemas.ResultValueCreate]):
    def __init__(self):
        super().__init__(model=results_models.ResultValue)

    def _joined(self, lab_id: int):
        Result = results_models.Result
        return (
            select(self.model, Result)
            .join(Result, Result.id == self.model.result_id)
            .where(Result.lab_id == lab_id)
        )

    async def list_analytes(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        from_date: date,
        to_date: date,
        q: Optional[str] = None,
    ) -> List[results_schemas.AnalyteRow]:
        """
        결과 입력일이 [from_date, to_date]에 드는 분석 항목을 결과 정보와 함께 반환합니다.
        q는 검사명, 항목명, 환자명, 오더 ID에 대한 대소문자 무시 부분 일치 검색입니다.
        """
        Result = results_models.Result
        statement = self._joined(lab_id).where(
            Result.entered_date >= from_date,
            Result.entered_date <= to_date,
        )
        term = (q or "").strip()
        if term:
            pattern = f"%{term}%"
            statement = statement.where(
                or_(
                    Result.test_name.ilike(pattern),
                    self.model.parameter.ilike(pattern),
                    Result.patient_name.ilike(pattern),
                    cast(Result.order_id, String).ilike(pattern),
                )
            )
        statement = statement.order_by(Result.entered_date.desc(), self.model.id)
        rows = (await db.execute(statement)).all()
        return [_to_analyte_row(value, parent) for value, parent in rows]

    async def _get_rows(
        self, db: AsyncSession, *, ids: List[int], lab_id: int
    ) -> List[tuple]:
        statement = self._joined(lab_id).where(self.model.id.in_(ids)).order_by(self.model.id)
        rows = (await db.execute(statement)).all()
        found = {value.id for value, _ in rows}
        missing = sorted(set(ids) - found)
        if missing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Analyte(s) not found: {missing}")
        return rows

    async def _set_status(
        self,
        db: AsyncSession,
        *,
        ids: List[int],
        lab_id: int,
        verify_status: results_models.AnalyteVerifyStatus,
        note: Optional[str],
        user: usr_models.User,
    ) -> List[results_schemas.AnalyteRow]:
        rows = await self._get_rows(db, ids=ids, lab_id=lab_id)
        now = datetime.now(UTC)
        for value, _ in rows:
            value.verify_status = verify_status
            value.verify_note = note
            value.verified_at = now
            value.verified_by = user.display_name
            db.add(value)
        await db.commit()

        for value, _ in rows:
            await db.refresh(value)
        logger.info(
            "%d analyte(s) marked %s by %s", len(rows), verify_status.value, user.display_name
        )
        for order_id in sorted({parent.order_id for _, parent in rows}):
            await orders_crud.order.publish_progress(db, order_id=order_id)
        return [_to_analyte_row(value, parent) for value, parent in rows]

    async def approve(
        self, db: AsyncSession, *, id: int, lab_id: int, note: Optional[str], user: usr_models.User
    ) -> results_schemas.AnalyteRow:
        rows = await self._set_status(
            db, ids=[id], lab_id=lab_id,
            verify_status=results_models.AnalyteVerifyStatus.APPROVED, note=note, user=user,
        )
        return rows[0]

    async def reject(
        self, db: AsyncSession, *, id: int, lab_id: int, note: str, user: usr_models.User
    ) -> results_schemas.AnalyteRow:
        if not note or not note.strip():
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="A note is required to reject an analyte")
        rows = await self._set_status(
            db, ids=[id], lab_id=lab_id,
            verify_status=results_models.AnalyteVerifyStatus.REJECTED, note=note, user=user,
        )
        return rows[0]

    async def bulk_approve(
        self, db: AsyncSession, *, ids: List[int], lab_id: int, note: Optional[str], user: usr_models.User
    ) -> List[results_schemas.AnalyteRow]:
        unique_ids = sorted(set(ids))
        if not unique_ids:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No analytes selected")
        return await self._set_status(
            db, ids=unique_ids, lab_id=lab_id,
            verify_status=results_models.AnalyteVerifyStatus.APPROVED, note=note, user=user,
        )


result_value = CRUDResultValue()


# =============================================================================
# 3. 결과 단위 검증 화면 (대기 목록, 승인/반려, 직전 결과 비교)
# =============================================================================
# 검사명에 포함된 단어로 검사 그룹을 추정합니다. 먼저 일치한 그룹이 우선합니다.
TEST_GROUP_KEYWORDS = (
    ("Blood Banking", ("blood group", "rh", "abo", "antibody", "crossmatch", "screen")),
    ("Chemistry", ("glucose", "creatinine", "urea")),
    ("Hematology", ("cbc", "hemoglobin", "platelet")),
    ("Microbiology", ("culture", "sensitivity", "gram")),
    ("Clinical Pathology", ("urine", "microscopy")),
)
DEFAULT_TEST_GROUP = "General Tests"

TEST_CATEGORIES = {
    "Blood Banking": "Transfusion Medicine",
    "Chemistry": "Clinical Chemistry",
    "Hematology": "Hematology",
    "Microbiology": "Microbiology",
    "Clinical Pathology": "Clinical Pathology",
}
DEFAULT_TEST_CATEGORY = "General"


def classify_test_group(test_name: Optional[str]) -> str:
    lowered = (test_name or "").lower()
    for group, keywords in TEST_GROUP_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return group
    return DEFAULT_TEST_GROUP


def category_for_group(group: str) -> str:
    return TEST_CATEGORIES.get(group, DEFAULT_TEST_CATEGORY)


def normalize_flag(flag: Optional[str]) -> str:
    """
    분석 항목의 이상 표시를 normal / abnormal / critical 중 하나로 맞춥니다.
    HH, LL은 위험(critical), H, L, A는 이상(abnormal)으로 봅니다.
    """
    if not flag or not flag.strip():
        return "normal"
    lowered = flag.strip().lower()
    if "critical" in lowered or lowered in ("hh", "ll"):
        return "critical"
    if "abnormal" in lowered or "high" in lowered or "low" in lowered or lowered in ("h", "l", "a"):
        return "abnormal"
    return "normal"


def status_from_flags(critical_flag: bool, delta_check_flag: bool) -> str:
    if critical_flag:
        return "critical"
    if delta_check_flag:
        return "abnormal"
    return "pending"


def compute_delta(current: Optional[str], previous: Optional[str]) -> Optional[Dict[str, object]]:
    """두 측정값이 모두 숫자일 때 직전 값 대비 변화율(%)과 방향을 계산합니다."""
    try:
        current_value = float(str(current).strip())
        previous_value = float(str(previous).strip())
    except (TypeError, ValueError):
        return None
    if previous_value == 0 or not math.isfinite(current_value) or not math.isfinite(previous_value):
        return None
    percent = round((current_value - previous_value) / abs(previous_value) * 100, 1)
    if percent > 0:
        direction = "up"
    elif percent < 0:
        direction = "down"
    else:
        direction = "none"
    return {"percent": percent, "direction": direction}


def build_verification_stats(items: List[results_schemas.VerificationQueueItem]) -> results_schemas.VerificationStats:
    pending_state = results_models.VerificationStatus.PENDING_VERIFICATION
    return results_schemas.VerificationStats(
        total=len(items),
        pending=sum(1 for i in items if i.verification_status == pending_state),
        flagged=sum(1 for i in items if i.flags.critical or i.flags.repeat),
        critical=sum(1 for i in items if i.flags.critical),
    )


class CRUDResultVerification:
    """검증 화면에서 결과(검사) 단위로 승인/반려합니다. 승인/반려 후 오더 진행률 이벤트를 발행합니다."""

    def __init__(self):
        self.model = results_models.Result

    async def get_queue(
        self,
        db: AsyncSession,
        *,
        lab_id: int,
        date_filter: str = "today",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        critical_only: bool = False,
        category: Optional[str] = None,
        pending_only: bool = True,
    ) -> results_schemas.VerificationQueue:
        """
        검증 대기 결과 목록과 통계(전체/대기/경고/위험)를 반환합니다.

        - date_filter: today, last7days, custom(start_date~end_date), all (결과 입력일 기준)
        - search: 검사명, 환자명, 오더 ID 부분 일치 (대소문자 무시)
        - category: 검사명으로 추정한 검사 그룹 또는 분류명과 일치하는 결과만 남깁니다.
        """
        Result = self.model
        Order = orders_models.Order
        statement = (
            select(Result, Order.sample_collected_at)
            .join(Order, Order.id == Result.order_id)
            .where(Result.lab_id == lab_id)
        )
        if pending_only:
            statement = statement.where(
                Result.verification_status == results_models.VerificationStatus.PENDING_VERIFICATION
            )

        today = date.today()
        if date_filter == "today":
            statement = statement.where(Result.entered_date == today)
        elif date_filter == "last7days":
            statement = statement.where(Result.entered_date >= today - timedelta(days=7))
        elif date_filter == "custom":
            if start_date is None or end_date is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="start_date and end_date are required for a custom range",
                )
            if end_date < start_date:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not be before start_date")
            statement = statement.where(Result.entered_date >= start_date, Result.entered_date <= end_date)

        term = (search or "").strip()
        if term:
            pattern = f"%{term}%"
            statement = statement.where(
                or_(
                    Result.test_name.ilike(pattern),
                    Result.patient_name.ilike(pattern),
                    cast(Result.order_id, String).ilike(pattern),
                )
            )
        if critical_only:
            statement = statement.where(Result.critical_flag.is_(True))

        statement = statement.order_by(Result.order_id, Result.test_name, Result.created_at.desc(), Result.id)
        rows = (await db.execute(statement)).all()
        values = await result.get_values_for(db, result_ids=[r.id for r, _ in rows])

        wanted = (category or "").strip().lower()
        items = []
        for r, collected_at in rows:
            group = classify_test_group(r.test_name)
            test_category = category_for_group(group)
            if wanted and wanted not in (group.lower(), test_category.lower()):
                continue
            items.append(results_schemas.VerificationQueueItem(
                id=r.id,
                order_id=r.order_id,
                test_name=r.test_name,
                test_group=group,
                test_category=test_category,
                patient_name=r.patient_name,
                patient_id=r.patient_id,
                status=status_from_flags(r.critical_flag, r.delta_check_flag),
                verification_status=r.verification_status,
                parameters=[
                    results_schemas.VerificationParameter(
                        rv_id=v.id, name=v.parameter, value=v.value, unit=v.unit,
                        reference_range=v.reference_range, flag=normalize_flag(v.flag),
                    )
                    for v in values.get(r.id, [])
                ],
                flags=results_schemas.VerificationFlags(
                    critical=r.critical_flag, repeat=r.delta_check_flag, manual_override=r.manually_verified,
                ),
                entered_date=r.entered_date,
                sample_time=r.created_at,
                collection_time=collected_at,
                verified_by=r.verified_by,
                verified_at=r.verified_at,
                review_comment=r.verification_notes,
            ))
        return results_schemas.VerificationQueue(results=items, stats=build_verification_stats(items))

    async def _get_result_or_404(self, db: AsyncSession, *, id: int, lab_id: int) -> results_models.Result:
        db_result = await result.get_for_lab(db, id=id, lab_id=lab_id)
        if db_result is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found")
        return db_result

    async def _apply(
        self,
        db: AsyncSession,
        *,
        rows: List[results_models.Result],
        approve: bool,
        notes: Optional[str],
        user: usr_models.User,
    ) -> None:
        now = datetime.now(UTC)
        actor = user.display_name
        action = "verification_approve" if approve else "verification_reject"
        for r in rows:
            old_values = {"verification_status": r.verification_status, "verification_notes": r.verification_notes}
            if approve:
                r.verification_status = results_models.VerificationStatus.VERIFIED
                r.verified_by, r.verified_at = actor, now
            else:
                r.verification_status = results_models.VerificationStatus.REJECTED
            if notes is not None:
                r.verification_notes = notes
            r.manually_verified = True
            db.add(r)
            shared_crud.audit_log.record(
                db,
                lab_id=r.lab_id,
                entity_type="result",
                entity_id=r.id,
                action=action,
                old_values=old_values,
                new_values={"verification_status": r.verification_status, "verification_notes": r.verification_notes},
                performed_by=actor,
            )
        await db.commit()
        for r in rows:
            await db.refresh(r)

        logger.info("%d result(s) %s by %s", len(rows), "verified" if approve else "rejected", actor)
        for order_id in sorted({r.order_id for r in rows}):
            await orders_crud.order.publish_progress(db, order_id=order_id)

    async def approve(
        self, db: AsyncSession, *, id: int, lab_id: int, notes: Optional[str], user: usr_models.User
    ) -> results_models.Result:
        db_result = await self._get_result_or_404(db, id=id, lab_id=lab_id)
        await self._apply(db, rows=[db_result], approve=True, notes=notes, user=user)
        return db_result

    async def reject(
        self, db: AsyncSession, *, id: int, lab_id: int, reason: str, user: usr_models.User
    ) -> results_models.Result:
        if not reason or not reason.strip():
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Rejection reason is required")
        db_result = await self._get_result_or_404(db, id=id, lab_id=lab_id)
        await self._apply(db, rows=[db_result], approve=False, notes=reason.strip(), user=user)
        return db_result

    async def _bulk(
        self,
        db: AsyncSession,
        *,
        ids: List[int],
        lab_id: int,
        approve: bool,
        notes: Optional[str],
        user: usr_models.User,
    ) -> results_schemas.BulkVerifyResult:
        """찾은 결과만 처리하고, 없거나 다른 검사실의 ID는 failed_ids로 돌려줍니다."""
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No results selected")
        rows = await result.get_by_ids(db, ids=unique_ids, lab_id=lab_id)
        found = {r.id for r in rows}
        failed_ids = [i for i in unique_ids if i not in found]
        if rows:
            await self._apply(db, rows=rows, approve=approve, notes=notes, user=user)
        if failed_ids:
            logger.warning("Bulk verification skipped missing result(s): %s", failed_ids)
        return results_schemas.BulkVerifyResult(
            success=not failed_ids, success_count=len(rows), failed_ids=failed_ids
        )

    async def bulk_approve(
        self, db: AsyncSession, *, ids: List[int], lab_id: int, notes: Optional[str], user: usr_models.User
    ) -> results_schemas.BulkVerifyResult:
        return await self._bulk(db, ids=ids, lab_id=lab_id, approve=True, notes=notes, user=user)

    async def bulk_reject(
        self, db: AsyncSession, *, ids: List[int], lab_id: int, reason: str, user: usr_models.User
    ) -> results_schemas.BulkVerifyResult:
        if not reason or not reason.strip():
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Rejection reason is required")
        return await self._bulk(db, ids=ids, lab_id=lab_id, approve=False, notes=reason.strip(), user=user)

    async def get_previous(
        self, db: AsyncSession, *, id: int, lab_id: int
    ) -> Optional[results_schemas.PreviousResultRead]:
        """
        같은 환자, 같은 검사명의 직전 검증(verified) 결과를 찾아 대표 항목(첫 번째 항목)과
        현재 결과의 같은 항목을 비교한 변화율을 돌려줍니다. 없으면 None 입니다.
        """
        current = await self._get_result_or_404(db, id=id, lab_id=lab_id)
        if not current.patient_id:
            return None

        Result = self.model
        statement = (
            select(Result)
            .where(
                Result.lab_id == lab_id,
                Result.patient_id == current.patient_id,
                Result.test_name == current.test_name,
                Result.id != current.id,
                Result.verification_status == results_models.VerificationStatus.VERIFIED,
            )
            .order_by(Result.entered_date.desc(), Result.created_at.desc(), Result.id.desc())
            .limit(1)
        )
        previous = (await db.execute(statement)).scalars().first()
        if previous is None:
            return None

        values = await result.get_values_for(db, result_ids=[previous.id, current.id])
        previous_values = values.get(previous.id, [])
        if not previous_values:
            return None
        main = previous_values[0]
        current_values = values.get(current.id, [])
        current_main = next(
            (v for v in current_values if v.parameter == main.parameter),
            current_values[0] if current_values else None,
        )
        delta = compute_delta(current_main.value if current_main else None, main.value)
        return results_schemas.PreviousResultRead(
            result_id=previous.id,
            entered_date=previous.entered_date,
            verified_at=previous.verified_at,
            parameter=main.parameter,
            value=main.value,
            unit=main.unit,
            delta=results_schemas.DeltaRead(**delta) if delta else None,
        )


verification = CRUDResultVerification()

# labdesk/domains/results/batch.py

"""
선택한 검사 결과에 대한 일괄 처리 작업을 정의하고 실행하는 모듈입니다.

모든 변경은 하나의 트랜잭션으로 반영되며, 처리 후 관련 오더의 진행률 갱신 이벤트를 발행합니다.
"""

import csv
import io
import logging
from collections import OrderedDict
from dataclasses import dataclass, asdict
from datetime import date, datetime, UTC
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.domains.orders import crud as orders_crud
from labdesk.domains.shared import crud as shared_crud
from labdesk.domains.usr import crud as usr_crud
from labdesk.domains.usr import models as usr_models
from . import crud as results_crud
from . import models as results_models
from . import schemas as results_schemas

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOperation:
    id: str
    label: str
    description: str
    requires_confirmation: bool = False
    confirmation_message: Optional[str] = None


APPROVE = "approve"
REJECT = "reject"
MARK_REVIEWED = "mark-reviewed"
FLAG_URGENT = "flag-urgent"
EXPORT_CSV = "export-csv"
PRINT_REPORTS = "print-reports"
ASSIGN_REVIEWER = "assign-reviewer"

DEFAULT_OPERATIONS: List[BatchOperation] = [
    BatchOperation(
        APPROVE, "Approve Selected", "Mark selected results as approved",
        True, "Are you sure you want to approve all selected results?",
    ),
    BatchOperation(
        REJECT, "Reject Selected", "Reject selected results for review",
        True, "Are you sure you want to reject all selected results?",
    ),
    BatchOperation(
        MARK_REVIEWED, "Mark as Reviewed", "Mark selected results as reviewed",
        True, "Mark selected results as reviewed?",
    ),
    BatchOperation(
        FLAG_URGENT, "Flag as Urgent", "Add urgent flag to selected results",
        True, "Flag selected results as urgent?",
    ),
    BatchOperation(EXPORT_CSV, "Export to CSV", "Export selected results to CSV file"),
    BatchOperation(PRINT_REPORTS, "Print Reports", "Generate and print result reports"),
    BatchOperation(ASSIGN_REVIEWER, "Assign Reviewer", "Assign selected results to a reviewer"),
]

_OPERATIONS_BY_ID = {op.id: op for op in DEFAULT_OPERATIONS}

# 검사실 책임자 이상만 실행할 수 있는 작업
VERIFIER_OPERATIONS = {APPROVE, REJECT}

CSV_COLUMNS = [
    "id", "order_id", "patient_id", "patient_name", "test_name", "status",
    "verification_status", "entered_date", "entered_by", "priority_level",
    "critical_flag", "reviewed_by", "verified_by", "verified_at",
]


def list_operations() -> List[Dict[str, Any]]:
    return [asdict(op) for op in DEFAULT_OPERATIONS]


def get_operation(operation_id: str) -> Optional[BatchOperation]:
    return _OPERATIONS_BY_ID.get(operation_id)


async def load_selection(
    db: AsyncSession, *, result_ids: List[int], lab_id: int
) -> List[results_models.Result]:
    """
    선택한 결과를 조회합니다.
    선택이 비어 있으면 400, 다른 검사실이거나 없는 결과가 있으면 404를 발생시킵니다.
    """
    unique_ids = sorted(set(result_ids))
    if not unique_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No results selected")
    rows = await results_crud.result.get_by_ids(db, ids=unique_ids, lab_id=lab_id)
    missing = sorted(set(unique_ids) - {r.id for r in rows})
    if missing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Result(s) not found: {missing}")
    return rows


def _value(v: Any) -> Any:
    if v is None:
        return ""
    if hasattr(v, "value"):
        return v.value
    if isinstance(v, (date, datetime)):
        return v.isoformat()
    return v


def results_to_csv(results: List[results_models.Result]) -> str:
    """모든 값을 큰따옴표로 감싼 CSV 문자열을 만듭니다. None은 빈 값입니다."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for r in results:
        writer.writerow([_value(getattr(r, column)) for column in CSV_COLUMNS])
    return buffer.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    return f"results_export_{(today or date.today()).isoformat()}.csv"


async def export_csv(db: AsyncSession, *, result_ids: List[int], lab_id: int) -> str:
    rows = await load_selection(db, result_ids=result_ids, lab_id=lab_id)
    return results_to_csv(rows)


async def _build_reports(
    db: AsyncSession, rows: List[results_models.Result]
) -> List[results_schemas.ReportGroup]:
    details = await results_crud.result.build_details(db, results=rows)
    groups: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
    for row, detail in zip(rows, details):
        group = groups.setdefault(row.order_id, {
            "order_id": row.order_id,
            "patient_id": row.patient_id,
            "patient_name": row.patient_name,
            "results": [],
        })
        group["results"].append(detail)
    return [results_schemas.ReportGroup.model_validate(g) for g in groups.values()]


async def run_batch(
    db: AsyncSession,
    *,
    operation: str,
    result_ids: List[int],
    user: usr_models.User,
    reviewer_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> results_schemas.BatchResult:
    """
    선택한 결과에 일괄 작업을 적용합니다.

    - approve: Approved / verified
    - reject: Rejected / rejected (notes를 검증 메모로 저장)
    - mark-reviewed: Reviewed
    - flag-urgent: priority_level=1, critical_flag
    - assign-reviewer: reviewer_id 지정 (같은 검사실 사용자)
    - print-reports: 변경 없이 오더별 출력 데이터를 반환
    """
    op = get_operation(operation)
    if op is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown batch operation: {operation}")
    if op.id == EXPORT_CSV:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Use the export endpoint for CSV export")
    if op.id in VERIFIER_OPERATIONS and user.role > usr_models.UserRole.LAB_MANAGER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions. Lab manager role required."
        )

    rows = await load_selection(db, result_ids=result_ids, lab_id=user.lab_id)
    order_ids = sorted({r.order_id for r in rows})

    if op.id == PRINT_REPORTS:
        reports = await _build_reports(db, rows)
        return results_schemas.BatchResult(
            operation=op.id,
            affected_count=len(rows),
            message=f"Prepared {len(reports)} report(s) for {len(rows)} result(s)",
            order_ids=order_ids,
            reports=reports,
        )

    reviewer: Optional[usr_models.User] = None
    if op.id == ASSIGN_REVIEWER:
        if reviewer_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="reviewer_id is required for assign-reviewer")
        reviewer = await usr_crud.user.get_for_lab(db, id=reviewer_id, lab_id=user.lab_id)
        if reviewer is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reviewer not found")

    now = datetime.now(UTC)
    actor = user.display_name
    for r in rows:
        old_values = {
            "status": r.status, "verification_status": r.verification_status,
            "priority_level": r.priority_level, "critical_flag": r.critical_flag, "reviewer_id": r.reviewer_id,
        }
        if op.id == APPROVE:
            r.status = results_models.ResultStatus.APPROVED
            r.verification_status = results_models.VerificationStatus.VERIFIED
            r.verified_by, r.verified_at = actor, now
        elif op.id == REJECT:
            r.status = results_models.ResultStatus.REJECTED
            r.verification_status = results_models.VerificationStatus.REJECTED
            r.verified_by, r.verified_at = actor, now
            if notes:
                r.verification_notes = notes
        elif op.id == MARK_REVIEWED:
            r.status = results_models.ResultStatus.REVIEWED
            r.reviewed_by, r.reviewed_at = actor, now
        elif op.id == FLAG_URGENT:
            r.priority_level = 1
            r.critical_flag = True
        elif op.id == ASSIGN_REVIEWER:
            r.reviewer_id = reviewer.id
        db.add(r)
        shared_crud.audit_log.record(
            db,
            lab_id=r.lab_id,
            entity_type="result",
            entity_id=r.id,
            action=f"batch_{op.id.replace('-', '_')}",
            old_values=old_values,
            new_values={
                "status": r.status, "verification_status": r.verification_status,
                "priority_level": r.priority_level, "critical_flag": r.critical_flag, "reviewer_id": r.reviewer_id,
            },
            performed_by=actor,
        )

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Batch operation '%s' failed for %d result(s)", op.id, len(rows))
        raise

    logger.info("Batch operation '%s' applied to %d result(s) by %s", op.id, len(rows), actor)
    for order_id in order_ids:
        await orders_crud.order.publish_progress(db, order_id=order_id)

    return results_schemas.BatchResult(
        operation=op.id,
        affected_count=len(rows),
        message=f"{op.label}: {len(rows)} result(s) updated",
        order_ids=order_ids,
    )

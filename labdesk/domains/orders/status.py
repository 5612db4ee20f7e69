# labdesk/domains/orders/status.py

"""
오더 상태 도출 규칙을 모아 둔 모듈입니다.

모든 함수는 입력값만으로 결과를 계산하는 순수 함수이며,
어떤 입력 조합(None 포함)에 대해서도 예외 없이 값을 반환합니다.
"""

from dataclasses import dataclass
from enum import Enum
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from labdesk.core.events import ProgressData

# --- 오더 상태 값 ---
ORDER_CREATED = "Order Created"
PENDING_COLLECTION = "Pending Collection"
SAMPLE_COLLECTION = "Sample Collection"
SAMPLE_COLLECTED = "Sample Collected"
IN_PROGRESS = "In Progress"
PENDING_APPROVAL = "Pending Approval"
COMPLETED = "Completed"
DELIVERED = "Delivered"
UNKNOWN = "Unknown"

ORDER_STATUSES = [
    ORDER_CREATED, PENDING_COLLECTION, SAMPLE_COLLECTION, SAMPLE_COLLECTED,
    IN_PROGRESS, PENDING_APPROVAL, COMPLETED, DELIVERED,
]

# 채취 전 상태
NOT_COLLECTED_STATUSES = {ORDER_CREATED, PENDING_COLLECTION}


@dataclass(frozen=True)
class DisplayStatus:
    label: str
    tone: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "tone": self.tone, "description": self.description}


@dataclass(frozen=True)
class ConsistencyCheck:
    is_consistent: bool
    recommended_status: Optional[str]
    issue: Optional[str] = None


@dataclass(frozen=True)
class QuickAction:
    action: str
    label: str
    target_status: str


DISPLAY_STATUSES: Dict[str, DisplayStatus] = {
    UNKNOWN: DisplayStatus(UNKNOWN, "neutral", "Order information is not available"),
    PENDING_COLLECTION: DisplayStatus(PENDING_COLLECTION, "pending", "Waiting for sample collection"),
    SAMPLE_COLLECTED: DisplayStatus(SAMPLE_COLLECTED, "info", "Sample has been collected and is ready for processing"),
    PENDING_APPROVAL: DisplayStatus(PENDING_APPROVAL, "warning", "Results are ready and awaiting approval"),
    COMPLETED: DisplayStatus(COMPLETED, "success", "All tests completed and approved"),
    DELIVERED: DisplayStatus(DELIVERED, "neutral", "Results have been delivered to patient"),
}

# 채취 후 알 수 없는 상태일 때 사용하는 배지
_COLLECTED_FALLBACK = DisplayStatus(SAMPLE_COLLECTED, "info", "Sample collected and processing")

# 현재 상태별 다음 단계 버튼
QUICK_ACTIONS: Dict[str, QuickAction] = {
    ORDER_CREATED: QuickAction("mark_sample_collected", "Mark Sample Collected", SAMPLE_COLLECTION),
    SAMPLE_COLLECTION: QuickAction("start_processing", "Start Processing", IN_PROGRESS),
    SAMPLE_COLLECTED: QuickAction("start_processing", "Start Processing", IN_PROGRESS),
    IN_PROGRESS: QuickAction("submit_for_approval", "Submit for Approval", PENDING_APPROVAL),
    PENDING_APPROVAL: QuickAction("approve_results", "Approve Results", COMPLETED),
    COMPLETED: QuickAction("deliver_order", "Mark as Delivered", DELIVERED),
}


def _field(order: Any, name: str) -> Any:
    if order is None:
        return None
    if isinstance(order, dict):
        return order.get(name)
    return getattr(order, name, None)


def _state(row: Any, name: str) -> Any:
    value = _field(row, name)
    return value.value if isinstance(value, Enum) else value


def has_collected_sample(collected_at: Any, collected_by: Any) -> bool:
    """채취 일시와 채취자가 모두 기록되어 있어야 채취된 것으로 봅니다."""
    return bool(collected_at) and bool(collected_by)


def derive_consistent_status(
    status: Optional[str], collected_at: Any, collected_by: Any
) -> str:
    if has_collected_sample(collected_at, collected_by):
        return SAMPLE_COLLECTED
    if status is None or status in NOT_COLLECTED_STATUSES:
        return PENDING_COLLECTION
    return status


def derive_display_status(order: Any) -> DisplayStatus:
    """
    오더의 상태 배지(라벨, 색상 톤, 설명)를 결정합니다.
    오더가 없으면 Unknown, 검체 미채취면 상태값과 무관하게 Pending Collection 입니다.
    """
    if order is None:
        return DISPLAY_STATUSES[UNKNOWN]
    if not has_collected_sample(_field(order, "sample_collected_at"), _field(order, "sample_collected_by")):
        return DISPLAY_STATUSES[PENDING_COLLECTION]

    status = _field(order, "status")
    if status in (IN_PROGRESS, SAMPLE_COLLECTED):
        return DISPLAY_STATUSES[SAMPLE_COLLECTED]
    if status in (PENDING_APPROVAL, COMPLETED, DELIVERED):
        return DISPLAY_STATUSES[status]
    return _COLLECTED_FALLBACK


def check_status_consistency(order: Any) -> ConsistencyCheck:
    status = _field(order, "status")
    collected = has_collected_sample(_field(order, "sample_collected_at"), _field(order, "sample_collected_by"))

    if collected and status in NOT_COLLECTED_STATUSES:
        return ConsistencyCheck(
            is_consistent=False,
            recommended_status=SAMPLE_COLLECTED,
            issue="Sample is collected but status shows pending collection",
        )
    if not collected and status in (SAMPLE_COLLECTED, IN_PROGRESS):
        return ConsistencyCheck(
            is_consistent=False,
            recommended_status=PENDING_COLLECTION,
            issue="Status shows collected but sample collection data is missing",
        )
    return ConsistencyCheck(is_consistent=True, recommended_status=status)


def build_status_update(
    new_status: str,
    updated_by: str,
    now: datetime,
    sample_collected_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    상태 변경 시 함께 저장할 값을 만듭니다.

    - 채취/진행 상태로 바꾸면서 채취 기록이 없으면 채취 일시와 채취자를 기록합니다.
    - 채취 전 상태로 되돌리면 채취 기록을 지웁니다.
    """
    payload: Dict[str, Any] = {
        "status": new_status,
        "status_updated_at": now,
        "status_updated_by": updated_by,
    }
    if new_status in (SAMPLE_COLLECTED, SAMPLE_COLLECTION, IN_PROGRESS):
        if not sample_collected_at:
            payload["sample_collected_at"] = now
            payload["sample_collected_by"] = updated_by
    elif new_status in NOT_COLLECTED_STATUSES:
        payload["sample_collected_at"] = None
        payload["sample_collected_by"] = None
    if new_status == DELIVERED:
        payload["delivered_at"] = now
        payload["delivered_by"] = updated_by
    return payload


def normalize_status(text: Optional[str]) -> Optional[str]:
    """표기가 다른 상태값을 표준 상태값으로 맞춥니다."""
    if not text:
        return text
    stripped = text.strip()
    lowered = stripped.lower()
    if lowered in ("sample collected", "samplecollection"):
        return SAMPLE_COLLECTION
    if lowered == "in process":
        return IN_PROGRESS
    return stripped


def next_quick_action(status: Optional[str]) -> Optional[QuickAction]:
    return QUICK_ACTIONS.get(normalize_status(status))


# --- 진행률 ---
PENDING_VERIFICATION_STATES = {"pending_verification", "needs_clarification"}
VERIFIED_STATE = "verified"
COMPLETED_RESULT_STATES = {"Approved", "Reviewed"}


def compute_progress(results: Iterable[Any]) -> ProgressData:
    """오더에 속한 결과 목록으로 검증 진행률을 계산합니다. 결과가 없으면 0% 입니다."""
    rows: List[Any] = list(results)
    total = len(rows)
    pending = sum(1 for r in rows if _state(r, "verification_status") in PENDING_VERIFICATION_STATES)
    verified = sum(1 for r in rows if _state(r, "verification_status") == VERIFIED_STATE)
    completed = sum(1 for r in rows if _state(r, "status") in COMPLETED_RESULT_STATES)
    percentage = round(verified * 100 / total) if total else 0
    return ProgressData(
        total_tests=total,
        pending_verification=pending,
        verified_tests=verified,
        completed_tests=completed,
        progress_percentage=percentage,
    )


def auto_progress(status: Optional[str], progress: ProgressData) -> Optional[str]:
    """
    진행 중이거나 승인 대기인 오더의 모든 검사가 검증되면 Completed 를 반환합니다.
    자동 전환 대상이 아니면 None 입니다.
    """
    if status not in (IN_PROGRESS, PENDING_APPROVAL):
        return None
    if progress.total_tests > 0 and progress.verified_tests == progress.total_tests:
        return COMPLETED
    return None

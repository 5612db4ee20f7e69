# tests/core/test_order_status.py

"""
오더 상태 도출 규칙(순수 함수)에 대한 단위 테스트입니다.
"""

from datetime import datetime, UTC
from types import SimpleNamespace

import pytest

from labdesk.core.events import ProgressData
from labdesk.domains.orders import status as order_status
from labdesk.domains.results.models import ResultStatus, VerificationStatus

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=UTC)


def _order(status, collected_at=None, collected_by=None):
    return SimpleNamespace(status=status, sample_collected_at=collected_at, sample_collected_by=collected_by)


# --- has_collected_sample / derive_consistent_status ---

@pytest.mark.parametrize("collected_at, collected_by, expected", [
    (NOW, "tech", True),
    (NOW, None, False),
    (None, "tech", False),
    (None, None, False),
    (NOW, "", False),
])
def test_has_collected_sample_requires_both_fields(collected_at, collected_by, expected):
    assert order_status.has_collected_sample(collected_at, collected_by) is expected


def test_consistent_status_prefers_collection_record():
    assert order_status.derive_consistent_status("Pending Collection", NOW, "tech") == "Sample Collected"
    assert order_status.derive_consistent_status("Completed", NOW, "tech") == "Sample Collected"


def test_consistent_status_for_uncollected_orders():
    assert order_status.derive_consistent_status("Order Created", None, None) == "Pending Collection"
    assert order_status.derive_consistent_status(None, None, None) == "Pending Collection"
    assert order_status.derive_consistent_status("In Progress", None, None) == "In Progress"


# --- derive_display_status ---

def test_display_status_without_order_is_unknown():
    badge = order_status.derive_display_status(None)
    assert badge.label == "Unknown"
    assert badge.tone == "neutral"


def test_display_status_ignores_status_when_not_collected():
    badge = order_status.derive_display_status(_order("Completed"))
    assert badge.label == "Pending Collection"
    assert badge.tone == "pending"


@pytest.mark.parametrize("status, label, tone", [
    ("In Progress", "Sample Collected", "info"),
    ("Sample Collected", "Sample Collected", "info"),
    ("Pending Approval", "Pending Approval", "warning"),
    ("Completed", "Completed", "success"),
    ("Delivered", "Delivered", "neutral"),
])
def test_display_status_for_collected_orders(status, label, tone):
    badge = order_status.derive_display_status(_order(status, NOW, "tech"))
    assert (badge.label, badge.tone) == (label, tone)


def test_display_status_unknown_collected_status_falls_back():
    badge = order_status.derive_display_status(_order("Order Created", NOW, "tech"))
    assert badge.label == "Sample Collected"
    assert badge.description == "Sample collected and processing"


def test_display_status_accepts_dict_rows():
    row = {"status": "Completed", "sample_collected_at": NOW, "sample_collected_by": "tech"}
    assert order_status.derive_display_status(row).label == "Completed"


# --- check_status_consistency ---

def test_consistency_collected_but_pending():
    check = order_status.check_status_consistency(_order("Pending Collection", NOW, "tech"))
    assert check.is_consistent is False
    assert check.recommended_status == "Sample Collected"
    assert check.issue


def test_consistency_in_progress_without_collection():
    check = order_status.check_status_consistency(_order("In Progress"))
    assert check.is_consistent is False
    assert check.recommended_status == "Pending Collection"


def test_consistency_ok_keeps_current_status():
    check = order_status.check_status_consistency(_order("Completed", NOW, "tech"))
    assert check.is_consistent is True
    assert check.recommended_status == "Completed"
    assert check.issue is None


# --- build_status_update ---

def test_status_update_stamps_collection_when_missing():
    payload = order_status.build_status_update("In Progress", "Lab Tech", NOW)
    assert payload["status"] == "In Progress"
    assert payload["status_updated_by"] == "Lab Tech"
    assert payload["sample_collected_at"] == NOW
    assert payload["sample_collected_by"] == "Lab Tech"


def test_status_update_keeps_existing_collection():
    payload = order_status.build_status_update("Sample Collection", "Lab Tech", NOW, sample_collected_at=NOW)
    assert "sample_collected_at" not in payload
    assert "sample_collected_by" not in payload


def test_status_update_clears_collection_for_pending():
    payload = order_status.build_status_update("Pending Collection", "Lab Tech", NOW, sample_collected_at=NOW)
    assert payload["sample_collected_at"] is None
    assert payload["sample_collected_by"] is None


def test_status_update_marks_delivery():
    payload = order_status.build_status_update("Delivered", "Front Desk", NOW, sample_collected_at=NOW)
    assert payload["delivered_at"] == NOW
    assert payload["delivered_by"] == "Front Desk"


# --- quick actions ---

@pytest.mark.parametrize("status, action, target", [
    ("Order Created", "mark_sample_collected", "Sample Collection"),
    ("Sample Collection", "start_processing", "In Progress"),
    ("sample collected", "start_processing", "In Progress"),
    ("In Progress", "submit_for_approval", "Pending Approval"),
    ("in process", "submit_for_approval", "Pending Approval"),
    ("Pending Approval", "approve_results", "Completed"),
    ("Completed", "deliver_order", "Delivered"),
])
def test_next_quick_action(status, action, target):
    quick = order_status.next_quick_action(status)
    assert quick.action == action
    assert quick.target_status == target


def test_no_quick_action_after_delivery():
    assert order_status.next_quick_action("Delivered") is None
    assert order_status.next_quick_action(None) is None


# --- progress ---

def test_compute_progress_counts_enum_states():
    rows = [
        SimpleNamespace(status=ResultStatus.APPROVED, verification_status=VerificationStatus.VERIFIED),
        SimpleNamespace(status=ResultStatus.REVIEWED, verification_status=VerificationStatus.PENDING_VERIFICATION),
        SimpleNamespace(status=ResultStatus.ENTERED, verification_status=VerificationStatus.NEEDS_CLARIFICATION),
    ]
    progress = order_status.compute_progress(rows)
    assert progress.total_tests == 3
    assert progress.verified_tests == 1
    assert progress.pending_verification == 2
    assert progress.completed_tests == 2
    assert progress.progress_percentage == 33


def test_compute_progress_empty():
    assert order_status.compute_progress([]).progress_percentage == 0


def test_auto_progress_only_when_all_verified():
    done = ProgressData(total_tests=2, verified_tests=2, progress_percentage=100)
    partial = ProgressData(total_tests=2, verified_tests=1, progress_percentage=50)
    assert order_status.auto_progress("In Progress", done) == "Completed"
    assert order_status.auto_progress("Pending Approval", done) == "Completed"
    assert order_status.auto_progress("In Progress", partial) is None
    assert order_status.auto_progress("Sample Collected", done) is None
    assert order_status.auto_progress("In Progress", ProgressData()) is None

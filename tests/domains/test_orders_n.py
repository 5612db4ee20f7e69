# tests/domains/test_orders_n.py

"""
'orders' 도메인 (오더 및 상태 동기화) 관련 API 엔드포인트에 대한 통합 테스트입니다.

- 오더 생성/조회/수정: `POST /lims/orders`, `GET /lims/orders`, `GET|PUT /lims/orders/{id}`
- 상태 변경: `PUT /lims/orders/{id}/status` (채취 기록 동기화, 자동 Completed 전환)
- 검체 채취 표시: `POST /lims/orders/{id}/mark-collected`, `.../mark-not-collected`
- 일관성 점검 및 일괄 보정: `GET /lims/orders/{id}/consistency`, `POST /lims/orders/status-sync`
- 빠른 상태 전환: `GET|POST /lims/orders/{id}/quick-actions`
- 진행률: `GET /lims/orders/{id}/progress`
"""

from datetime import date, datetime, timedelta, UTC

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import events
from labdesk.domains.loc import models as loc_models
from labdesk.domains.orders import crud as orders_crud
from labdesk.domains.orders import models as orders_models
from labdesk.domains.orders import status as order_status
from labdesk.domains.orders.tasks import fix_order_status_consistency_task
from labdesk.domains.results import models as results_models
from labdesk.domains.shared import models as shared_models
from labdesk.domains.usr import models as usr_models


@pytest_asyncio.fixture(scope="function")
async def order_factory(db_session: AsyncSession, test_lab: usr_models.Lab):
    async def _create_order(lab_id: int = None, **kwargs) -> orders_models.Order:
        data = {"patient_name": "Asha Rao", "patient_id": "P-1001", "doctor": "Dr. Iyer"}
        data.update(kwargs)
        db_order = orders_models.Order(lab_id=lab_id or test_lab.id, **data)
        db_session.add(db_order)
        await db_session.commit()
        await db_session.refresh(db_order)
        return db_order
    return _create_order


async def _add_result(db_session: AsyncSession, order: orders_models.Order, **kwargs) -> results_models.Result:
    db_result = results_models.Result(
        lab_id=order.lab_id,
        order_id=order.id,
        test_name=kwargs.pop("test_name", "CBC"),
        patient_id=order.patient_id,
        patient_name=order.patient_name,
        **kwargs,
    )
    db_session.add(db_result)
    await db_session.commit()
    await db_session.refresh(db_result)
    return db_result


# --- 오더 생성 / 조회 ---

@pytest.mark.asyncio
async def test_create_order(front_desk_client: AsyncClient, cash_location: loc_models.Location):
    print("\n--- Running test_create_order ---")
    payload = {
        "patient_name": "Ravi Kumar",
        "patient_id": "P-2001",
        "doctor": "Dr. Mehta",
        "priority": "Urgent",
        "order_date": "2026-10-01",
        "expected_date": "2026-10-03",
        "order_number": 7,
        "location_id": cash_location.id,
        "total_amount": 1250.5,
    }
    response = await front_desk_client.post("/api/v1/lims/orders", json=payload)
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == order_status.ORDER_CREATED
    assert created["priority"] == "Urgent"
    assert created["total_amount"] == 1250.5
    assert created["is_sample_collected"] is False
    assert created["consistent_status"] == order_status.PENDING_COLLECTION
    assert created["display_status"]["label"] == order_status.PENDING_COLLECTION
    assert created["display_status"]["tone"] == "pending"


@pytest.mark.asyncio
async def test_create_order_unknown_location(front_desk_client: AsyncClient):
    response = await front_desk_client.post(
        "/api/v1/lims/orders", json={"patient_name": "Nobody", "location_id": 9999}
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Location not found"


@pytest.mark.asyncio
async def test_create_order_negative_amount(front_desk_client: AsyncClient):
    response = await front_desk_client.post(
        "/api/v1/lims/orders", json={"patient_name": "Nobody", "total_amount": -1}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_read_orders_filters(front_desk_client: AsyncClient, order_factory, other_lab: usr_models.Lab):
    await order_factory(patient_name="A", order_date=date(2026, 10, 1), priority=orders_models.OrderPriority.STAT)
    await order_factory(patient_name="B", order_date=date(2026, 10, 2), status=order_status.IN_PROGRESS)
    await order_factory(patient_name="C", order_date=date(2026, 9, 1))
    await order_factory(lab_id=other_lab.id, patient_name="Other", order_date=date(2026, 10, 1))

    response = await front_desk_client.get(
        "/api/v1/lims/orders", params={"start_date": "2026-10-01", "end_date": "2026-10-31"}
    )
    assert response.status_code == 200
    assert [o["patient_name"] for o in response.json()] == ["B", "A"]

    response = await front_desk_client.get("/api/v1/lims/orders", params={"status": order_status.IN_PROGRESS})
    assert [o["patient_name"] for o in response.json()] == ["B"]

    response = await front_desk_client.get("/api/v1/lims/orders", params={"priority": "STAT"})
    assert [o["patient_name"] for o in response.json()] == ["A"]


@pytest.mark.asyncio
async def test_read_order_other_lab_not_found(other_lab_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await other_lab_client.get(f"/api/v1/lims/orders/{db_order.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_order_details(front_desk_client: AsyncClient, order_factory):
    db_order = await order_factory(status=order_status.IN_PROGRESS)
    response = await front_desk_client.put(
        f"/api/v1/lims/orders/{db_order.id}",
        json={"doctor": "Dr. Sen", "priority": "STAT", "expected_date": "2026-10-20"},
    )
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 200
    updated = response.json()
    assert updated["doctor"] == "Dr. Sen"
    assert updated["priority"] == "STAT"
    assert updated["expected_date"] == "2026-10-20"
    # 보내지 않은 필드와 상태는 그대로 유지
    assert updated["patient_name"] == "Asha Rao"
    assert updated["status"] == order_status.IN_PROGRESS


@pytest.mark.asyncio
async def test_update_order_other_lab_not_found(other_lab_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await other_lab_client.put(f"/api/v1/lims/orders/{db_order.id}", json={"doctor": "Dr. Sen"})
    assert response.status_code == 404


# --- 상태 변경 ---

@pytest.mark.asyncio
async def test_update_status_to_collected_records_collection(
    technician_client: AsyncClient, db_session: AsyncSession, order_factory
):
    """채취 상태로 변경하면 채취 일시와 채취자가 함께 기록됩니다."""
    db_order = await order_factory()
    received = []
    events.bus.subscribe(events.ORDER_STATUS_UPDATE, received.append)

    response = await technician_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": order_status.SAMPLE_COLLECTED}
    )
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["auto_progressed"] is False
    assert body["message"] == "Order status updated to: Sample Collected"
    assert body["order"]["sample_collected_by"] == "Lab Tech"
    assert body["order"]["status_updated_by"] == "Lab Tech"
    assert body["order"]["is_sample_collected"] is True
    assert received == [{"order_id": db_order.id, "status": order_status.SAMPLE_COLLECTED}]

    await db_session.refresh(db_order)
    assert db_order.sample_collected_at is not None

    logs = (await db_session.execute(
        select(shared_models.AuditLog).where(shared_models.AuditLog.entity_id == db_order.id)
    )).scalars().all()
    assert [log.action for log in logs] == ["status_update"]
    assert logs[0].old_values["status"] == order_status.ORDER_CREATED


@pytest.mark.asyncio
async def test_update_status_keeps_existing_collection(
    technician_client: AsyncClient, order_factory
):
    collected_at = datetime(2026, 10, 1, 8, 30, tzinfo=UTC)
    db_order = await order_factory(
        status=order_status.SAMPLE_COLLECTED, sample_collected_at=collected_at, sample_collected_by="Nurse Joy"
    )
    response = await technician_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": order_status.IN_PROGRESS}
    )
    assert response.status_code == 200
    assert response.json()["order"]["sample_collected_by"] == "Nurse Joy"


@pytest.mark.asyncio
async def test_update_status_back_to_pending_clears_collection(
    technician_client: AsyncClient, order_factory
):
    db_order = await order_factory(
        status=order_status.SAMPLE_COLLECTED,
        sample_collected_at=datetime.now(UTC),
        sample_collected_by="Nurse Joy",
    )
    response = await technician_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": order_status.PENDING_COLLECTION}
    )
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["sample_collected_at"] is None
    assert order["sample_collected_by"] is None
    assert order["display_status"]["label"] == order_status.PENDING_COLLECTION


@pytest.mark.asyncio
async def test_update_status_normalizes_alias(technician_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await technician_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": "In Process"}
    )
    assert response.status_code == 200
    assert response.json()["order"]["status"] == order_status.IN_PROGRESS


@pytest.mark.asyncio
async def test_update_status_unknown_value(technician_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await technician_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": "Teleported"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_status_auto_completes_when_all_verified(
    lab_manager_client: AsyncClient, db_session: AsyncSession, order_factory
):
    """모든 검사가 검증된 오더를 승인 대기로 바꾸면 Completed 로 자동 전환됩니다."""
    db_order = await order_factory(
        status=order_status.IN_PROGRESS,
        sample_collected_at=datetime.now(UTC),
        sample_collected_by="Nurse Joy",
    )
    for name in ("CBC", "LFT"):
        await _add_result(
            db_session, db_order, test_name=name,
            status=results_models.ResultStatus.APPROVED,
            verification_status=results_models.VerificationStatus.VERIFIED,
        )

    response = await lab_manager_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": order_status.PENDING_APPROVAL}
    )
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 200
    body = response.json()
    assert body["auto_progressed"] is True
    assert body["order"]["status"] == order_status.COMPLETED
    assert body["message"] == "Order status updated to: Completed (auto from Pending Approval)"

    logs = (await db_session.execute(
        select(shared_models.AuditLog)
        .where(shared_models.AuditLog.entity_id == db_order.id)
        .order_by(shared_models.AuditLog.id)
    )).scalars().all()
    assert [log.action for log in logs] == ["status_update", "auto_progress"]


@pytest.mark.asyncio
async def test_update_status_no_auto_complete_when_partially_verified(
    lab_manager_client: AsyncClient, db_session: AsyncSession, order_factory
):
    db_order = await order_factory(status=order_status.IN_PROGRESS)
    await _add_result(db_session, db_order, verification_status=results_models.VerificationStatus.VERIFIED)
    await _add_result(db_session, db_order, test_name="LFT")

    response = await lab_manager_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": order_status.PENDING_APPROVAL}
    )
    assert response.status_code == 200
    assert response.json()["auto_progressed"] is False
    assert response.json()["order"]["status"] == order_status.PENDING_APPROVAL


@pytest.mark.asyncio
async def test_update_status_to_delivered_stamps_delivery(technician_client: AsyncClient, order_factory):
    db_order = await order_factory(
        status=order_status.COMPLETED, sample_collected_at=datetime.now(UTC), sample_collected_by="Nurse Joy"
    )
    response = await technician_client.put(
        f"/api/v1/lims/orders/{db_order.id}/status", json={"status": order_status.DELIVERED}
    )
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["delivered_by"] == "Lab Tech"
    assert order["delivered_at"] is not None
    assert order["display_status"]["label"] == order_status.DELIVERED


# --- 검체 채취 표시 ---

@pytest.mark.asyncio
async def test_mark_collected_with_collector(front_desk_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await front_desk_client.post(
        f"/api/v1/lims/orders/{db_order.id}/mark-collected", params={"collected_by": "Nurse Joy"}
    )
    assert response.status_code == 200
    order = response.json()
    assert order["status"] == order_status.SAMPLE_COLLECTED
    assert order["sample_collected_by"] == "Nurse Joy"
    assert order["status_updated_by"] == "Nurse Joy"
    assert order["consistent_status"] == order_status.SAMPLE_COLLECTED


@pytest.mark.asyncio
async def test_mark_not_collected(front_desk_client: AsyncClient, order_factory):
    db_order = await order_factory(
        status=order_status.SAMPLE_COLLECTED, sample_collected_at=datetime.now(UTC), sample_collected_by="Nurse Joy"
    )
    response = await front_desk_client.post(f"/api/v1/lims/orders/{db_order.id}/mark-not-collected")
    assert response.status_code == 200
    order = response.json()
    assert order["status"] == order_status.PENDING_COLLECTION
    assert order["sample_collected_at"] is None
    assert order["is_sample_collected"] is False


# --- 일관성 점검 / 일괄 보정 ---

@pytest.mark.asyncio
async def test_consistency_check_detects_missing_collection(technician_client: AsyncClient, order_factory):
    db_order = await order_factory(status=order_status.IN_PROGRESS)
    response = await technician_client.get(f"/api/v1/lims/orders/{db_order.id}/consistency")
    assert response.status_code == 200
    check = response.json()
    assert check["is_consistent"] is False
    assert check["sample_collected"] is False
    assert check["recommended_status"] == order_status.PENDING_COLLECTION
    assert check["issue"] == "Status shows collected but sample collection data is missing"


@pytest.mark.asyncio
async def test_consistency_check_consistent(technician_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await technician_client.get(f"/api/v1/lims/orders/{db_order.id}/consistency")
    assert response.json()["is_consistent"] is True
    assert response.json()["recommended_status"] == order_status.ORDER_CREATED


@pytest.mark.asyncio
async def test_status_sync_fixes_inconsistent_orders(
    admin_client: AsyncClient, db_session: AsyncSession, order_factory, other_lab: usr_models.Lab
):
    """작업 큐가 없으면 관리자의 검사실 오더를 즉시 보정합니다."""
    collected_but_pending = await order_factory(
        status=order_status.ORDER_CREATED, sample_collected_at=datetime.now(UTC), sample_collected_by="Nurse Joy"
    )
    in_progress_without_sample = await order_factory(status=order_status.IN_PROGRESS)
    fine = await order_factory(status=order_status.PENDING_APPROVAL)
    other = await order_factory(lab_id=other_lab.id, status=order_status.IN_PROGRESS)

    response = await admin_client.post("/api/v1/lims/orders/status-sync")
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 202
    assert response.json() == {"queued": False, "fixed_count": 2}

    for db_order in (collected_but_pending, in_progress_without_sample, fine, other):
        await db_session.refresh(db_order)
    assert collected_but_pending.status == order_status.SAMPLE_COLLECTED
    assert in_progress_without_sample.status == order_status.PENDING_COLLECTION
    assert fine.status == order_status.PENDING_APPROVAL
    assert other.status == order_status.IN_PROGRESS
    assert collected_but_pending.status_updated_by == orders_crud.SYSTEM_ACTOR
    assert in_progress_without_sample.status_updated_by == orders_crud.SYSTEM_ACTOR
    assert in_progress_without_sample.status_updated_at is not None
    assert fine.status_updated_by is None


@pytest.mark.asyncio
async def test_status_sync_requires_admin(technician_client: AsyncClient):
    response = await technician_client.post("/api/v1/lims/orders/status-sync")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_fix_status_inconsistencies_all_labs(
    db_session: AsyncSession, order_factory, other_lab: usr_models.Lab
):
    await order_factory(status=order_status.SAMPLE_COLLECTED)
    await order_factory(lab_id=other_lab.id, status=order_status.IN_PROGRESS)

    fixed_count = await orders_crud.order.fix_status_inconsistencies(db_session)
    await db_session.commit()
    assert fixed_count == 2

    logs = (await db_session.execute(
        select(shared_models.AuditLog).where(shared_models.AuditLog.action == "bulk_status_sync_fix")
    )).scalars().all()
    assert len(logs) == 2
    assert all(log.performed_by == "system" for log in logs)


@pytest.mark.asyncio
async def test_fix_status_task_reports_errors(monkeypatch):
    """보정 작업이 실패하면 예외 대신 오류 결과를 반환합니다."""
    async def broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(orders_crud.order, "fix_status_inconsistencies", broken)
    result = await fix_order_status_consistency_task({}, lab_id=1)
    assert result == {"status": "error", "message": "database unavailable"}


# --- 빠른 상태 전환 ---

@pytest.mark.asyncio
async def test_quick_actions_listing(technician_client: AsyncClient, order_factory):
    db_order = await order_factory(status=order_status.IN_PROGRESS)
    response = await technician_client.get(f"/api/v1/lims/orders/{db_order.id}/quick-actions")
    assert response.status_code == 200
    assert response.json() == [{
        "action": "submit_for_approval",
        "label": "Submit for Approval",
        "target_status": order_status.PENDING_APPROVAL,
    }]


@pytest.mark.asyncio
async def test_quick_actions_none_after_delivery(technician_client: AsyncClient, order_factory):
    db_order = await order_factory(status=order_status.DELIVERED)
    response = await technician_client.get(f"/api/v1/lims/orders/{db_order.id}/quick-actions")
    assert response.json() == []


@pytest.mark.asyncio
async def test_execute_quick_action(technician_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await technician_client.post(
        f"/api/v1/lims/orders/{db_order.id}/quick-actions", json={"action": "mark_sample_collected"}
    )
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["status"] == order_status.SAMPLE_COLLECTION
    assert order["is_sample_collected"] is True


@pytest.mark.asyncio
async def test_execute_quick_action_not_available(technician_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await technician_client.post(
        f"/api/v1/lims/orders/{db_order.id}/quick-actions", json={"action": "deliver_order"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Action 'deliver_order' is not available for status 'Order Created'"


# --- 진행률 ---

@pytest.mark.asyncio
async def test_order_progress_publishes_event(
    technician_client: AsyncClient, db_session: AsyncSession, order_factory
):
    db_order = await order_factory(status=order_status.IN_PROGRESS, expected_date=date.today() + timedelta(days=1))
    await _add_result(
        db_session, db_order,
        status=results_models.ResultStatus.APPROVED,
        verification_status=results_models.VerificationStatus.VERIFIED,
    )
    await _add_result(db_session, db_order, test_name="LFT")
    await _add_result(
        db_session, db_order, test_name="KFT",
        verification_status=results_models.VerificationStatus.NEEDS_CLARIFICATION,
    )

    received = []
    events.subscribe_to_progress_updates(received.append)

    response = await technician_client.get(f"/api/v1/lims/orders/{db_order.id}/progress")
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 200
    assert response.json() == {
        "order_id": db_order.id,
        "total_tests": 3,
        "pending_verification": 2,
        "verified_tests": 1,
        "completed_tests": 1,
        "progress_percentage": 33,
    }
    assert len(received) == 1
    assert received[0].order_id == db_order.id
    assert received[0].progress_data.verified_tests == 1


@pytest.mark.asyncio
async def test_order_progress_without_results(technician_client: AsyncClient, order_factory):
    db_order = await order_factory()
    response = await technician_client.get(f"/api/v1/lims/orders/{db_order.id}/progress")
    assert response.json()["total_tests"] == 0
    assert response.json()["progress_percentage"] == 0

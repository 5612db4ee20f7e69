# tests/domains/test_results_n.py

"""
'results' 도메인 (검사 결과 입력 및 일괄 처리) 관련 API 엔드포인트에 대한 통합 테스트입니다.

- 결과: `POST /lims/results`, `GET /lims/results`, `GET /lims/results/{id}`
- 일괄 처리: `GET /lims/results/batch-operations`, `POST /lims/results/batch`
- CSV 내보내기: `POST /lims/results/export`
"""

import csv
import io
from datetime import date

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import events
from labdesk.domains.orders import models as orders_models
from labdesk.domains.results import batch
from labdesk.domains.results import models as results_models
from labdesk.domains.shared import models as shared_models
from labdesk.domains.usr import models as usr_models


@pytest_asyncio.fixture(scope="function")
async def order(db_session: AsyncSession, test_lab: usr_models.Lab) -> orders_models.Order:
    db_order = orders_models.Order(lab_id=test_lab.id, patient_name="Asha Rao", patient_id="P-1001")
    db_session.add(db_order)
    await db_session.commit()
    await db_session.refresh(db_order)
    return db_order


@pytest_asyncio.fixture(scope="function")
async def second_order(db_session: AsyncSession, test_lab: usr_models.Lab) -> orders_models.Order:
    db_order = orders_models.Order(lab_id=test_lab.id, patient_name="Ravi Kumar", patient_id="P-2002")
    db_session.add(db_order)
    await db_session.commit()
    await db_session.refresh(db_order)
    return db_order


@pytest_asyncio.fixture(scope="function")
def result_factory(db_session: AsyncSession):
    async def _create_result(db_order: orders_models.Order, test_name: str = "CBC", **kwargs) -> results_models.Result:
        db_result = results_models.Result(
            lab_id=db_order.lab_id,
            order_id=db_order.id,
            test_name=test_name,
            patient_id=db_order.patient_id,
            patient_name=db_order.patient_name,
            entered_date=kwargs.pop("entered_date", date(2026, 10, 18)),
            **kwargs,
        )
        db_session.add(db_result)
        await db_session.commit()
        await db_session.refresh(db_result)
        return db_result
    return _create_result


# --- 결과 입력 / 조회 ---

@pytest.mark.asyncio
async def test_create_result_copies_patient(technician_client: AsyncClient, order: orders_models.Order):
    print("\n--- Running test_create_result_copies_patient ---")
    payload = {
        "order_id": order.id,
        "test_name": "Complete Blood Count",
        "test_group_id": 12,
        "entered_date": "2026-10-18",
        "values": [
            {"parameter": "Hemoglobin", "value": "13.5", "unit": "g/dL", "reference_range": "12-16"},
            {"parameter": "WBC", "value": "12.1", "unit": "10^3/uL", "reference_range": "4-11", "flag": "H"},
        ],
    }
    response = await technician_client.post("/api/v1/lims/results", json=payload)
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 201
    created = response.json()
    assert created["patient_name"] == "Asha Rao"
    assert created["patient_id"] == "P-1001"
    assert created["entered_by"] == "Lab Tech"
    assert created["status"] == "Entered"
    assert created["verification_status"] == "pending_verification"
    assert [v["parameter"] for v in created["values"]] == ["Hemoglobin", "WBC"]
    assert all(v["verify_status"] == "pending" for v in created["values"])


@pytest.mark.asyncio
async def test_create_result_unknown_order(technician_client: AsyncClient):
    response = await technician_client.post("/api/v1/lims/results", json={"order_id": 9999, "test_name": "CBC"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_read_results_filters(
    technician_client: AsyncClient, order: orders_models.Order, second_order: orders_models.Order, result_factory
):
    await result_factory(order, "CBC")
    await result_factory(order, "LFT", status=results_models.ResultStatus.APPROVED)
    await result_factory(second_order, "KFT", entered_date=date(2026, 9, 1))

    response = await technician_client.get("/api/v1/lims/results", params={"order_id": order.id})
    assert response.status_code == 200
    assert sorted(r["test_name"] for r in response.json()) == ["CBC", "LFT"]

    response = await technician_client.get("/api/v1/lims/results", params={"status": "Approved"})
    assert [r["test_name"] for r in response.json()] == ["LFT"]

    response = await technician_client.get(
        "/api/v1/lims/results", params={"start_date": "2026-09-01", "end_date": "2026-09-30"}
    )
    assert [r["test_name"] for r in response.json()] == ["KFT"]


@pytest.mark.asyncio
async def test_read_result_other_lab(other_lab_client: AsyncClient, order: orders_models.Order, result_factory):
    db_result = await result_factory(order)
    response = await other_lab_client.get(f"/api/v1/lims/results/{db_result.id}")
    assert response.status_code == 404


# --- 일괄 처리 ---

@pytest.mark.asyncio
async def test_list_batch_operations(technician_client: AsyncClient):
    response = await technician_client.get("/api/v1/lims/results/batch-operations")
    assert response.status_code == 200
    operations = response.json()
    assert [op["id"] for op in operations] == [
        "approve", "reject", "mark-reviewed", "flag-urgent", "export-csv", "print-reports", "assign-reviewer",
    ]
    approve = operations[0]
    assert approve["requires_confirmation"] is True
    assert approve["confirmation_message"] == "Are you sure you want to approve all selected results?"
    assert operations[4]["requires_confirmation"] is False


@pytest.mark.asyncio
async def test_batch_approve(
    lab_manager_client: AsyncClient,
    db_session: AsyncSession,
    order: orders_models.Order,
    second_order: orders_models.Order,
    result_factory,
):
    """승인 작업은 모든 결과를 Approved / verified 로 바꾸고 오더별 진행률 이벤트를 발행합니다."""
    r1 = await result_factory(order, "CBC")
    r2 = await result_factory(order, "LFT")
    r3 = await result_factory(second_order, "KFT")
    received = []
    events.subscribe_to_progress_updates(received.append)

    response = await lab_manager_client.post(
        "/api/v1/lims/results/batch",
        json={"operation": "approve", "result_ids": [r1.id, r2.id, r3.id, r1.id]},
    )
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 200
    body = response.json()
    assert body["affected_count"] == 3
    assert body["message"] == "Approve Selected: 3 result(s) updated"
    assert body["order_ids"] == sorted([order.id, second_order.id])

    for r in (r1, r2, r3):
        await db_session.refresh(r)
        assert r.status == results_models.ResultStatus.APPROVED
        assert r.verification_status == results_models.VerificationStatus.VERIFIED
        assert r.verified_by == "Dr. Manager"
        assert r.verified_at is not None

    assert sorted(e.order_id for e in received) == sorted([order.id, second_order.id])
    assert all(e.progress_data.progress_percentage == 100 for e in received)

    logs = (await db_session.execute(
        select(shared_models.AuditLog).where(shared_models.AuditLog.action == "batch_approve")
    )).scalars().all()
    assert len(logs) == 3


@pytest.mark.asyncio
async def test_batch_approve_forbidden_for_technician(
    technician_client: AsyncClient, db_session: AsyncSession, order: orders_models.Order, result_factory
):
    db_result = await result_factory(order)
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "approve", "result_ids": [db_result.id]}
    )
    assert response.status_code == 403
    await db_session.refresh(db_result)
    assert db_result.status == results_models.ResultStatus.ENTERED


@pytest.mark.asyncio
async def test_batch_reject_stores_notes(
    lab_manager_client: AsyncClient, db_session: AsyncSession, order: orders_models.Order, result_factory
):
    db_result = await result_factory(order)
    response = await lab_manager_client.post(
        "/api/v1/lims/results/batch",
        json={"operation": "reject", "result_ids": [db_result.id], "notes": "Hemolyzed sample"},
    )
    assert response.status_code == 200
    await db_session.refresh(db_result)
    assert db_result.status == results_models.ResultStatus.REJECTED
    assert db_result.verification_status == results_models.VerificationStatus.REJECTED
    assert db_result.verification_notes == "Hemolyzed sample"


@pytest.mark.asyncio
async def test_batch_mark_reviewed(
    technician_client: AsyncClient, db_session: AsyncSession, order: orders_models.Order, result_factory
):
    db_result = await result_factory(order)
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "mark-reviewed", "result_ids": [db_result.id]}
    )
    assert response.status_code == 200
    await db_session.refresh(db_result)
    assert db_result.status == results_models.ResultStatus.REVIEWED
    assert db_result.reviewed_by == "Lab Tech"
    assert db_result.verification_status == results_models.VerificationStatus.PENDING_VERIFICATION


@pytest.mark.asyncio
async def test_batch_flag_urgent(
    technician_client: AsyncClient, db_session: AsyncSession, order: orders_models.Order, result_factory
):
    db_result = await result_factory(order)
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "flag-urgent", "result_ids": [db_result.id]}
    )
    assert response.status_code == 200
    await db_session.refresh(db_result)
    assert db_result.priority_level == 1
    assert db_result.critical_flag is True


@pytest.mark.asyncio
async def test_batch_assign_reviewer(
    technician_client: AsyncClient,
    db_session: AsyncSession,
    order: orders_models.Order,
    result_factory,
    test_lab_manager: usr_models.User,
    test_other_lab_user: usr_models.User,
):
    db_result = await result_factory(order)
    url = "/api/v1/lims/results/batch"

    response = await technician_client.post(url, json={"operation": "assign-reviewer", "result_ids": [db_result.id]})
    assert response.status_code == 400
    assert response.json()["detail"] == "reviewer_id is required for assign-reviewer"

    response = await technician_client.post(url, json={
        "operation": "assign-reviewer", "result_ids": [db_result.id], "reviewer_id": test_other_lab_user.id,
    })
    assert response.status_code == 404

    response = await technician_client.post(url, json={
        "operation": "assign-reviewer", "result_ids": [db_result.id], "reviewer_id": test_lab_manager.id,
    })
    assert response.status_code == 200
    await db_session.refresh(db_result)
    assert db_result.reviewer_id == test_lab_manager.id


@pytest.mark.asyncio
async def test_batch_print_reports_groups_by_order(
    technician_client: AsyncClient,
    db_session: AsyncSession,
    order: orders_models.Order,
    second_order: orders_models.Order,
    result_factory,
):
    r1 = await result_factory(order, "CBC")
    r2 = await result_factory(second_order, "KFT")
    r3 = await result_factory(order, "LFT")
    db_session.add(results_models.ResultValue(result_id=r1.id, parameter="Hemoglobin", value="13.5"))
    await db_session.commit()

    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "print-reports", "result_ids": [r3.id, r2.id, r1.id]}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Prepared 2 report(s) for 3 result(s)"
    reports = body["reports"]
    assert [g["order_id"] for g in reports] == [order.id, second_order.id]
    assert [r["test_name"] for r in reports[0]["results"]] == ["CBC", "LFT"]
    assert reports[0]["results"][0]["values"][0]["parameter"] == "Hemoglobin"

    await db_session.refresh(r1)
    assert r1.status == results_models.ResultStatus.ENTERED


@pytest.mark.asyncio
async def test_batch_unknown_operation(technician_client: AsyncClient, order: orders_models.Order, result_factory):
    db_result = await result_factory(order)
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "delete-all", "result_ids": [db_result.id]}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Unknown batch operation: delete-all"


@pytest.mark.asyncio
async def test_batch_empty_selection(technician_client: AsyncClient):
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "mark-reviewed", "result_ids": []}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "No results selected"


@pytest.mark.asyncio
async def test_batch_missing_result(technician_client: AsyncClient, order: orders_models.Order, result_factory):
    """선택에 없는 결과가 섞여 있으면 아무것도 변경하지 않습니다."""
    db_result = await result_factory(order)
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "flag-urgent", "result_ids": [db_result.id, 9999]}
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Result(s) not found: [9999]"
    assert db_result.critical_flag is False


# --- CSV 내보내기 ---

@pytest.mark.asyncio
async def test_export_csv(technician_client: AsyncClient, order: orders_models.Order, result_factory):
    r1 = await result_factory(order, "CBC", entered_by="Lab Tech")
    r2 = await result_factory(order, "Lipid, Fasting")

    response = await technician_client.post("/api/v1/lims/results/export", json={"result_ids": [r2.id, r1.id]})
    print(f"Response: {response.status_code} {response.headers}")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == f'attachment; filename="{batch.export_filename()}"'

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == batch.CSV_COLUMNS
    assert [row[4] for row in rows[1:]] == ["CBC", "Lipid, Fasting"]
    assert rows[1][5] == "Entered"
    assert rows[1][8] == "Lab Tech"
    assert rows[2][8] == ""
    assert response.text.startswith('"id","order_id"')


@pytest.mark.asyncio
async def test_export_csv_via_batch_operation(
    technician_client: AsyncClient, order: orders_models.Order, result_factory
):
    db_result = await result_factory(order)
    response = await technician_client.post(
        "/api/v1/lims/results/batch", json={"operation": "export-csv", "result_ids": [db_result.id]}
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert len(list(csv.reader(io.StringIO(response.text)))) == 2


def test_export_filename_uses_date():
    assert batch.export_filename(date(2026, 10, 18)) == "results_export_2026-10-18.csv"


def test_results_to_csv_quotes_every_field():
    db_result = results_models.Result(
        id=5, lab_id=1, order_id=2, test_name='Urine "R/M"', patient_name="Asha",
        entered_date=date(2026, 10, 18), priority_level=1, critical_flag=True,
    )
    lines = batch.results_to_csv([db_result]).splitlines()
    assert lines[1].startswith('"5","2","","Asha","Urine ""R/M""",')
    assert '"2026-10-18"' in lines[1]
    assert '"True"' in lines[1]

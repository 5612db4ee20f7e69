# tests/domains/test_loc_n.py

"""
'loc' 도메인 (접수/수납 장소 관리) 관련 API 엔드포인트에 대한 통합 테스트입니다.

- `POST /loc/locations` (생성, 관리자)
- `GET /loc/locations` (같은 검사실 목록)
- `PUT /loc/locations/{id}` (부분 업데이트, 관리자)
- `GET /billing/cash-locations` (현금 수납 장소만)
"""

import pytest
from httpx import AsyncClient

from labdesk.domains.loc import crud as loc_crud
from labdesk.domains.loc import models as loc_models
from labdesk.domains.loc import schemas as loc_schemas
from labdesk.domains.usr import models as usr_models


@pytest.mark.asyncio
async def test_create_location_success_admin(admin_client: AsyncClient, test_admin_user: usr_models.User):
    print("\n--- Running test_create_location_success_admin ---")
    location_data = {
        "name": "2층 채혈실",
        "code": "FL2",
        "address": "본관 2층",
        "supports_cash_collection": True,
    }
    response = await admin_client.post("/api/v1/loc/locations", json=location_data)
    print(f"Response: {response.status_code} {response.json()}")
    assert response.status_code == 201
    created = response.json()
    assert created["name"] == location_data["name"]
    assert created["supports_cash_collection"] is True
    assert created["lab_id"] == test_admin_user.lab_id
    assert "id" in created


@pytest.mark.asyncio
async def test_create_location_duplicate_name(admin_client: AsyncClient, cash_location: loc_models.Location):
    response = await admin_client.post("/api/v1/loc/locations", json={"name": "Main Counter"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Location with this name already exists."


@pytest.mark.asyncio
async def test_create_location_same_name_in_other_lab(
    db_session, cash_location: loc_models.Location, other_lab: usr_models.Lab
):
    """장소명 중복은 검사실 단위로만 검사합니다."""
    created = await loc_crud.location.create(
        db_session, obj_in=loc_schemas.LocationCreate(name="Main Counter"), lab_id=other_lab.id
    )
    assert created.id != cash_location.id
    assert created.lab_id == other_lab.id


@pytest.mark.asyncio
async def test_create_location_forbidden_for_front_desk(front_desk_client: AsyncClient):
    response = await front_desk_client.post("/api/v1/loc/locations", json={"name": "Annex"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_read_locations_scoped_to_lab(
    front_desk_client: AsyncClient,
    cash_location: loc_models.Location,
    card_only_location: loc_models.Location,
    db_session,
    other_lab: usr_models.Lab,
):
    other = loc_models.Location(lab_id=other_lab.id, name="Other Counter", supports_cash_collection=True)
    db_session.add(other)
    await db_session.commit()

    response = await front_desk_client.get("/api/v1/loc/locations")
    assert response.status_code == 200
    names = {loc["name"] for loc in response.json()}
    assert names == {"Main Counter", "Home Collection"}


@pytest.mark.asyncio
async def test_update_location_enables_cash(
    admin_client: AsyncClient, card_only_location: loc_models.Location
):
    response = await admin_client.put(
        f"/api/v1/loc/locations/{card_only_location.id}", json={"supports_cash_collection": True}
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["supports_cash_collection"] is True
    assert updated["name"] == "Home Collection"


@pytest.mark.asyncio
async def test_update_location_not_found(admin_client: AsyncClient):
    response = await admin_client.put("/api/v1/loc/locations/9999", json={"name": "Ghost"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cash_locations_only_cash_enabled(
    front_desk_client: AsyncClient,
    cash_location: loc_models.Location,
    card_only_location: loc_models.Location,
):
    """현금 정산 화면에는 현금 수납 장소만 나타납니다."""
    response = await front_desk_client.get("/api/v1/billing/cash-locations")
    assert response.status_code == 200
    locations = response.json()
    assert [loc["id"] for loc in locations] == [cash_location.id]

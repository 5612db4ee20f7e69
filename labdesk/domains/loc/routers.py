# labdesk/domains/loc/routers.py

"""
'loc' 도메인의 API 엔드포인트를 정의하는 모듈입니다.
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser

from labdesk.domains.loc import crud as loc_crud
from labdesk.domains.loc import schemas as loc_schemas

router = APIRouter(
    tags=["Location Management (장소 관리)"],
    responses={404: {"description": "Not found"}},
)


@router.post("/locations", response_model=loc_schemas.LocationRead, status_code=status.HTTP_201_CREATED, summary="새 장소 생성")
async def create_location(
    location_in: loc_schemas.LocationCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """
    관리자의 검사실에 새 장소를 등록합니다. (관리자 권한 필요)
    - `supports_cash_collection`: 현금 정산 대상 여부
    """
    return await loc_crud.location.create(db, obj_in=location_in, lab_id=current_user.lab_id)


@router.get("/locations", response_model=List[loc_schemas.LocationRead], summary="장소 목록 조회")
async def read_locations(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await loc_crud.location.get_multi(db, skip=skip, limit=limit, lab_id=current_user.lab_id)


@router.put("/locations/{location_id}", response_model=loc_schemas.LocationRead, summary="장소 정보 업데이트")
async def update_location(
    location_id: int,
    location_in: loc_schemas.LocationUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    db_location = await loc_crud.location.get_for_lab(db, id=location_id, lab_id=current_user.lab_id)
    if not db_location:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return await loc_crud.location.update(db, db_obj=db_location, obj_in=location_in)

# labdesk/domains/loc/crud.py

"""
'loc' 도메인 (장소 정보)과 관련된 CRUD 로직을 담당하는 모듈입니다.
"""

from typing import List, Optional
import logging

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import HTTPException, status

from labdesk.core.crud_base import CRUDBase
from . import models as loc_models
from . import schemas as loc_schemas

logger = logging.getLogger(__name__)


# =============================================================================
# 1. 장소 (Location) CRUD
# =============================================================================
class CRUDLocation(
    CRUDBase[
        loc_models.Location,
        loc_schemas.LocationCreate,
        loc_schemas.LocationUpdate
    ]
):
    def __init__(self):
        super().__init__(model=loc_models.Location)

    async def get_by_name(self, db: AsyncSession, *, lab_id: int, name: str) -> Optional[loc_models.Location]:
        statement = select(self.model).where(self.model.lab_id == lab_id, self.model.name == name)
        result = await db.execute(statement)
        return result.scalars().one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: loc_schemas.LocationCreate, lab_id: int) -> loc_models.Location:
        """같은 검사실 안에서 장소명이 중복되지 않도록 확인하고 생성합니다."""
        if await self.get_by_name(db, lab_id=lab_id, name=obj_in.name):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Location with this name already exists.")
        return await super().create(db, obj_in=obj_in, lab_id=lab_id)

    async def list_cash_locations(self, db: AsyncSession, *, lab_id: int) -> List[loc_models.Location]:
        """현금 수납이 가능한 활성 장소 목록을 이름순으로 반환합니다."""
        statement = (
            select(self.model)
            .where(
                self.model.lab_id == lab_id,
                self.model.supports_cash_collection == True,  # noqa: E712
                self.model.is_active == True,  # noqa: E712
            )
            .order_by(self.model.name)
        )
        result = await db.execute(statement)
        return result.scalars().all()


location = CRUDLocation()

# labdesk/domains/usr/crud.py

"""
'usr' 도메인의 CRUD 작업을 담당하는 모듈입니다.
"""

from typing import Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import HTTPException, status

from labdesk.core.crud_base import CRUDBase
from labdesk.core.security import get_password_hash, verify_password
from . import models as usr_models
from . import schemas as usr_schemas


# =============================================================================
# 1. labs 테이블 CRUD
# =============================================================================
class CRUDLab(CRUDBase[usr_models.Lab, usr_schemas.LabCreate, usr_schemas.LabCreate]):
    def __init__(self):
        super().__init__(model=usr_models.Lab)

    async def create(self, db: AsyncSession, *, obj_in: usr_schemas.LabCreate) -> usr_models.Lab:
        if await self.get_by_attribute(db, attribute="code", value=obj_in.code):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Lab with this code already exists")
        return await super().create(db, obj_in=obj_in)


lab = CRUDLab()


# =============================================================================
# 2. users 테이블 CRUD
# =============================================================================
class CRUDUser(CRUDBase[usr_models.User, usr_schemas.UserCreate, usr_schemas.UserUpdate]):
    def __init__(self):
        super().__init__(model=usr_models.User)

    async def get_by_username(self, db: AsyncSession, *, username: str) -> Optional[usr_models.User]:
        return await self.get_by_attribute(db, attribute="username", value=username)

    async def create(self, db: AsyncSession, *, obj_in: usr_schemas.UserCreate, lab_id: int) -> usr_models.User:
        """
        사용자명/이메일 중복과 검사실 존재 여부를 확인한 뒤 비밀번호를 해싱하여 저장합니다.
        """
        if await self.get_by_username(db, username=obj_in.username):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
        if obj_in.email and await self.get_by_attribute(db, attribute="email", value=obj_in.email):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
        if not await lab.get(db, id=lab_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lab not found")

        user_data = obj_in.model_dump(exclude={"password", "lab_id"})
        db_obj = usr_models.User(
            **user_data,
            lab_id=lab_id,
            password_hash=get_password_hash(obj_in.password),
        )
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: usr_models.User, obj_in: usr_schemas.UserUpdate) -> usr_models.User:
        update_data = obj_in.model_dump(exclude_unset=True)
        if "password" in update_data:
            password = update_data.pop("password")
            if password:
                update_data["password_hash"] = get_password_hash(password)
        return await super().update(db, db_obj=db_obj, obj_in=update_data)

    async def authenticate(self, db: AsyncSession, *, username: str, password: str) -> Optional[usr_models.User]:
        user = await self.get_by_username(db, username=username)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user


user = CRUDUser()

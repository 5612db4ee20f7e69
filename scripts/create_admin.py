# flake8: noqa
# scripts/create_admin.py

import asyncio
import typer
from fastapi import HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from labdesk.core.database import AsyncSessionLocal
from labdesk.domains.usr import crud as usr_crud
from labdesk.domains.usr import schemas as usr_schemas
from labdesk.domains.usr.models import UserRole

cli = typer.Typer()


async def create_admin_user(
    db: AsyncSession,
    lab_in: usr_schemas.LabCreate,
    user_in: usr_schemas.UserCreate,
) -> None:
    """
    검사실이 없으면 만들고, 그 검사실에 관리자 사용자를 생성합니다.
    """
    db_lab = await usr_crud.lab.get_by_attribute(db, attribute="code", value=lab_in.code)
    if db_lab is None:
        db_lab = await usr_crud.lab.create(db, obj_in=lab_in)
        typer.echo(f"검사실이 생성되었습니다: {db_lab.code} ({db_lab.name})")

    try:
        await usr_crud.user.create(db, obj_in=user_in, lab_id=db_lab.id)
    except HTTPException as e:
        typer.echo(f"오류: {e.detail}")
        raise typer.Exit(code=1)
    typer.echo(f"관리자 계정이 성공적으로 생성되었습니다: {user_in.username}")


@cli.command()
def main(
    lab_code: str = typer.Option(
        ..., '--lab-code', '-l',
        prompt="검사실 코드를 입력하세요",
        help="관리자가 소속될 검사실 코드입니다. 없으면 새로 만듭니다."
    ),
    lab_name: str = typer.Option(
        "Main Laboratory", '--lab-name',
        help="새 검사실을 만들 때 사용할 이름입니다."
    ),
    username: str = typer.Option(
        ..., '--username', '-u',
        prompt="관리자 사용자명(ID)을 입력하세요",
        help="로그인 시 사용할 사용자명(ID)입니다."
    ),
    password: str = typer.Option(
        ..., '--password', '-p',
        prompt="관리자 비밀번호를 입력하세요",
        hide_input=True,
        confirmation_prompt=True,
        help="생성할 관리자 계정의 비밀번호입니다. (최소 8자 이상)"
    ),
    full_name: str = typer.Option(
        "Admin", '--name', '-n',
        help="관리자의 이름입니다."
    ),
):
    """
    LabDesk 애플리케이션을 위한 새로운 관리자(Admin)를 생성합니다.
    """
    if len(password) < 8:
        typer.echo("오류: 비밀번호는 최소 8자 이상이어야 합니다.")
        raise typer.Abort()

    lab_data = usr_schemas.LabCreate(code=lab_code, name=lab_name)
    user_data = usr_schemas.UserCreate(
        username=username,
        password=password,
        full_name=full_name,
        role=UserRole.ADMIN,
    )

    async def run_creation():
        async with AsyncSessionLocal() as db:
            await create_admin_user(db=db, lab_in=lab_data, user_in=user_data)

    asyncio.run(run_creation())


if __name__ == "__main__":
    cli()

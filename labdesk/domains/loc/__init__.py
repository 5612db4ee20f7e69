# labdesk/domains/loc/__init__.py

"""
FastAPI 애플리케이션의 'loc' 도메인 패키지입니다.

검사실의 접수/채혈 장소(Location)를 관리하며,
현금 수납이 가능한 장소는 수납 정산(billing) 도메인에서 사용됩니다.

주요 서브모듈:
- `models.py`: locations 테이블에 매핑되는 SQLModel 정의.
- `schemas.py`: 요청 및 응답 유효성 검사용 Pydantic 모델.
- `crud.py`: 비동기 CRUD 로직.
- `routers.py`: API 엔드포인트 정의.
"""

__title__ = "LabDesk Location Domain"
__all__ = []

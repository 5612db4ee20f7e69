# labdesk/domains/orders/__init__.py

"""
FastAPI 애플리케이션의 'orders' 도메인 패키지입니다.

검사 오더(Order)의 상태와 검체 채취 여부를 일관되게 유지하고,
화면 배지에 표시할 상태와 빠른 상태 전환 버튼 정보를 제공합니다.

주요 서브모듈:
- `models.py`: orders 테이블 SQLModel 정의.
- `schemas.py`: 요청 및 응답용 Pydantic 모델.
- `status.py`: 상태 도출 규칙 (순수 함수).
- `crud.py`: 상태 동기화가 포함된 비동기 CRUD 로직.
- `routers.py`: API 엔드포인트 정의.
- `tasks.py`: 상태 불일치 일괄 보정 ARQ 태스크.
"""

__title__ = "LabDesk Orders Domain"
__all__ = []

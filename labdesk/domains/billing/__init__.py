# labdesk/domains/billing/__init__.py

"""
FastAPI 애플리케이션의 'billing' 도메인 패키지입니다.

청구서(Invoice), 수납(Payment), 일자/장소/근무조 단위 현금 정산(CashRegister)을 다룹니다.

주요 서브모듈:
- `models.py`: invoices, payments, cash_registers 테이블 SQLModel 정의.
- `schemas.py`: 요청 및 응답용 Pydantic 모델.
- `crud.py`: 수납 조회, 정산 장부 생성/갱신, 정산 확정 로직.
- `routers.py`: API 엔드포인트 정의.
"""

__title__ = "LabDesk Billing Domain"
__all__ = []

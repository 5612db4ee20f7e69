# labdesk/domains/results/__init__.py

"""
FastAPI 애플리케이션의 'results' 도메인 패키지입니다.

검사 결과(Result)와 분석 항목 값(ResultValue)을 다루며,
결과 일괄 처리(승인/반려/검토/긴급 표시/검토자 지정/출력/CSV 내보내기)와
분석 항목 단위 검증(승인/반려/일괄 승인)을 제공합니다.

주요 서브모듈:
- `models.py`: results, result_values 테이블 SQLModel 정의.
- `schemas.py`: 요청 및 응답용 Pydantic 모델.
- `batch.py`: 일괄 처리 작업 목록과 실행 로직, CSV 변환.
- `crud.py`: 결과 조회 및 분석 항목 검증 CRUD 로직.
- `routers.py`: 결과/일괄 처리 API 엔드포인트.
- `verification_routers.py`: 분석 항목 검증 API 엔드포인트.
"""

__title__ = "LabDesk Results Domain"
__all__ = []

# tests/__init__.py

"""
LabDesk FastAPI 애플리케이션의 테스트 스위트 패키지입니다.

- `conftest.py`: 테스트용 데이터베이스, 역할별 사용자, 인증된 클라이언트 픽스처.
- `core/`: 순수 함수(상태 도출, 통화 형식, 이벤트 버스) 단위 테스트.
- `domains/`: 도메인별 API 통합 테스트.
"""

__title__ = "LabDesk API Tests"
__all__ = []

# labdesk/core/__init__.py

"""
애플리케이션 전반에 걸쳐 사용되는 핵심 구성 요소 패키지입니다.

- `config.py`: 설정 및 환경 변수 관리 (Pydantic Settings).
- `database.py`: 비동기 엔진과 세션 관리 (SQLModel / SQLAlchemy).
- `crud_base.py`: 공통 비동기 CRUD 기본 클래스.
- `security.py`: 비밀번호 해싱, JWT, 역할 기반 권한 의존성.
- `dependencies.py`: 라우터에서 사용하는 공통 의존성 모음.
- `events.py`: 화면 간 갱신 알림을 위한 프로세스 내 이벤트 버스.
- `formatting.py`: 로케일에 맞는 통화 표시 형식.
- `tasks.py`: ARQ 워커가 실행하는 공통 태스크.
"""

__title__ = "LabDesk Core"
__version__ = "0.1.0"
__all__ = []

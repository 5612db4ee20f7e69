# labdesk/__init__.py

"""
LabDesk LIMS FastAPI 애플리케이션의 메인 패키지입니다.

이 패키지는 임상 검사실 업무(수납 정산, 오더 상태 추적, 결과 일괄 처리,
분석 항목 검증, 대시보드 집계)를 위한 API를 제공합니다.
공통 설정, 데이터베이스 연결, 보안 유틸리티를 담는 core 서브패키지와
각 업무 화면을 대표하는 domains 서브패키지로 구성됩니다.
"""

APP_NAME = "LabDesk LIMS API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"  # API 라우트의 공통 접두사 (main.py에서 적용)

__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "Laboratory information management (LIMS) API backend."
__license__ = "MIT"
__all__ = []

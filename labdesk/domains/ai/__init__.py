# labdesk/domains/ai/__init__.py

"""
FastAPI 애플리케이션의 'ai' 도메인 패키지입니다.

외부에 호스팅된 서버리스 함수(AI 검사 구성 제안, 문서 분석)를 httpx로 호출합니다.
API 키는 서버 설정에만 보관되며 클라이언트에 노출되지 않습니다.
"""

__title__ = "LabDesk AI Domain"
__all__ = []

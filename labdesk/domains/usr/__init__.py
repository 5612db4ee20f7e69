# labdesk/domains/usr/__init__.py

"""
'usr' 도메인 패키지입니다.

검사실(Lab)과 사용자(User), 그리고 토큰 기반 인증 엔드포인트를 관리합니다.
모든 업무 데이터는 사용자가 소속된 검사실(lab_id) 범위 안에서만 조회·수정됩니다.
"""

__title__ = "LabDesk User & Lab Domain"
__all__ = []

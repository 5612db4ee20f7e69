# labdesk/domains/shared/__init__.py

"""
여러 도메인이 함께 사용하는 공용 데이터('shared') 패키지입니다.

현재는 상태 동기화, 수납 정산, 결과 일괄 처리 등의 감사 기록(AuditLog)을 담당합니다.
"""

__title__ = "LabDesk Shared Domain"
__all__ = []

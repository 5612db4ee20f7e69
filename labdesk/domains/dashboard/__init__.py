# labdesk/domains/dashboard/__init__.py

"""
FastAPI 애플리케이션의 'dashboard' 도메인 패키지입니다.

데이터베이스의 `mv_dashboard_orders` 구체화 뷰(materialized view)에서
오더 행을 조회하고, KPI 집계와 일자별 그룹을 만들어 제공합니다.
행의 상태(dashboard_state, is_overdue, balance_due 등)는 뷰에서 계산됩니다.
"""

__title__ = "LabDesk Dashboard Domain"
__all__ = []

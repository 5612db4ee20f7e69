# labdesk/domains/models/__init__.py

"""
모든 도메인의 SQLModel 모델을 한 곳에서 임포트하여
SQLModel.metadata가 모든 테이블을 인식하도록 보장합니다.
(Alembic env.py, 테스트 DB 생성에서 사용)
"""

# usr (Lab, User)
from labdesk.domains.usr.models import Lab, User, UserRole

# loc (Location)
from labdesk.domains.loc.models import Location

# shared (AuditLog)
from labdesk.domains.shared.models import AuditLog

# orders (Order)
from labdesk.domains.orders.models import Order, OrderPriority

# results (Result, ResultValue)
from labdesk.domains.results.models import (
    Result, ResultValue, ResultStatus, VerificationStatus, AnalyteVerifyStatus
)

# billing (Invoice, Payment, CashRegister)
from labdesk.domains.billing.models import (
    Invoice, Payment, CashRegister, InvoiceStatus, PaymentMethod, Shift
)

# dashboard (구체화 뷰 매핑)
from labdesk.domains.dashboard.models import DashboardOrder, DASHBOARD_VIEW_NAME

__all__ = [
    "Lab", "User", "UserRole",
    "Location",
    "AuditLog",
    "Order", "OrderPriority",
    "Result", "ResultValue", "ResultStatus", "VerificationStatus", "AnalyteVerifyStatus",
    "Invoice", "Payment", "CashRegister", "InvoiceStatus", "PaymentMethod", "Shift",
    "DashboardOrder", "DASHBOARD_VIEW_NAME",
]

# labdesk/domains/orders/tasks.py

"""
'orders' 도메인의 ARQ 백그라운드 태스크입니다.
"""

import logging
from typing import Optional

from labdesk.core.database import get_async_session_context
from . import crud as orders_crud

logger = logging.getLogger(__name__)


async def fix_order_status_consistency_task(ctx, lab_id: Optional[int] = None):
    """
    검체 채취 기록과 어긋난 오더 상태를 일괄 보정하는 백그라운드 작업.
    lab_id를 생략하면 모든 검사실을 대상으로 합니다.
    """
    logger.info("Order status consistency fix started (lab_id=%s)", lab_id)
    try:
        async with get_async_session_context() as db:
            fixed_count = await orders_crud.order.fix_status_inconsistencies(db, lab_id=lab_id)
    except Exception as e:
        logger.exception("Order status consistency fix failed")
        return {"status": "error", "message": str(e)}

    logger.info("Order status consistency fix finished: %d order(s) fixed", fixed_count)
    return {"status": "success", "fixed_count": fixed_count}

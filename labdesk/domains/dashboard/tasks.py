# labdesk/domains/dashboard/tasks.py

import logging

from labdesk.core.database import get_async_session_context
from . import crud as dashboard_crud

logger = logging.getLogger(__name__)


async def refresh_dashboard_task(ctx):
    """대시보드 구체화 뷰를 주기적으로 갱신하는 백그라운드 작업."""
    try:
        async with get_async_session_context() as db:
            refreshed = await dashboard_crud.dashboard.refresh_view(db)
    except Exception as e:
        logger.exception("Dashboard refresh failed")
        return {"status": "error", "message": str(e)}
    return {"status": "success", "refreshed": refreshed}

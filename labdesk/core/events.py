# labdesk/core/events.py

"""
화면(도메인) 간 갱신 알림을 위한 프로세스 내 이벤트 버스입니다.

결과 일괄 처리나 분석 항목 검증이 끝나면 해당 오더의 진행률을 발행하고,
오더 상태가 바뀌면 상태 변경 이벤트를 발행합니다.
구독자는 발행 시점에 동기적으로 호출되며, 구독자 한 곳의 예외는
로그만 남기고 다른 구독자와 발행자에게 전파되지 않습니다.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# 이벤트 이름
ORDER_PROGRESS_UPDATE = "order-progress-update"
ORDER_STATUS_UPDATE = "order-status-update"


@dataclass
class ProgressData:
    total_tests: int = 0
    pending_verification: int = 0
    verified_tests: int = 0
    completed_tests: int = 0
    progress_percentage: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ProgressUpdateEvent:
    order_id: int
    progress_data: ProgressData


Callback = Callable[[Any], None]


class EventBus:
    """이벤트 이름별 구독자 목록을 관리하는 단순한 발행/구독 버스."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callback]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callback) -> Callable[[], None]:
        """구독자를 등록하고, 구독 해제 함수를 반환합니다."""
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def publish(self, event: str, payload: Any) -> int:
        """등록된 구독자들에게 payload를 전달하고, 호출된 구독자 수를 반환합니다."""
        delivered = 0
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(payload)
                delivered += 1
            except Exception:
                logger.exception("Subscriber %r failed while handling '%s'", callback, event)
        return delivered

    def clear(self, event: Optional[str] = None) -> None:
        if event is None:
            self._subscribers.clear()
        else:
            self._subscribers.pop(event, None)


bus = EventBus()


def publish_progress_update(order_id: int, progress_data: ProgressData) -> int:
    """오더 진행률 갱신 이벤트를 발행합니다."""
    return bus.publish(ORDER_PROGRESS_UPDATE, ProgressUpdateEvent(order_id=order_id, progress_data=progress_data))


def subscribe_to_progress_updates(callback: Callable[[ProgressUpdateEvent], None]) -> Callable[[], None]:
    """오더 진행률 갱신 이벤트를 구독합니다."""
    return bus.subscribe(ORDER_PROGRESS_UPDATE, callback)

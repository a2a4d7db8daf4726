import asyncio
import logging
from collections import defaultdict
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SESSION_STARTED = "session_started"
SESSION_CLOSED = "session_closed"
RECORD_MARKED = "record_marked"


class AttendanceEventBroker:
    """
    In-process publish/subscribe hub for attendance changes.

    Each classroom has a version counter that goes up on every published
    event. Long-poll handlers remember the last version they returned and
    call `wait_for_change` with it; they wake as soon as something newer is
    published or the timeout runs out.
    """

    def __init__(self):
        self._versions: Dict[int, int] = defaultdict(int)
        self._last_events: Dict[int, str] = {}
        self._conditions: Dict[int, asyncio.Condition] = {}

    def _condition(self, classroom_id: int) -> asyncio.Condition:
        condition = self._conditions.get(classroom_id)
        if condition is None:
            condition = asyncio.Condition()
            self._conditions[classroom_id] = condition
        return condition

    def version(self, classroom_id: int) -> int:
        return self._versions[classroom_id]

    def last_event(self, classroom_id: int) -> Optional[str]:
        return self._last_events.get(classroom_id)

    async def publish(self, classroom_id: int, event: str) -> int:
        condition = self._condition(classroom_id)
        async with condition:
            self._versions[classroom_id] += 1
            self._last_events[classroom_id] = event
            condition.notify_all()
        logger.debug(f"Published {event} for classroom {classroom_id} [version: {self._versions[classroom_id]}]")
        return self._versions[classroom_id]

    async def wait_for_change(self, classroom_id: int, since: int, timeout: float) -> int:
        """
        Block until the classroom version exceeds `since` or `timeout` seconds pass.

        A `since` ahead of the current version comes from before a restart
        reset the counters, so it returns at once with the new version.
        """
        current = self._versions[classroom_id]
        if current != since or timeout <= 0:
            return current

        condition = self._condition(classroom_id)
        async with condition:
            try:
                await asyncio.wait_for(
                    condition.wait_for(lambda: self._versions[classroom_id] > since),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                pass
        return self._versions[classroom_id]


broker = AttendanceEventBroker()


def get_event_broker() -> AttendanceEventBroker:
    return broker

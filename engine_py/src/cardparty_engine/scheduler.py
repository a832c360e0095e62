"""
Per-room delayed tasks.

Pacing delays (such as dealing the next Indian Poker round after a reveal)
run as asyncio tasks keyed by room code, so that deleting a room cancels
everything still pending for it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class RoomTimers:
    def __init__(self):
        self.tasks: Dict[str, Dict[str, asyncio.Task]] = {}

    def schedule(self, room_code: str, name: str, delay: float,
                 callback: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Run ``callback`` after ``delay`` seconds, replacing a pending task of the same name."""
        self.cancel(room_code, name)

        async def runner():
            await asyncio.sleep(delay)
            # Once due the task is no longer pending, so its own callback cannot cancel it
            self._discard(room_code, name, task)
            try:
                await callback()
            except Exception:
                logger.exception(f"Timer {name} for room {room_code} failed")

        task = asyncio.get_running_loop().create_task(runner())
        self.tasks.setdefault(room_code, {})[name] = task
        return task

    def _discard(self, room_code: str, name: str, task: asyncio.Task):
        room_tasks = self.tasks.get(room_code, {})
        if room_tasks.get(name) is task:
            del room_tasks[name]
            if not room_tasks:
                self.tasks.pop(room_code, None)

    def cancel(self, room_code: str, name: Optional[str] = None):
        room_tasks = self.tasks.get(room_code)
        if not room_tasks:
            return
        names = [name] if name is not None else list(room_tasks)
        for task_name in names:
            task = room_tasks.pop(task_name, None)
            if task is not None and not task.done():
                task.cancel()
        if not room_tasks:
            self.tasks.pop(room_code, None)

    def cancel_room(self, room_code: str):
        if room_code in self.tasks:
            logger.info(f"Cancelling pending timers for room {room_code}")
        self.cancel(room_code)

    def pending(self, room_code: str) -> Dict[str, asyncio.Task]:
        return dict(self.tasks.get(room_code, {}))

    def cancel_all(self):
        for room_code in list(self.tasks):
            self.cancel(room_code)

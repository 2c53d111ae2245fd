import asyncio
import time
from typing import Optional, Set

from study_assistant.utils import get_logger, log_history_write
from study_assistant.content.models import StudyPacket
from .store import HistoryStore, HistoryEntry, HistoryMode, HISTORY_ENABLED

LOG = get_logger()


class HistoryRecorder:
    """Schedules history writes without making the request wait for them.

    Writes run as independent asyncio tasks; the blocking store call is moved
    to a worker thread. Failures are logged and never reach the caller.
    """

    def __init__(self, store: Optional[HistoryStore] = None, enabled: bool = HISTORY_ENABLED):
        self._store = store
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    @property
    def store(self) -> HistoryStore:
        return self._store if self._store is not None else HistoryStore.get_instance()

    def build_entry(self, user_id: str, packet: StudyPacket, mode: str) -> HistoryEntry:
        return HistoryEntry(user_id=user_id, topic=packet.topic, mode=HistoryMode(mode), study_data=packet.study_data())

    def record(self, entry: HistoryEntry) -> None:
        start = time.time()
        try:
            self.store.append(entry)
        except Exception as e:
            duration_ms = int((time.time() - start) * 1000)
            LOG.exception('history_write_failed', exc_info=True, extra={'user_id': entry.user_id})
            log_history_write(entry.user_id, entry.mode.value, duration_ms, success=False, error=str(e))
            return
        log_history_write(entry.user_id, entry.mode.value, int((time.time() - start) * 1000))

    def record_in_background(self, user_id: str, packet: StudyPacket, mode: str) -> Optional[asyncio.Task]:
        if not self.enabled or not user_id:
            return None
        try:
            entry = self.build_entry(user_id, packet, mode)
        except Exception:
            LOG.exception('history_entry_build_failed', exc_info=True, extra={'user_id': user_id})
            return None
        task = asyncio.get_running_loop().create_task(asyncio.to_thread(self.record, entry))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            LOG.warning('history_write_cancelled')
            return
        exc = task.exception()
        if exc is not None:
            LOG.error('history_write_task_failed', extra={'error': str(exc)})

    async def drain(self) -> None:
        """Wait for scheduled writes; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

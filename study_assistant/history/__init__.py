"""Per-user study history: storage and fire-and-forget recording."""

from .store import HistoryStore, HistoryEntry, HistoryMode, HistoryStoreError
from .recorder import HistoryRecorder

__all__ = [
	'HistoryStore',
	'HistoryEntry',
	'HistoryMode',
	'HistoryStoreError',
	'HistoryRecorder',
]

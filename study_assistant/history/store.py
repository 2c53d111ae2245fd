import os
import json
import uuid
import threading
from enum import Enum
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

try:
    import redis
except Exception:
    redis = None

from pydantic import BaseModel, Field

from study_assistant.utils import get_logger

LOG = get_logger()

HISTORY_ENABLED = os.getenv('HISTORY_ENABLED', 'true').lower() in ('1', 'true', 'yes')
HISTORY_LIST_LIMIT = int(os.getenv('HISTORY_LIST_LIMIT', '50'))
HISTORY_MAX_ENTRIES = int(os.getenv('HISTORY_MAX_ENTRIES', '500'))
REDIS_URL = os.getenv('REDIS_URL', None)


class HistoryStoreError(Exception):
    pass


class HistoryMode(str, Enum):
    NORMAL = 'normal'
    MATH = 'math'
    FRAMEWORK = 'framework'


class HistoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    topic: str
    mode: HistoryMode = HistoryMode.NORMAL
    study_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def listing(self) -> Dict[str, Any]:
        return {'id': self.id, 'topic': self.topic, 'mode': self.mode.value, 'createdAt': self.created_at.isoformat()}


class HistoryStore:
    """Per-user study history.

    Redis keeps one sorted set per user scored by creation time, so entries
    written out of order still list newest first. Without Redis an in-memory
    dict with the same semantics is used.
    """

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._use_redis = False
        self._client = None
        self._in_memory: Dict[str, List[HistoryEntry]] = {}
        self._lock = threading.Lock()
        try:
            if redis is not None and REDIS_URL:
                self._client = redis.from_url(REDIS_URL, decode_responses=True)
                self._client.ping()
                self._use_redis = True
                LOG.info('HistoryStore using Redis', extra={'redis_url': REDIS_URL})
            elif redis is not None:
                self._client = redis.Redis(host=os.getenv('REDIS_HOST', 'redis'), port=int(os.getenv('REDIS_PORT', '6379')), password=os.getenv('REDIS_PASSWORD') or None, decode_responses=True)
                self._client.ping()
                self._use_redis = True
                LOG.info('HistoryStore using Redis default host', extra={})
            else:
                LOG.warning('redis library not available, falling back to in-memory HistoryStore')
        except Exception as e:
            LOG.warning('Redis not available for HistoryStore, using in-memory store', extra={'error': str(e)})
            self._use_redis = False
            self._client = None

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = HistoryStore()
        return cls._instance

    @property
    def backend(self) -> str:
        return 'redis' if self._use_redis else 'memory'

    def _key(self, user_id: str) -> str:
        return f'history:{user_id}'

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        if self._use_redis and self._client:
            key = self._key(entry.user_id)
            try:
                self._client.zadd(key, {entry.model_dump_json(): entry.created_at.timestamp()})
                # keep only the newest HISTORY_MAX_ENTRIES
                self._client.zremrangebyrank(key, 0, -(HISTORY_MAX_ENTRIES + 1))
            except Exception as e:
                raise HistoryStoreError(f'history append failed: {e}') from e
        else:
            with self._lock:
                entries = self._in_memory.setdefault(entry.user_id, [])
                entries.append(entry)
                if len(entries) > HISTORY_MAX_ENTRIES:
                    entries.sort(key=lambda x: x.created_at)
                    del entries[:len(entries) - HISTORY_MAX_ENTRIES]
        LOG.info('history_appended', extra={'user_id': entry.user_id, 'mode': entry.mode.value, 'backend': self.backend})
        return entry

    def list_recent(self, user_id: str, limit: int = HISTORY_LIST_LIMIT) -> List[HistoryEntry]:
        limit = max(1, min(HISTORY_LIST_LIMIT, int(limit)))
        if self._use_redis and self._client:
            try:
                raw = self._client.zrevrange(self._key(user_id), 0, limit - 1)
            except Exception as e:
                raise HistoryStoreError(f'history read failed: {e}') from e
            entries = []
            for item in raw:
                try:
                    entries.append(HistoryEntry.model_validate_json(item))
                except ValueError:
                    LOG.warning('history_entry_corrupt', extra={'user_id': user_id})
            return entries
        with self._lock:
            entries = list(self._in_memory.get(user_id, []))
        entries.sort(key=lambda x: x.created_at, reverse=True)
        return entries[:limit]

    def clear(self, user_id: str) -> int:
        if self._use_redis and self._client:
            key = self._key(user_id)
            try:
                count = self._client.zcard(key)
                self._client.delete(key)
            except Exception as e:
                raise HistoryStoreError(f'history clear failed: {e}') from e
        else:
            with self._lock:
                count = len(self._in_memory.pop(user_id, []))
        LOG.info('history_cleared', extra={'user_id': user_id, 'deleted': count, 'backend': self.backend})
        return int(count)

    def ping(self) -> str:
        if not self._use_redis:
            return 'ok: in-memory'
        try:
            self._client.ping()
            return 'ok'
        except Exception as e:
            return f'error: {str(e)}'

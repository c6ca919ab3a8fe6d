# Overview: In-memory storage backend for development servers and tests.

from __future__ import annotations

from datetime import datetime
from itertools import count

from sqlalchemy import inspect as sa_inspect

from .base import Storage, SessionStore
from ..models import Activity, SessionRecord
from portal.time_utils import utcnow


def _column_defaults(model) -> dict:
    """Scalar Python-side column defaults, applied the way an INSERT would."""
    defaults = {}
    for column in sa_inspect(model).columns:
        if column.default is not None and column.default.is_scalar:
            defaults[column.key] = column.default.arg
    return defaults


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: dict[str, SessionRecord] = {}
        self._ids = count(1)

    def create(self, token_hash, user_id, created_at, expires_at):
        record = SessionRecord(
            id=next(self._ids),
            token_hash=token_hash,
            user_id=user_id,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._sessions[token_hash] = record
        return record

    def get(self, token_hash):
        return self._sessions.get(token_hash)

    def delete(self, token_hash):
        return self._sessions.pop(token_hash, None) is not None

    def delete_expired(self, now: datetime) -> int:
        expired = [key for key, record in self._sessions.items() if record.expires_at <= now]
        for key in expired:
            del self._sessions[key]
        return len(expired)


class MemStorage(Storage):
    """
    Dict-backed storage. Records are transient model instances, so they
    serialize exactly like database rows. Everything is lost on restart.
    """

    name = "memory"

    def __init__(self):
        self._tables: dict[type, dict[int, object]] = {}
        self._ids: dict[type, count] = {}
        self.session_store = MemorySessionStore()

    def _table(self, model) -> dict:
        if model not in self._tables:
            self._tables[model] = {}
            self._ids[model] = count(1)
        return self._tables[model]

    def _get(self, model, record_id):
        return self._table(model).get(record_id)

    def _find(self, model, **filters):
        rows = sorted(self._table(model).values(), key=lambda r: r.id)
        return [r for r in rows if all(getattr(r, k) == v for k, v in filters.items())]

    def _insert(self, model, fields):
        table = self._table(model)
        values = _column_defaults(model)
        values.update(fields)
        values["id"] = next(self._ids[model])
        now = utcnow()
        for stamp in ("created_at", "updated_at"):
            if hasattr(model, stamp) and values.get(stamp) is None:
                values[stamp] = now
        record = model(**values)
        table[record.id] = record
        return record

    def _update(self, record, fields):
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    def list_recent_activities(self, limit=20):
        rows = sorted(
            self._table(Activity).values(),
            key=lambda a: (a.created_at, a.id),
            reverse=True,
        )
        return rows[:limit]

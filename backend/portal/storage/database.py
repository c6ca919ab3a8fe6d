# Overview: Relational storage backend on Flask-SQLAlchemy.

from __future__ import annotations

from datetime import datetime

from .base import Storage, SessionStore
from ..extensions import db
from ..models import Activity, SessionRecord


class DatabaseSessionStore(SessionStore):
    def create(self, token_hash, user_id, created_at, expires_at):
        record = SessionRecord(
            token_hash=token_hash,
            user_id=user_id,
            created_at=created_at,
            expires_at=expires_at,
        )
        db.session.add(record)
        db.session.commit()
        return record

    def get(self, token_hash):
        return db.session.query(SessionRecord).filter_by(token_hash=token_hash).first()

    def delete(self, token_hash):
        deleted = db.session.query(SessionRecord).filter_by(token_hash=token_hash).delete()
        db.session.commit()
        return deleted > 0

    def delete_expired(self, now: datetime) -> int:
        deleted = db.session.query(SessionRecord).filter(SessionRecord.expires_at <= now).delete()
        db.session.commit()
        return deleted


class DatabaseStorage(Storage):
    """Durable storage. Each write commits immediately."""

    name = "database"

    def __init__(self):
        self.session_store = DatabaseSessionStore()

    def _get(self, model, record_id):
        return db.session.get(model, record_id)

    def _find(self, model, **filters):
        return db.session.query(model).filter_by(**filters).order_by(model.id).all()

    def _insert(self, model, fields):
        record = model(**fields)
        db.session.add(record)
        db.session.commit()
        return record

    def _update(self, record, fields):
        for key, value in fields.items():
            setattr(record, key, value)
        db.session.commit()
        return record

    def list_recent_activities(self, limit=20):
        return (
            db.session.query(Activity)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit)
            .all()
        )

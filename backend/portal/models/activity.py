from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_utc_z


class Activity(db.Model):
    """
    Audit trail of successful mutating actions (login, logout, registration,
    credential changes, syncs).

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "activities"
    __table_args__ = (
        db.Index("ix_activities_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for system actions such as a lazy token refresh
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(128), nullable=False)
    details = db.Column(db.Text, nullable=True)
    entity_type = db.Column(db.String(64), nullable=True)  # user, client, api_connection, ...
    entity_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "details": self.details,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_utc_z, utcnow


class ApiConnection(db.Model):
    """
    Stored OAuth credential for one external provider.

    One row per provider. Every token exchange or refresh rewrites the row
    in place, so expires_at always belongs to the current access token.
    """
    __tablename__ = "api_connections"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(64), nullable=False, unique=True)

    access_token = db.Column(db.Text, nullable=True)
    refresh_token = db.Column(db.Text, nullable=True)
    account_id = db.Column(db.String(64), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return True
        return (now or utcnow()) >= self.expires_at

    def to_dict(self) -> dict:
        # Tokens stay server-side
        return {
            "id": self.id,
            "provider": self.provider,
            "account_id": self.account_id,
            "expires_at": to_utc_z(self.expires_at),
            "is_active": self.is_active,
            "connected": bool(self.is_active and self.access_token),
            "expired": self.is_expired(),
            "has_refresh_token": bool(self.refresh_token),
            "updated_at": to_utc_z(self.updated_at),
        }

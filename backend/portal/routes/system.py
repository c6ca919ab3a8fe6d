# backend/portal/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..extensions import get_storage
from portal.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_storage_health() -> dict:
    """
    Check the storage backend answers a basic query.

    Returns dict with status and details.
    """
    start_time = time.time()
    storage = get_storage()
    try:
        user_count = len(storage.list_users())
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "backend": storage.name,
            "latency_ms": round(elapsed_ms, 2),
            "details": {"users": user_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Storage health check failed")
        return {
            "status": "unhealthy",
            "backend": storage.name,
            "latency_ms": round(elapsed_ms, 2),
            "error": "Storage error",
        }


@system_bp.get("/health")
def health():
    storage = check_storage_health()
    healthy = storage["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"storage": storage},
    }), 200 if healthy else 503

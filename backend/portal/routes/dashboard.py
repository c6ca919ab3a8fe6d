# Overview: Flask API routes for the admin and client dashboards.

"""
Dashboard routes

- GET /api/dashboard/admin   totals over all synced data (admin)
- GET /api/dashboard/client  the caller's own client profile (client)
"""

from flask import Blueprint, g, jsonify

from ..decorators import require_role
from ..extensions import get_storage
from ..models import ROLE_ADMIN, ROLE_CLIENT
from ..services import dashboard_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/admin")
@require_role(ROLE_ADMIN)
def admin_dashboard_route():
    return jsonify(dashboard_service.admin_summary(get_storage()))


@dashboard_bp.get("/client")
@require_role(ROLE_CLIENT)
def client_dashboard_route():
    return jsonify(dashboard_service.client_summary(get_storage(), g.current_user.id))

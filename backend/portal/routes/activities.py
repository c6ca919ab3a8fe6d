# Overview: Flask API route for the admin audit feed.

from flask import Blueprint, jsonify, request

from ..decorators import require_role
from ..extensions import get_storage
from ..models import ROLE_ADMIN
from ..services import activity_service

activities_bp = Blueprint("activities", __name__, url_prefix="/api")


@activities_bp.get("/activities")
@require_role(ROLE_ADMIN)
def list_activities_route():
    """Most recent audit records first. ?limit= caps the count (1-200, default 20)."""
    limit = request.args.get("limit", 20, type=int)
    limit = max(1, min(limit, 200))
    activities = activity_service.recent_activities(get_storage(), limit)
    return jsonify({"activities": [a.to_dict() for a in activities], "count": len(activities)})

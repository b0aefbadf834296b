"""
Operational routes for the Casedesk service.
"""

from datetime import datetime, timezone

from flask import Blueprint

from casedesk.services.container import get_services

main_bp = Blueprint("main", __name__)


@main_bp.route("/health")
def health_check():
    """Health check endpoint"""
    store = get_services().store
    timestamp = datetime.now(timezone.utc).isoformat()

    if store.ping():
        return {"status": "healthy", "store": store.backend, "database": "connected", "timestamp": timestamp}
    return {"status": "unhealthy", "store": store.backend, "database": "disconnected", "timestamp": timestamp}, 503

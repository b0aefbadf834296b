"""
Webhook routes for the Casedesk service.
"""

from flask import Blueprint, jsonify, request

from casedesk.services.container import get_services
from casedesk.utils.helpers import convert_datetime_to_string

webhooks_bp = Blueprint("webhooks", __name__)


@webhooks_bp.route("/calcom", methods=["POST"])
def calcom_webhook():
    """Cal.com booking events; the raw body is needed for signature verification"""
    result = get_services().bookings.handle(request.get_data(cache=True), request.headers)
    return jsonify(convert_datetime_to_string(result.body)), result.status

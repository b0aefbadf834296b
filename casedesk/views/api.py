"""
API routes for the Casedesk service.

This module contains the JSON endpoints for client intake, attorney client
management and browser error reporting. Errors raised here are rendered by
views/errors.py.
"""

import json
import os
from datetime import datetime, timezone
from functools import wraps

from flask import Blueprint, g, jsonify, request

from casedesk.services.container import get_services
from casedesk.utils.errors import ValidationError
from casedesk.utils.helpers import (
    case_to_api_response,
    client_error_log_path,
    client_to_api_response,
    document_to_api_response,
    get_request_limit,
)
from casedesk.utils.logging_config import get_logger
from casedesk.utils.security import extract_bearer_token

api_bp = Blueprint("api", __name__)

SESSION_COOKIE = "session"


def attorney_required(func):
    """Reject the request unless it carries an attorney token or session cookie."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        token = extract_bearer_token(request.headers.get("Authorization"))
        g.identity = get_services().identity.require_attorney(token, request.cookies.get(SESSION_COOKIE))
        return func(*args, **kwargs)

    return wrapper


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_TYPE")
    return data


@api_bp.route("/clients/create", methods=["POST"])
def create_client():
    """Public consultation form and attorney client creation"""
    services = get_services()
    data = _json_body()

    token = extract_bearer_token(request.headers.get("Authorization"))
    is_attorney_request = services.identity.is_attorney(token)

    result = services.clients.submit_intake(data, is_attorney_request=is_attorney_request)

    return (
        jsonify(
            {
                "success": True,
                "clientId": result.client_id,
                "caseId": result.case_id,
                "message": result.message,
            }
        ),
        201,
    )


@api_bp.route("/clients", methods=["GET"])
@attorney_required
def list_clients():
    limit = get_request_limit(request.args)
    clients = get_services().clients.list_clients(limit=limit)
    return jsonify(
        {
            "success": True,
            "clients": [client_to_api_response(c) for c in clients],
            "count": len(clients),
        }
    )


@api_bp.route("/clients/<client_id>", methods=["GET"])
@attorney_required
def get_client(client_id):
    client = get_services().clients.get_client(client_id)
    return jsonify({"success": True, "client": client_to_api_response(client)})


@api_bp.route("/clients/<client_id>", methods=["PUT"])
@attorney_required
def update_client(client_id):
    client = get_services().clients.update_client(client_id, _json_body())
    get_logger("api.clients").info(
        "Client updated by attorney",
        extra={"event": "client_update", "client_id": client_id, "attorney_uid": g.identity.uid},
    )
    return jsonify({"success": True, "client": client_to_api_response(client)})


@api_bp.route("/clients/<client_id>/cases", methods=["GET"])
@attorney_required
def get_client_cases(client_id):
    cases = get_services().clients.get_client_cases(client_id)
    return jsonify({"success": True, "cases": [case_to_api_response(c) for c in cases], "count": len(cases)})


@api_bp.route("/cases/<case_id>/documents", methods=["GET"])
@attorney_required
def get_case_documents(case_id):
    documents = get_services().clients.get_case_documents(case_id)
    return jsonify(
        {
            "success": True,
            "documents": [document_to_api_response(d) for d in documents],
            "count": len(documents),
        }
    )


@api_bp.route("/logs/client-error", methods=["POST"])
def log_client_error():
    """Append a browser-side error report to the client error log"""
    logger = get_logger("api.client_errors")
    data = request.get_json(silent=True) or {}

    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "type": "CLIENT_ERROR",
        "code": data.get("code"),
        "message": data.get("message"),
        "stack": data.get("stack"),
        "url": data.get("url"),
        "userAgent": data.get("userAgent") or request.headers.get("User-Agent"),
        "context": data.get("context"),
    }

    path = client_error_log_path()
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")
    except OSError as e:
        logger.error(
            "Failed to write client error log",
            extra={"event": "client_error_log_failed", "error": str(e), "path": path},
        )
        return jsonify({"success": False, "error": "Failed to log error"}), 500

    logger.warning(
        "Client error reported",
        extra={"event": "client_error", "code": entry["code"], "url": entry["url"]},
    )
    return jsonify({"success": True})

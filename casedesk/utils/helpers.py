"""
Helper functions for the Casedesk service.

Response shaping for stored documents: datetimes become ISO 8601 strings.
"""

from typing import Any, Dict, List, Optional

from flask import current_app

from casedesk.utils.validators import InputValidator


def convert_datetime_to_string(obj):
    """Recursively replace date/datetime values with their ISO 8601 form."""
    if isinstance(obj, dict):
        return {k: convert_datetime_to_string(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [convert_datetime_to_string(item) for item in obj]
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return obj


def client_to_api_response(client: Dict[str, Any]) -> Dict[str, Any]:
    return convert_datetime_to_string(client)


def case_to_api_response(case: Dict[str, Any]) -> Dict[str, Any]:
    return convert_datetime_to_string(case)


def document_to_api_response(document: Dict[str, Any]) -> Dict[str, Any]:
    """Attorney view of a case document, fileUrl included."""
    return convert_datetime_to_string(document)


def get_case_display_name(names: List[str]) -> str:
    """"Jane Doe & John Doe" style name for a case's participants."""
    names = [name for name in names if name]
    return " & ".join(names) if names else "Unknown"


def get_request_limit(args) -> Optional[int]:
    """Validated ?limit= query parameter."""
    return InputValidator().validate_pagination(args.get("limit"))


def client_error_log_path() -> str:
    return current_app.config.get("CLIENT_ERROR_LOG") or "logs/error.log"

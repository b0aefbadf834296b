"""
Error handlers for the Casedesk service.

Every error leaves the API as JSON. CasedeskError subclasses carry their own
code and status; anything else is logged and reported as INTERNAL_ERROR
without details.
"""

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from casedesk.utils.errors import CasedeskError, ValidationError
from casedesk.utils.logging_config import get_logger, log_security_event


def register_error_handlers(app):
    """Register error handlers with the Flask app"""
    logger = get_logger("app.errors")

    @app.errorhandler(CasedeskError)
    def handle_casedesk_error(error):
        if isinstance(error, ValidationError):
            log_security_event(
                "validation_error",
                {"endpoint": request.path, "error": error.message, "fields": error.fields},
            )
        else:
            logger.info(
                "Request rejected",
                extra={"event": "request_rejected", "error_code": error.code, "status_code": error.status},
            )
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        code = (error.name or "HTTP_ERROR").upper().replace(" ", "_")
        return jsonify({"success": False, "error": code, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        logger.error(
            "Unhandled exception",
            extra={
                "event": "unhandled_exception",
                "method": request.method,
                "path": request.path,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        return jsonify({"success": False, "error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}), 500

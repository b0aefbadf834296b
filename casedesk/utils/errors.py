"""
Error taxonomy for the Casedesk service.

Every error a handler can surface to a caller derives from CasedeskError and
carries a stable code plus the HTTP status it maps to.
"""

from typing import Any, Dict, List, Optional


class CasedeskError(Exception):
    """Base class for errors that map onto a JSON error response"""

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status
        super().__init__(self.message)

    def to_dict(self):
        return {"success": False, "error": self.code, "message": self.message}


class AuthUnauthorizedError(CasedeskError):
    """Missing, malformed, expired or revoked token"""

    code = "AUTH_UNAUTHORIZED"
    status = 401


class AuthForbiddenError(CasedeskError):
    """Valid token with the wrong role or email domain"""

    code = "AUTH_FORBIDDEN"
    status = 403


class ValidationError(CasedeskError):
    """Bad or missing input"""

    code = "VALIDATION_ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: Optional[str] = None,
        fields: Optional[List[str]] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        # Field level codes (REQUIRED, INVALID_FORMAT) never replace the response code
        self.reason = code or "VALIDATION_ERROR"
        self.field = field
        self.fields = list(fields) if fields else ([field] if field else [])
        self.details = details or []
        super().__init__(message)

    def to_dict(self):
        payload = super().to_dict()
        payload["fields"] = self.fields
        if self.details:
            payload["details"] = self.details
        return payload


class RateLimitExceededError(CasedeskError):
    code = "RATE_LIMIT_EXCEEDED"
    status = 429


class NotFoundError(CasedeskError):
    code = "NOT_FOUND"
    status = 404


class InternalError(CasedeskError):
    code = "INTERNAL_ERROR"
    status = 500

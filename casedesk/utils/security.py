"""
Security utilities for the Casedesk service.

This module provides webhook signature verification, bearer token extraction
and the security headers attached to every API response.
"""

import hashlib
import hmac
from typing import Optional, Union

SIGNATURE_PREFIX = "sha256="

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Cache-Control": "no-store",
}


def compute_signature(payload: Union[bytes, str], secret: str) -> str:
    """Hex HMAC-SHA256 of payload under secret."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_hmac_signature(payload: Union[bytes, str], signature: Optional[str], secret: str) -> bool:
    """
    Verify an HMAC-SHA256 signature header.

    Args:
        payload: Raw request body
        signature: Header value, with or without a "sha256=" prefix
        secret: Shared webhook secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature or not secret:
        return False

    provided = signature.strip()
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]

    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, provided.lower())


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an "Authorization: Bearer <token>" header, or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def apply_security_headers(response):
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


"""
Identity and custom-claims verification for the Casedesk service.

Tokens are Firebase ID tokens (or Firebase session cookies). The role lives
in the "role" custom claim; attorneys must additionally sign in with an
address on the firm's domain. Verification never mutates anything, and
token values are never logged, only whether one was present and its length.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from casedesk.utils.errors import AuthForbiddenError, AuthUnauthorizedError
from casedesk.utils.logging_config import get_logger, log_security_event

ATTORNEY_ROLE = "attorney"


@dataclass
class Identity:
    """A verified caller"""
    uid: str
    email: str
    role: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_attorney(self) -> bool:
        return self.role == ATTORNEY_ROLE


class FirebaseTokenVerifier:
    """
    Thin adapter over firebase_admin.auth.

    The Firebase app comes from app_factory on the first verification, so a
    process that never sees a token never needs Firebase credentials.
    """

    def __init__(self, app_factory: Callable[[], firebase_admin.App], check_revoked: bool = False):
        self._app_factory = app_factory
        self._app: Optional[firebase_admin.App] = None
        self.check_revoked = check_revoked

    @property
    def app(self) -> firebase_admin.App:
        if self._app is None:
            self._app = self._app_factory()
        return self._app

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        return firebase_auth.verify_id_token(id_token, app=self.app, check_revoked=self.check_revoked)

    def verify_session_cookie(self, session_cookie: str) -> Dict[str, Any]:
        return firebase_auth.verify_session_cookie(session_cookie, check_revoked=self.check_revoked, app=self.app)


def _failure_message(error: Exception) -> str:
    if isinstance(error, (firebase_auth.ExpiredIdTokenError, firebase_auth.ExpiredSessionCookieError)):
        return "Token expired. Please sign in again."
    if isinstance(error, (firebase_auth.RevokedIdTokenError, firebase_auth.RevokedSessionCookieError)):
        return "Token revoked. Please sign in again."
    return "Authentication verification failed"


class IdentityVerifier:
    """
    Verifies bearer tokens and role/domain claims.

    Args:
        token_verifier: object offering verify_id_token / verify_session_cookie
            (FirebaseTokenVerifier in production)
        attorney_domain: email domain attorneys must belong to, without "@"
    """

    def __init__(self, token_verifier, attorney_domain: str):
        self.token_verifier = token_verifier
        self.attorney_domain = attorney_domain.lstrip("@").lower()
        self.logger = get_logger("auth")

    def _log_failure(self, reason: str, credential: Optional[str], kind: str = "id_token", **details):
        log_security_event(
            "auth_failed",
            {
                "reason": reason,
                "credential_type": kind,
                "token_present": bool(credential),
                "token_length": len(credential) if credential else 0,
                **details,
            },
        )

    def _decode(self, token: Optional[str], kind: str = "id_token") -> Dict[str, Any]:
        if not token:
            self._log_failure("missing_token", token, kind)
            raise AuthUnauthorizedError("Missing or invalid authorization header")

        try:
            if kind == "session_cookie":
                return self.token_verifier.verify_session_cookie(token)
            return self.token_verifier.verify_id_token(token)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            self._log_failure("invalid_token", token, kind, error_type=type(e).__name__)
            raise AuthUnauthorizedError(_failure_message(e))

    @staticmethod
    def _identity(decoded: Dict[str, Any]) -> Identity:
        return Identity(
            uid=decoded.get("uid") or decoded.get("sub", ""),
            email=decoded.get("email") or "",
            role=decoded.get("role"),
            claims=decoded,
        )

    def verify_token(self, token: Optional[str]) -> Optional[Identity]:
        """{uid, email} for a valid token, None for anything else."""
        try:
            return self._identity(self._decode(token))
        except AuthUnauthorizedError:
            return None

    def _check_attorney(self, identity: Identity, credential: str, kind: str) -> Identity:
        if identity.role != ATTORNEY_ROLE:
            self._log_failure("role_mismatch", credential, kind, uid=identity.uid, role=identity.role)
            raise AuthForbiddenError("Access denied. Attorney role required.")

        if not identity.email.lower().endswith(f"@{self.attorney_domain}"):
            self._log_failure("domain_mismatch", credential, kind, uid=identity.uid)
            raise AuthForbiddenError(f"Access denied. Must use {self.attorney_domain} email address.")

        return identity

    def require_attorney(self, token: Optional[str], session_cookie: Optional[str] = None) -> Identity:
        """
        Identity of an attorney caller.

        The bearer token wins; the session cookie is only consulted when no
        bearer token was sent.

        Raises:
            AuthUnauthorizedError: no usable credential
            AuthForbiddenError: valid credential, wrong role or domain
        """
        if not token and session_cookie:
            identity = self._identity(self._decode(session_cookie, "session_cookie"))
            return self._check_attorney(identity, session_cookie, "session_cookie")

        identity = self._identity(self._decode(token))
        return self._check_attorney(identity, token, "id_token")

    def is_attorney(self, token: Optional[str]) -> bool:
        """Non-raising attorney check used where anonymous callers are allowed."""
        if not token:
            return False
        try:
            self.require_attorney(token)
            return True
        except (AuthUnauthorizedError, AuthForbiddenError):
            return False

"""
Tests for identity and role-claim verification.
"""

import logging

import pytest
from firebase_admin import auth as firebase_auth

from casedesk.utils.auth import FirebaseTokenVerifier, IdentityVerifier
from casedesk.utils.errors import AuthForbiddenError, AuthUnauthorizedError
from conftest import (
    ATTORNEY_SESSION,
    ATTORNEY_TOKEN,
    CLIENT_TOKEN,
    EXPIRED_TOKEN,
    OUTSIDE_DOMAIN_TOKEN,
    REVOKED_TOKEN,
)


@pytest.fixture
def verifier(token_verifier):
    return IdentityVerifier(token_verifier, "thelawshop.com")


class TestVerifyToken:
    def test_valid_token_returns_identity(self, verifier):
        identity = verifier.verify_token(ATTORNEY_TOKEN)

        assert identity.uid == "atty-1"
        assert identity.email == "counsel@thelawshop.com"
        assert identity.is_attorney

    @pytest.mark.parametrize("token", [None, "", "garbage", EXPIRED_TOKEN, REVOKED_TOKEN])
    def test_unusable_tokens_return_none(self, verifier, token):
        assert verifier.verify_token(token) is None


class TestRequireAttorney:
    def test_attorney_on_firm_domain(self, verifier):
        assert verifier.require_attorney(ATTORNEY_TOKEN).uid == "atty-1"

    def test_missing_token(self, verifier):
        with pytest.raises(AuthUnauthorizedError) as exc_info:
            verifier.require_attorney(None)
        assert exc_info.value.status == 401

    def test_expired_token_message(self, verifier):
        with pytest.raises(AuthUnauthorizedError, match="Token expired"):
            verifier.require_attorney(EXPIRED_TOKEN)

    def test_revoked_token_message(self, verifier):
        with pytest.raises(AuthUnauthorizedError, match="Token revoked"):
            verifier.require_attorney(REVOKED_TOKEN)

    def test_client_role_forbidden(self, verifier):
        with pytest.raises(AuthForbiddenError, match="Attorney role required"):
            verifier.require_attorney(CLIENT_TOKEN)

    def test_attorney_outside_domain_forbidden(self, verifier):
        with pytest.raises(AuthForbiddenError, match="thelawshop.com"):
            verifier.require_attorney(OUTSIDE_DOMAIN_TOKEN)

    def test_session_cookie_used_without_bearer(self, verifier):
        assert verifier.require_attorney(None, session_cookie=ATTORNEY_SESSION).uid == "atty-1"

    def test_invalid_session_cookie(self, verifier):
        with pytest.raises(AuthUnauthorizedError):
            verifier.require_attorney(None, session_cookie="stale-cookie")

    def test_bearer_wins_over_cookie(self, verifier):
        with pytest.raises(AuthForbiddenError):
            verifier.require_attorney(CLIENT_TOKEN, session_cookie=ATTORNEY_SESSION)

    def test_token_value_never_logged(self, verifier, caplog):
        secret_token = "very-secret-token-value"
        with caplog.at_level(logging.DEBUG):
            with pytest.raises(AuthUnauthorizedError):
                verifier.require_attorney(secret_token)

        assert "auth_failed" in caplog.text
        assert secret_token not in caplog.text


def test_is_attorney(verifier):
    assert verifier.is_attorney(ATTORNEY_TOKEN) is True
    assert verifier.is_attorney(OUTSIDE_DOMAIN_TOKEN) is False
    assert verifier.is_attorney(CLIENT_TOKEN) is False
    assert verifier.is_attorney(None) is False


class TestFirebaseTokenVerifier:
    def test_firebase_app_is_built_on_first_verification(self, monkeypatch):
        built = []

        def build_app():
            built.append("casedesk")
            return "firebase-app"

        def verify_id_token(token, app=None, check_revoked=False):
            return {"uid": "atty-1", "app": app}

        monkeypatch.setattr(firebase_auth, "verify_id_token", verify_id_token)
        adapter = FirebaseTokenVerifier(build_app)

        assert built == []
        assert adapter.verify_id_token("token-1")["app"] == "firebase-app"
        adapter.verify_id_token("token-2")
        assert built == ["casedesk"]

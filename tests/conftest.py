"""
Pytest configuration and fixtures for the Casedesk tests.

The app runs against the in-memory document store with a fake Firebase token
verifier and a fake contacts client, so no Google services are contacted.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from faker import Faker
from firebase_admin import auth as firebase_auth

from casedesk import create_app
from casedesk.config.settings import TestingConfig
from casedesk.services.container import build_services
from casedesk.services.database import InMemoryStore
from casedesk.utils.security import compute_signature

ATTORNEY_TOKEN = "attorney-token"
OUTSIDE_DOMAIN_TOKEN = "attorney-gmail-token"
CLIENT_TOKEN = "client-token"
EXPIRED_TOKEN = "expired-token"
REVOKED_TOKEN = "revoked-token"
ATTORNEY_SESSION = "attorney-session-cookie"
PORTAL_UUID = "portal-1234"

TOKENS = {
    ATTORNEY_TOKEN: {"uid": "atty-1", "email": "counsel@thelawshop.com", "role": "attorney", "attorney": True},
    OUTSIDE_DOMAIN_TOKEN: {"uid": "atty-2", "email": "counsel@gmail.com", "role": "attorney", "attorney": True},
    CLIENT_TOKEN: {
        "uid": "client-1",
        "email": "jane@example.com",
        "role": "client",
        "client": True,
        "portalAccess": [PORTAL_UUID],
    },
}

SESSION_COOKIES = {
    ATTORNEY_SESSION: {"uid": "atty-1", "email": "counsel@thelawshop.com", "role": "attorney"},
}


class FakeTokenVerifier:
    """Stands in for firebase_admin.auth; raises the same exception types"""

    def verify_id_token(self, token):
        if token == EXPIRED_TOKEN:
            raise firebase_auth.ExpiredIdTokenError("Token expired", None)
        if token == REVOKED_TOKEN:
            raise firebase_auth.RevokedIdTokenError("Token revoked")
        if token not in TOKENS:
            raise firebase_auth.InvalidIdTokenError("Could not verify token")
        return dict(TOKENS[token])

    def verify_session_cookie(self, session_cookie):
        if session_cookie not in SESSION_COOKIES:
            raise firebase_auth.InvalidSessionCookieError("Could not verify session cookie")
        return dict(SESSION_COOKIES[session_cookie])


class FakeContactsClient:
    def __init__(self):
        self.created = []
        self.fail = False

    def create_contact(self, client, client_id):
        if self.fail:
            raise RuntimeError("People API unavailable")
        self.created.append((client_id, client))
        return f"people/c{len(self.created)}"


class FrozenClock:
    """Store clock the tests can move forward"""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def token_verifier():
    return FakeTokenVerifier()


@pytest.fixture
def contacts():
    return FakeContactsClient()


@pytest.fixture
def services(store, token_verifier, contacts):
    return build_services(TestingConfig, store=store, token_verifier=token_verifier, contacts=contacts)


@pytest.fixture
def db(services):
    return services.db


@pytest.fixture
def app(services):
    """Create application for testing."""
    app = create_app(TestingConfig, services=services)
    app.config.update({
        "TESTING": True,
    })

    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def attorney_headers():
    return {"Authorization": f"Bearer {ATTORNEY_TOKEN}"}


@pytest.fixture
def fake():
    return Faker()


@pytest.fixture
def intake_form(fake):
    """Factory for valid intake submissions; keyword arguments override fields"""

    def make(**overrides):
        form = {
            "firstName": fake.first_name(),
            "lastName": fake.last_name(),
            "email": fake.unique.email().lower(),
            "cellPhone": "+1555" + fake.numerify("#######"),
            "propertyAddress": fake.street_address(),
        }
        form.update(overrides)
        return form

    return make


@pytest.fixture
def signed_webhook():
    """Factory returning (raw_body, headers) signed with the test webhook secret"""

    def make(payload, secret=TestingConfig.CALCOM_WEBHOOK_SECRET, header="x-cal-signature-256"):
        raw = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json", header: compute_signature(raw, secret)}
        return raw, headers

    return make


@pytest.fixture
def booking_payload():
    """Factory for Cal.com webhook bodies"""

    def make(email, uid="booking-uid-1", start_time="2024-03-05T15:00:00Z", event="BOOKING_CREATED"):
        return {
            "triggerEvent": event,
            "createdAt": "2024-03-01T12:00:00Z",
            "payload": {
                "uid": uid,
                "title": "Initial consultation",
                "startTime": start_time,
                "endTime": "2024-03-05T15:30:00Z",
                "attendees": [{"email": email, "name": "Jane Doe", "timeZone": "America/New_York"}],
            },
        }

    return make

"""
Google Contacts mirror for new clients.

Creates a People API contact for each client. Callers run this through the
best-effort runner; a failure here never affects the client record.
"""

import json
from typing import Any, Dict, Optional

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from casedesk.utils.logging_config import get_logger

CONTACTS_SCOPES = ["https://www.googleapis.com/auth/contacts"]


def load_service_account_info(raw: str) -> Dict[str, Any]:
    """Service account JSON given inline or as a path to a file."""
    raw = raw.strip()
    if raw.startswith("{"):
        return json.loads(raw)
    with open(raw, "r", encoding="utf-8") as f:
        return json.load(f)


def build_contact_body(client: Dict[str, Any], client_id: str) -> Dict[str, Any]:
    """People API person resource for a stored client document."""
    first_name = client.get("firstName", "")
    last_name = client.get("lastName", "")
    body: Dict[str, Any] = {
        "names": [{"givenName": first_name, "familyName": last_name, "displayName": f"{first_name} {last_name}"}],
        "emailAddresses": [{"value": client.get("email", ""), "type": "work"}],
        "phoneNumbers": [{"value": client.get("cellPhone", ""), "type": "mobile"}],
        "biographies": [{"value": f"Client ID: {client_id}", "contentType": "TEXT_PLAIN"}],
    }
    if client.get("propertyAddress"):
        body["addresses"] = [{"formattedValue": client["propertyAddress"], "type": "work"}]
    return body


class GoogleContactsClient:
    """People API wrapper; build once per process and reuse."""

    def __init__(self, service):
        self.service = service
        self.logger = get_logger("contacts")

    @classmethod
    def from_config(cls, config_class) -> "GoogleContactsClient":
        info = load_service_account_info(config_class.GOOGLE_SERVICE_ACCOUNT_JSON)
        credentials = Credentials.from_service_account_info(info, scopes=CONTACTS_SCOPES)
        if config_class.GOOGLE_DELEGATED_USER:
            credentials = credentials.with_subject(config_class.GOOGLE_DELEGATED_USER)
        service = build("people", "v1", credentials=credentials, cache_discovery=False)
        return cls(service)

    def create_contact(self, client: Dict[str, Any], client_id: str) -> Optional[str]:
        """Create the contact; returns its resourceName."""
        response = self.service.people().createContact(body=build_contact_body(client, client_id)).execute()
        resource_name = response.get("resourceName")
        self.logger.info(
            "Google contact created",
            extra={"event": "contact_created", "client_id": client_id, "resource_name": resource_name},
        )
        return resource_name

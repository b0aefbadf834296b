"""
Service wiring for the Casedesk application.

create_app builds one Services container per application and stores it in
app.extensions["casedesk"]. Views fetch it through get_services(); tests pass
their own container to create_app.
"""

from dataclasses import dataclass
from functools import partial
from typing import Optional

from flask import current_app

from casedesk.services.booking_service import BookingWebhookService
from casedesk.services.client_service import ClientService
from casedesk.services.contacts_service import GoogleContactsClient
from casedesk.services.database import DocumentStore, LawFirmDB, create_document_store
from casedesk.services.tasks import BestEffortRunner
from casedesk.utils.auth import FirebaseTokenVerifier, IdentityVerifier
from casedesk.utils.logging_config import get_logger

EXTENSION_KEY = "casedesk"


@dataclass
class Services:
    """Process-wide collaborators shared by every request"""
    config: type
    store: DocumentStore
    db: LawFirmDB
    identity: IdentityVerifier
    tasks: BestEffortRunner
    clients: ClientService
    bookings: BookingWebhookService
    contacts: Optional[GoogleContactsClient] = None


def build_services(
    config_class,
    store: Optional[DocumentStore] = None,
    token_verifier=None,
    contacts: Optional[GoogleContactsClient] = None,
) -> Services:
    """
    Wire the store, identity verifier and workflows for config_class.

    Args:
        config_class: configuration class (see casedesk.config.settings)
        store: document store to use instead of the configured backend
        token_verifier: verify_id_token / verify_session_cookie provider;
            defaults to firebase_admin, initialized on the first verification
        contacts: contacts client; built from config when sync is enabled
    """
    logger = get_logger("services")

    if store is None:
        store = create_document_store(config_class)

    if token_verifier is None:
        from casedesk.services.firebase import get_firebase_app

        token_verifier = FirebaseTokenVerifier(partial(get_firebase_app, config_class))

    if contacts is None and config_class.CONTACT_SYNC_ENABLED:
        contacts = GoogleContactsClient.from_config(config_class)

    db = LawFirmDB(store)
    tasks = BestEffortRunner()

    services = Services(
        config=config_class,
        store=store,
        db=db,
        identity=IdentityVerifier(token_verifier, config_class.ATTORNEY_EMAIL_DOMAIN),
        tasks=tasks,
        clients=ClientService(
            db,
            tasks,
            contacts=contacts,
            rate_limit_max=config_class.INTAKE_RATE_LIMIT_MAX,
            rate_limit_window_hours=config_class.INTAKE_RATE_LIMIT_WINDOW_HOURS,
        ),
        bookings=BookingWebhookService(
            db,
            tasks,
            secret=config_class.CALCOM_WEBHOOK_SECRET,
            signature_bypass=config_class.WEBHOOK_SIGNATURE_BYPASS,
        ),
        contacts=contacts,
    )

    logger.info(
        "Services initialized",
        extra={
            "event": "services_init",
            "store_backend": store.backend,
            "contact_sync": contacts is not None,
            "signature_bypass": config_class.WEBHOOK_SIGNATURE_BYPASS,
        },
    )
    return services


def get_services() -> Services:
    """Services container of the current application"""
    return current_app.extensions[EXTENSION_KEY]

"""
Cal.com booking webhook handling.

Flow for every delivery:
1. Verify the HMAC-SHA256 signature (bypassable only when configured for development)
2. Persist the raw event to the webhook audit log
3. Reconcile BOOKING_CREATED against the existing client and case; acknowledge
   every other event type without side effects

Clients and cases are never created here: a booking must follow an intake
submission for the same email. Deliveries are not deduplicated by booking uid.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from casedesk.models.entities import CALCOM_EVENT_TYPES, WebhookLog
from casedesk.services.database import LawFirmDB
from casedesk.services.tasks import BestEffortRunner
from casedesk.utils.errors import NotFoundError, ValidationError
from casedesk.utils.logging_config import get_logger, log_business_event, log_security_event
from casedesk.utils.security import verify_hmac_signature

WEBHOOK_SOURCE = "calcom"
SIGNATURE_HEADERS = ("x-cal-signature-256", "x-signature-256", "x-cal-signature")
BOOKING_CREATED = "BOOKING_CREATED"
UNKNOWN_EVENT = "UNKNOWN"
NOT_PROCESSED = "Event logged but not processed"


@dataclass
class WebhookResult:
    """HTTP status and JSON body for a webhook delivery"""
    status: int
    body: Dict[str, Any] = field(default_factory=dict)


def parse_booking_time(value: Any) -> datetime:
    """ISO 8601 start time ("Z" accepted) as an aware UTC datetime."""
    if not isinstance(value, str) or not value:
        raise ValidationError("Booking startTime is missing", "startTime", "REQUIRED")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid booking startTime: {value}", "startTime", "INVALID_FORMAT")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class BookingWebhookService:
    """Verifies, audits and reconciles Cal.com webhook deliveries."""

    def __init__(self, db: LawFirmDB, tasks: BestEffortRunner, secret: str, signature_bypass: bool = False):
        self.db = db
        self.tasks = tasks
        self.secret = secret
        self.signature_bypass = signature_bypass
        self.logger = get_logger("services.bookings")

    @staticmethod
    def extract_signature(headers: Mapping[str, str]) -> Optional[str]:
        for name in SIGNATURE_HEADERS:
            value = headers.get(name)
            if value:
                return value
        return None

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        return verify_hmac_signature(raw_body, signature, self.secret)

    # Audit log

    def _audit_received(self, event_type: str, payload: Dict[str, Any]) -> Optional[str]:
        entry = WebhookLog(source=WEBHOOK_SOURCE, event_type=event_type, payload=payload)
        outcome = self.tasks.run("webhook_audit", self.db.log_webhook_event, entry)
        return outcome.value if outcome.ok else None

    def _audit_outcome(self, webhook_id: Optional[str], success: bool, error: Optional[str] = None) -> None:
        if webhook_id is None:
            return
        self.tasks.run("webhook_audit_outcome", self.db.update_webhook_log, webhook_id, success, error)

    # Reconciliation

    def reconcile_booking(self, webhook: Dict[str, Any]) -> Dict[str, str]:
        """
        Attach booking metadata to the attendee's client and first case.

        Raises:
            ValidationError: no attendee, booking uid or start time
            NotFoundError: no client for the attendee email, or the client has no case
        """
        booking = webhook.get("payload") or {}
        attendees = booking.get("attendees") or []
        if not attendees or not isinstance(attendees[0], dict) or not attendees[0].get("email"):
            raise ValidationError("No attendee found in booking", "attendees", "REQUIRED")

        booking_uid = booking.get("uid")
        if not booking_uid:
            raise ValidationError("Booking uid is missing", "uid", "REQUIRED")
        start_time = parse_booking_time(booking.get("startTime"))

        email = attendees[0]["email"].strip().lower()
        client = self.db.get_client_by_email(email)
        if client is None:
            raise NotFoundError(
                f"No client found with email {email}. Client must fill consultation form before booking."
            )

        client_id = client["clientId"]
        self.db.update_client(
            client_id,
            {"consultationBooked": True, "consultationDate": start_time, "bookingId": booking_uid},
        )

        case_ids = self.db.get_client_case_ids(client_id)
        if not case_ids:
            raise NotFoundError(f"No case found for client {client_id}")

        case_id = case_ids[0]
        self.db.update_case(case_id, {"consultationBookingId": booking_uid, "consultationDateTime": start_time})

        log_business_event("booking_reconciled", "case", case_id, client_id=client_id, booking_id=booking_uid)
        return {"clientId": client_id, "caseId": case_id}

    # Delivery handling

    def _check_signature(self, raw_body: bytes, signature: Optional[str]) -> Optional[WebhookResult]:
        """None when processing may continue, else the rejection to return."""
        if self.signature_bypass:
            verified = bool(self.secret) and self.verify_signature(raw_body, signature)
            if not verified:
                log_security_event(
                    "webhook_signature_bypassed",
                    {"source": WEBHOOK_SOURCE, "signature_present": bool(signature), "secret_configured": bool(self.secret)},
                )
            return None

        if not self.secret:
            self.logger.error(
                "Webhook secret not configured", extra={"event": "webhook_secret_missing", "source": WEBHOOK_SOURCE}
            )
            return WebhookResult(500, {"error": "Webhook secret not configured"})

        if not self.verify_signature(raw_body, signature):
            log_security_event(
                "webhook_signature_invalid", {"source": WEBHOOK_SOURCE, "signature_present": bool(signature)}
            )
            return WebhookResult(401, {"error": "Webhook signature verification failed"})

        return None

    def handle(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        rejection = self._check_signature(raw_body, self.extract_signature(headers))
        if rejection is not None:
            return rejection

        try:
            webhook = json.loads(raw_body)
        except ValueError:
            webhook = None
        if not isinstance(webhook, dict):
            self.logger.warning("Unparsable webhook payload", extra={"event": "webhook_invalid_json"})
            self._audit_outcome(self._audit_received(UNKNOWN_EVENT, {}), False, "Invalid JSON payload")
            return WebhookResult(400, {"error": "Invalid JSON payload"})

        event_type = webhook.get("triggerEvent") or UNKNOWN_EVENT
        booking = webhook.get("payload") if isinstance(webhook.get("payload"), dict) else {}
        webhook_id = self._audit_received(event_type, webhook)

        self.logger.info(
            "Cal.com webhook received",
            extra={"event": "webhook_received", "trigger_event": event_type, "booking_id": booking.get("uid")},
        )

        if event_type != BOOKING_CREATED:
            # TODO: BOOKING_RESCHEDULED should move consultationDateTime; BOOKING_CANCELLED should clear it
            self.logger.info(
                "Webhook event acknowledged without processing",
                extra={
                    "event": "webhook_ignored",
                    "trigger_event": event_type,
                    "known_event": event_type in CALCOM_EVENT_TYPES,
                },
            )
            self._audit_outcome(webhook_id, True, NOT_PROCESSED)
            return WebhookResult(200, {"success": True, "message": NOT_PROCESSED, "eventType": event_type})

        try:
            linked = self.reconcile_booking(webhook)
        except Exception as e:
            self.logger.error(
                "Error processing booking flow",
                extra={"event": "booking_failed", "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            self._audit_outcome(webhook_id, False, str(e))
            return WebhookResult(500, {"error": "Failed to process booking", "details": str(e)})

        self._audit_outcome(webhook_id, True)
        return WebhookResult(
            200,
            {"success": True, "message": "Booking linked to existing client and case", **linked},
        )

"""
Client service for intake and attorney client management.

Intake creates a client, its first case and the primary junction row in a
single unit of work, then mirrors the client into Google Contacts on a
best-effort basis.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from casedesk.models.entities import DEFAULT_CASE_TYPE, Case, Client
from casedesk.services.database import LawFirmDB
from casedesk.services.tasks import BestEffortRunner, TaskOutcome
from casedesk.utils.errors import NotFoundError, RateLimitExceededError
from casedesk.utils.logging_config import get_logger, log_business_event, log_security_event
from casedesk.utils.validators import validate_client_update, validate_intake_form

ATTORNEY_CREATED_MESSAGE = "Client created successfully"
PUBLIC_SUBMITTED_MESSAGE = "Consultation request submitted successfully"


@dataclass
class IntakeResult:
    client_id: str
    case_id: str
    participant_id: str
    status: str
    message: str
    contact_sync: Optional[TaskOutcome] = None


class ClientService:
    """Client intake workflow plus attorney-side reads and edits."""

    def __init__(
        self,
        db: LawFirmDB,
        tasks: BestEffortRunner,
        contacts=None,
        rate_limit_max: int = 3,
        rate_limit_window_hours: int = 24,
    ):
        self.db = db
        self.tasks = tasks
        self.contacts = contacts
        self.rate_limit_max = rate_limit_max
        self.rate_limit_window_hours = rate_limit_window_hours
        self.logger = get_logger("services.clients")

    def check_rate_limit(self, email: str) -> int:
        """Recent submission count for email; raises once the limit is reached."""
        recent = self.db.count_recent_clients_by_email(email, self.rate_limit_window_hours)
        if recent >= self.rate_limit_max:
            log_security_event(
                "intake_rate_limited",
                {"recent_submissions": recent, "window_hours": self.rate_limit_window_hours},
            )
            raise RateLimitExceededError("Too many consultation requests for this email. Please try again later.")
        return recent

    def submit_intake(self, form: Dict[str, Any], is_attorney_request: bool = False) -> IntakeResult:
        """
        Validate and record an intake submission.

        Args:
            form: firstName, lastName, email, cellPhone, optional propertyAddress and caseType
            is_attorney_request: caller holds a verified attorney token

        Returns:
            IntakeResult with the new client and case ids

        Raises:
            ValidationError: missing or invalid fields
            RateLimitExceededError: public submitter over the per-email limit
        """
        data = validate_intake_form(form)

        if not is_attorney_request:
            self.check_rate_limit(data["email"])

        client = Client(
            first_name=data["firstName"],
            last_name=data["lastName"],
            email=data["email"],
            cell_phone=data["cellPhone"],
            property_address=data.get("propertyAddress"),
            status="active" if is_attorney_request else "lead",
        )
        case = Case(
            case_type=data.get("caseType", DEFAULT_CASE_TYPE),
            status="intake",
            property_address=data.get("propertyAddress"),
        )

        client_id, case_id, participant_id = self.db.create_client_with_case(client, case, role="primary")

        log_business_event(
            "client_intake_created",
            "client",
            client_id,
            case_id=case_id,
            source="attorney" if is_attorney_request else "public",
        )

        contact_sync = self.sync_contact(client_id, client.to_dict())

        return IntakeResult(
            client_id=client_id,
            case_id=case_id,
            participant_id=participant_id,
            status=client.status,
            message=ATTORNEY_CREATED_MESSAGE if is_attorney_request else PUBLIC_SUBMITTED_MESSAGE,
            contact_sync=contact_sync,
        )

    def sync_contact(self, client_id: str, client_doc: Dict[str, Any]) -> Optional[TaskOutcome]:
        """Mirror the client into Google Contacts; None when sync is disabled."""
        if self.contacts is None:
            return None

        outcome = self.tasks.run("contact_sync", self.contacts.create_contact, client_doc, client_id)
        if outcome.ok and outcome.value:
            self.tasks.run(
                "contact_link", self.db.update_client, client_id, {"googleContactResourceName": outcome.value}
            )
        return outcome

    # Attorney operations

    def list_clients(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.db.list_clients(limit=limit)

    def get_client(self, client_id: str) -> Dict[str, Any]:
        client = self.db.get_client(client_id)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    def update_client(self, client_id: str, form: Dict[str, Any]) -> Dict[str, Any]:
        self.get_client(client_id)
        updates = validate_client_update(form)
        self.db.update_client(client_id, updates)
        log_business_event("client_updated", "client", client_id, fields=sorted(updates))
        return self.get_client(client_id)

    def get_client_cases(self, client_id: str) -> List[Dict[str, Any]]:
        self.get_client(client_id)
        cases = []
        for case_id in self.db.get_client_case_ids(client_id):
            case = self.db.get_case(case_id)
            if case is not None:
                case["displayName"] = self.db.get_case_display_name(case_id)
                cases.append(case)
        return cases

    def get_case_documents(self, case_id: str) -> List[Dict[str, Any]]:
        if self.db.get_case(case_id) is None:
            raise NotFoundError("Case not found")
        return self.db.get_documents_by_case(case_id)

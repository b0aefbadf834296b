"""
Document store service for the Casedesk application.

This module provides the entity store used by every workflow:
- DocumentStore: the create/get/query/update contract over named collections
- FirestoreStore: Cloud Firestore implementation (managed project or emulator)
- InMemoryStore: process-local implementation for local development and tests
- UnitOfWork: collects creates and commits them all-or-nothing
- LawFirmDB: typed operations over clients, cases, junctions, portals and documents
"""

import copy
import operator
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore as gcloud_firestore
from google.cloud.firestore import FieldFilter

from casedesk.models.entities import (
    CASE_STATUSES,
    CASES,
    CLIENT_CASES,
    CLIENT_ROLES,
    CLIENTS,
    DOCUMENT_TYPES,
    DOCUMENTS,
    PORTAL_STATUSES,
    PORTALS,
    REGISTRATION_STATUSES,
    WEBHOOK_LOGS,
    Case,
    Client,
    ClientCase,
    Document,
    Portal,
    WebhookLog,
)
from casedesk.utils.errors import NotFoundError, ValidationError
from casedesk.utils.helpers import get_case_display_name
from casedesk.utils.logging_config import get_logger, log_database_operation

QueryFilter = Tuple[str, str, Any]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_vocabulary(field: str, value: Any, allowed: Sequence[str]) -> None:
    if value not in allowed:
        raise ValidationError(f"Invalid {field} value. Allowed values: {', '.join(allowed)}", field, "INVALID_VALUE")


class UnitOfWork:
    """
    Collects document creates and commits them together.

    Ids are assigned when a create is staged so later staged documents can
    reference earlier ones. Nothing reaches the store until commit().
    """

    def __init__(self, store: "DocumentStore"):
        self.store = store
        self._pending: List[Tuple[str, str, Dict[str, Any]]] = []
        self.committed = False

    def create(self, collection: str, data: Dict[str, Any], id_field: Optional[str] = None) -> str:
        doc_id = self.store.new_id(collection)
        self._pending.append((collection, doc_id, self.store.stamp_new(data, doc_id, id_field)))
        return doc_id

    def commit(self) -> None:
        if self.committed:
            raise RuntimeError("Unit of work already committed")
        self.store.commit_batch(self._pending)
        self.committed = True
        log_database_operation("batch_commit", writes=len(self._pending))

    def __len__(self):
        return len(self._pending)


class DocumentStore:
    """Contract shared by the Firestore and in-memory backends."""

    backend = "abstract"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.logger = get_logger(f"database.{self.backend}")

    def now(self) -> datetime:
        return self.clock()

    def stamp_new(self, data: Dict[str, Any], doc_id: str, id_field: Optional[str]) -> Dict[str, Any]:
        now = self.now()
        stamped = dict(data)
        stamped.setdefault("createdAt", now)
        stamped["updatedAt"] = now
        if id_field:
            stamped[id_field] = doc_id
        return stamped

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """Stage creates inside the block; commit only if the block completes."""
        uow = UnitOfWork(self)
        yield uow
        uow.commit()

    def create(
        self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None, id_field: Optional[str] = None
    ) -> str:
        doc_id = doc_id or self.new_id(collection)
        self._set(collection, doc_id, self.stamp_new(data, doc_id, id_field))
        log_database_operation("create", collection, doc_id=doc_id)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        updates = dict(fields)
        updates["updatedAt"] = self.now()
        self._update(collection, doc_id, updates)
        log_database_operation("update", collection, doc_id=doc_id, fields=sorted(fields))

    # Backend hooks

    def new_id(self, collection: str) -> str:
        raise NotImplementedError

    def commit_batch(self, writes: Sequence[Tuple[str, str, Dict[str, Any]]]) -> None:
        raise NotImplementedError

    def _set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def query(
        self,
        collection: str,
        field: str,
        op: str,
        value: Any,
        limit: Optional[int] = None,
        filters: Iterable[QueryFilter] = (),
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def list(
        self, collection: str, limit: Optional[int] = None, order_by: Optional[str] = None, descending: bool = False
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError


class FirestoreStore(DocumentStore):
    """Cloud Firestore backend. Wraps a google.cloud.firestore.Client."""

    backend = "firestore"

    def __init__(self, client, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self.db = client

    def new_id(self, collection: str) -> str:
        return self.db.collection(collection).document().id

    def commit_batch(self, writes: Sequence[Tuple[str, str, Dict[str, Any]]]) -> None:
        batch = self.db.batch()
        for collection, doc_id, data in writes:
            batch.set(self.db.collection(collection).document(doc_id), data)
        batch.commit()

    def _set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.db.collection(collection).document(doc_id).set(data)

    def _update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        try:
            self.db.collection(collection).document(doc_id).update(fields)
        except gcp_exceptions.NotFound:
            raise NotFoundError(f"Document {collection}/{doc_id} not found")

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self.db.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def query(self, collection, field, op, value, limit=None, filters=()):
        query = self.db.collection(collection).where(filter=FieldFilter(field, op, value))
        for extra_field, extra_op, extra_value in filters:
            query = query.where(filter=FieldFilter(extra_field, extra_op, extra_value))
        if limit:
            query = query.limit(limit)
        return [doc.to_dict() for doc in query.stream()]

    def list(self, collection, limit=None, order_by=None, descending=False):
        query = self.db.collection(collection)
        if order_by:
            direction = gcloud_firestore.Query.DESCENDING if descending else gcloud_firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit:
            query = query.limit(limit)
        return [doc.to_dict() for doc in query.stream()]

    def ping(self) -> bool:
        try:
            list(self.db.collection(CLIENTS).limit(1).stream())
            return True
        except gcp_exceptions.GoogleAPICallError as e:
            self.logger.warning(
                "Firestore health check failed",
                extra={"event": "health_check_failed", "error": str(e), "error_type": type(e).__name__},
            )
            return False


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "in": lambda field_value, candidates: field_value in candidates,
}


class InMemoryStore(DocumentStore):
    """
    Process-local backend with Firestore query semantics for the operators
    the application uses. Documents are deep-copied on the way in and out so
    callers never share state with the store.
    """

    backend = "memory"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def commit_batch(self, writes):
        with self._lock:
            for collection, doc_id, data in writes:
                self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def _set(self, collection, doc_id, data):
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def _update(self, collection, doc_id, fields):
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            if document is None:
                raise NotFoundError(f"Document {collection}/{doc_id} not found")
            document.update(copy.deepcopy(fields))

    def get(self, collection, doc_id):
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    @staticmethod
    def _matches(document: Dict[str, Any], field: str, op: str, value: Any) -> bool:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported query operator: {op}")
        if field not in document:
            return False
        try:
            return _OPERATORS[op](document[field], value)
        except TypeError:
            return False

    def query(self, collection, field, op, value, limit=None, filters=()):
        conditions = [(field, op, value), *filters]
        with self._lock:
            results = [
                copy.deepcopy(document)
                for document in self._collections.get(collection, {}).values()
                if all(self._matches(document, f, o, v) for f, o, v in conditions)
            ]
        return results[:limit] if limit else results

    def list(self, collection, limit=None, order_by=None, descending=False):
        with self._lock:
            results = [copy.deepcopy(document) for document in self._collections.get(collection, {}).values()]
        if order_by:
            results = [document for document in results if order_by in document]
            results.sort(key=lambda document: document[order_by], reverse=descending)
        return results[:limit] if limit else results

    def ping(self) -> bool:
        return True

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))


class LawFirmDB:
    """
    Typed operations over the law-firm collections.

    Multi-document creates that must not leave partial state go through the
    store's unit of work; everything else is a single write.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self.logger = get_logger("database.lawfirm")

    # Client operations

    def create_client(self, client: Client) -> str:
        return self.store.create(CLIENTS, client.to_dict(), id_field="clientId")

    def get_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(CLIENTS, client_id)

    def get_client_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        matches = self.store.query(CLIENTS, "email", "==", email, limit=1)
        return matches[0] if matches else None

    def update_client(self, client_id: str, updates: Dict[str, Any]) -> None:
        protected = {"clientId", "createdAt"}
        self.store.update(CLIENTS, client_id, {k: v for k, v in updates.items() if k not in protected})

    def list_clients(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest first."""
        return self.store.list(CLIENTS, limit=limit, order_by="createdAt", descending=True)

    def count_recent_clients_by_email(self, email: str, hours: int) -> int:
        """
        Clients created for email within the last hours.

        Only the equality filter goes to the store; the time window is applied
        here so Firestore needs no composite (email, createdAt) index.
        """
        cutoff = self.store.now() - timedelta(hours=hours)
        matches = self.store.query(CLIENTS, "email", "==", email)
        return sum(1 for client in matches if client.get("createdAt") and client["createdAt"] >= cutoff)

    def create_client_with_case(self, client: Client, case: Case, role: str = "primary") -> Tuple[str, str, str]:
        """Client, case and their junction row, committed together. Returns (client_id, case_id, participant_id)."""
        with self.store.unit_of_work() as uow:
            client_id = uow.create(CLIENTS, client.to_dict(), id_field="clientId")
            case_id = uow.create(CASES, case.to_dict(), id_field="caseId")
            participant_id = uow.create(
                CLIENT_CASES, ClientCase(client_id=client_id, case_id=case_id, role=role).to_dict(),
                id_field="participantId",
            )
        client.client_id = client_id
        case.case_id = case_id
        return client_id, case_id, participant_id

    # Case operations

    def create_case(self, case: Case, participants: Sequence[Tuple[str, str]]) -> str:
        """Create a case and one junction row per (client_id, role), all-or-nothing."""
        for _, role in participants:
            _check_vocabulary("role", role, CLIENT_ROLES)
        with self.store.unit_of_work() as uow:
            case_id = uow.create(CASES, case.to_dict(), id_field="caseId")
            for client_id, role in participants:
                uow.create(
                    CLIENT_CASES, ClientCase(client_id=client_id, case_id=case_id, role=role).to_dict(),
                    id_field="participantId",
                )
        return case_id

    def get_case(self, case_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(CASES, case_id)

    def update_case(self, case_id: str, updates: Dict[str, Any]) -> None:
        if "status" in updates:
            _check_vocabulary("status", updates["status"], CASE_STATUSES)
        protected = {"caseId", "createdAt"}
        self.store.update(CASES, case_id, {k: v for k, v in updates.items() if k not in protected})

    # ClientCases junction operations

    def create_client_case_relationship(self, client_id: str, case_id: str, role: str) -> str:
        _check_vocabulary("role", role, CLIENT_ROLES)
        return self.store.create(
            CLIENT_CASES, ClientCase(client_id=client_id, case_id=case_id, role=role).to_dict(),
            id_field="participantId",
        )

    def get_client_case_ids(self, client_id: str) -> List[str]:
        """Case ids linked to a client, oldest link first."""
        links = self.store.query(CLIENT_CASES, "clientId", "==", client_id)
        links.sort(key=lambda link: link.get("createdAt") or _OLDEST)
        return [link["caseId"] for link in links]

    def get_case_participants(self, case_id: str) -> List[Dict[str, Any]]:
        links = self.store.query(CLIENT_CASES, "caseId", "==", case_id)
        links.sort(key=lambda link: link.get("createdAt") or _OLDEST)
        return links

    def get_case_display_name(self, case_id: str) -> str:
        """"Jane Doe" or "Jane Doe & John Doe"; "Unknown" when nobody is linked."""
        names = []
        for link in self.get_case_participants(case_id):
            client = self.get_client(link["clientId"])
            if client:
                names.append(f"{client.get('firstName', '')} {client.get('lastName', '')}".strip())
        return get_case_display_name(names)

    # Portal operations

    def create_portal(self, portal: Portal) -> str:
        return self.store.create(PORTALS, portal.to_dict(), doc_id=portal.portal_uuid)

    def get_portal(self, portal_uuid: str) -> Optional[Dict[str, Any]]:
        return self.store.get(PORTALS, portal_uuid)

    def get_portal_by_client_id(self, client_id: str) -> Optional[Dict[str, Any]]:
        matches = self.store.query(PORTALS, "clientId", "==", client_id, limit=1)
        return matches[0] if matches else None

    def update_portal(self, portal_uuid: str, updates: Dict[str, Any]) -> None:
        if "portalStatus" in updates:
            _check_vocabulary("portalStatus", updates["portalStatus"], PORTAL_STATUSES)
        if "registrationStatus" in updates:
            _check_vocabulary("registrationStatus", updates["registrationStatus"], REGISTRATION_STATUSES)
        protected = {"portalUuid", "createdAt"}
        self.store.update(PORTALS, portal_uuid, {k: v for k, v in updates.items() if k not in protected})

    # Document operations

    def create_document(self, document: Document) -> str:
        _check_vocabulary("docType", document.doc_type, DOCUMENT_TYPES)
        if document.uploaded_at is None:
            document.uploaded_at = self.store.now()
        return self.store.create(DOCUMENTS, document.to_dict(), id_field="documentId")

    def get_documents_by_case(self, case_id: str) -> List[Dict[str, Any]]:
        documents = self.store.query(DOCUMENTS, "caseId", "==", case_id)
        documents.sort(key=lambda d: d.get("createdAt") or _OLDEST, reverse=True)
        return documents

    # Webhook audit log

    def log_webhook_event(self, entry: WebhookLog) -> str:
        entry.processed_at = entry.processed_at or self.store.now()
        webhook_id = entry.webhook_id or f"{entry.source}_{int(entry.processed_at.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"
        entry.webhook_id = webhook_id
        return self.store.create(WEBHOOK_LOGS, entry.to_dict(), doc_id=webhook_id)

    def update_webhook_log(self, webhook_id: str, success: bool, error: Optional[str] = None) -> None:
        """Record the processing outcome on a received entry."""
        self.store.update(
            WEBHOOK_LOGS, webhook_id, {"success": success, "error": error, "processedAt": self.store.now()}
        )

    def get_webhook_logs(self, source: str) -> List[Dict[str, Any]]:
        logs = self.store.query(WEBHOOK_LOGS, "source", "==", source)
        logs.sort(key=lambda entry: entry.get("createdAt") or _OLDEST)
        return logs


def create_document_store(config_class, clock: Callable[[], datetime] = utcnow) -> DocumentStore:
    """Build the store selected by STORE_BACKEND / USE_EMULATOR."""
    logger = get_logger("database")

    if config_class.STORE_BACKEND == "memory":
        logger.info("Using in-memory document store", extra={"event": "store_init", "backend": "memory"})
        return InMemoryStore(clock=clock)

    from casedesk.services.firebase import create_firestore_client

    client = create_firestore_client(config_class)
    logger.info(
        "Using Firestore document store",
        extra={"event": "store_init", "backend": "firestore", "emulator": config_class.USE_EMULATOR},
    )
    return FirestoreStore(client, clock=clock)

"""
Data models and entities for the Casedesk service.

Entities are stored as Firestore documents with camelCase field names; each
dataclass renders its stored form through to_dict().
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Client:
    """Client entity model"""
    first_name: str
    last_name: str
    email: str
    cell_phone: str
    status: str = 'lead'  # lead, retained, closed, active, paid, inactive
    property_address: Optional[str] = None
    google_contact_resource_name: Optional[str] = None
    client_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        """Get the client's full name"""
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'clientId': self.client_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'cellPhone': self.cell_phone,
            'propertyAddress': self.property_address,
            'googleContactResourceName': self.google_contact_resource_name,
            'status': self.status,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        })


@dataclass
class Case:
    """Case entity model"""
    case_type: str = 'Other'
    status: str = 'intake'  # intake, active, completed, cancelled
    property_address: Optional[str] = None
    purchase_price: Optional[float] = None
    consultation_booking_id: Optional[str] = None
    consultation_date_time: Optional[datetime] = None
    initial_attorney_consulted: Optional[str] = None
    google_drive_folder_id: Optional[str] = None
    google_drive_folder_url: Optional[str] = None
    case_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'caseId': self.case_id,
            'caseType': self.case_type,
            'status': self.status,
            'propertyAddress': self.property_address,
            'purchasePrice': self.purchase_price,
            'consultationBookingId': self.consultation_booking_id,
            'consultationDateTime': self.consultation_date_time,
            'initialAttorneyConsulted': self.initial_attorney_consulted,
            'googleDriveFolderId': self.google_drive_folder_id,
            'googleDriveFolderUrl': self.google_drive_folder_url,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        })


@dataclass
class ClientCase:
    """Client/case junction entity model"""
    client_id: str
    case_id: str
    role: str = 'primary'  # primary, co-buyer
    participant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'participantId': self.participant_id,
            'clientId': self.client_id,
            'caseId': self.case_id,
            'role': self.role,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        })


@dataclass
class Portal:
    """Client portal entity model, keyed by portal_uuid"""
    portal_uuid: str
    client_id: str
    portal_status: str = 'pending'  # pending, created, active, suspended
    registration_status: str = 'pending'  # pending, completed, abandoned
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'portalUuid': self.portal_uuid,
            'clientId': self.client_id,
            'portalStatus': self.portal_status,
            'registrationStatus': self.registration_status,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        })


@dataclass
class Document:
    """Case document metadata entity model"""
    case_id: str
    file_name: str
    file_url: str
    doc_type: str
    uploaded_at: Optional[datetime] = None
    document_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'documentId': self.document_id,
            'caseId': self.case_id,
            'fileName': self.file_name,
            'fileUrl': self.file_url,
            'docType': self.doc_type,
            'uploadedAt': self.uploaded_at,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        })


@dataclass
class WebhookLog:
    """Audit record for a received webhook"""
    source: str
    event_type: str
    payload: Dict[str, Any]
    success: Optional[bool] = None  # None while received but not yet processed
    error: Optional[str] = None
    webhook_id: Optional[str] = None
    processed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'webhookId': self.webhook_id,
            'source': self.source,
            'eventType': self.event_type,
            'payload': self.payload,
            'success': self.success,
            'error': self.error,
            'processedAt': self.processed_at,
        }


# Collection names
CLIENTS = 'clients'
CASES = 'cases'
CLIENT_CASES = 'client_cases'
PORTALS = 'portals'
DOCUMENTS = 'documents'
WEBHOOK_LOGS = 'webhook_logs'

# Common constants
CLIENT_STATUSES = ['lead', 'retained', 'closed', 'active', 'paid', 'inactive']
CASE_TYPES = ['Condo Apartment', 'Coop Apartment', 'Single Family House', 'Other']
DEFAULT_CASE_TYPE = 'Other'
CASE_STATUSES = ['intake', 'active', 'completed', 'cancelled']
CLIENT_ROLES = ['primary', 'co-buyer']
PORTAL_STATUSES = ['pending', 'created', 'active', 'suspended']
REGISTRATION_STATUSES = ['pending', 'completed', 'abandoned']
DOCUMENT_TYPES = [
    'contract of sale', 'term sheet', 'title report', 'board minutes',
    'offering plan', 'financials', 'by-laws'
]
CALCOM_EVENT_TYPES = [
    'BOOKING_CREATED', 'BOOKING_RESCHEDULED', 'BOOKING_CANCELLED',
    'BOOKING_REJECTED', 'BOOKING_REQUESTED'
]

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, model_validator
from models.common import (
    VerificationStatus, DocumentStatus, DocumentType, Priority,
)


class BusinessRecord(BaseModel):
    business_id:              str
    business_name:            str
    contact_email:            Optional[str] = None
    phone:                    Optional[str] = None
    # Compte propriétaire (providers.provider_role = owner) → destinataire des notifications
    owner_user_id:            Optional[str] = None
    verification_status:      VerificationStatus = VerificationStatus.PENDING
    verification_notes:       Optional[str] = None
    # Approbation : approved_at / approved_by posés ensemble, uniquement par approve
    approved_at:              Optional[datetime] = None
    approved_by:              Optional[str] = None
    approval_notes:           Optional[str] = None
    # Timestamps
    application_submitted_at: Optional[datetime] = None
    created_at:               datetime
    updated_at:               Optional[datetime] = None

    @model_validator(mode="after")
    def approval_fields_set_together(self):
        if (self.approved_at is None) != (self.approved_by is None):
            raise ValueError("approved_at et approved_by doivent être renseignés ensemble")
        return self


class DocumentRecord(BaseModel):
    document_id:         str
    business_id:         str
    document_type:       DocumentType
    document_name:       Optional[str] = None
    file_url:            Optional[str] = None
    verification_status: DocumentStatus = DocumentStatus.PENDING
    rejection_reason:    Optional[str] = None
    verified_by:         Optional[str] = None
    verified_at:         Optional[datetime] = None
    expiry_date:         Optional[datetime] = None
    created_at:          datetime
    updated_at:          Optional[datetime] = None

    @model_validator(mode="after")
    def status_fields_consistent(self):
        is_rejected = self.verification_status == DocumentStatus.REJECTED
        if is_rejected != bool(self.rejection_reason and self.rejection_reason.strip()):
            raise ValueError("rejection_reason est requis si et seulement si le document est rejeté")
        is_verified = self.verification_status == DocumentStatus.VERIFIED
        if (self.verified_by is not None) != is_verified or (self.verified_at is not None) != is_verified:
            raise ValueError("verified_by / verified_at sont posés si et seulement si le document est vérifié")
        return self


class DocumentCounts(BaseModel):
    total:        int = 0
    verified:     int = 0
    pending:      int = 0
    rejected:     int = 0
    under_review: int = 0


class VerificationSummary(BaseModel):
    """Vue dérivée (jamais persistée) : compteurs documents + priorité de revue."""
    business_id:         str
    business_name:       str
    verification_status: VerificationStatus
    submitted_at:        datetime
    documents:           DocumentCounts
    priority:            Priority


class VerificationStats(BaseModel):
    total:     int = 0
    pending:   int = 0
    approved:  int = 0
    rejected:  int = 0
    suspended: int = 0
    overdue:   int = 0   # = nombre de dossiers "urgent"


class VerificationEvent(BaseModel):
    event_id:    str
    subject_type: str              # "business" | "document"
    subject_id:  str
    action:      str
    from_status: Optional[str] = None
    to_status:   str
    actor_id:    Optional[str] = None
    notes:       Optional[str] = None
    metadata:    Dict[str, Any] = {}
    created_at:  datetime

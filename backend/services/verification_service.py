"""
Service vérification : machine d'états entreprise/document, compteurs documents,
priorité de revue.
"""
import logging
import uuid
from datetime import datetime, timezone, timedelta
from typing import Callable, Iterable, Optional

from config import settings
from core.exceptions import (
    InvalidTransitionError, bad_request_exception, not_found_exception,
)
from core.utils import as_utc
from models.business import (
    BusinessRecord, DocumentRecord, DocumentCounts, VerificationSummary,
    VerificationStats, VerificationEvent,
)
from models.common import (
    VerificationStatus, BusinessAction, DocumentStatus, DocumentAction, Priority,
)

logger = logging.getLogger(__name__)

# ── Machine d'états ───────────────────────────────────────────────────────────
BUSINESS_ACTION_TARGETS: dict[BusinessAction, VerificationStatus] = {
    BusinessAction.APPROVE:          VerificationStatus.APPROVED,
    BusinessAction.REJECT:           VerificationStatus.REJECTED,
    BusinessAction.SUSPEND:          VerificationStatus.SUSPENDED,
    BusinessAction.RESET_TO_PENDING: VerificationStatus.PENDING,
}

BUSINESS_TRANSITIONS: dict[VerificationStatus, list[VerificationStatus]] = {
    VerificationStatus.PENDING: [
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.SUSPENDED,
    ],
    VerificationStatus.APPROVED: [
        VerificationStatus.SUSPENDED,
        VerificationStatus.REJECTED,
        VerificationStatus.PENDING,     # nouvelle revue
    ],
    VerificationStatus.REJECTED: [
        VerificationStatus.APPROVED,    # décision renversée
        VerificationStatus.PENDING,     # nouvelle soumission
    ],
    VerificationStatus.SUSPENDED: [
        VerificationStatus.APPROVED,    # réactivation
        VerificationStatus.REJECTED,
        VerificationStatus.PENDING,
    ],
}

DOCUMENT_ACTION_TARGETS: dict[DocumentAction, DocumentStatus] = {
    DocumentAction.VERIFY:            DocumentStatus.VERIFIED,
    DocumentAction.REJECT:            DocumentStatus.REJECTED,
    DocumentAction.MARK_UNDER_REVIEW: DocumentStatus.UNDER_REVIEW,
}

DOCUMENT_TRANSITIONS: dict[DocumentStatus, list[DocumentStatus]] = {
    DocumentStatus.PENDING: [
        DocumentStatus.VERIFIED,
        DocumentStatus.REJECTED,
        DocumentStatus.UNDER_REVIEW,
    ],
    DocumentStatus.UNDER_REVIEW: [
        DocumentStatus.VERIFIED,
        DocumentStatus.REJECTED,
    ],
    DocumentStatus.VERIFIED: [
        DocumentStatus.REJECTED,
        DocumentStatus.UNDER_REVIEW,
    ],
    DocumentStatus.REJECTED: [
        DocumentStatus.VERIFIED,
        DocumentStatus.UNDER_REVIEW,
    ],
}


def can_transition_business(
    from_status: VerificationStatus,
    to_status: VerificationStatus,
    action: BusinessAction,
) -> bool:
    if BUSINESS_ACTION_TARGETS.get(action) != to_status:
        return False
    return to_status in BUSINESS_TRANSITIONS.get(from_status, [])


def can_transition_document(
    from_status: DocumentStatus,
    to_status: DocumentStatus,
    action: DocumentAction,
) -> bool:
    if DOCUMENT_ACTION_TARGETS.get(action) != to_status:
        return False
    return to_status in DOCUMENT_TRANSITIONS.get(from_status, [])


def _required(value: Optional[str], detail: str) -> str:
    if value is None or not value.strip():
        raise bad_request_exception(detail)
    return value.strip()


def plan_business_transition(
    business: BusinessRecord,
    action: BusinessAction,
    actor_id: Optional[str],
    notes: Optional[str],
    now: datetime,
) -> dict:
    """
    Valide l'action et retourne les champs à écrire (une seule écriture).
    Lève ValidationError / InvalidTransitionError sans rien modifier.
    """
    if action == BusinessAction.APPROVE:
        actor_id = _required(actor_id, "Identité de l'approbateur obligatoire")
    elif action == BusinessAction.REJECT:
        notes = _required(notes, "Notes obligatoires pour rejeter une entreprise")
    elif action == BusinessAction.SUSPEND:
        notes = _required(notes, "Notes obligatoires pour suspendre une entreprise")

    current = business.verification_status
    target = BUSINESS_ACTION_TARGETS[action]
    if not can_transition_business(current, target, action):
        raise InvalidTransitionError("business", current.value, target.value, action.value)

    fields = {"verification_status": target, "updated_at": now}
    if action == BusinessAction.APPROVE:
        fields["approved_at"] = now
        fields["approved_by"] = actor_id
        fields["approval_notes"] = notes.strip() if notes and notes.strip() else None
    else:
        fields["verification_notes"] = notes.strip() if notes and notes.strip() else None
    return fields


def plan_document_transition(
    document: DocumentRecord,
    action: DocumentAction,
    actor_id: Optional[str],
    reason: Optional[str],
    now: datetime,
) -> dict:
    """verified_by/verified_at uniquement sur verify ; effacés sur toute autre action."""
    if action == DocumentAction.VERIFY:
        actor_id = _required(actor_id, "Identité du vérificateur obligatoire")
    elif action == DocumentAction.REJECT:
        reason = _required(reason, "Motif obligatoire pour rejeter un document")

    current = document.verification_status
    target = DOCUMENT_ACTION_TARGETS[action]
    if not can_transition_document(current, target, action):
        raise InvalidTransitionError("document", current.value, target.value, action.value)

    fields = {
        "verification_status": target,
        "verified_by":         None,
        "verified_at":         None,
        "rejection_reason":    None,
        "updated_at":          now,
    }
    if action == DocumentAction.VERIFY:
        fields["verified_by"] = actor_id
        fields["verified_at"] = now
    elif action == DocumentAction.REJECT:
        fields["rejection_reason"] = reason
    return fields


# ── Compteurs & priorité ──────────────────────────────────────────────────────

def count_documents(documents: Iterable[DocumentRecord]) -> DocumentCounts:
    counts = DocumentCounts()
    for doc in documents:
        counts.total += 1
        if doc.verification_status == DocumentStatus.VERIFIED:
            counts.verified += 1
        elif doc.verification_status == DocumentStatus.PENDING:
            counts.pending += 1
        elif doc.verification_status == DocumentStatus.REJECTED:
            counts.rejected += 1
        elif doc.verification_status == DocumentStatus.UNDER_REVIEW:
            counts.under_review += 1
    return counts


def classify_priority(
    status: VerificationStatus,
    submitted_at: datetime,
    now: datetime,
) -> Priority:
    """
    suspended → urgent ; pending : > 7 jours urgent, > 3 jours high ; sinon normal.
    Sert uniquement au tri / à la mise en évidence, jamais persisté.
    """
    if status == VerificationStatus.SUSPENDED:
        return Priority.URGENT
    if status != VerificationStatus.PENDING:
        return Priority.NORMAL

    age = as_utc(now) - as_utc(submitted_at)
    if age > timedelta(days=settings.PRIORITY_URGENT_AFTER_DAYS):
        return Priority.URGENT
    if age > timedelta(days=settings.PRIORITY_HIGH_AFTER_DAYS):
        return Priority.HIGH
    return Priority.NORMAL


def summarize(
    business: BusinessRecord,
    documents: Iterable[DocumentRecord],
    now: datetime,
) -> VerificationSummary:
    submitted_at = business.application_submitted_at or business.created_at
    return VerificationSummary(
        business_id=business.business_id,
        business_name=business.business_name,
        verification_status=business.verification_status,
        submitted_at=submitted_at,
        documents=count_documents(documents),
        priority=classify_priority(business.verification_status, submitted_at, now),
    )


def compute_stats(summaries: Iterable[VerificationSummary]) -> VerificationStats:
    stats = VerificationStats()
    for s in summaries:
        stats.total += 1
        if s.verification_status == VerificationStatus.PENDING:
            stats.pending += 1
        elif s.verification_status == VerificationStatus.APPROVED:
            stats.approved += 1
        elif s.verification_status == VerificationStatus.REJECTED:
            stats.rejected += 1
        elif s.verification_status == VerificationStatus.SUSPENDED:
            stats.suspended += 1
        if s.priority == Priority.URGENT:
            stats.overdue += 1
    return stats


def unverified_documents(documents: Iterable[DocumentRecord]) -> list[str]:
    """Ex: ["drivers_license (pending)", ...] : avertissement, pas un blocage."""
    return [
        f"{d.document_type.value} ({d.verification_status.value})"
        for d in documents
        if d.verification_status != DocumentStatus.VERIFIED
    ]


def _event_id() -> str:
    return f"vev_{uuid.uuid4().hex[:12]}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VerificationStateMachine:
    """
    Applique les transitions sur le store : lecture, validation, écriture unique,
    puis événement d'audit.
    """

    def __init__(self, store, clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.clock = clock

    async def get_business(self, business_id: str) -> BusinessRecord:
        business = await self.store.get_business(business_id)
        if business is None:
            raise not_found_exception("business", business_id)
        return business

    async def get_document(self, document_id: str) -> DocumentRecord:
        document = await self.store.get_document(document_id)
        if document is None:
            raise not_found_exception("document", document_id)
        return document

    async def transition_business(
        self,
        business_id: str,
        action: BusinessAction,
        actor_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BusinessRecord:
        business = await self.get_business(business_id)
        now = self.clock()
        fields = plan_business_transition(business, action, actor_id, notes, now)
        # Validation du record complet avant écriture
        updated = BusinessRecord(**{**business.model_dump(), **fields})

        await self.store.update_business(business_id, fields)
        await self._record_event(
            subject_type="business",
            subject_id=business_id,
            action=action.value,
            from_status=business.verification_status.value,
            to_status=updated.verification_status.value,
            actor_id=actor_id,
            notes=notes,
            now=now,
        )
        logger.info(
            f"Entreprise {business_id} : {business.verification_status.value} → "
            f"{updated.verification_status.value} (action={action.value}, par={actor_id})"
        )
        return updated

    async def transition_document(
        self,
        document_id: str,
        action: DocumentAction,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> DocumentRecord:
        document = await self.get_document(document_id)
        now = self.clock()
        fields = plan_document_transition(document, action, actor_id, reason, now)
        updated = DocumentRecord(**{**document.model_dump(), **fields})

        await self.store.update_document(document_id, fields)
        await self._record_event(
            subject_type="document",
            subject_id=document_id,
            action=action.value,
            from_status=document.verification_status.value,
            to_status=updated.verification_status.value,
            actor_id=actor_id,
            notes=reason,
            now=now,
            metadata={"business_id": document.business_id},
        )
        logger.info(
            f"Document {document_id} ({document.document_type.value}) : "
            f"{document.verification_status.value} → {updated.verification_status.value}"
        )
        return updated

    async def summary(self, business_id: str, now: Optional[datetime] = None) -> VerificationSummary:
        business = await self.get_business(business_id)
        documents = await self.store.list_documents(business_id)
        return summarize(business, documents, now or self.clock())

    async def _record_event(
        self,
        subject_type: str,
        subject_id: str,
        action: str,
        from_status: Optional[str],
        to_status: str,
        actor_id: Optional[str],
        notes: Optional[str],
        now: datetime,
        metadata: Optional[dict] = None,
    ):
        """
        Insère un événement dans verification_events (journal des décisions).
        Appelé après l'écriture du statut : un échec du journal ne remonte pas.
        """
        event = VerificationEvent(
            event_id=_event_id(),
            subject_type=subject_type,
            subject_id=subject_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            notes=notes,
            metadata=metadata or {},
            created_at=now,
        )
        try:
            await self.store.record_event(event)
        except Exception as e:
            logger.error(
                f"Événement {action} non journalisé pour {subject_type} {subject_id} "
                f"({from_status} → {to_status}) : {e}"
            )

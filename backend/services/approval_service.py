"""
Service approbation : décisions de vérification (entreprise / document) puis
notification du propriétaire.
Workflow : Admin examine (pièces + coordonnées) → Approuve, Rejette ou Suspend → notification.
La décision est durable quel que soit le résultat de la notification.
"""
import logging
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel

from config import settings
from core.exceptions import VerificationError
from models.business import (
    BusinessRecord, DocumentRecord, VerificationStats, VerificationSummary,
)
from models.common import BusinessAction, DocumentAction, NotificationType
from models.notification import DispatchReport
from services.notification_service import NotificationDispatcher
from services.repositories import (
    MongoBusinessStore, MongoIdentityStore, MongoNotificationLogStore,
    MongoPreferenceStore, MongoTemplateStore,
)
from services.transports import ResendEmailTransport, TwilioSmsTransport
from services.verification_service import (
    VerificationStateMachine, compute_stats, unverified_documents,
)

logger = logging.getLogger(__name__)


# ── Modèles ──────────────────────────────────────────────────────────────────

class NotificationOutcome(BaseModel):
    status:            Literal["sent", "partial", "failed", "skipped", "suppressed"]
    notification_type: Optional[NotificationType] = None
    channels:          List[str] = []      # canaux effectivement envoyés
    error:             Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status in ("sent", "partial")


class DecisionOutcome(BaseModel):
    business:     BusinessRecord
    document:     Optional[DocumentRecord] = None
    warnings:     List[str] = []           # ex: documents non vérifiés à l'approbation
    notification: NotificationOutcome


def _skipped(reason: str, notification_type: Optional[NotificationType] = None) -> NotificationOutcome:
    return NotificationOutcome(status="skipped", notification_type=notification_type, error=reason)


def _outcome_from_report(report: DispatchReport) -> NotificationOutcome:
    if report.suppressed:
        return NotificationOutcome(
            status="suppressed",
            notification_type=report.notification_type,
            error="Heures calmes actives",
        )
    if not report.outcomes:
        return _skipped("Aucun canal actif ou aucun destinataire", report.notification_type)

    sent = [s.channel.value for s in report.sent]
    failures = report.failures
    if not failures:
        status = "sent"
    elif sent:
        status = "partial"
    else:
        status = "failed"
    return NotificationOutcome(
        status=status,
        notification_type=report.notification_type,
        channels=sent,
        error="; ".join(str(f) for f in failures) or None,
    )


def _document_label(document: DocumentRecord) -> str:
    return document.document_type.value.replace("_", " ")


class ApprovalOrchestrator:
    def __init__(self, state_machine: VerificationStateMachine, dispatcher: NotificationDispatcher):
        self.state_machine = state_machine
        self.dispatcher = dispatcher

    @property
    def store(self):
        return self.state_machine.store

    # ── Entreprises ──────────────────────────────────────────────────────────

    async def approve_business(
        self,
        business_id: str,
        approver_id: str,
        notes: Optional[str] = None,
        notify: bool = True,
    ) -> DecisionOutcome:
        """
        Les documents sont des pièces justificatives, pas un prérequis :
        s'il en reste non vérifiés, on avertit mais l'approbation passe.
        """
        await self.state_machine.get_business(business_id)
        documents = await self.store.list_documents(business_id)
        warnings = []
        pending_docs = unverified_documents(documents)
        if pending_docs:
            warnings.append(f"Documents non vérifiés : {', '.join(pending_docs)}")
            logger.warning(f"Approbation de {business_id} avec documents non vérifiés : {pending_docs}")

        business = await self.state_machine.transition_business(
            business_id, BusinessAction.APPROVE, actor_id=approver_id, notes=notes,
        )

        notification = _skipped("Notification désactivée", NotificationType.BUSINESS_APPROVED)
        if notify:
            notification = await self._notify(business, NotificationType.BUSINESS_APPROVED, {
                "approval_notes": business.approval_notes,
                "approved_at":    business.approved_at.strftime("%Y-%m-%d") if business.approved_at else None,
            })
        return DecisionOutcome(business=business, warnings=warnings, notification=notification)

    async def reject_business(
        self,
        business_id: str,
        actor_id: str,
        notes: str,
        notify: bool = True,
    ) -> DecisionOutcome:
        business = await self.state_machine.transition_business(
            business_id, BusinessAction.REJECT, actor_id=actor_id, notes=notes,
        )

        notification = _skipped("Notification désactivée", NotificationType.BUSINESS_REJECTED)
        if notify:
            notification = await self._notify(business, NotificationType.BUSINESS_REJECTED, {
                "rejection_reason": business.verification_notes,
            })
        return DecisionOutcome(business=business, notification=notification)

    async def suspend_business(self, business_id: str, actor_id: str, notes: str) -> DecisionOutcome:
        business = await self.state_machine.transition_business(
            business_id, BusinessAction.SUSPEND, actor_id=actor_id, notes=notes,
        )
        return DecisionOutcome(business=business, notification=_skipped("Aucune notification pour une suspension"))

    async def reset_business_to_pending(
        self,
        business_id: str,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> DecisionOutcome:
        business = await self.state_machine.transition_business(
            business_id, BusinessAction.RESET_TO_PENDING, actor_id=actor_id, notes=notes,
        )
        return DecisionOutcome(business=business, notification=_skipped("Aucune notification pour une remise en attente"))

    # ── Documents ────────────────────────────────────────────────────────────

    async def verify_document(
        self,
        document_id: str,
        verifier_id: str,
        notes: Optional[str] = None,
        notify: bool = True,
    ) -> DecisionOutcome:
        document = await self.state_machine.transition_document(
            document_id, DocumentAction.VERIFY, actor_id=verifier_id,
        )
        business = await self.state_machine.get_business(document.business_id)

        notification = _skipped("Notification désactivée", NotificationType.DOCUMENT_VERIFIED)
        if notify:
            label = _document_label(document)
            notification = await self._notify(business, NotificationType.DOCUMENT_VERIFIED, {
                "document_type":  label,
                "approval_notes": notes or f"Your {label} document has been approved.",
            }, document=document)
        return DecisionOutcome(business=business, document=document, notification=notification)

    async def reject_document(
        self,
        document_id: str,
        actor_id: str,
        reason: str,
        notify: bool = True,
    ) -> DecisionOutcome:
        document = await self.state_machine.transition_document(
            document_id, DocumentAction.REJECT, actor_id=actor_id, reason=reason,
        )
        business = await self.state_machine.get_business(document.business_id)

        notification = _skipped("Notification désactivée", NotificationType.DOCUMENT_REJECTED)
        if notify:
            notification = await self._notify(business, NotificationType.DOCUMENT_REJECTED, {
                "document_type":    _document_label(document),
                "rejection_reason": document.rejection_reason,
            }, document=document)
        return DecisionOutcome(business=business, document=document, notification=notification)

    async def mark_document_under_review(self, document_id: str, actor_id: str) -> DecisionOutcome:
        document = await self.state_machine.transition_document(
            document_id, DocumentAction.MARK_UNDER_REVIEW, actor_id=actor_id,
        )
        business = await self.state_machine.get_business(document.business_id)
        return DecisionOutcome(
            business=business,
            document=document,
            notification=_skipped("Aucune notification pour une mise en revue"),
        )

    # ── Lecture ──────────────────────────────────────────────────────────────

    async def verification_summary(self, business_id: str) -> VerificationSummary:
        return await self.state_machine.summary(business_id)

    async def verification_stats(self, business_ids: Iterable[str]) -> VerificationStats:
        summaries = [await self.state_machine.summary(bid) for bid in business_ids]
        return compute_stats(summaries)

    # ── Notification ─────────────────────────────────────────────────────────

    async def _notify(
        self,
        business: BusinessRecord,
        notification_type: NotificationType,
        extra_variables: Dict[str, Any],
        document: Optional[DocumentRecord] = None,
    ) -> NotificationOutcome:
        """Best-effort : aucune erreur de notification ne remonte à l'appelant."""
        if not business.owner_user_id:
            logger.warning(f"Entreprise {business.business_id} sans propriétaire, notification ignorée")
            return _skipped("Aucun contact propriétaire pour cette entreprise", notification_type)

        variables = {
            "business_name":  business.business_name,
            "business_id":    business.business_id,
            "contact_email":  business.contact_email,
            "contact_phone":  business.phone,
            "admin_url":      settings.ADMIN_APP_URL,
            **extra_variables,
        }
        metadata = {"business_id": business.business_id}
        if document is not None:
            metadata["document_id"] = document.document_id

        try:
            report = await self.dispatcher.dispatch(
                business.owner_user_id, notification_type, variables, metadata,
            )
        except VerificationError as e:
            logger.error(f"Notification {notification_type.value} impossible pour {business.business_id} : {e}")
            return NotificationOutcome(status="failed", notification_type=notification_type, error=str(e))
        except Exception as e:
            logger.exception(f"Erreur inattendue pendant la notification {notification_type.value}")
            return NotificationOutcome(status="failed", notification_type=notification_type, error=str(e))

        outcome = _outcome_from_report(report)
        if not outcome.delivered and outcome.status != "suppressed":
            logger.warning(
                f"Décision enregistrée pour {business.business_id} mais notification "
                f"{notification_type.value} non envoyée : {outcome.error}"
            )
        return outcome


def build_orchestrator(database=None) -> ApprovalOrchestrator:
    """Assemble des collaborateurs neufs (MongoDB, Resend, Twilio) pour un appel."""
    business_store = MongoBusinessStore(database)
    dispatcher = NotificationDispatcher(
        identity_store=MongoIdentityStore(database),
        preference_store=MongoPreferenceStore(database),
        template_store=MongoTemplateStore(database),
        log_store=MongoNotificationLogStore(database),
        email_transport=ResendEmailTransport(),
        sms_transport=TwilioSmsTransport(),
    )
    return ApprovalOrchestrator(VerificationStateMachine(business_store), dispatcher)

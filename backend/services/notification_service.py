"""
Service notification : choix des canaux, heures calmes, rendu des templates,
envoi email/SMS et journal des envois.
"""
import asyncio
import logging
import uuid
from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import settings
from core.exceptions import TemplateNotFoundError, TransportError, not_found_exception
from core.utils import clean_contact, mask_email, mask_phone
from models.common import NotificationChannel, NotificationStatus, NotificationType
from models.notification import (
    ChannelOutcome, ChannelSelection, ContactInfo, DispatchReport, NotificationLog,
    NotificationTemplate, Sent, UserIdentity, UserNotificationPreference,
)
from services.template_service import render_template

logger = logging.getLogger(__name__)


# Colonnes de préférences par type (user_settings)
PREFERENCE_COLUMNS: Dict[NotificationType, Dict[str, Optional[str]]] = {
    NotificationType.CUSTOMER_WELCOME: {
        "email": "customer_welcome_email",
        "sms":   None,   # pas de SMS de bienvenue
    },
    NotificationType.CUSTOMER_BOOKING_ACCEPTED: {
        "email": "customer_booking_accepted_email",
        "sms":   "customer_booking_accepted_sms",
    },
    NotificationType.CUSTOMER_BOOKING_COMPLETED: {
        "email": "customer_booking_completed_email",
        "sms":   "customer_booking_completed_sms",
    },
    NotificationType.CUSTOMER_BOOKING_REMINDER: {
        "email": "customer_booking_reminder_email",
        "sms":   "customer_booking_reminder_sms",
    },
    NotificationType.PROVIDER_NEW_BOOKING: {
        "email": "provider_new_booking_email",
        "sms":   "provider_new_booking_sms",
    },
    NotificationType.PROVIDER_BOOKING_CANCELLED: {
        "email": "provider_booking_cancelled_email",
        "sms":   "provider_booking_cancelled_sms",
    },
    NotificationType.PROVIDER_BOOKING_RESCHEDULED: {
        "email": "provider_booking_rescheduled_email",
        "sms":   "provider_booking_rescheduled_sms",
    },
    NotificationType.ADMIN_BUSINESS_VERIFICATION: {
        "email": "admin_business_verification_email",
        "sms":   "admin_business_verification_sms",
    },
}
for _verification_type in (
    NotificationType.BUSINESS_APPROVED,
    NotificationType.BUSINESS_REJECTED,
    NotificationType.DOCUMENT_VERIFIED,
    NotificationType.DOCUMENT_REJECTED,
):
    PREFERENCE_COLUMNS[_verification_type] = PREFERENCE_COLUMNS[NotificationType.ADMIN_BUSINESS_VERIFICATION]


def resolve_channels(
    notification_type: NotificationType,
    preference: Optional[UserNotificationPreference],
) -> ChannelSelection:
    """Sans préférences : email oui, SMS non."""
    if preference is None:
        return ChannelSelection(email=True, sms=False)

    columns = PREFERENCE_COLUMNS[notification_type]
    email_override = preference.type_overrides.get(columns["email"], True)
    sms_column = columns["sms"]
    sms_override = preference.type_overrides.get(sms_column, False) if sms_column else False

    return ChannelSelection(
        email=preference.email_enabled and email_override,
        sms=preference.sms_enabled and sms_override,
    )


def _parse_time(value: str) -> time:
    # "22:00" ou "22:00:00"
    return time.fromisoformat(value.strip())


def _local_now(now: datetime, tz_name: Optional[str]) -> datetime:
    name = tz_name or settings.QUIET_HOURS_TIMEZONE
    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Fuseau inconnu '{name}', utilisation de UTC")
        zone = timezone.utc
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(zone)


def is_quiet_hours(preference: UserNotificationPreference, now: datetime) -> bool:
    """
    Fenêtre inclusive [start, end] en heure locale ; start > end = fenêtre de nuit
    (ex: 22:00 → 08:00).
    """
    if not preference.quiet_hours_enabled:
        return False
    if not preference.quiet_hours_start or not preference.quiet_hours_end:
        return False

    try:
        start = _parse_time(preference.quiet_hours_start)
        end = _parse_time(preference.quiet_hours_end)
    except ValueError:
        logger.warning(
            f"Heures calmes invalides pour {preference.user_id} : "
            f"{preference.quiet_hours_start!r} → {preference.quiet_hours_end!r}"
        )
        return False
    current = _local_now(now, preference.timezone).time().replace(second=0, microsecond=0)

    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def _log_id() -> str:
    return f"nlg_{uuid.uuid4().hex[:12]}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationDispatcher:
    """
    Envoi multi-canal best-effort. Collaborateurs injectés :
    identity_store, preference_store, template_store, log_store,
    email_transport, sms_transport.
    """

    def __init__(
        self,
        identity_store,
        preference_store,
        template_store,
        log_store,
        email_transport,
        sms_transport,
        clock: Callable[[], datetime] = _utc_now,
        log_suppressed: Optional[bool] = None,
    ):
        self.identity_store = identity_store
        self.preference_store = preference_store
        self.template_store = template_store
        self.log_store = log_store
        self.email_transport = email_transport
        self.sms_transport = sms_transport
        self.clock = clock
        self.log_suppressed = (
            settings.LOG_SUPPRESSED_NOTIFICATIONS if log_suppressed is None else log_suppressed
        )

    async def dispatch(
        self,
        user_id: str,
        notification_type: NotificationType,
        template_variables: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DispatchReport:
        """
        Lève UserNotFoundError / TemplateNotFoundError ; les erreurs d'envoi
        sont journalisées et retournées dans le rapport, jamais levées.
        """
        metadata = metadata or {}

        # 1. Identité
        user = await self.identity_store.get_user(user_id)
        if user is None:
            raise not_found_exception("user", user_id)

        # 2. Coordonnées : préférences → profil → identité
        preference = await self.preference_store.get_preferences(user_id)
        contact = await self._resolve_contact(user, preference)

        # 3. Template actif
        template = await self.template_store.get_active_template(notification_type.value)
        if template is None or not template.is_active:
            raise TemplateNotFoundError(notification_type.value)

        report = DispatchReport(user_id=user_id, notification_type=notification_type)

        # 4. Heures calmes
        if preference is not None and is_quiet_hours(preference, self.clock()):
            logger.info(f"Notification {notification_type.value} pour {user_id} ignorée (heures calmes)")
            report.suppressed = True
            if self.log_suppressed:
                report.channels = resolve_channels(notification_type, preference)
                await self._log_suppressed(user_id, notification_type, report.channels, contact, template, metadata)
            return report

        # 5. Canaux
        channels = resolve_channels(notification_type, preference)
        report.channels = channels

        # 6. Envoi indépendant par canal
        attempts = {}
        if channels.email and contact.email:
            attempts[NotificationChannel.EMAIL] = self._send_email(
                user_id, contact.email, template, template_variables, notification_type, metadata,
            )
        if channels.sms and contact.phone:
            attempts[NotificationChannel.SMS] = self._send_sms(
                user_id, contact.phone, template, template_variables, notification_type, metadata,
            )

        results = await asyncio.gather(*attempts.values())
        for channel, outcome in zip(attempts.keys(), results):
            # 7. None = rien à envoyer (pas de corps SMS)
            if outcome is not None:
                report.outcomes[channel] = outcome
        return report

    async def _resolve_contact(
        self,
        user: UserIdentity,
        preference: Optional[UserNotificationPreference],
    ) -> ContactInfo:
        email = clean_contact(preference.notification_email) if preference else None
        phone = clean_contact(preference.notification_phone) if preference else None

        if not email or not phone:
            profile = await self.identity_store.get_profile_contact(user.user_id)
            if profile is not None:
                email = email or clean_contact(profile.email)
                phone = phone or clean_contact(profile.phone)

        email = email or clean_contact(user.email)
        phone = phone or clean_contact(user.phone)

        logger.debug(
            f"Contact notification {user.user_id} : "
            f"email={'✓' if email else '✗'} phone={'✓' if phone else '✗'}"
        )
        return ContactInfo(email=email, phone=phone)

    async def _send_email(
        self,
        user_id: str,
        email: str,
        template: NotificationTemplate,
        variables: Dict[str, Any],
        notification_type: NotificationType,
        metadata: Dict[str, Any],
    ) -> ChannelOutcome:
        subject = render_template(template.email_subject, variables)
        html_body = render_template(template.email_body_html, variables)
        text_body = render_template(template.email_body_text, variables)

        outcome = await self._attempt(
            lambda: self.email_transport.send(email, subject, html_body, text_body or None),
            NotificationChannel.EMAIL,
        )
        await self._log(user_id, NotificationChannel.EMAIL, email, notification_type, outcome,
                        subject=subject, body=text_body or html_body, metadata=metadata)
        return outcome

    async def _send_sms(
        self,
        user_id: str,
        phone: str,
        template: NotificationTemplate,
        variables: Dict[str, Any],
        notification_type: NotificationType,
        metadata: Dict[str, Any],
    ) -> Optional[ChannelOutcome]:
        if not template.sms_body:
            logger.info(f"Pas de template SMS pour {notification_type.value}")
            return None

        body = render_template(template.sms_body, variables)
        outcome = await self._attempt(
            lambda: self.sms_transport.send(phone, body),
            NotificationChannel.SMS,
        )
        await self._log(user_id, NotificationChannel.SMS, phone, notification_type, outcome,
                        body=body, metadata=metadata)
        return outcome

    async def _attempt(self, send, channel: NotificationChannel) -> ChannelOutcome:
        """Convertit l'envoi en valeur : Sent ou TransportError."""
        try:
            return await send()
        except TransportError as e:
            logger.warning(f"Échec envoi {channel.value} : {e.message}")
            return e
        except Exception as e:
            logger.warning(f"Échec envoi {channel.value} (erreur inattendue) : {e}")
            return TransportError(channel.value, str(e) or e.__class__.__name__)

    async def _log(
        self,
        user_id: str,
        channel: NotificationChannel,
        recipient: str,
        notification_type: NotificationType,
        outcome: ChannelOutcome,
        subject: Optional[str] = None,
        body: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        now = self.clock()
        if isinstance(outcome, Sent):
            entry = NotificationLog(
                log_id=_log_id(),
                user_id=user_id,
                channel=channel,
                recipient=recipient,
                notification_type=notification_type,
                status=NotificationStatus.SENT,
                external_id=outcome.external_id,
                subject=subject,
                body=body,
                metadata=metadata or {},
                sent_at=now,
                created_at=now,
            )
        else:
            entry = NotificationLog(
                log_id=_log_id(),
                user_id=user_id,
                channel=channel,
                recipient=recipient,
                notification_type=notification_type,
                status=NotificationStatus.FAILED,
                error_message=outcome.message,
                metadata=metadata or {},
                created_at=now,
            )
        await self._insert_log(entry)

    async def _log_suppressed(
        self,
        user_id: str,
        notification_type: NotificationType,
        channels: ChannelSelection,
        contact: ContactInfo,
        template: NotificationTemplate,
        metadata: Dict[str, Any],
    ):
        now = self.clock()
        targets = []
        if channels.email and contact.email:
            targets.append((NotificationChannel.EMAIL, contact.email))
        if channels.sms and contact.phone and template.sms_body:
            targets.append((NotificationChannel.SMS, contact.phone))

        for channel, recipient in targets:
            await self._insert_log(NotificationLog(
                log_id=_log_id(),
                user_id=user_id,
                channel=channel,
                recipient=recipient,
                notification_type=notification_type,
                status=NotificationStatus.SUPPRESSED,
                error_message="Heures calmes",
                metadata=metadata,
                created_at=now,
            ))

    async def _insert_log(self, entry: NotificationLog):
        # Un échec du journal ne doit pas bloquer l'envoi
        try:
            await self.log_store.insert(entry)
        except Exception as e:
            masked = mask_email(entry.recipient) if entry.channel == NotificationChannel.EMAIL \
                else mask_phone(entry.recipient)
            logger.error(f"Journal notification non écrit ({entry.channel.value} → {masked}) : {e}")

from datetime import datetime
from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, ConfigDict

from core.exceptions import TransportError
from models.common import NotificationChannel, NotificationStatus, NotificationType


class NotificationTemplate(BaseModel):
    """Lecture seule au moment de l'envoi."""
    template_key:    str
    template_name:   Optional[str] = None
    description:     Optional[str] = None
    email_subject:   str = ""
    email_body_html: str = ""
    email_body_text: str = ""
    sms_body:        Optional[str] = None   # pas de variante SMS pour certains types
    variables:       List[str] = []
    is_active:       bool = True


class UserNotificationPreference(BaseModel):
    user_id:             str
    # Interrupteurs généraux
    email_enabled:       bool = True
    sms_enabled:         bool = False
    # Surcharges par type, indexées par colonne ("provider_new_booking_sms", ...)
    type_overrides:      Dict[str, bool] = {}
    # Heures calmes ("22:00" → "08:00", heure locale)
    quiet_hours_enabled: bool = False
    quiet_hours_start:   Optional[str] = None
    quiet_hours_end:     Optional[str] = None
    timezone:            Optional[str] = None   # ex: "America/Chicago"
    # Coordonnées dédiées aux notifications
    notification_email:  Optional[str] = None
    notification_phone:  Optional[str] = None


class UserIdentity(BaseModel):
    user_id: str
    email:   Optional[str] = None
    phone:   Optional[str] = None


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class ChannelSelection(BaseModel):
    email: bool = True
    sms:   bool = False


class Sent(BaseModel):
    """Envoi accepté par le transport."""
    channel:     NotificationChannel
    recipient:   str
    external_id: Optional[str] = None


# Résultat par canal : succès ou erreur transport, jamais une exception levée
ChannelOutcome = Union[Sent, TransportError]


class NotificationLog(BaseModel):
    """Journal append-only : une ligne par tentative et par canal."""
    log_id:            str
    user_id:           str
    channel:           NotificationChannel
    recipient:         str
    notification_type: NotificationType
    status:            NotificationStatus
    external_id:       Optional[str] = None   # id Resend / SID Twilio
    subject:           Optional[str] = None
    body:              Optional[str] = None
    error_message:     Optional[str] = None
    metadata:          Dict[str, Any] = {}
    sent_at:           Optional[datetime] = None
    created_at:        datetime


class DispatchReport(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id:           str
    notification_type: NotificationType
    suppressed:        bool = False
    channels:          ChannelSelection = ChannelSelection()
    outcomes:          Dict[NotificationChannel, ChannelOutcome] = {}

    @property
    def sent(self) -> List[Sent]:
        return [o for o in self.outcomes.values() if isinstance(o, Sent)]

    @property
    def failures(self) -> List[TransportError]:
        return [o for o in self.outcomes.values() if isinstance(o, TransportError)]

"""
Transports externes : email via l'API Resend, SMS via Twilio.
Chaque envoi retourne Sent ou lève TransportError (jamais autre chose).
"""
import asyncio
import logging
from typing import Optional

import httpx

from config import settings
from core.exceptions import TransportError
from core.utils import mask_email, mask_phone
from models.common import NotificationChannel
from models.notification import Sent

logger = logging.getLogger(__name__)


class ResendEmailTransport:
    channel = NotificationChannel.EMAIL

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.api_url = api_url or settings.RESEND_API_URL
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS

    async def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> Sent:
        if not self.api_key:
            raise TransportError(self.channel.value, "Resend non configuré (RESEND_API_KEY manquant)")

        payload = {
            "from":    self.sender,
            "to":      [to],
            "subject": subject,
            "html":    html,
        }
        if text:
            payload["text"] = text
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type":  "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(self.channel.value, f"Resend injoignable : {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message") or response.text
            except ValueError:
                detail = response.text
            raise TransportError(
                self.channel.value,
                f"Resend a refusé l'envoi ({response.status_code}) : {detail}",
            )

        # L'email est accepté : un corps illisible ne le transforme pas en échec
        try:
            external_id = response.json().get("id")
        except ValueError:
            logger.warning(f"Réponse Resend sans JSON exploitable ({response.status_code})")
            external_id = None
        logger.info(f"Email envoyé à {mask_email(to)} (id={external_id})")
        return Sent(channel=self.channel, recipient=to, external_id=external_id)


class TwilioSmsTransport:
    channel = NotificationChannel.SMS

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client=None,
    ):
        self.account_sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number if from_number is not None else settings.TWILIO_SMS_NUMBER
        self._client = client

    @property
    def configured(self) -> bool:
        if not self.from_number:
            return False
        return self._client is not None or bool(self.account_sid and self.auth_token)

    def _get_client(self):
        if self._client is None:
            from twilio.rest import Client
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    async def send(self, to: str, body: str) -> Sent:
        if not self.configured:
            raise TransportError(self.channel.value, "Twilio non configuré")

        try:
            client = self._get_client()
            # Le SDK Twilio est synchrone : on l'exécute hors de la boucle
            message = await asyncio.to_thread(
                client.messages.create,
                body=body,
                from_=self.from_number,
                to=to,
            )
        except Exception as e:
            raise TransportError(self.channel.value, f"Twilio : {e}") from e

        logger.info(f"SMS envoyé à {mask_phone(to)} (sid={message.sid})")
        return Sent(channel=self.channel, recipient=to, external_id=message.sid)

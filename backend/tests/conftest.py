"""
Fixtures partagées : collaborateurs en mémoire, horloge fixe, transports simulés.
"""
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

# Environnement de test AVANT tout import applicatif
os.environ.update({
    "APP_ENV": "test",
    "DEBUG": "false",
    "RESEND_API_KEY": "re_test_key",
    "TWILIO_ACCOUNT_SID": "ACtest",
    "TWILIO_AUTH_TOKEN": "test-token",
    "TWILIO_SMS_NUMBER": "+15550000000",
    "QUIET_HOURS_TIMEZONE": "UTC",
})

from core.exceptions import not_found_exception, TransportError  # noqa: E402
from models.business import BusinessRecord, DocumentRecord  # noqa: E402
from models.common import (  # noqa: E402
    DocumentStatus, DocumentType, NotificationChannel, VerificationStatus,
)
from models.notification import (  # noqa: E402
    ContactInfo, NotificationTemplate, Sent, UserIdentity,
)
from services.approval_service import ApprovalOrchestrator  # noqa: E402
from services.notification_service import NotificationDispatcher  # noqa: E402
from services.verification_service import VerificationStateMachine  # noqa: E402

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# ==== COLLABORATEURS EN MÉMOIRE ==== #


class InMemoryBusinessStore:
    def __init__(self):
        self.businesses = {}
        self.documents = {}
        self.events = []
        self.writes = 0

    async def get_business(self, business_id):
        return self.businesses.get(business_id)

    async def update_business(self, business_id, fields):
        if business_id not in self.businesses:
            raise not_found_exception("business", business_id)
        current = self.businesses[business_id]
        self.businesses[business_id] = BusinessRecord(**{**current.model_dump(), **fields})
        self.writes += 1

    async def get_document(self, document_id):
        return self.documents.get(document_id)

    async def update_document(self, document_id, fields):
        if document_id not in self.documents:
            raise not_found_exception("document", document_id)
        current = self.documents[document_id]
        self.documents[document_id] = DocumentRecord(**{**current.model_dump(), **fields})
        self.writes += 1

    async def list_documents(self, business_id):
        return [d for d in self.documents.values() if d.business_id == business_id]

    async def record_event(self, event):
        self.events.append(event)

    def add_business(self, **overrides):
        data = {
            "business_id":              "biz_001",
            "business_name":            "Glow Mobile Spa",
            "contact_email":            "owner@glowspa.com",
            "phone":                    "+15125550101",
            "owner_user_id":            "usr_owner",
            "verification_status":      VerificationStatus.PENDING,
            "application_submitted_at": NOW - timedelta(days=1),
            "created_at":               NOW - timedelta(days=2),
        }
        data.update(overrides)
        business = BusinessRecord(**data)
        self.businesses[business.business_id] = business
        return business

    def add_document(self, document_id, status=DocumentStatus.PENDING, business_id="biz_001", **overrides):
        data = {
            "document_id":         document_id,
            "business_id":         business_id,
            "document_type":       DocumentType.DRIVERS_LICENSE,
            "verification_status": status,
            "created_at":          NOW - timedelta(days=1),
        }
        if status == DocumentStatus.VERIFIED:
            data.update(verified_by="usr_admin", verified_at=NOW - timedelta(hours=3))
        if status == DocumentStatus.REJECTED:
            data.update(rejection_reason="Illisible")
        data.update(overrides)
        document = DocumentRecord(**data)
        self.documents[document_id] = document
        return document


class InMemoryIdentityStore:
    def __init__(self):
        self.users = {}
        self.profiles = {}

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_profile_contact(self, user_id):
        return self.profiles.get(user_id)


class InMemoryPreferenceStore:
    def __init__(self):
        self.preferences = {}

    async def get_preferences(self, user_id):
        return self.preferences.get(user_id)


class InMemoryTemplateStore:
    def __init__(self):
        self.templates = {}

    async def get_active_template(self, template_key):
        template = self.templates.get(template_key)
        if template is None or not template.is_active:
            return None
        return template


class InMemoryLogStore:
    def __init__(self):
        self.rows = []

    async def insert(self, entry):
        self.rows.append(entry)


def make_template(key, sms_body="SMS {{business_name}}", **overrides):
    data = {
        "template_key":    key,
        "email_subject":   "Sujet {{business_name}}",
        "email_body_html": "<p>Bonjour {{business_name}}</p>",
        "email_body_text": "Bonjour {{business_name}}",
        "sms_body":        sms_body,
    }
    data.update(overrides)
    return NotificationTemplate(**data)


# ==== FIXTURES ==== #


@pytest.fixture
def business_store():
    return InMemoryBusinessStore()


@pytest.fixture
def identity_store():
    store = InMemoryIdentityStore()
    store.users["usr_owner"] = UserIdentity(
        user_id="usr_owner", email="auth@glowspa.com", phone="+15125550199",
    )
    return store


@pytest.fixture
def preference_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def template_store():
    store = InMemoryTemplateStore()
    for key in (
        "business_approved", "business_rejected", "document_verified",
        "document_rejected", "provider_new_booking", "customer_welcome",
    ):
        store.templates[key] = make_template(key)
    return store


@pytest.fixture
def log_store():
    return InMemoryLogStore()


@pytest.fixture
def email_transport():
    transport = AsyncMock()
    transport.send.side_effect = lambda to, subject, html, text=None: Sent(
        channel=NotificationChannel.EMAIL, recipient=to, external_id="re_123",
    )
    return transport


@pytest.fixture
def sms_transport():
    transport = AsyncMock()
    transport.send.side_effect = lambda to, body: Sent(
        channel=NotificationChannel.SMS, recipient=to, external_id="SM123",
    )
    return transport


@pytest.fixture
def failing_email_transport():
    transport = AsyncMock()
    transport.send.side_effect = TransportError("email", "Resend a refusé l'envoi (500)")
    return transport


@pytest.fixture
def dispatcher(identity_store, preference_store, template_store, log_store, email_transport, sms_transport):
    return NotificationDispatcher(
        identity_store=identity_store,
        preference_store=preference_store,
        template_store=template_store,
        log_store=log_store,
        email_transport=email_transport,
        sms_transport=sms_transport,
        clock=lambda: NOW,
        log_suppressed=False,
    )


@pytest.fixture
def state_machine(business_store):
    return VerificationStateMachine(business_store, clock=lambda: NOW)


@pytest.fixture
def orchestrator(state_machine, dispatcher):
    return ApprovalOrchestrator(state_machine, dispatcher)


@pytest.fixture
def profile_contact():
    return ContactInfo(email="profile@glowspa.com", phone="+15125550123")

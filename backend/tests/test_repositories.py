"""Tests des stores MongoDB sur une base simulée (mongomock-motor)."""

from datetime import timedelta

import pytest
from mongomock_motor import AsyncMongoMockClient

from conftest import NOW
from core.exceptions import BusinessNotFoundError, DocumentNotFoundError
from models.business import BusinessRecord, DocumentRecord, VerificationEvent
from models.common import (
    DocumentStatus, DocumentType, NotificationChannel, NotificationStatus, NotificationType,
    VerificationStatus,
)
from models.notification import NotificationLog
from seed_templates import VERIFICATION_TEMPLATES
from services.repositories import (
    MongoBusinessStore, MongoIdentityStore, MongoNotificationLogStore,
    MongoPreferenceStore, MongoTemplateStore,
)


@pytest.fixture
def mongo():
    return AsyncMongoMockClient()["roam_test"]


def _business(**overrides):
    data = {
        "business_id":   "biz_001",
        "business_name": "Glow Mobile Spa",
        "owner_user_id": "usr_owner",
        "created_at":    NOW,
    }
    data.update(overrides)
    return BusinessRecord(**data)


def _document(document_id="doc_1", **overrides):
    data = {
        "document_id":   document_id,
        "business_id":   "biz_001",
        "document_type": DocumentType.DRIVERS_LICENSE,
        "created_at":    NOW,
    }
    data.update(overrides)
    return DocumentRecord(**data)


class TestMongoBusinessStore:

    @pytest.mark.asyncio
    async def test_insert_and_update_business(self, mongo):
        store = MongoBusinessStore(mongo)
        await store.insert_business(_business())

        await store.update_business("biz_001", {
            "verification_status": VerificationStatus.APPROVED,
            "approved_at":         NOW,
            "approved_by":         "usr_admin",
        })

        raw = await mongo.businesses.find_one({"business_id": "biz_001"})
        assert raw["verification_status"] == "approved"
        business = await store.get_business("biz_001")
        assert business.verification_status == VerificationStatus.APPROVED
        assert business.approved_by == "usr_admin"

    @pytest.mark.asyncio
    async def test_update_unknown_business(self, mongo):
        store = MongoBusinessStore(mongo)

        with pytest.raises(BusinessNotFoundError):
            await store.update_business("biz_missing", {"verification_status": VerificationStatus.REJECTED})

    @pytest.mark.asyncio
    async def test_get_unknown_business_returns_none(self, mongo):
        assert await MongoBusinessStore(mongo).get_business("biz_missing") is None

    @pytest.mark.asyncio
    async def test_document_requires_existing_business(self, mongo):
        store = MongoBusinessStore(mongo)

        with pytest.raises(BusinessNotFoundError):
            await store.insert_document(_document())

    @pytest.mark.asyncio
    async def test_list_documents_sorted_by_creation(self, mongo):
        store = MongoBusinessStore(mongo)
        await store.insert_business(_business())
        await store.insert_document(_document("doc_late", created_at=NOW))
        await store.insert_document(_document("doc_early", created_at=NOW - timedelta(days=1)))
        await store.insert_document(_document("doc_other", created_at=NOW - timedelta(hours=1)))

        documents = await store.list_documents("biz_001")

        assert [d.document_id for d in documents] == ["doc_early", "doc_other", "doc_late"]

    @pytest.mark.asyncio
    async def test_list_documents_is_not_capped(self, mongo):
        store = MongoBusinessStore(mongo)
        await store.insert_business(_business())
        await mongo.business_documents.insert_many([
            {**_document(f"doc_{i:04d}").model_dump(), "document_type": "drivers_license", "verification_status": "pending"}
            for i in range(600)
        ])

        documents = await store.list_documents("biz_001")

        assert len(documents) == 600

    @pytest.mark.asyncio
    async def test_update_unknown_document(self, mongo):
        with pytest.raises(DocumentNotFoundError):
            await MongoBusinessStore(mongo).update_document("doc_missing", {"verification_status": DocumentStatus.VERIFIED})

    @pytest.mark.asyncio
    async def test_events_are_listed_chronologically(self, mongo):
        store = MongoBusinessStore(mongo)
        for i, to_status in enumerate(["approved", "suspended"]):
            await store.record_event(VerificationEvent(
                event_id=f"vev_{i}",
                subject_type="business",
                subject_id="biz_001",
                action="approve" if i == 0 else "suspend",
                to_status=to_status,
                created_at=NOW + timedelta(minutes=i),
            ))

        events = await store.list_events("biz_001")

        assert [e.to_status for e in events] == ["approved", "suspended"]


class TestMongoIdentityStore:

    @pytest.mark.asyncio
    async def test_user_and_profile_lookup(self, mongo):
        await mongo.users.insert_one({"user_id": "usr_owner", "email": "auth@glowspa.com", "phone": None})
        await mongo.providers.insert_one({"user_id": "usr_owner", "email": "pro@glowspa.com", "phone": "+15125550123"})
        store = MongoIdentityStore(mongo)

        user = await store.get_user("usr_owner")
        contact = await store.get_profile_contact("usr_owner")

        assert user.email == "auth@glowspa.com"
        assert contact.email == "pro@glowspa.com"
        assert contact.phone == "+15125550123"

    @pytest.mark.asyncio
    async def test_customer_profile_wins_over_provider(self, mongo):
        await mongo.customer_profiles.insert_one({"user_id": "usr_1", "email": "client@mail.com"})
        await mongo.providers.insert_one({"user_id": "usr_1", "email": "pro@mail.com"})

        contact = await MongoIdentityStore(mongo).get_profile_contact("usr_1")

        assert contact.email == "client@mail.com"

    @pytest.mark.asyncio
    async def test_unknown_user(self, mongo):
        store = MongoIdentityStore(mongo)
        assert await store.get_user("usr_ghost") is None
        assert await store.get_profile_contact("usr_ghost") is None


class TestMongoPreferenceStore:

    @pytest.mark.asyncio
    async def test_flat_settings_document(self, mongo):
        await mongo.user_settings.insert_one({
            "user_id":                  "usr_owner",
            "sms_notifications":        True,
            "provider_new_booking_sms": True,
            "customer_welcome_email":   False,
            "quiet_hours_enabled":      True,
            "quiet_hours_start":        "22:00",
            "quiet_hours_end":          "08:00",
            "timezone":                 "America/Chicago",
            "notification_phone":       "+15125550100",
        })

        pref = await MongoPreferenceStore(mongo).get_preferences("usr_owner")

        assert pref.email_enabled is True
        assert pref.sms_enabled is True
        assert pref.type_overrides == {"provider_new_booking_sms": True, "customer_welcome_email": False}
        assert pref.quiet_hours_enabled is True
        assert pref.notification_phone == "+15125550100"

    @pytest.mark.asyncio
    async def test_missing_settings(self, mongo):
        assert await MongoPreferenceStore(mongo).get_preferences("usr_ghost") is None


class TestMongoTemplateStore:

    @pytest.mark.asyncio
    async def test_seeded_templates_are_active(self, mongo):
        store = MongoTemplateStore(mongo)
        for template in VERIFICATION_TEMPLATES:
            await store.upsert(template)

        template = await store.get_active_template("business_approved")

        assert template is not None
        assert "{{business_name}}" in template.email_body_text
        assert (await store.get_active_template("document_verified")).sms_body is None

    @pytest.mark.asyncio
    async def test_inactive_template_is_hidden(self, mongo):
        store = MongoTemplateStore(mongo)
        inactive = VERIFICATION_TEMPLATES[0].model_copy(update={"is_active": False})
        await store.upsert(inactive)

        assert await store.get_active_template(inactive.template_key) is None


class TestMongoNotificationLogStore:

    @pytest.mark.asyncio
    async def test_insert_and_list_latest_first(self, mongo):
        store = MongoNotificationLogStore(mongo)
        for i, status in enumerate([NotificationStatus.FAILED, NotificationStatus.SENT]):
            await store.insert(NotificationLog(
                log_id=f"nlg_{i}",
                user_id="usr_owner",
                channel=NotificationChannel.EMAIL,
                recipient="auth@glowspa.com",
                notification_type=NotificationType.BUSINESS_APPROVED,
                status=status,
                created_at=NOW + timedelta(seconds=i),
            ))

        rows = await store.list_for_user("usr_owner")

        assert [r.status for r in rows] == [NotificationStatus.SENT, NotificationStatus.FAILED]
        raw = await mongo.notification_logs.find_one({"log_id": "nlg_0"})
        assert raw["channel"] == "email"

"""
Accès MongoDB des collaborateurs : entreprises/documents, identités, préférences,
templates et journal des notifications.
Chaque store reçoit la base par injection (par défaut le proxy `db`).
"""
import logging
from enum import Enum
from typing import Optional

from core.exceptions import not_found_exception
from database import db
from models.business import BusinessRecord, DocumentRecord, VerificationEvent
from models.notification import (
    ContactInfo, NotificationLog, NotificationTemplate, UserIdentity,
    UserNotificationPreference,
)

logger = logging.getLogger(__name__)


def _to_doc(data: dict) -> dict:
    """Enums → valeurs brutes pour BSON."""
    doc = {}
    for key, value in data.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, dict):
            value = _to_doc(value)
        doc[key] = value
    return doc


class _MongoStore:
    def __init__(self, database=None):
        self.database = database if database is not None else db


class MongoBusinessStore(_MongoStore):
    async def get_business(self, business_id: str) -> Optional[BusinessRecord]:
        doc = await self.database.businesses.find_one({"business_id": business_id}, {"_id": 0})
        return BusinessRecord(**doc) if doc else None

    async def insert_business(self, business: BusinessRecord) -> BusinessRecord:
        await self.database.businesses.insert_one(_to_doc(business.model_dump()))
        return business

    async def update_business(self, business_id: str, fields: dict):
        result = await self.database.businesses.update_one(
            {"business_id": business_id},
            {"$set": _to_doc(fields)},
        )
        if result.matched_count == 0:
            raise not_found_exception("business", business_id)

    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        doc = await self.database.business_documents.find_one({"document_id": document_id}, {"_id": 0})
        return DocumentRecord(**doc) if doc else None

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        # Un document référence toujours une entreprise existante
        owner = await self.database.businesses.find_one({"business_id": document.business_id}, {"_id": 1})
        if not owner:
            raise not_found_exception("business", document.business_id)
        await self.database.business_documents.insert_one(_to_doc(document.model_dump()))
        return document

    async def update_document(self, document_id: str, fields: dict):
        result = await self.database.business_documents.update_one(
            {"document_id": document_id},
            {"$set": _to_doc(fields)},
        )
        if result.matched_count == 0:
            raise not_found_exception("document", document_id)

    async def list_documents(self, business_id: str) -> list[DocumentRecord]:
        cursor = self.database.business_documents.find(
            {"business_id": business_id},
            {"_id": 0},
        ).sort("created_at", 1)
        return [DocumentRecord(**doc) for doc in await cursor.to_list(length=None)]

    async def record_event(self, event: VerificationEvent):
        await self.database.verification_events.insert_one(_to_doc(event.model_dump()))

    async def list_events(self, subject_id: str) -> list[VerificationEvent]:
        """Événements triés chronologiquement."""
        cursor = self.database.verification_events.find(
            {"subject_id": subject_id},
            {"_id": 0},
        ).sort("created_at", 1)
        return [VerificationEvent(**doc) for doc in await cursor.to_list(length=None)]


class MongoIdentityStore(_MongoStore):
    async def get_user(self, user_id: str) -> Optional[UserIdentity]:
        user = await self.database.users.find_one({"user_id": user_id}, {"_id": 0})
        if not user:
            return None
        return UserIdentity(user_id=user_id, email=user.get("email"), phone=user.get("phone"))

    async def get_profile_contact(self, user_id: str) -> Optional[ContactInfo]:
        """Profil client d'abord, puis fiche prestataire."""
        for collection in ("customer_profiles", "providers"):
            profile = await self.database[collection].find_one(
                {"user_id": user_id},
                {"_id": 0, "email": 1, "phone": 1},
            )
            if profile:
                return ContactInfo(email=profile.get("email"), phone=profile.get("phone"))
        return None


class MongoPreferenceStore(_MongoStore):
    async def get_preferences(self, user_id: str) -> Optional[UserNotificationPreference]:
        doc = await self.database.user_settings.find_one({"user_id": user_id}, {"_id": 0})
        if not doc:
            return None

        # Colonnes par type : "<type>_email" / "<type>_sms" booléennes
        overrides = {
            key: value
            for key, value in doc.items()
            if isinstance(value, bool) and (key.endswith("_email") or key.endswith("_sms"))
        }
        email_enabled = doc.get("email_notifications")
        sms_enabled = doc.get("sms_notifications")
        return UserNotificationPreference(
            user_id=user_id,
            email_enabled=True if email_enabled is None else email_enabled,
            sms_enabled=False if sms_enabled is None else sms_enabled,
            type_overrides=overrides,
            quiet_hours_enabled=bool(doc.get("quiet_hours_enabled")),
            quiet_hours_start=doc.get("quiet_hours_start"),
            quiet_hours_end=doc.get("quiet_hours_end"),
            timezone=doc.get("timezone"),
            notification_email=doc.get("notification_email"),
            notification_phone=doc.get("notification_phone"),
        )


class MongoTemplateStore(_MongoStore):
    async def get_active_template(self, template_key: str) -> Optional[NotificationTemplate]:
        doc = await self.database.notification_templates.find_one(
            {"template_key": template_key, "is_active": True},
            {"_id": 0},
        )
        return NotificationTemplate(**doc) if doc else None

    async def upsert(self, template: NotificationTemplate):
        await self.database.notification_templates.update_one(
            {"template_key": template.template_key},
            {"$set": template.model_dump()},
            upsert=True,
        )


class MongoNotificationLogStore(_MongoStore):
    """Append-only : aucune mise à jour après insertion."""

    async def insert(self, entry: NotificationLog):
        await self.database.notification_logs.insert_one(_to_doc(entry.model_dump()))

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[NotificationLog]:
        cursor = self.database.notification_logs.find(
            {"user_id": user_id},
            {"_id": 0},
        ).sort("created_at", -1)
        return [NotificationLog(**doc) for doc in await cursor.to_list(length=limit)]

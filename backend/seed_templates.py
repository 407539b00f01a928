import asyncio
import logging

from config import settings
from database import connect_db, close_db, get_db
from models.notification import NotificationTemplate
from services.repositories import MongoTemplateStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _html(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; "
        "max-width: 600px; margin: 0 auto; padding: 20px;\">"
        f"<h1 style=\"color: #1e293b;\">{title}</h1>{body}"
        "<p style=\"font-size: 14px; color: #6b7280;\">The ROAM Platform Team</p>"
        "</body></html>"
    )


# Templates des décisions de vérification (les 8 templates historiques sont gérés à part)
VERIFICATION_TEMPLATES = [
    NotificationTemplate(
        template_key="admin_business_verification",
        template_name="Admin Business Verification Alert",
        description="Sent to admins when a new business needs verification",
        email_subject="🔔 New Business Awaiting Verification",
        email_body_html=_html(
            "New Business Awaiting Verification",
            "<p><strong>{{business_name}}</strong> ({{business_category}}) submitted on "
            "{{submission_date}}.</p><p>Owner: {{owner_name}} - {{contact_email}} / {{contact_phone}}</p>"
            "<p><a href=\"{{admin_url}}/admin/providers\">Review application</a></p>",
        ),
        email_body_text=(
            "Hi Admin,\n\nA new business has completed their application and is awaiting verification.\n\n"
            "Business Name: {{business_name}}\nOwner: {{owner_name}}\nEmail: {{contact_email}}\n"
            "Phone: {{contact_phone}}\nCategory: {{business_category}}\nLocation: {{business_location}}\n"
            "Submitted: {{submission_date}}\n\nBusiness ID: {{business_id}}"
        ),
        sms_body="🔔 New business application: {{business_name}} - {{business_category}}. Review now: {{admin_url}}/admin/providers",
        variables=["business_name", "owner_name", "contact_email", "contact_phone",
                   "business_category", "business_location", "submission_date", "business_id", "admin_url"],
    ),
    NotificationTemplate(
        template_key="business_approved",
        template_name="Business Approved",
        description="Sent to the business owner when verification is approved",
        email_subject="🎉 Your Business Has Been Approved!",
        email_body_html=_html(
            "🎉 Congratulations!",
            "<p>Your business application for <strong>{{business_name}}</strong> has been reviewed and approved.</p>"
            "<p>{{approval_notes}}</p>",
        ),
        email_body_text=(
            "Great news! Your business application for {{business_name}} has been reviewed and approved "
            "on {{approved_at}}.\n\n{{approval_notes}}"
        ),
        sms_body="ROAM: {{business_name}} has been approved. Welcome aboard!",
        variables=["business_name", "approval_notes", "approved_at"],
    ),
    NotificationTemplate(
        template_key="business_rejected",
        template_name="Business Rejected",
        description="Sent to the business owner when verification is rejected",
        email_subject="Update on your ROAM business application",
        email_body_html=_html(
            "Application Update",
            "<p>We were unable to approve <strong>{{business_name}}</strong> at this time.</p>"
            "<p>Reason: {{rejection_reason}}</p>",
        ),
        email_body_text=(
            "We were unable to approve {{business_name}} at this time.\n\nReason: {{rejection_reason}}"
        ),
        sms_body="ROAM: your application for {{business_name}} was not approved. Check your email for details.",
        variables=["business_name", "rejection_reason"],
    ),
    NotificationTemplate(
        template_key="document_verified",
        template_name="Document Verified",
        description="Sent when one verification document is approved",
        email_subject="Your {{document_type}} document has been approved",
        email_body_html=_html(
            "Document Approved",
            "<p>{{business_name}}: {{approval_notes}}</p>",
        ),
        email_body_text="{{business_name}}: {{approval_notes}}",
        sms_body=None,
        variables=["business_name", "document_type", "approval_notes"],
    ),
    NotificationTemplate(
        template_key="document_rejected",
        template_name="Document Rejected",
        description="Sent when one verification document is rejected",
        email_subject="Action required: your {{document_type}} document",
        email_body_html=_html(
            "Document Needs Attention",
            "<p>Your {{document_type}} document for <strong>{{business_name}}</strong> was rejected.</p>"
            "<p>Reason: {{rejection_reason}}</p>",
        ),
        email_body_text=(
            "Your {{document_type}} document for {{business_name}} was rejected.\n\nReason: {{rejection_reason}}"
        ),
        sms_body="ROAM: your {{document_type}} document was rejected: {{rejection_reason}}",
        variables=["business_name", "document_type", "rejection_reason"],
    ),
]


async def seed_templates():
    logger.info(f"Connexion à MongoDB : {settings.DB_NAME}")
    await connect_db()
    store = MongoTemplateStore(get_db())

    for template in VERIFICATION_TEMPLATES:
        await store.upsert(template)
        logger.info(f"Template '{template.template_key}' enregistré")

    await close_db()
    logger.info(f"{len(VERIFICATION_TEMPLATES)} templates à jour")


if __name__ == "__main__":
    asyncio.run(seed_templates())

from enum import Enum


class VerificationStatus(str, Enum):
    PENDING   = "pending"
    APPROVED  = "approved"
    REJECTED  = "rejected"
    SUSPENDED = "suspended"


class BusinessAction(str, Enum):
    APPROVE          = "approve"
    REJECT           = "reject"
    SUSPEND          = "suspend"
    RESET_TO_PENDING = "reset_to_pending"


class DocumentStatus(str, Enum):
    PENDING      = "pending"
    VERIFIED     = "verified"
    REJECTED     = "rejected"
    UNDER_REVIEW = "under_review"


class DocumentAction(str, Enum):
    VERIFY            = "verify"
    REJECT            = "reject"
    MARK_UNDER_REVIEW = "mark_under_review"


class DocumentType(str, Enum):
    DRIVERS_LICENSE          = "drivers_license"
    PROOF_OF_ADDRESS         = "proof_of_address"
    LIABILITY_INSURANCE      = "liability_insurance"
    PROFESSIONAL_LICENSE     = "professional_license"
    PROFESSIONAL_CERTIFICATE = "professional_certificate"
    BUSINESS_LICENSE         = "business_license"


class Priority(str, Enum):
    NORMAL = "normal"
    HIGH   = "high"
    URGENT = "urgent"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS   = "sms"


class NotificationStatus(str, Enum):
    PENDING    = "pending"
    SENT       = "sent"
    DELIVERED  = "delivered"
    FAILED     = "failed"
    SUPPRESSED = "suppressed"   # heures calmes (optionnel, cf. LOG_SUPPRESSED_NOTIFICATIONS)


class NotificationType(str, Enum):
    CUSTOMER_WELCOME             = "customer_welcome"
    CUSTOMER_BOOKING_ACCEPTED    = "customer_booking_accepted"
    CUSTOMER_BOOKING_COMPLETED   = "customer_booking_completed"
    CUSTOMER_BOOKING_REMINDER    = "customer_booking_reminder"
    PROVIDER_NEW_BOOKING         = "provider_new_booking"
    PROVIDER_BOOKING_CANCELLED   = "provider_booking_cancelled"
    PROVIDER_BOOKING_RESCHEDULED = "provider_booking_rescheduled"
    ADMIN_BUSINESS_VERIFICATION  = "admin_business_verification"
    # Issues de vérification : partagent les préférences admin_business_verification
    BUSINESS_APPROVED            = "business_approved"
    BUSINESS_REJECTED            = "business_rejected"
    DOCUMENT_VERIFIED            = "document_verified"
    DOCUMENT_REJECTED            = "document_rejected"

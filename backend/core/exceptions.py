"""
Erreurs métier du workflow de vérification et du dispatcher de notifications.
"""
from typing import Optional


class VerificationError(Exception):
    """Erreur de base du domaine vérification."""


class ValidationError(VerificationError):
    """Entrée invalide (notes, motif ou acteur manquant) : à corriger par l'appelant."""


class InvalidTransitionError(ValidationError):
    """Transition absente de la table des transitions autorisées."""

    def __init__(self, subject: str, from_status: str, to_status: str, action: str):
        self.subject = subject
        self.from_status = from_status
        self.to_status = to_status
        self.action = action
        super().__init__(
            f"Transition interdite ({subject}, action={action}) : {from_status} → {to_status}"
        )


class NotFoundError(VerificationError):
    """Ressource inconnue : non rejouable."""

    resource = "Ressource"

    def __init__(self, resource_id: str, detail: Optional[str] = None):
        self.resource_id = resource_id
        super().__init__(detail or f"{self.resource} introuvable : {resource_id}")


class BusinessNotFoundError(NotFoundError):
    resource = "Entreprise"


class DocumentNotFoundError(NotFoundError):
    resource = "Document"


class UserNotFoundError(NotFoundError):
    resource = "Utilisateur"


class ConfigurationError(VerificationError):
    """Configuration de notification absente ou inactive : interrompt l'envoi."""


class TemplateNotFoundError(ConfigurationError):
    def __init__(self, template_key: str):
        self.template_key = template_key
        super().__init__(f"Template introuvable ou inactif : {template_key}")


class TransportError(VerificationError):
    """Échec d'envoi email/SMS. Journalisé puis absorbé (best-effort)."""

    def __init__(self, channel: str, message: str):
        self.channel = channel
        self.message = message
        super().__init__(f"[{channel}] {message}")


def not_found_exception(resource: str, resource_id: str) -> NotFoundError:
    errors = {
        "business": BusinessNotFoundError,
        "document": DocumentNotFoundError,
        "user":     UserNotFoundError,
    }
    return errors.get(resource, NotFoundError)(resource_id)


def bad_request_exception(detail: str) -> ValidationError:
    return ValidationError(detail)

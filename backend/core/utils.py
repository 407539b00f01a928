import re
from datetime import datetime, timezone
from typing import Optional


def mask_phone(phone: str) -> str:
    """
    Masque un numéro de téléphone en ne laissant que l'indicatif (si présent)
    et les 2 derniers chiffres.
    Format type: +1 555 123 45 67 -> +1 ••• •• 67
    """
    if not phone:
        return ""

    clean_phone = phone.replace(" ", "")

    # Si le numéro est très court, on masque tout
    if len(clean_phone) <= 4:
        return "••••"

    # On essaie de garder l'indicatif (+ suivi de 1-3 chiffres)
    match = re.match(r"^(\+\d{1,3})", clean_phone)
    prefix = match.group(1) if match else ""

    suffix = clean_phone[-2:]

    return f"{prefix} ••• •• {suffix}" if prefix else f"••• •• {suffix}"


def mask_email(email: str) -> str:
    """jane.doe@example.com -> j•••@example.com"""
    if not email:
        return ""
    local, _, domain = email.partition("@")
    if not domain:
        return "••••"
    return f"{local[:1]}•••@{domain}"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo peut renvoyer des datetimes naïfs : on les considère UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def clean_contact(value: Optional[str]) -> Optional[str]:
    """Chaîne vide ou blanche → None."""
    if value is None:
        return None
    value = value.strip()
    return value or None

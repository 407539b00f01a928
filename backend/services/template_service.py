"""
Rendu des templates de notification : substitution des jetons {{nom}}.
"""
from typing import Any, Mapping, Optional


def render_template(body: Optional[str], variables: Mapping[str, Any]) -> str:
    """
    Remplace chaque {{clé}} connue par str(valeur) ; None → "".
    Les jetons inconnus restent tels quels.
    """
    if not body:
        return ""

    result = body
    for key, value in variables.items():
        result = result.replace("{{" + key + "}}", "" if value is None else str(value))
    return result

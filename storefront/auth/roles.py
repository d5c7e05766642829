"""
Résolution du rôle, toujours côté serveur.

Ordre: ADMIN_EMAILS, PARTNER_EMAILS, table staff_members, sinon customer.
Les métadonnées du compte (modifiables par l'utilisateur) ne sont jamais consultées.
Aucun cache: un retrait de la liste ou de la table prend effet à la requête suivante.
"""
from typing import Optional

from storefront import config
from storefront.auth.models import Role

from . import repository


def resolve_role(email: Optional[str]) -> Role:
    email = (email or "").strip().lower()
    if not email:
        return Role.ANONYMOUS
    if email in config.ADMIN_EMAILS:
        return Role.ADMIN
    if email in config.PARTNER_EMAILS:
        return Role.PARTNER

    staff_role = repository.get_staff_role(email)
    if staff_role == Role.ADMIN.value:
        return Role.ADMIN
    if staff_role == Role.PARTNER.value:
        return Role.PARTNER
    return Role.CUSTOMER

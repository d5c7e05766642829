"""Exceptions métier de la boutique.

Chaque erreur porte un code HTTP par défaut, utilisé par les gestionnaires
enregistrés dans storefront.app_setup.exceptions.
"""
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """Base de toutes les erreurs métier."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class ValidationError(StorefrontError):
    """Panier ou informations client invalides (corrigeable par l'utilisateur)."""

    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        super().__init__(message, **context)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class NotFoundError(StorefrontError):
    """Commande ou référence passerelle inconnue.

    Le message ne révèle jamais si la ressource existe pour un autre utilisateur.
    """

    status_code = 404
    code = "not_found"

    def __init__(self, message: str = "Order not found", **context: Any):
        super().__init__(message, **context)


class InvalidTransitionError(StorefrontError):
    """Précondition de la machine à états non respectée."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(f"Cannot move order {order_id} from {current} to {target}")
        self.order_id = order_id
        self.current = current
        self.target = target


class AuthError(StorefrontError):
    status_code = 401
    code = "auth_error"


class ExpiredTokenError(AuthError):
    """Lien de réinitialisation expiré: l'utilisateur doit en demander un nouveau."""

    status_code = 400
    code = "expired_token"

    def __init__(self, message: str = "This password reset link has expired"):
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "action": "request_new_reset"}


class InvalidTokenError(AuthError):
    """Lien de réinitialisation manquant, malformé ou déjà utilisé."""

    status_code = 400
    code = "invalid_token"

    def __init__(self, message: str = "This password reset link is invalid"):
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "action": "request_new_reset"}


class GatewayError(StorefrontError):
    """Passerelle de paiement injoignable ou requête refusée."""

    status_code = 502
    code = "gateway_error"


class DataStoreError(StorefrontError):
    """Échec de lecture/écriture dans la base (Supabase)."""

    status_code = 503
    code = "data_store_error"

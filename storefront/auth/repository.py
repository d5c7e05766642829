from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging

import httpx
from postgrest.exceptions import APIError

from storefront import config
from storefront.errors import DataStoreError
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

STAFF_TABLE = "staff_members"
RECOVERY_USES_TABLE = "password_recovery_uses"

# --- Auth (supabase.auth.*) ---

def auth_sign_in_password(email: str, password: str):
    """Wrapper Supabase Auth: connexion par email/mot de passe (GoTrue)."""
    return supabase_client.get_supabase().auth.sign_in_with_password({"email": email, "password": password})

def auth_sign_up_account(email: str, password: str, full_name: Optional[str] = None, email_redirect_to: Optional[str] = None):
    """Wrapper Supabase Auth: inscription d'un compte client.
    - options.data: uniquement full_name (le rôle n'est jamais stocké côté compte)
    - options.email_redirect_to: URL de confirmation (SIGNUP_REDIRECT_URL)
    """
    credentials: Dict[str, Any] = {"email": email, "password": password}
    options: Dict[str, Any] = {}
    if full_name:
        options["data"] = {"full_name": full_name}
    if email_redirect_to:
        options["email_redirect_to"] = email_redirect_to
    if options:
        credentials["options"] = options
    return supabase_client.get_supabase().auth.sign_up(credentials)

def auth_send_reset_password(email: str, redirect_to: str):
    """Wrapper Supabase Auth: envoi d'un email de reset avec redirection."""
    return supabase_client.get_supabase().auth.reset_password_for_email(email, options={"redirect_to": redirect_to})

def auth_sign_out(access_token: str) -> None:
    """Révoque le jeton côté GoTrue (API admin, client service-role)."""
    supabase_client.get_service_supabase().auth.admin.sign_out(access_token)

def auth_update_user_password(user_token: str, new_password: str) -> httpx.Response:
    """Appel direct GoTrue pour mettre à jour le mot de passe:
    - httpx PUT /auth/v1/user avec Authorization: Bearer <recovery token>
    - apikey (SUPABASE_ANON) requis; timeout de 10s
    """
    url = f"{config.SUPABASE_URL.rstrip('/')}/auth/v1/user"
    headers = {
        "Authorization": f"Bearer {user_token}",
        "apikey": config.SUPABASE_ANON,
        "Content-Type": "application/json",
    }
    return httpx.put(url, json={"password": new_password}, headers=headers, timeout=10)

def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}

# --- Table staff_members (rôles internes) ---

def get_staff_role(email: str) -> Optional[str]:
    """
    Rôle interne actif pour cet email ('partner' | 'admin'), sinon None.
    Une erreur de lecture n'accorde aucun rôle: on journalise et on retourne None.
    """
    if not email:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(STAFF_TABLE)
            .select("role")
            .eq("email", email.lower())
            .eq("active", True)
            .limit(1)
            .execute()
        )
        data = res.data or []
        if not data:
            return None
        return (data[0].get("role") or "").lower() or None
    except Exception:
        logger.exception("auth.repository.get_staff_role failed email=%s", email)
        return None

# --- Table password_recovery_uses (usage unique des liens de reset) ---

def record_recovery_token_use(token_hash: str, user_id: str) -> bool:
    """
    Marque un jeton de récupération comme consommé.
    Retourne False si déjà consommé (doublon 23505 sur token_hash).
    """
    payload = {
        "token_hash": token_hash,
        "user_id": user_id,
        "used_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        supabase_client.get_service_supabase().table(RECOVERY_USES_TABLE).insert(payload).execute()
        return True
    except APIError as e:
        code = getattr(e, "code", None)
        if not code and e.args and isinstance(e.args[0], dict):
            code = e.args[0].get("code")
        if code == "23505":
            return False
        logger.exception("auth.repository.record_recovery_token_use failed user_id=%s", user_id)
        raise DataStoreError("Could not record the reset link use") from e
    except Exception as e:
        logger.exception("auth.repository.record_recovery_token_use failed user_id=%s", user_id)
        raise DataStoreError("Could not record the reset link use") from e

def release_recovery_token_use(token_hash: str) -> None:
    """Annule la consommation si GoTrue a refusé la mise à jour (le lien reste utilisable)."""
    try:
        supabase_client.get_service_supabase().table(RECOVERY_USES_TABLE).delete().eq("token_hash", token_hash).execute()
    except Exception:
        logger.exception("auth.repository.release_recovery_token_use failed")

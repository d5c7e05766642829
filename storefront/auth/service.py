from typing import Iterable, Optional
import logging

import httpx

from storefront import config
from storefront.auth.models import Role, Session, build_session
from storefront.errors import AuthError, DataStoreError, InvalidTokenError, ValidationError
from storefront.utils.validators import validate_password_strength

from . import repository
from .roles import resolve_role
from .tokens import check_recovery_token, token_fingerprint

logger = logging.getLogger(__name__)

# --- Cas d'usage Auth exposés ---

def sign_in(email: str, password: str) -> Session:
    """Connexion:
    - Délègue à supabase.auth.sign_in_with_password via repository
    - Rôle résolu côté serveur (listes + staff_members), jamais depuis user_metadata
    - AuthError avec un message unique: on ne distingue pas email inconnu / mot de passe faux
    """
    email = (email or "").strip().lower()
    if not email or not password:
        raise AuthError("Invalid email or password")
    try:
        res = repository.auth_sign_in_password(email, password)
    except Exception as e:
        logger.warning("auth.sign_in refusé email=%s: %s", email, e)
        raise AuthError("Invalid email or password, or email not confirmed") from e

    sess = getattr(res, "session", None)
    user = getattr(res, "user", None)
    if not sess or not getattr(sess, "access_token", None) or not user:
        raise AuthError("Invalid email or password, or email not confirmed")
    return build_session(
        user,
        resolve_role(getattr(user, "email", None) or email),
        access_token=sess.access_token,
        refresh_token=getattr(sess, "refresh_token", None),
    )

def sign_in_for_area(email: str, password: str, allowed_roles: Iterable[Role]) -> Session:
    """Connexion depuis l'entrée partenaire ou admin: la session n'est créée que si le rôle est autorisé."""
    session = sign_in(email, password)
    if session.role not in set(allowed_roles):
        sign_out(session.access_token)
        logger.warning("auth.sign_in_for_area refusé email=%s role=%s", session.email, session.role.value)
        raise AuthError("This account does not have access to this area")
    return session

def sign_out(access_token: Optional[str]) -> None:
    """Révocation best-effort côté GoTrue; le cookie est supprimé par la vue dans tous les cas."""
    if not access_token:
        return
    try:
        repository.auth_sign_out(access_token)
    except Exception:
        logger.warning("auth.sign_out: révocation GoTrue impossible", exc_info=True)

def current_session(access_token: Optional[str]) -> Optional[Session]:
    """Session courante, ou None si le jeton est absent, expiré ou révoqué."""
    if not access_token:
        return None
    try:
        raw = repository.get_user_from_access_token(access_token)
    except Exception:
        logger.info("auth.current_session: jeton refusé par GoTrue")
        return None
    if not raw.get("id"):
        return None
    return build_session(raw, resolve_role(raw.get("email")), access_token=access_token)

def sign_up(email: str, password: str, full_name: Optional[str] = None) -> Optional[Session]:
    """Inscription client:
    - Le rôle n'est jamais pris dans la requête (customer, ou rôle interne si l'email est listé)
    - Retourne la session si GoTrue en ouvre une, sinon None (confirmation email attendue)
    """
    email = (email or "").strip().lower()
    try:
        validate_password_strength(password or "")
    except ValueError as e:
        raise ValidationError(str(e), field="password") from e
    try:
        res = repository.auth_sign_up_account(
            email=email,
            password=password,
            full_name=(full_name or "").strip() or None,
            email_redirect_to=config.SIGNUP_REDIRECT_URL,
        )
    except Exception as e:
        msg = str(e).lower()
        if any(k in msg for k in ["already", "registered", "exists", "23505"]):
            raise AuthError("An account already exists for this email") from e
        logger.exception("auth.sign_up failed email=%s", email)
        raise AuthError("Sign up failed, please try again") from e

    sess = getattr(res, "session", None)
    user = getattr(res, "user", None)
    if sess and getattr(sess, "access_token", None) and user:
        return build_session(user, resolve_role(email), access_token=sess.access_token,
                             refresh_token=getattr(sess, "refresh_token", None))
    return None

def request_reset(email: str) -> None:
    """Demande de reset: même réponse que l'email existe ou non."""
    email = (email or "").strip().lower()
    if not email:
        return
    try:
        repository.auth_send_reset_password(email, config.RESET_REDIRECT_URL)
    except Exception:
        logger.warning("auth.request_reset: envoi impossible email=%s", email, exc_info=True)

def complete_reset(recovery_token: Optional[str], new_password: str) -> None:
    """Fin du flux de reset:
    1) Jeton: présent, lisible, dans sa fenêtre de validité (avant tout contrôle du mot de passe)
    2) Force du nouveau mot de passe
    3) Usage unique (empreinte dans password_recovery_uses)
    4) PUT /auth/v1/user avec le jeton; en cas d'échec l'usage est annulé
    """
    claims = check_recovery_token(recovery_token)
    token = (recovery_token or "").strip()

    try:
        validate_password_strength(new_password or "")
    except ValueError as e:
        raise ValidationError(str(e), field="new_password") from e
    if len(new_password) < 8:
        raise ValidationError("Password must be at least 8 characters", field="new_password")

    fingerprint = token_fingerprint(token)
    if not repository.record_recovery_token_use(fingerprint, str(claims.get("sub"))):
        raise InvalidTokenError("This password reset link has already been used")

    try:
        resp = repository.auth_update_user_password(token, new_password)
    except httpx.HTTPError as e:
        repository.release_recovery_token_use(fingerprint)
        logger.exception("auth.complete_reset: GoTrue injoignable")
        raise DataStoreError("Could not update the password, please try again") from e

    if 200 <= resp.status_code < 300:
        logger.info("auth.complete_reset ok user_id=%s", claims.get("sub"))
        return

    repository.release_recovery_token_use(fingerprint)
    if resp.status_code in (401, 403):
        raise InvalidTokenError()
    msg = None
    try:
        body = resp.json()
        msg = body.get("msg") or body.get("message") or body.get("error_description")
    except ValueError:
        msg = None
    if resp.status_code == 422:
        raise ValidationError(msg or "Password was rejected", field="new_password")
    raise AuthError(msg or f"Password update failed (status {resp.status_code})")

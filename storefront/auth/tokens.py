"""
Contrôle local des jetons de récupération (JWT Supabase de type recovery).

- Jeton absent ou illisible -> InvalidTokenError
- exp dépassé, ou émis il y a plus de RESET_TOKEN_TTL_SECONDS -> ExpiredTokenError
La signature n'est vérifiée que si SUPABASE_JWT_SECRET est configuré; GoTrue la revérifie
de toute façon lors de la mise à jour du mot de passe.
"""
from typing import Any, Dict, Optional
import hashlib
import time

import jwt

from storefront import config
from storefront.errors import ExpiredTokenError, InvalidTokenError


def token_fingerprint(token: str) -> str:
    """Empreinte stockée pour l'usage unique (le jeton lui-même n'est jamais persisté)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _decode(token: str) -> Dict[str, Any]:
    # exp est contrôlé plus bas avec la même horloge que iat
    if config.SUPABASE_JWT_SECRET:
        return jwt.decode(
            token,
            config.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_exp": False, "verify_aud": False},
        )
    return jwt.decode(token, options={"verify_signature": False})


def check_recovery_token(token: Optional[str], now: Optional[float] = None) -> Dict[str, Any]:
    token = (token or "").strip()
    if not token:
        raise InvalidTokenError("This password reset link is missing its token")
    try:
        claims = _decode(token)
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError() from e

    if not claims.get("sub"):
        raise InvalidTokenError()

    now = time.time() if now is None else now
    exp = claims.get("exp")
    iat = claims.get("iat")
    if exp is None and iat is None:
        raise InvalidTokenError()
    try:
        if exp is not None and now >= float(exp):
            raise ExpiredTokenError()
        if iat is not None and now - float(iat) > config.RESET_TOKEN_TTL_SECONDS:
            raise ExpiredTokenError()
    except (TypeError, ValueError) as e:
        raise InvalidTokenError() from e
    return claims

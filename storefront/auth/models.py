from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Role(str, Enum):
    ANONYMOUS = "anonymous"
    CUSTOMER = "customer"
    PARTNER = "partner"
    ADMIN = "admin"


STAFF_ROLES = frozenset({Role.PARTNER, Role.ADMIN})


@dataclass(frozen=True)
class Session:
    """
    Session résolue pour une requête.
    - role: recalculé côté serveur à chaque résolution (jamais lu depuis les métadonnées du compte)
    - access_token: jeton Supabase, réutilisé pour les lectures soumises à la RLS
    """
    user_id: str
    email: str
    role: Role
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def customer_id(self) -> str:
        return self.user_id

    def as_public_dict(self) -> Dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "role": self.role.value, "name": self.name}


def build_session(user: Any, role: Role, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> Session:
    """Construit une Session depuis l'objet user renvoyé par supabase-py (attributs ou dict)."""
    get = (lambda k: user.get(k)) if isinstance(user, dict) else (lambda k: getattr(user, k, None))
    metadata = get("user_metadata") or {}
    return Session(
        user_id=str(get("id") or ""),
        email=(get("email") or "").lower(),
        role=role,
        access_token=access_token,
        refresh_token=refresh_token,
        name=metadata.get("full_name") if isinstance(metadata, dict) else None,
    )

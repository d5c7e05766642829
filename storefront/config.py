# storefront.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), sécurité cookies, CORS/hosts
- Expose les règles de tarification (devise, minimum de commande, livraison)
- Expose les listes d'autorisation des rôles internes (admin, partenaires)
- Seules les clés listées ici sont reconnues; le reste de l'environnement est ignoré.
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _email_list(v: str) -> list[str]:
    return [e.strip().lower() for e in (v or "").split(",") if e.strip()]

def _decimal_env(name: str, default: str) -> Decimal:
    return Decimal(_clean_env(os.getenv(name) or default))

# Supabase: URLs et clés (anon/service/jwt)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")
# Facultatif: si présent, la signature des jetons de récupération est vérifiée localement
SUPABASE_JWT_SECRET = _clean_env(os.getenv("SUPABASE_JWT_SECRET") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")

# Rôles internes: listes d'autorisation côté serveur (jamais issues du client)
ADMIN_EMAILS = _email_list(os.getenv("ADMIN_EMAILS", ""))
PARTNER_EMAILS = _email_list(os.getenv("PARTNER_EMAILS", ""))

# CORS / hosts
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")

# URLs de redirection post-actions auth
RESET_REDIRECT_URL = os.getenv("RESET_REDIRECT_URL", f"{BASE_URL}/auth/reset")
SIGNUP_REDIRECT_URL = os.getenv("SIGNUP_REDIRECT_URL", f"{BASE_URL}/auth/login")
# Fenêtre de validité d'un lien de réinitialisation (1h)
RESET_TOKEN_TTL_SECONDS = int(os.getenv("RESET_TOKEN_TTL_SECONDS", "3600"))

# Stripe: clé secrète et secret webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

# Retour navigateur après paiement (indicatif uniquement); chemins fixes, servis par payments.views
CHECKOUT_RETURN_PATH = "/checkout/return"
CHECKOUT_CANCEL_PATH = "/checkout/cancel"
# Durée de vie d'une session Checkout (Stripe impose au moins 30 minutes)
CHECKOUT_SESSION_TTL_SECONDS = 35 * 60

# Tarification
STORE_CURRENCY = _clean_env(os.getenv("STORE_CURRENCY") or "inr").lower()
MIN_ORDER_SUBTOTAL = _decimal_env("MIN_ORDER_SUBTOTAL", "0")
DELIVERY_CHARGE = _decimal_env("DELIVERY_CHARGE", "0")
# Préfixe des identifiants de commande: doit respecter ORDER_ID_PATTERN (utils/validators.py)
ORDER_ID_PREFIX = "XLV"

# Page de confirmation: nombre de relectures avant l'état "contactez le support"
ORDER_POLL_ATTEMPTS = int(os.getenv("ORDER_POLL_ATTEMPTS", "5"))
ORDER_POLL_INTERVAL_SECONDS = float(os.getenv("ORDER_POLL_INTERVAL_SECONDS", "2"))

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()

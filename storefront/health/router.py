from fastapi import APIRouter, Request

from storefront import config
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/config")
def health_config(request: Request):
    """Présence des réglages (jamais leurs valeurs)."""
    return {
        "supabase": bool(config.SUPABASE_URL and config.SUPABASE_ANON),
        "supabase_service": bool(config.SUPABASE_SERVICE_KEY),
        "stripe": bool(config.STRIPE_SECRET_KEY),
        "stripe_webhook": bool(config.STRIPE_WEBHOOK_SECRET),
        "rate_limit": rate_limit_health_info(request),
    }

from fastapi.templating import Jinja2Templates

from storefront.config import CHECKOUT_SESSION_TTL_SECONDS, TEMPLATES_DIR

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
# Durée affichée sur la page de confirmation après abandon du paiement
templates.env.globals["checkout_ttl_minutes"] = CHECKOUT_SESSION_TTL_SECONDS // 60

"""
Journalisation applicative.
- configure_logging: niveau global + filtre de masquage sur le handler racine.
- RedactingFilter: masque les valeurs sensibles (mot de passe, secret, clé, jeton) dans les args.
- log_payment_event: trace homogène des étapes de paiement (logger "storefront.payments.audit").
"""
import logging
from typing import Any, Dict

from storefront.config import LOG_LEVEL

SENSITIVE_KEYS = ("password", "secret", "key", "token", "signature")
REDACTED = "[REDACTED]"

payment_logger = logging.getLogger("storefront.payments.audit")


def redact(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            k: (REDACTED if any(s in str(k).lower() for s in SENSITIVE_KEYS) else redact(v))
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(redact(v) for v in data)
    return data


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact(a) for a in record.args)
        return True


def configure_logging(level: str = LOG_LEVEL) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root.setLevel(level)
    for handler in root.handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())


def log_payment_event(event: str, level: int = logging.INFO, **data: Any) -> Dict[str, Any]:
    payload = redact(data)
    payment_logger.log(level, "payment.%s %s", event, payload)
    return payload

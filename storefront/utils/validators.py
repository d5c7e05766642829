import re

NAME_PATTERN = re.compile(r"^[A-Za-z\s]{2,50}$")
PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
PINCODE_PATTERN = re.compile(r"^[1-9][0-9]{5}$")
ORDER_ID_PATTERN = re.compile(r"^[A-Z]+_\d+_[0-9a-f]{8}$")

def validate_password_strength(v: str) -> str:
    if not re.search(r'[A-Z]', v):
        raise ValueError('Password must contain at least one uppercase letter')
    if not re.search(r'[a-z]', v):
        raise ValueError('Password must contain at least one lowercase letter')
    if not re.search(r'\d', v):
        raise ValueError('Password must contain at least one digit')
    if not re.search(r'[!@#$%^&*()_+\-=\[\]{};:\'\"\\|,.<>\/?]', v):
        raise ValueError('Password must contain at least one special character')
    return v

def sanitize_input(v: str) -> str:
    """Retire les caractères dangereux pour un rendu HTML (<, >, guillemets, &)."""
    return re.sub(r"[<>\"'&]", "", (v or "").strip())

def validate_name(v: str) -> str:
    v = (v or "").strip()
    if not NAME_PATTERN.match(v):
        raise ValueError("Name must be 2 to 50 letters")
    return v

def validate_phone(v: str) -> str:
    # Tolère espaces/tirets/indicatif: on ne garde que les chiffres
    digits = re.sub(r"\D", "", v or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    if not PHONE_PATTERN.match(digits):
        raise ValueError("Phone number must be a valid 10-digit mobile number")
    return digits

def validate_pincode(v: str) -> str:
    v = (v or "").strip()
    if not PINCODE_PATTERN.match(v):
        raise ValueError("Pincode must be 6 digits")
    return v

def is_valid_order_id(order_id: str) -> bool:
    return bool(ORDER_ID_PATTERN.match(order_id or ""))

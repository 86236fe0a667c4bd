"""Security helpers: PII masking for safe logging."""
import re

_LONG_NUMBER = re.compile(r"\b\d{10,}\b")


def mask_pii(text: str) -> str:
    return _LONG_NUMBER.sub("[REDACTED]", text)


def mask_phone(phone: str) -> str:
    """Keep only the last four digits of a phone number."""
    if not phone:
        return "(none)"
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]

import re

from ..config import settings

_SEPARATORS = re.compile(r"[\s\-()]")
# Safaricom/Airtel subscriber numbers: 7XXXXXXXX or 1XXXXXXXX after the country code
_SUBSCRIBER = re.compile(r"^[17]\d{8}$")


def to_msisdn(phone: str, country_code: str = None) -> str:
    """Normalize a local or international phone number to MSISDN form (2547XXXXXXXX).

    Raises ValueError when the result is not a valid subscriber number.
    """
    country_code = country_code or settings.mpesa_country_code
    if not phone:
        raise ValueError("Phone number is required")

    cleaned = _SEPARATORS.sub("", phone).lstrip("+")
    if cleaned.startswith("0"):
        cleaned = country_code + cleaned[1:]
    elif not cleaned.startswith(country_code):
        cleaned = country_code + cleaned

    if not _SUBSCRIBER.match(cleaned[len(country_code):]):
        raise ValueError(f"Invalid mobile money number: {phone}")
    return cleaned

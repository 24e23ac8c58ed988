import re

GHANA_COUNTRY_CODE = "233"

_WHITESPACE = re.compile(r"\s+")


def normalize_phone(phone: str | None) -> str:
    """Rewrite a local Ghanaian number (``055 123 4567``, ``+233...``) to ``233...`` digits."""
    if not phone:
        return ""
    value = _WHITESPACE.sub("", str(phone))
    # Repeated pluses are dropped together so a second pass is a no-op.
    value = value.lstrip("+")
    if value.startswith("0"):
        value = GHANA_COUNTRY_CODE + value[1:]
    return value

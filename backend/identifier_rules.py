import re
from typing import Optional

from errors import InvalidArgument

PHONE_RE = re.compile(r"^[6-9]\d{9}$")


def normalize_external_id(value: Optional[str]) -> str:
    return str(value or "").strip().upper()


def normalize_name(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", str(value or "").strip())


def normalize_phone(value: Optional[str]) -> str:
    return re.sub(r"[\s-]+", "", str(value or ""))


def is_valid_phone(value: Optional[str]) -> bool:
    return bool(PHONE_RE.fullmatch(normalize_phone(value)))


def ensure_valid_phone(value: Optional[str], label: str) -> str:
    phone = normalize_phone(value)
    if not PHONE_RE.fullmatch(phone):
        raise InvalidArgument(f"Invalid phone number for {label}")
    return phone

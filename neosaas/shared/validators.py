"""Shared validation utilities"""

import re
from typing import Optional

# Syntax check only; deliverability is the provider's concern
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# "Name <addr@domain>" or bare "addr@domain"
_ANGLE_ADDRESS = re.compile(r"<([^<>]+)>")


def is_valid_email(email: Optional[str]) -> bool:
    """Basic email syntax check"""
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def parse_email_address(value: str) -> str:
    """
    Extract the bare address from a sender header value.

    Args:
        value: "Team <team@example.com>" or "team@example.com"

    Returns:
        The address part, stripped
    """
    match = _ANGLE_ADDRESS.search(value or "")
    if match:
        return match.group(1).strip()
    return (value or "").strip()


def extract_email_domain(value: str) -> Optional[str]:
    """
    Extract the lowercase domain from an email address or sender header value.

    Returns:
        Domain string, or None when the value has no '@'
    """
    address = parse_email_address(value)
    if "@" not in address:
        return None
    return address.rsplit("@", 1)[1].lower() or None

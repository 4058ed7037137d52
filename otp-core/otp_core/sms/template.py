"""
Message Template
================
Single substitutable template for the verification SMS.
"""

from string import Formatter

# Placeholders the template may use
TEMPLATE_FIELDS = frozenset({"otp", "minutes"})


def validate_template(template: str) -> None:
    """
    Reject templates with unknown placeholders or without the code.

    Raises:
        ValueError: If the template cannot be rendered safely
    """
    names = {name for _, name, _, _ in Formatter().parse(template) if name is not None}
    unknown = names - TEMPLATE_FIELDS
    if unknown:
        raise ValueError(f"Unknown template placeholders: {sorted(unknown)}")
    if "otp" not in names:
        raise ValueError("Template must contain the {otp} placeholder")


def render_message(template: str, otp: str, expiry_minutes: int) -> str:
    """Render the verification message."""
    return template.format(otp=otp, minutes=expiry_minutes)

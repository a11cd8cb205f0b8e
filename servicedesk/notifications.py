"""Phone and messaging-app links offered to customers as quick replies."""

import re
from typing import Optional
from urllib.parse import quote

from servicedesk.config import BusinessConfig, settings
from servicedesk.schemas.results import QuickReply


def phone_dial_uri(business: Optional[BusinessConfig] = None) -> str:
    """``tel:`` URI for the support line, e.g. ``tel:+918547229991``."""
    business = business or settings.business
    digits = re.sub(r"[^\d+]", "", business.support_phone)
    return f"tel:{digits}"


def whatsapp_link(message: Optional[str] = None, business: Optional[BusinessConfig] = None) -> str:
    """WhatsApp deep link, optionally pre-filled with ``message``."""
    business = business or settings.business
    link = f"https://wa.me/{business.whatsapp_number}"
    if message:
        link += f"?text={quote(message)}"
    return link


def call_now() -> QuickReply:
    return QuickReply(text="Call Now", action=phone_dial_uri())


def call_us() -> QuickReply:
    return QuickReply(text="Call Us", action=phone_dial_uri())


def call_support() -> QuickReply:
    return QuickReply(text="Call Support", action=phone_dial_uri())


def whatsapp() -> QuickReply:
    return QuickReply(text="WhatsApp", action=whatsapp_link())


def contact_options() -> list[QuickReply]:
    return [call_us(), whatsapp()]

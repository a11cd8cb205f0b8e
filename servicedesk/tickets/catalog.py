"""Service catalog and inference of service type and appliance from free text."""

import logging
import re
from typing import Optional

from servicedesk.detection.phrases import BRANDS
from servicedesk.schemas.ticket import Appliance, ApplianceType, ServiceType, Urgency

logger = logging.getLogger(__name__)

SERVICE_CATALOG: dict[ServiceType, dict[str, str]] = {
    ServiceType.AC_REPAIR: {
        "name": "AC Repair",
        "typical_duration": "1-3 hours",
    },
    ServiceType.REFRIGERATOR_REPAIR: {
        "name": "Refrigerator Repair",
        "typical_duration": "1-3 hours",
    },
    ServiceType.INSTALLATION: {
        "name": "Installation",
        "typical_duration": "2-4 hours",
    },
    ServiceType.MAINTENANCE: {
        "name": "Maintenance",
        "typical_duration": "1-2 hours",
    },
    ServiceType.EMERGENCY: {
        "name": "Emergency Service",
        "typical_duration": "1-4 hours",
    },
    ServiceType.CONSULTATION: {
        "name": "Consultation",
        "typical_duration": "30 minutes",
    },
}

# Checked in order; the first alias found in the text wins
SERVICE_ALIASES: list[tuple[str, ServiceType]] = [
    ("emergency", ServiceType.EMERGENCY), ("sparking", ServiceType.EMERGENCY),
    ("spark", ServiceType.EMERGENCY), ("burning", ServiceType.EMERGENCY),
    ("smoke", ServiceType.EMERGENCY), ("fire", ServiceType.EMERGENCY),
    ("burst", ServiceType.EMERGENCY),
    ("install", ServiceType.INSTALLATION), ("relocat", ServiceType.INSTALLATION),
    ("maintenance", ServiceType.MAINTENANCE), ("servicing", ServiceType.MAINTENANCE),
    ("routine", ServiceType.MAINTENANCE), ("filter clean", ServiceType.MAINTENANCE),
    ("gas top", ServiceType.MAINTENANCE),
    ("quote", ServiceType.CONSULTATION), ("estimate", ServiceType.CONSULTATION),
    ("consult", ServiceType.CONSULTATION), ("advice", ServiceType.CONSULTATION),
    ("refrigerator", ServiceType.REFRIGERATOR_REPAIR), ("fridge", ServiceType.REFRIGERATOR_REPAIR),
    ("freezer", ServiceType.REFRIGERATOR_REPAIR),
]

_AC_PATTERN = re.compile(r"\b(?:ac|a/c|air ?conditioner|aircon)\b", re.IGNORECASE)
_FRIDGE_PATTERN = re.compile(r"\b(?:refrigerator|fridge|freezer)\b", re.IGNORECASE)


def service_name(service_type: ServiceType) -> str:
    return SERVICE_CATALOG[service_type]["name"]


def typical_duration(service_type: ServiceType) -> str:
    """How long a visit of this kind usually takes, for customer replies."""
    return SERVICE_CATALOG[service_type]["typical_duration"]


def match_service(query: str) -> Optional[ServiceType]:
    """Match free text to a service type. Returns None if nothing matches."""
    normalized = query.lower().strip()
    for alias, service_type in SERVICE_ALIASES:
        if alias in normalized:
            return service_type
    return None


def infer_service_type(text: str, urgency: Urgency = Urgency.MEDIUM) -> ServiceType:
    """Service type for a problem description; AC repair when nothing more specific fits."""
    matched = match_service(text)
    if matched is not None:
        return matched
    if urgency is Urgency.CRITICAL:
        return ServiceType.EMERGENCY
    return ServiceType.AC_REPAIR


def infer_appliance(text: str) -> Appliance:
    if _AC_PATTERN.search(text):
        appliance_type = ApplianceType.AC
    elif _FRIDGE_PATTERN.search(text):
        appliance_type = ApplianceType.REFRIGERATOR
    else:
        appliance_type = ApplianceType.OTHER

    lowered = text.lower()
    brand = next((b.title() for b in BRANDS if b in lowered), None)
    return Appliance(type=appliance_type, brand=brand)

"""
Technician roster and round-robin assignment.

In production the roster would come from the scheduling system; here
each service area has a small fixed crew and areas without their own
crew are covered from the default area.
"""

import itertools
import logging
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_AREA = "thiruvalla"

TECHNICIANS: dict[str, list[str]] = {
    "thiruvalla": ["Ravi Kumar", "Suresh Nair"],
    "pathanamthitta": ["Anil Joseph", "Priya Menon"],
}


class TechnicianRoster:
    """Hands out technicians per area in rotation."""

    def __init__(self, technicians: Optional[dict[str, list[str]]] = None) -> None:
        self._technicians = technicians or TECHNICIANS
        self._rotations: dict[str, Iterator[str]] = {}

    def area_for(self, location: Optional[str]) -> str:
        lowered = (location or "").lower()
        for area in self._technicians:
            if area in lowered:
                return area
        return DEFAULT_AREA

    def next_technician(self, location: Optional[str]) -> str:
        area = self.area_for(location)
        if area not in self._rotations:
            crew = self._technicians.get(area) or self._technicians[DEFAULT_AREA]
            self._rotations[area] = itertools.cycle(crew)
        technician = next(self._rotations[area])
        logger.debug("Picked %s for area %s", technician, area)
        return technician

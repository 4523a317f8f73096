"""
Delivery Zone Resolver

Maps a free-text neighborhood typed by the customer to a configured
delivery zone. Matching runs on normalized text (lowercase, no accents,
single spaces) in three passes: exact name, containment either way, then
any word longer than three letters. Only active zones take part.

Usage:
    zones = await load_zones(gateway)
    quote = resolve("Jardim América", zones)
    if quote.served:
        fee = quote.fee

Version: 1.0.0
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from cafe_orders.schemas import DeliveryZone

logger = logging.getLogger(__name__)

UNSERVED_MESSAGE = "Sorry, we do not deliver to this neighborhood yet. Pickup is still available."

MIN_TOKEN_LENGTH = 4


@dataclass
class ZoneQuote:
    """
    Result of resolving a neighborhood.

    Attributes:
        served: Whether delivery is possible
        zone_name: Matched zone as configured in the sheet
        fee: Delivery fee (0 when unserved)
        eta_min_minutes: Lower bound of the delivery estimate
        eta_max_minutes: Upper bound of the delivery estimate
        message: Human readable outcome for unserved input
    """
    served: bool
    zone_name: Optional[str] = None
    fee: float = 0.0
    eta_min_minutes: Optional[int] = None
    eta_max_minutes: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def for_zone(cls, zone: DeliveryZone) -> "ZoneQuote":
        return cls(
            served=True,
            zone_name=zone.name,
            fee=zone.fee,
            eta_min_minutes=zone.eta_min_minutes,
            eta_max_minutes=zone.eta_max_minutes,
        )

    @classmethod
    def unserved(cls) -> "ZoneQuote":
        return cls(served=False, fee=0.0, message=UNSERVED_MESSAGE)

    @property
    def eta_label(self) -> str:
        if self.eta_min_minutes and self.eta_max_minutes:
            return f"{self.eta_min_minutes}-{self.eta_max_minutes} min"
        if self.eta_max_minutes or self.eta_min_minutes:
            return f"{self.eta_max_minutes or self.eta_min_minutes} min"
        return ""


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip diacritics, trim and collapse whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split())


def resolve(input_name: str, zones: Iterable[DeliveryZone]) -> ZoneQuote:
    """
    Resolve a typed neighborhood against the zone table.

    Args:
        input_name: Neighborhood as typed by the customer
        zones: Zone table (inactive rows are ignored)

    Returns:
        ZoneQuote: ``served=True`` with fee and ETA, or an unserved quote
    """
    query = normalize(input_name)
    if not query:
        return ZoneQuote.unserved()

    candidates = [
        (normalize(zone.name), zone)
        for zone in zones
        if zone.active and normalize(zone.name)
    ]

    for name, zone in candidates:
        if name == query:
            logger.debug(f"Zone exact match: {input_name!r} -> {zone.name!r}")
            return ZoneQuote.for_zone(zone)

    for name, zone in candidates:
        if name in query or query in name:
            logger.debug(f"Zone containment match: {input_name!r} -> {zone.name!r}")
            return ZoneQuote.for_zone(zone)

    tokens = [word for word in query.split(" ") if len(word) >= MIN_TOKEN_LENGTH]
    for name, zone in candidates:
        if any(token in name for token in tokens):
            logger.debug(f"Zone token match: {input_name!r} -> {zone.name!r}")
            return ZoneQuote.for_zone(zone)

    logger.info(f"Neighborhood not served: {input_name!r}")
    return ZoneQuote.unserved()


def parse_zones(raw: Any) -> list[DeliveryZone]:
    """Turn ``getBairros`` rows into zones, skipping rows that do not parse."""
    if not isinstance(raw, list):
        logger.warning(f"Unexpected zone table shape: {type(raw).__name__}")
        return []

    zones = []
    for row in raw:
        if not isinstance(row, dict):
            continue
        try:
            zone = DeliveryZone.model_validate(row)
        except PydanticValidationError as e:
            logger.warning(f"Skipping zone row: {e.error_count()} error(s)")
            continue
        if zone.name.strip():
            zones.append(zone)
    return zones


async def load_zones(gateway) -> list[DeliveryZone]:
    """Fetch the zone table for a checkout session."""
    return parse_zones(await gateway.get_zones())

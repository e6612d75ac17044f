"""
Where an event takes place: a physical location or an online link, never
both and never neither. Validity is enforced once, when a Venue is built.
"""

from dataclasses import dataclass
from typing import Optional, Union

from reservation_engine.core.errors import ValidationFailed


@dataclass(frozen=True)
class PhysicalVenue:
    location: str

    def __post_init__(self) -> None:
        if not self.location.strip():
            raise ValidationFailed.for_field("location", "Location cannot be empty")


@dataclass(frozen=True)
class VirtualVenue:
    online_link: str

    def __post_init__(self) -> None:
        if not self.online_link.strip():
            raise ValidationFailed.for_field("online_link", "Online link cannot be empty")


Venue = Union[PhysicalVenue, VirtualVenue]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def resolve_venue(location: Optional[str], online_link: Optional[str]) -> Venue:
    """Build a Venue from the two optional columns, treating blanks as absent."""
    location = _clean(location)
    online_link = _clean(online_link)

    if location and online_link:
        raise ValidationFailed(
            "An event cannot have both a location and an online link",
            details=[
                {"field": "location", "message": "Mutually exclusive with online_link"},
                {"field": "online_link", "message": "Mutually exclusive with location"},
            ],
        )
    if location:
        return PhysicalVenue(location)
    if online_link:
        return VirtualVenue(online_link)
    raise ValidationFailed(
        "An event must have either a location or an online link",
        details=[
            {"field": "location", "message": "Either location or online_link is required"},
            {"field": "online_link", "message": "Either location or online_link is required"},
        ],
    )

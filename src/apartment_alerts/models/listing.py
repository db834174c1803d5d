"""Listing, alert and notification data models used by the matching core."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair."""

    lat: float
    lng: float

    def as_param(self) -> str:
        """Format as a ``lat,lng`` query parameter."""
        return f"{self.lat},{self.lng}"


@dataclass
class Listing:
    """
    A previously scraped apartment listing.

    Listings are produced by the ingestion pipeline and are read-only here.
    ``bedrooms`` of None means unknown and 0 means studio. ``pet_friendly``
    is a tri-state: True allows pets, False disallows them, None means the
    listing does not say.
    """

    id: int
    external_id: str  # Source post ID, natural dedup key upstream
    price: int

    bedrooms: Optional[int] = None
    neighborhood: Optional[str] = None  # Neighborhood or borough label
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    pet_friendly: Optional[bool] = None

    # Display only
    title: Optional[str] = None
    url: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        """Listing location, or None if either coordinate is missing."""
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)

    def display_bedrooms(self) -> str:
        return bedroom_label(self.bedrooms)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Listing":
        """Build a listing from a snapshot row (e.g. one JSON object)."""
        return cls(
            id=int(data["id"]),
            external_id=str(data.get("external_id") or ""),
            price=int(data.get("price") or 0),
            bedrooms=_optional_int(data.get("bedrooms")),
            neighborhood=data.get("neighborhood") or None,
            latitude=_optional_float(data.get("latitude")),
            longitude=_optional_float(data.get("longitude")),
            pet_friendly=data.get("pet_friendly"),
            title=data.get("title"),
            url=data.get("listing_url") or data.get("url"),
        )

    def __repr__(self) -> str:
        return (
            f"Listing({self.id}, ${self.price:,}, {self.display_bedrooms()}, "
            f"{self.neighborhood or 'no location'})"
        )


@dataclass
class User:
    """Owner of one or more alerts."""

    id: int
    email: str
    is_active: bool = True


@dataclass
class Alert:
    """
    A user's saved apartment search.

    An empty ``neighborhoods`` list means no area restriction. Price bounds
    are inclusive and either may be absent. ``bedrooms`` of None accepts any
    count; an integer (including 0 for studio) must match exactly.
    ``max_commute_minutes`` and ``commute_destination`` are set together.
    """

    id: int
    user: User
    neighborhoods: List[str] = field(default_factory=list)
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    bedrooms: Optional[int] = None
    pet_friendly: Optional[bool] = None
    max_commute_minutes: Optional[int] = None
    commute_destination: Optional[Coordinates] = None

    # Set when the stored neighborhoods value could not be decoded
    malformed_neighborhoods: bool = False

    def has_commute_limit(self) -> bool:
        return self.max_commute_minutes is not None and self.commute_destination is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        """
        Build an alert from a snapshot row joined with its user.

        ``neighborhoods`` may be a list or JSON-encoded text. Commute
        destination is read from ``commute_destination_lat``/``_lng``.
        """
        user_data = data.get("user") or {}
        user = User(
            id=int(user_data.get("id", data.get("user_id", 0))),
            email=user_data.get("email", ""),
            is_active=bool(user_data.get("is_active", True)),
        )

        neighborhoods, malformed = parse_neighborhoods(data.get("neighborhoods"))

        destination = None
        lat = _optional_float(data.get("commute_destination_lat"))
        lng = _optional_float(data.get("commute_destination_lng"))
        if lat is not None and lng is not None:
            destination = Coordinates(lat, lng)

        return cls(
            id=int(data["id"]),
            user=user,
            neighborhoods=neighborhoods,
            min_price=_optional_int(data.get("min_price")),
            max_price=_optional_int(data.get("max_price")),
            bedrooms=_optional_int(data.get("bedrooms")),
            pet_friendly=data.get("pet_friendly"),
            max_commute_minutes=_optional_int(data.get("max_commute_minutes")),
            commute_destination=destination,
            malformed_neighborhoods=malformed,
        )


@dataclass
class Notification:
    """A ledger row for one (user, alert, listing) triple."""

    id: int
    user_id: int
    alert_id: int
    listing_id: int
    notification_type: str = "new_listing"
    email_status: str = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def parse_neighborhoods(value: Any) -> Tuple[List[str], bool]:
    """
    Decode an alert's area selection.

    Accepts a list or JSON-encoded text. Anything that does not decode to a
    list becomes an empty list (no area restriction).

    Returns:
        Tuple of (neighborhoods, malformed) where malformed is True when the
        value was present but could not be decoded
    """
    if value is None or value == "":
        return [], False

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning(f"Malformed neighborhoods encoding: {value!r}")
            return [], True

    if not isinstance(value, (list, tuple)):
        logger.warning(f"Neighborhoods value is not a list: {value!r}")
        return [], True

    return [item for item in value if isinstance(item, str) and item], False


def bedroom_label(count: Optional[int]) -> str:
    """Human-readable bedroom count, treating unknown as studio."""
    count = count or 0
    if count == 0:
        return "studio"
    return f"{count} bedroom{'s' if count != 1 else ''}"


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)

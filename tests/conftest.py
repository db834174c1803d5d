"""Shared fixtures for apartment-alerts tests."""

import pytest

from apartment_alerts.models.listing import Alert, Coordinates, Listing, User
from apartment_alerts.services.areas import AreaLookup
from apartment_alerts.services.ledger import NotificationLedger
from apartment_alerts.services.matching import MatchPredicate


class FakeEstimator:
    """Commute estimator returning canned minutes and recording calls."""

    def __init__(self, minutes=None):
        self.minutes = minutes
        self.calls = []

    def estimate(self, origin, destination):
        self.calls.append((origin, destination))
        return self.minutes


@pytest.fixture
def area_lookup():
    """The bundled NYC neighborhood table."""
    return AreaLookup.from_file()


@pytest.fixture
def user():
    return User(id=1, email="renter@example.com")


@pytest.fixture
def make_listing():
    """Factory for creating test listings."""

    def _make(listing_id: int = 2, **overrides) -> Listing:
        fields = dict(
            id=listing_id,
            external_id=f"cl-{listing_id}",
            price=2500,
            bedrooms=1,
            neighborhood="Williamsburg",
            latitude=40.7081,
            longitude=-73.9571,
            pet_friendly=False,
            title=f"Listing {listing_id}",
            url=f"https://newyork.craigslist.org/brk/apa/{listing_id}.html",
        )
        fields.update(overrides)
        return Listing(**fields)

    return _make


@pytest.fixture
def make_alert(user):
    """Factory for creating test alerts owned by the default user."""

    def _make(alert_id: int = 1, **overrides) -> Alert:
        fields = dict(
            id=alert_id,
            user=user,
            neighborhoods=["Williamsburg"],
            min_price=2000,
            max_price=3000,
            bedrooms=1,
            pet_friendly=None,
        )
        fields.update(overrides)
        return Alert(**fields)

    return _make


@pytest.fixture
def office():
    """Commute destination in Midtown."""
    return Coordinates(40.7549, -73.9840)


@pytest.fixture
def fake_estimator():
    return FakeEstimator()


@pytest.fixture
def predicate(area_lookup, fake_estimator):
    return MatchPredicate(area_lookup, fake_estimator)


@pytest.fixture
def ledger(tmp_path):
    """SQLite ledger in a temporary directory."""
    return NotificationLedger(str(tmp_path / "data" / "notifications.db"))

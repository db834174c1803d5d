"""Match predicate deciding whether a listing satisfies an alert."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..models.listing import Alert, Listing, bedroom_label
from .areas import AreaLookup
from .commute import CommuteEstimator

logger = logging.getLogger(__name__)

CHECK_NAMES = ("neighborhood", "price", "bedrooms", "pet_friendly", "commute")


@dataclass
class CheckResult:
    """Outcome of a single sub-check."""

    passed: bool
    reason: str


@dataclass
class MatchResult:
    """
    Outcome of evaluating one listing against one alert.

    ``reasons`` holds the failing reasons when there is no match, or every
    passing reason when there is one. ``checks`` always has all five entries.
    """

    is_match: bool
    reasons: List[str]
    checks: Dict[str, CheckResult] = field(default_factory=dict)
    invalid: bool = False


class MatchPredicate:
    """
    Evaluate a listing against an alert.

    Five independent checks are combined with AND:
    - neighborhood (with borough fallback)
    - price range (inclusive)
    - bedroom count (exact, unknown treated as studio)
    - pet policy (unspecified listings pass)
    - transit commute (estimator failures pass)

    Every check runs even after one fails so diagnostics are complete.
    """

    def __init__(
        self,
        area_lookup: Optional[AreaLookup] = None,
        commute_estimator: Optional[CommuteEstimator] = None,
    ):
        self.area_lookup = area_lookup or AreaLookup.from_file()
        self.commute_estimator = commute_estimator

    def evaluate(self, listing: Listing, alert: Alert) -> MatchResult:
        checks = {
            "neighborhood": self.check_neighborhood(listing, alert.neighborhoods),
            "price": self.check_price(listing, alert.min_price, alert.max_price),
            "bedrooms": self.check_bedrooms(listing, alert.bedrooms),
            "pet_friendly": self.check_pet_friendly(listing, alert.pet_friendly),
            "commute": self.check_commute(listing, alert),
        }

        failed = [check.reason for check in checks.values() if not check.passed]
        if failed:
            return MatchResult(is_match=False, reasons=failed, checks=checks)

        return MatchResult(
            is_match=True,
            reasons=[check.reason for check in checks.values()],
            checks=checks,
        )

    def check_neighborhood(self, listing: Listing, neighborhoods: List[str]) -> CheckResult:
        """
        Exact label, then borough membership, then explicit borough selection.

        Some sources only record the borough, so a "Brooklyn" listing matches
        an alert for Williamsburg as well as an alert for Brooklyn itself.
        """
        if not neighborhoods:
            return CheckResult(True, "No neighborhood restrictions")

        allowed = ", ".join(neighborhoods)

        if not listing.neighborhood:
            return CheckResult(
                False,
                f"Listing has no neighborhood data, but alert requires one of: {allowed}",
            )

        if listing.neighborhood in neighborhoods:
            return CheckResult(
                True, f"Neighborhood '{listing.neighborhood}' matches alert criteria"
            )

        if self.area_lookup.is_borough(listing.neighborhood):
            borough = listing.neighborhood
            for selected in neighborhoods:
                if self.area_lookup.borough_for(selected) == borough:
                    return CheckResult(
                        True,
                        f"Borough '{borough}' contains selected neighborhood '{selected}'",
                    )

        return CheckResult(
            False, f"Neighborhood '{listing.neighborhood}' not in allowed list: {allowed}"
        )

    def check_price(
        self, listing: Listing, min_price: Optional[int], max_price: Optional[int]
    ) -> CheckResult:
        if min_price is None and max_price is None:
            return CheckResult(True, "No price restrictions")

        if min_price is not None and listing.price < min_price:
            return CheckResult(False, f"Price ${listing.price} is below minimum ${min_price}")

        if max_price is not None and listing.price > max_price:
            return CheckResult(False, f"Price ${listing.price} is above maximum ${max_price}")

        reason = f"Price ${listing.price} is within range"
        if min_price is not None and max_price is not None:
            reason += f" (${min_price} - ${max_price})"
        elif min_price is not None:
            reason += f" (>= ${min_price})"
        else:
            reason += f" (<= ${max_price})"
        return CheckResult(True, reason)

    def check_bedrooms(self, listing: Listing, bedrooms: Optional[int]) -> CheckResult:
        if bedrooms is None:
            return CheckResult(True, "No bedroom restrictions")

        # Unknown bedroom count is treated as a studio
        listing_bedrooms = listing.bedrooms if listing.bedrooms is not None else 0

        if listing_bedrooms == bedrooms:
            return CheckResult(True, f"Bedroom count matches: {bedroom_label(bedrooms)}")

        return CheckResult(
            False,
            f"Bedroom count mismatch: listing has {bedroom_label(listing_bedrooms)}, "
            f"alert wants {bedroom_label(bedrooms)}",
        )

    def check_pet_friendly(self, listing: Listing, pet_friendly: Optional[bool]) -> CheckResult:
        """Only an explicit "no pets" listing fails a pets-required alert."""
        if not pet_friendly:
            return CheckResult(True, "No pet policy restrictions")

        if listing.pet_friendly is None:
            return CheckResult(True, "Listing does not mention pets; not excluded")

        if listing.pet_friendly:
            return CheckResult(True, "Pet policy matches: pet-friendly")

        return CheckResult(False, "Listing does not allow pets, alert requires pet-friendly")

    def check_commute(self, listing: Listing, alert: Alert) -> CheckResult:
        if not alert.has_commute_limit():
            return CheckResult(True, "No commute restrictions")

        origin = listing.coordinates
        if origin is None:
            return CheckResult(
                False, "Listing has no coordinates, cannot check commute time"
            )

        if self.commute_estimator is None:
            logger.debug(f"No commute estimator configured, skipping commute for alert {alert.id}")
            return CheckResult(True, "Commute time unavailable; not excluded")

        minutes = self.commute_estimator.estimate(origin, alert.commute_destination)
        if minutes is None:
            logger.info(
                f"Commute unavailable for listing {listing.id} vs alert {alert.id}, keeping listing"
            )
            return CheckResult(True, "Commute time unavailable; not excluded")

        if minutes <= alert.max_commute_minutes:
            return CheckResult(
                True,
                f"Commute {minutes} min is within {alert.max_commute_minutes} min limit",
            )

        return CheckResult(
            False,
            f"Commute {minutes} min exceeds {alert.max_commute_minutes} min limit",
        )


def validate_matching_data(listing: Listing, alert: Alert) -> Tuple[bool, List[str]]:
    """
    Check that a listing and alert are complete enough to match.

    Returns:
        Tuple of (valid, errors)
    """
    errors = []

    if not listing.price or listing.price <= 0:
        errors.append("Listing missing valid price")
    if not listing.external_id:
        errors.append("Listing missing external ID")
    if not alert.user or not alert.user.email:
        errors.append("Alert has no associated user email")

    return not errors, errors


def format_match_result(listing: Listing, alert: Alert, result: MatchResult) -> str:
    """Format a match result as a single log line."""
    status = "MATCH" if result.is_match else "NO MATCH"
    listing_info = (
        f"Listing {listing.id}: ${listing.price}, {listing.display_bedrooms()}, "
        f"{listing.neighborhood or 'no location'}"
    )
    alert_info = f"Alert {alert.id} ({alert.user.email})"
    return f"{status} - {listing_info} vs {alert_info} - {'; '.join(result.reasons)}"

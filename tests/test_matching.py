"""Tests for the match predicate."""

import pytest

from apartment_alerts.models.listing import User
from apartment_alerts.services.matching import (
    CHECK_NAMES,
    MatchPredicate,
    format_match_result,
    validate_matching_data,
)


class TestEvaluate:
    """End-to-end evaluation of one listing against one alert."""

    def test_all_criteria_match(self, predicate, make_listing, make_alert):
        result = predicate.evaluate(make_listing(), make_alert())

        assert result.is_match is True
        assert set(result.checks) == set(CHECK_NAMES)
        assert all(check.passed for check in result.checks.values())
        assert len(result.reasons) == 5

    def test_price_above_maximum_reports_other_checks(self, predicate, make_listing, make_alert):
        result = predicate.evaluate(make_listing(price=3500), make_alert())

        assert result.is_match is False
        assert result.reasons == ["Price $3500 is above maximum $3000"]
        assert result.checks["price"].passed is False
        for name in ("neighborhood", "bedrooms", "pet_friendly", "commute"):
            assert result.checks[name].passed is True

    @pytest.mark.parametrize(
        "listing_overrides, alert_overrides, failing",
        [
            ({"neighborhood": "Astoria"}, {}, "neighborhood"),
            ({"price": 1500}, {}, "price"),
            ({"bedrooms": 2}, {}, "bedrooms"),
            ({}, {"pet_friendly": True}, "pet_friendly"),
            ({"latitude": None}, {"max_commute_minutes": 30}, "commute"),
        ],
    )
    def test_single_failing_check_fails_match(
        self, predicate, make_listing, make_alert, office, listing_overrides, alert_overrides, failing
    ):
        if "max_commute_minutes" in alert_overrides:
            alert_overrides["commute_destination"] = office
        result = predicate.evaluate(
            make_listing(**listing_overrides), make_alert(**alert_overrides)
        )

        assert result.is_match is False
        assert [name for name, check in result.checks.items() if not check.passed] == [failing]
        assert len(result.reasons) == 1

    def test_multiple_failures_all_reported(self, predicate, make_listing, make_alert):
        result = predicate.evaluate(
            make_listing(price=5000, bedrooms=3, neighborhood="Astoria"), make_alert()
        )

        assert result.is_match is False
        assert len(result.reasons) == 3


class TestNeighborhoodCheck:
    """Tests for the area check and its borough fallback."""

    def test_no_restrictions(self, predicate, make_listing):
        assert predicate.check_neighborhood(make_listing(), []).passed is True

    def test_no_restrictions_with_missing_listing_area(self, predicate, make_listing):
        assert predicate.check_neighborhood(make_listing(neighborhood=None), []).passed is True

    def test_exact_match(self, predicate, make_listing):
        check = predicate.check_neighborhood(make_listing(), ["Bushwick", "Williamsburg"])
        assert check.passed is True

    def test_listing_without_area_fails(self, predicate, make_listing):
        check = predicate.check_neighborhood(make_listing(neighborhood=None), ["Williamsburg"])
        assert check.passed is False
        assert "no neighborhood data" in check.reason

    def test_borough_listing_matches_neighborhood_in_borough(self, predicate, make_listing):
        check = predicate.check_neighborhood(make_listing(neighborhood="Brooklyn"), ["Williamsburg"])
        assert check.passed is True
        assert "Williamsburg" in check.reason

    def test_borough_listing_matches_selected_borough(self, predicate, make_listing):
        check = predicate.check_neighborhood(make_listing(neighborhood="Brooklyn"), ["Brooklyn"])
        assert check.passed is True

    def test_borough_listing_rejected_for_other_borough(self, predicate, make_listing):
        check = predicate.check_neighborhood(make_listing(neighborhood="Queens"), ["Williamsburg"])
        assert check.passed is False

    def test_neighborhood_listing_does_not_match_borough_in_reverse(self, predicate, make_listing):
        # Only coarse listing labels fall back; a fine label must match exactly
        check = predicate.check_neighborhood(make_listing(neighborhood="Williamsburg"), ["Bushwick"])
        assert check.passed is False


class TestPriceCheck:
    def test_no_bounds(self, predicate, make_listing):
        assert predicate.check_price(make_listing(price=99999), None, None).passed is True

    def test_boundaries_inclusive(self, predicate, make_listing):
        assert predicate.check_price(make_listing(price=2000), 2000, 3000).passed is True
        assert predicate.check_price(make_listing(price=3000), 2000, 3000).passed is True

    def test_below_minimum(self, predicate, make_listing):
        check = predicate.check_price(make_listing(price=1999), 2000, 3000)
        assert check.passed is False
        assert "below minimum" in check.reason

    def test_only_minimum(self, predicate, make_listing):
        assert predicate.check_price(make_listing(price=9000), 2000, None).passed is True
        assert predicate.check_price(make_listing(price=1000), 2000, None).passed is False

    def test_only_maximum(self, predicate, make_listing):
        assert predicate.check_price(make_listing(price=100), None, 3000).passed is True
        assert predicate.check_price(make_listing(price=3001), None, 3000).passed is False


class TestBedroomCheck:
    @pytest.mark.parametrize("bedrooms", [None, 0, 1, 4])
    def test_any_bedrooms_when_unrestricted(self, predicate, make_listing, bedrooms):
        assert predicate.check_bedrooms(make_listing(bedrooms=bedrooms), None).passed is True

    def test_exact_match_required(self, predicate, make_listing):
        assert predicate.check_bedrooms(make_listing(bedrooms=2), 2).passed is True
        assert predicate.check_bedrooms(make_listing(bedrooms=3), 2).passed is False

    def test_unknown_bedrooms_treated_as_studio(self, predicate, make_listing):
        listing = make_listing(bedrooms=None)

        assert predicate.check_bedrooms(listing, 0).passed is True
        assert predicate.check_bedrooms(listing, 1).passed is False
        assert listing.bedrooms is None

    def test_mismatch_reason_uses_labels(self, predicate, make_listing):
        check = predicate.check_bedrooms(make_listing(bedrooms=0), 2)
        assert check.reason == "Bedroom count mismatch: listing has studio, alert wants 2 bedrooms"


class TestPetCheck:
    @pytest.mark.parametrize("listing_pets", [True, False, None])
    def test_indifferent_alert_matches_everything(self, predicate, make_listing, listing_pets):
        assert predicate.check_pet_friendly(make_listing(pet_friendly=listing_pets), None).passed is True

    def test_pets_required_listing_allows(self, predicate, make_listing):
        assert predicate.check_pet_friendly(make_listing(pet_friendly=True), True).passed is True

    def test_pets_required_listing_unspecified(self, predicate, make_listing):
        assert predicate.check_pet_friendly(make_listing(pet_friendly=None), True).passed is True

    def test_pets_required_listing_disallows(self, predicate, make_listing):
        assert predicate.check_pet_friendly(make_listing(pet_friendly=False), True).passed is False

    def test_alert_false_is_not_a_filter(self, predicate, make_listing):
        assert predicate.check_pet_friendly(make_listing(pet_friendly=True), False).passed is True


class TestCommuteCheck:
    def test_no_limit_skips_estimator(self, predicate, fake_estimator, make_listing, make_alert):
        check = predicate.check_commute(make_listing(), make_alert())

        assert check.passed is True
        assert fake_estimator.calls == []

    def test_limit_without_destination_passes(self, predicate, make_listing, make_alert):
        check = predicate.check_commute(make_listing(), make_alert(max_commute_minutes=30))
        assert check.passed is True

    def test_listing_without_coordinates_fails(
        self, predicate, fake_estimator, make_listing, make_alert, office
    ):
        alert = make_alert(max_commute_minutes=30, commute_destination=office)
        check = predicate.check_commute(make_listing(longitude=None), alert)

        assert check.passed is False
        assert fake_estimator.calls == []

    def test_within_limit(self, predicate, fake_estimator, make_listing, make_alert, office):
        fake_estimator.minutes = 30
        alert = make_alert(max_commute_minutes=30, commute_destination=office)

        check = predicate.check_commute(make_listing(), alert)

        assert check.passed is True
        assert len(fake_estimator.calls) == 1
        origin, destination = fake_estimator.calls[0]
        assert (origin.lat, origin.lng) == (40.7081, -73.9571)
        assert destination == office

    def test_over_limit(self, predicate, fake_estimator, make_listing, make_alert, office):
        fake_estimator.minutes = 45
        alert = make_alert(max_commute_minutes=30, commute_destination=office)

        check = predicate.check_commute(make_listing(), alert)

        assert check.passed is False
        assert "45 min exceeds 30 min" in check.reason

    def test_unavailable_estimate_passes(self, predicate, fake_estimator, make_listing, make_alert, office):
        fake_estimator.minutes = None
        alert = make_alert(max_commute_minutes=30, commute_destination=office)

        assert predicate.check_commute(make_listing(), alert).passed is True

    def test_no_estimator_passes(self, area_lookup, make_listing, make_alert, office):
        predicate = MatchPredicate(area_lookup, None)
        alert = make_alert(max_commute_minutes=10, commute_destination=office)

        assert predicate.check_commute(make_listing(), alert).passed is True


class TestValidateMatchingData:
    def test_valid(self, make_listing, make_alert):
        assert validate_matching_data(make_listing(), make_alert()) == (True, [])

    def test_invalid_price_and_external_id(self, make_listing, make_alert):
        valid, errors = validate_matching_data(make_listing(price=0, external_id=""), make_alert())

        assert valid is False
        assert "Listing missing valid price" in errors
        assert "Listing missing external ID" in errors

    def test_negative_price(self, make_listing, make_alert):
        valid, _ = validate_matching_data(make_listing(price=-100), make_alert())
        assert valid is False

    def test_missing_user_email(self, make_listing, make_alert):
        alert = make_alert(user=User(id=7, email=""))
        valid, errors = validate_matching_data(make_listing(), alert)

        assert valid is False
        assert errors == ["Alert has no associated user email"]

    def test_empty_neighborhoods_are_valid(self, make_listing, make_alert):
        valid, _ = validate_matching_data(make_listing(), make_alert(neighborhoods=[]))
        assert valid is True


class TestFormatMatchResult:
    def test_match_line(self, predicate, make_listing, make_alert):
        listing, alert = make_listing(), make_alert()
        line = format_match_result(listing, alert, predicate.evaluate(listing, alert))

        assert line.startswith("MATCH - Listing 2: $2500, 1 bedroom, Williamsburg")
        assert "Alert 1 (renter@example.com)" in line

    def test_no_match_line(self, predicate, make_listing, make_alert):
        listing, alert = make_listing(neighborhood=None, bedrooms=None), make_alert()
        line = format_match_result(listing, alert, predicate.evaluate(listing, alert))

        assert line.startswith("NO MATCH - Listing 2: $2500, studio, no location")

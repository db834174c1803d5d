"""Batch matching of listings against alerts."""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from ..models.listing import Alert, Listing
from .matching import MatchPredicate, MatchResult, format_match_result, validate_matching_data

logger = logging.getLogger(__name__)


@dataclass
class MatchedPair:
    listing: Listing
    alert: Alert
    result: MatchResult


@dataclass
class BatchRunStats:
    """Counters from the most recent batch run."""

    evaluated: int = 0
    matched: int = 0
    skipped_capped: int = 0
    skipped_invalid: int = 0
    malformed_area_encodings: int = 0
    cancelled: bool = False
    invalid_reasons: Counter = field(default_factory=Counter)


class BatchMatcher:
    """
    Evaluate every listing against every alert.

    Listings are the outer loop and alerts the inner one. Once an alert has
    reached ``max_per_alert`` matches its remaining pairs are skipped
    without evaluation, so callers needing a deterministic capped result
    should sort their inputs first.

    With ``max_workers`` above 1 the alerts for each listing are evaluated
    in a thread pool (commute lookups are network-bound). Results are
    applied in input order, so the output is the same as a sequential run.
    """

    def __init__(self, predicate: MatchPredicate, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.predicate = predicate
        self.max_workers = max_workers
        self.last_run = BatchRunStats()

    def match(
        self,
        listings: Sequence[Listing],
        alerts: Sequence[Alert],
        max_per_alert: Optional[int] = None,
        include_non_matches: bool = False,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[MatchedPair]:
        """
        Match listings against alerts.

        Args:
            listings: Listing snapshot
            alerts: Alert snapshot (joined with users)
            max_per_alert: Stop evaluating an alert after this many matches
            include_non_matches: Also return pairs that did not match
            should_stop: Checked between pairs; return True to end the run early

        Returns:
            Matched pairs, plus non-matches when requested
        """
        stats = BatchRunStats()
        stats.malformed_area_encodings = sum(1 for a in alerts if a.malformed_neighborhoods)
        if stats.malformed_area_encodings:
            logger.warning(
                f"{stats.malformed_area_encodings} alert(s) have malformed neighborhoods; "
                f"treating them as unrestricted"
            )
        self.last_run = stats

        pairs: List[MatchedPair] = []
        counts: Dict[int, int] = {}

        executor = ThreadPoolExecutor(max_workers=self.max_workers) if self.max_workers > 1 else None
        try:
            for listing in listings:
                if should_stop and should_stop():
                    stats.cancelled = True
                    break

                candidates = []
                for alert in alerts:
                    if max_per_alert is not None and counts.get(alert.id, 0) >= max_per_alert:
                        stats.skipped_capped += 1
                        continue

                    valid, errors = validate_matching_data(listing, alert)
                    if not valid:
                        stats.skipped_invalid += 1
                        stats.invalid_reasons.update(errors)
                        logger.warning(
                            f"Skipping listing {listing.id} vs alert {alert.id}: {'; '.join(errors)}"
                        )
                        if include_non_matches:
                            pairs.append(
                                MatchedPair(
                                    listing, alert, MatchResult(False, errors, invalid=True)
                                )
                            )
                        continue

                    candidates.append(alert)

                results = []
                for alert in candidates:
                    if should_stop and should_stop():
                        stats.cancelled = True
                        break
                    if executor is not None:
                        results.append(executor.submit(self.predicate.evaluate, listing, alert))
                    else:
                        results.append(self.predicate.evaluate(listing, alert))

                if executor is not None:
                    results = [future.result() for future in results]

                for alert, result in zip(candidates, results):
                    stats.evaluated += 1
                    logger.debug(format_match_result(listing, alert, result))

                    if result.is_match:
                        stats.matched += 1
                        counts[alert.id] = counts.get(alert.id, 0) + 1
                        pairs.append(MatchedPair(listing, alert, result))
                    elif include_non_matches:
                        pairs.append(MatchedPair(listing, alert, result))

                if stats.cancelled:
                    break
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        logger.info(
            f"Matched {len(listings)} listings against {len(alerts)} alerts: "
            f"{stats.matched} matches from {stats.evaluated} pairs evaluated "
            f"({stats.skipped_capped} capped, {stats.skipped_invalid} invalid)"
            + (" - cancelled" if stats.cancelled else "")
        )
        return pairs


def get_match_statistics(pairs: Sequence[MatchedPair]) -> Dict[str, object]:
    """
    Aggregate statistics for diagnostics and monitoring.

    Returns:
        Dict with total_listings, total_alerts, match_count, match_rate and
        reason_counts (reason -> occurrences)
    """
    match_count = sum(1 for pair in pairs if pair.result.is_match)
    reason_counts: Counter = Counter()
    for pair in pairs:
        reason_counts.update(pair.result.reasons)

    return {
        "total_listings": len({pair.listing.id for pair in pairs}),
        "total_alerts": len({pair.alert.id for pair in pairs}),
        "match_count": match_count,
        "match_rate": match_count / len(pairs) if pairs else 0.0,
        "reason_counts": dict(reason_counts),
    }

"""Matching job and command line entry point."""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import default_config, load_config
from .models.listing import Alert, Listing, Notification
from .services.areas import AreaLookup
from .services.batch import BatchMatcher, get_match_statistics
from .services.commute import CommuteEstimator, TTLCommuteCache
from .services.ledger import NotificationLedger, create_ledger
from .services.matching import MatchPredicate
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class PendingNotification:
    """A newly recorded match waiting for delivery."""

    listing: Listing
    alert: Alert
    notification: Notification


class AlertMatchingJob:
    """
    Match a listing snapshot against an alert snapshot and record new matches.

    Coordinates: batch matching -> notification ledger -> pending records
    for the external notifier, which reports back via ledger.update_status().
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        ledger: Optional[NotificationLedger] = None,
        predicate: Optional[MatchPredicate] = None,
    ):
        self.config = config or default_config()
        self.ledger = ledger or create_ledger(self.config["ledger"].get("db_path"))

        if predicate is None:
            area_lookup = AreaLookup.from_file(self.config["areas"].get("path"))
            predicate = MatchPredicate(area_lookup, self._build_estimator())
        self.predicate = predicate

        self.matcher = BatchMatcher(
            self.predicate, max_workers=self.config["matching"].get("max_workers", 1)
        )
        self.last_statistics: Dict[str, Any] = {}

    def _build_estimator(self) -> Optional[CommuteEstimator]:
        commute = self.config["commute"]
        if not commute.get("enabled", True):
            logger.info("Commute filtering disabled by configuration")
            return None
        cache = TTLCommuteCache(ttl=timedelta(hours=commute.get("cache_ttl_hours", 24)))
        return CommuteEstimator(cache=cache, timeout=commute.get("timeout_seconds"))

    def run(
        self,
        listings: Sequence[Listing],
        alerts: Sequence[Alert],
        max_per_alert: Optional[int] = None,
        include_non_matches: Optional[bool] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[PendingNotification]:
        """
        Execute one matching run.

        Args:
            listings: Listing snapshot
            alerts: Alert snapshot; alerts of inactive users are ignored
            max_per_alert: Overrides matching.max_matches_per_alert
            include_non_matches: Overrides matching.include_non_matches
            should_stop: Checked between pairs; return True to stop early

        Returns:
            Notifications recorded by this run, in pending status
        """
        matching = self.config["matching"]
        if max_per_alert is None:
            max_per_alert = matching.get("max_matches_per_alert")
        if include_non_matches is None:
            include_non_matches = matching.get("include_non_matches", False)

        active_alerts = [alert for alert in alerts if alert.user.is_active]
        if len(active_alerts) < len(alerts):
            logger.info(f"Ignoring {len(alerts) - len(active_alerts)} alerts of inactive users")

        logger.info(f"Starting matching run: {len(listings)} listings, {len(active_alerts)} alerts")

        pairs = self.matcher.match(
            listings,
            active_alerts,
            max_per_alert=max_per_alert,
            include_non_matches=include_non_matches,
            should_stop=should_stop,
        )
        self.last_statistics = get_match_statistics(pairs)

        pending = []
        duplicates = 0
        for pair in pairs:
            if not pair.result.is_match:
                continue
            if should_stop and should_stop():
                logger.info("Matching run cancelled before all matches were recorded")
                break

            notification, already_present = self.ledger.record_if_absent(
                pair.alert.user.id, pair.alert.id, pair.listing.id
            )
            if already_present:
                duplicates += 1
                continue
            pending.append(PendingNotification(pair.listing, pair.alert, notification))

        logger.info(
            f"Matching run complete: {self.last_statistics['match_count']} matches, "
            f"{len(pending)} new notifications, {duplicates} already notified"
        )
        return pending

    def cleanup(self) -> int:
        """Apply the configured ledger retention."""
        return self.ledger.retention_sweep(self.config["ledger"].get("retention_days"))


def load_snapshot(path: str, factory: Callable[[Dict[str, Any]], Any]) -> List[Any]:
    """Load a JSON array of objects and convert each with ``factory``."""
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array in {path}")
    return [factory(item) for item in data]


def _print_statistics(stats: Dict[str, Any]) -> None:
    print(
        f"\nMatches: {stats['match_count']}  listings: {stats['total_listings']}  "
        f"alerts: {stats['total_alerts']}  rate: {stats['match_rate']:.1%}"
    )
    for reason, count in sorted(stats["reason_counts"].items(), key=lambda x: -x[1])[:10]:
        print(f"  {count:5d}  {reason}")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Apartment Alerts - match listings against saved searches"
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Path to configuration file (defaults are used when omitted)",
    )
    parser.add_argument("--listings", help="JSON file with the listing snapshot")
    parser.add_argument("--alerts", help="JSON file with the alert snapshot (joined with users)")
    parser.add_argument(
        "--max-per-alert",
        type=int,
        help="Stop matching an alert after this many listings",
    )
    parser.add_argument(
        "--include-non-matches",
        action="store_true",
        help="Show reason statistics for non-matching pairs too",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show notification ledger statistics and exit",
    )
    parser.add_argument(
        "--cleanup",
        type=int,
        metavar="DAYS",
        help="Delete ledger rows older than DAYS and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else None)

    try:
        config = load_config(args.config) if args.config else default_config()

        if args.stats:
            ledger = create_ledger(config["ledger"].get("db_path"))
            stats = ledger.get_stats()
            print("\n=== Notification Ledger Statistics ===")
            print(f"Total notifications: {stats['total_notifications']}")
            print(f"Users notified: {stats['users_notified']}")
            print(f"Delivery success rate: {stats['success_rate']:.1%}")
            print("\nBy status:")
            for status, count in stats["by_status"].items():
                print(f"  {status}: {count}")
            return

        if args.cleanup is not None:
            ledger = create_ledger(config["ledger"].get("db_path"))
            removed = ledger.retention_sweep(args.cleanup)
            print(f"Removed {removed} notifications older than {args.cleanup} days")
            return

        if not args.listings or not args.alerts:
            parser.error("--listings and --alerts are required for a matching run")

        listings = load_snapshot(args.listings, Listing.from_dict)
        alerts = load_snapshot(args.alerts, Alert.from_dict)

        job = AlertMatchingJob(config)
        pending = job.run(
            listings,
            alerts,
            max_per_alert=args.max_per_alert,
            include_non_matches=True if args.include_non_matches else None,
        )
        if args.include_non_matches:
            _print_statistics(job.last_statistics)

        print("\n=== Apartment Alerts Results ===")
        print(f"New notifications: {len(pending)}")
        for item in pending[:20]:
            print(f"  - {item.alert.user.email}: {item.listing!r} (alert {item.alert.id})")

    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

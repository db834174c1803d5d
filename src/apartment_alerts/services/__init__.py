from .areas import AreaLookup
from .batch import BatchMatcher, MatchedPair, get_match_statistics
from .commute import CommuteCache, CommuteEstimator, NullCommuteCache, TTLCommuteCache
from .ledger import NotificationLedger, PostgresNotificationLedger, create_ledger
from .matching import CheckResult, MatchPredicate, MatchResult

__all__ = [
    "AreaLookup",
    "BatchMatcher",
    "MatchedPair",
    "get_match_statistics",
    "CommuteCache",
    "CommuteEstimator",
    "NullCommuteCache",
    "TTLCommuteCache",
    "NotificationLedger",
    "PostgresNotificationLedger",
    "create_ledger",
    "CheckResult",
    "MatchPredicate",
    "MatchResult",
]

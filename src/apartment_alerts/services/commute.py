"""Transit commute estimates using the Google Distance Matrix API."""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

import requests

from ..config import get_env
from ..models.listing import Coordinates
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)


class CommuteCache:
    """Interface for commute-time caches keyed by coordinate pair."""

    def get(self, key: str) -> Tuple[Optional[int], bool]:
        """Return (minutes, found)."""
        raise NotImplementedError

    def set(self, key: str, minutes: int) -> None:
        raise NotImplementedError


class NullCommuteCache(CommuteCache):
    """Cache that never stores anything. Every lookup goes to the API."""

    def get(self, key: str) -> Tuple[Optional[int], bool]:
        return None, False

    def set(self, key: str, minutes: int) -> None:
        pass


class TTLCommuteCache(CommuteCache):
    """
    In-memory commute cache with a fixed time-to-live.

    Safe to share between threads. Expired entries are dropped when read.
    """

    DEFAULT_TTL = timedelta(hours=24)

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = ttl or self.DEFAULT_TTL
        self._clock = clock
        self._entries: Dict[str, Tuple[int, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Tuple[Optional[int], bool]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False

            minutes, stored_at = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None, False

            return minutes, True

    def set(self, key: str, minutes: int) -> None:
        with self._lock:
            self._entries[key] = (minutes, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(origin: Coordinates, destination: Coordinates) -> str:
    """Literal ``lat,lng|lat,lng`` key, no rounding."""
    return f"{origin.lat},{origin.lng}|{destination.lat},{destination.lng}"


class CommuteEstimator:
    """
    Estimate transit commute time between two points.

    Features:
    - Transit mode via Google Distance Matrix
    - Successful results cached (24 hours by default)
    - Failures return None and are never cached, so a later call can retry
    """

    BASE_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
    TIMEOUT = 10

    def __init__(
        self,
        cache: Optional[CommuteCache] = None,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.cache = cache if cache is not None else TTLCommuteCache()
        self.api_key = api_key if api_key is not None else get_env("GOOGLE_MAPS_API_KEY")
        self.session = session or requests.Session()
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout or self.TIMEOUT

        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not set - commute estimates will be unavailable")

    def estimate(self, origin: Coordinates, destination: Coordinates) -> Optional[int]:
        """
        Get transit minutes from origin to destination.

        Args:
            origin: Apartment location
            destination: Commute destination

        Returns:
            Commute time in whole minutes, or None if unavailable
        """
        key = cache_key(origin, destination)

        minutes, found = self.cache.get(key)
        if found:
            logger.debug(f"Using cached commute time for {key}: {minutes} minutes")
            return minutes

        minutes = self._fetch_minutes(origin, destination)
        if minutes is not None:
            self.cache.set(key, minutes)
        return minutes

    def _fetch_minutes(self, origin: Coordinates, destination: Coordinates) -> Optional[int]:
        """Issue a single Distance Matrix request."""
        if not self.api_key:
            return None

        logger.debug(f"Calculating commute: {origin.as_param()} -> {destination.as_param()}")

        try:
            response = self.session.get(
                self.base_url,
                params={
                    "origins": origin.as_param(),
                    "destinations": destination.as_param(),
                    "mode": "transit",
                    "units": "metric",
                    "key": self.api_key,
                },
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Distance Matrix request failed: {e}")
            return None

        if data.get("status") != "OK":
            logger.warning(f"Distance Matrix returned status: {data.get('status')}")
            return None

        rows = data.get("rows") or [{}]
        elements = rows[0].get("elements") or []
        if not elements:
            logger.warning("No route data in Distance Matrix response")
            return None

        element = elements[0]
        if element.get("status") != "OK":
            logger.info(f"No transit route: {element.get('status')}")
            return None

        seconds = (element.get("duration") or {}).get("value")
        if seconds is None:
            logger.warning("No duration in Distance Matrix response")
            return None

        minutes = round(seconds / 60)
        logger.debug(f"Commute time: {minutes} minutes")
        return minutes

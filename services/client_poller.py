"""
Client Region Poller.

Keeps a client-held view of the user's effective region set fresh without
re-authentication. Polls GET /regions/current on a fixed interval,
compares the returned region names with the cached set and notifies
listeners when they differ.

Transport and decode failures never reach the user: they are logged and
the last known state is kept. Staleness is bounded by one interval.

Exports:
    RegionAccessPoller: Background poller bound to one user session
"""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

import httpx

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "RegionAccessPoller")

RegionListener = Callable[[List[Dict[str, Any]]], None]


class RegionAccessPoller:
    """
    Background poller for one user session.

    Usage:
        with RegionAccessPoller("http://access:8000", "u-42") as poller:
            poller.add_listener(lambda regions: redraw(regions))
            ...

    Args:
        base_url: Access service base URL
        user_id: User whose regions are polled (sent as X-User-Id)
        interval_seconds: Seconds between checks
        initial_delay_seconds: Delay before the first background check
        timeout: HTTP timeout per check
        initial_regions: Region names known at login, if any
        headers: Extra request headers (e.g. forwarded auth)
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(self, base_url: str, user_id: str, interval_seconds: float = 30,
                 initial_delay_seconds: float = 5, timeout: float = 10.0,
                 initial_regions: Optional[Iterable[str]] = None,
                 headers: Optional[Dict[str, str]] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self._interval = interval_seconds
        self._initial_delay = initial_delay_seconds
        self._timeout = timeout
        self._headers = {"X-User-Id": user_id, **(headers or {})}
        self._transport = transport

        self._known_names: Optional[FrozenSet[str]] = (
            frozenset(initial_regions) if initial_regions is not None else None
        )
        self._regions: List[Dict[str, Any]] = []
        self._listeners: List[RegionListener] = []

        self._check_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._client: Optional[httpx.Client] = None

        self._check_count = 0
        self._change_count = 0
        self._error_count = 0
        self._last_check: Optional[datetime] = None
        self._last_error: Optional[str] = None

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def regions(self) -> List[Dict[str, Any]]:
        """Last known region list as returned by the service."""
        with self._state_lock:
            return list(self._regions)

    @property
    def region_names(self) -> FrozenSet[str]:
        with self._state_lock:
            return self._known_names or frozenset()

    def add_listener(self, listener: RegionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RegionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ========================================================================
    # POLLING
    # ========================================================================

    def check_now(self) -> bool:
        """
        Run one check.

        Returns:
            True when the region set changed. False when unchanged, when the
            check failed, or when another check was already in flight.
        """
        if not self._check_lock.acquire(blocking=False):
            logger.debug("[POLLER] Check already in progress - skipping")
            return False
        try:
            return self._check()
        finally:
            self._check_lock.release()

    def _check(self) -> bool:
        self._check_count += 1
        self._last_check = datetime.now(timezone.utc)

        try:
            response = self._get_client().get(
                f"{self.base_url}/regions/current",
                params={"userId": self.user_id},
            )
            response.raise_for_status()
            regions = response.json().get("regions")
            if not isinstance(regions, list):
                raise ValueError("response has no regions list")
            names = frozenset(str(r.get("name")) for r in regions if isinstance(r, dict))
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            self._error_count += 1
            self._last_error = str(e)
            logger.debug(f"[POLLER] Region check failed for {self.user_id}: {e}")
            return False

        with self._state_lock:
            changed = names != self._known_names
            if changed:
                self._known_names = names
                self._regions = regions
            elif not self._regions:
                self._regions = regions

        if changed:
            self._change_count += 1
            logger.info(f"[POLLER] Region access changed for {self.user_id}: {sorted(names)}")
            self._notify(regions)
        return changed

    def _notify(self, regions: List[Dict[str, Any]]) -> None:
        for listener in list(self._listeners):
            try:
                listener(list(regions))
            except Exception as e:
                logger.warning(f"[POLLER] Region listener failed: {e}")

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def _run_loop(self):
        logger.info(
            f"[POLLER] Starting for {self.user_id} "
            f"(delay: {self._initial_delay}s, interval: {self._interval}s)"
        )
        if self._stop_event.wait(timeout=self._initial_delay):
            return
        while not self._stop_event.is_set():
            self.check_now()
            if self._stop_event.wait(timeout=self._interval):
                break
        logger.info(f"[POLLER] Stopped for {self.user_id}")

    def start(self) -> None:
        """Start background polling."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True,
                                        name=f"region-poller-{self.user_id}")
        self._thread.start()

    def stop(self) -> None:
        """Stop polling and release the HTTP client."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._timeout + 1)
            self._thread = None
        with self._check_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> "RegionAccessPoller":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._thread is not None and self._thread.is_alive(),
            "user_id": self.user_id,
            "interval_seconds": self._interval,
            "check_count": self._check_count,
            "change_count": self._change_count,
            "error_count": self._error_count,
            "last_check": self._last_check.isoformat() if self._last_check else None,
            "last_error": self._last_error,
            "region_count": len(self.region_names),
        }

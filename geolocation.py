"""
Delivery location acquisition

Layered strategy over a platform position source (browser-style
getCurrentPosition / watchPosition):

1. Quick low-accuracy fix (5s, cached up to 60s) for immediate feedback,
   followed by a background high-accuracy refinement
2. On quick failure: high-accuracy attempt (15s, no cache)
3. On high-accuracy failure: standard attempt (20s, cached up to 30s)
4. Optional watch mode that keeps refining while the picker is open

Only one fix is held at a time. A later reading replaces it only when its
accuracy radius is strictly smaller. PermissionDenied stops the automatic
chain; the user has to act before locate() is called again.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from config import Config

logger = logging.getLogger(__name__)


class GeolocationError(Exception):
    """Base class for position acquisition failures"""
    code = 0
    message = "Could not determine your location"
    remediation = "Please try again."
    retryable = True

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)
        self.detail = detail


class PermissionDenied(GeolocationError):
    code = 1
    message = "Location access was denied"
    remediation = "Allow location access in your browser settings, or pick your location on the map."
    retryable = False


class PositionUnavailable(GeolocationError):
    code = 2
    message = "Current position is unavailable"
    remediation = "Make sure location services are on and the signal is good."


class Timeout(GeolocationError):
    code = 3
    message = "Locating timed out"
    remediation = "Try again, or move somewhere open."


class UnknownGeolocationError(GeolocationError):
    pass


_ERRORS_BY_CODE = {cls.code: cls for cls in (PermissionDenied, PositionUnavailable, Timeout)}


def error_from_code(code: int, detail: Optional[str] = None) -> GeolocationError:
    """Map a platform error code (1, 2, 3) to its error kind"""
    return _ERRORS_BY_CODE.get(code, UnknownGeolocationError)(detail)


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool
    timeout: float  # seconds
    maximum_age: float  # seconds a cached fix may be old


QUICK = PositionOptions(enable_high_accuracy=False, timeout=5, maximum_age=60)
HIGH_ACCURACY = PositionOptions(enable_high_accuracy=True, timeout=15, maximum_age=0)
STANDARD = PositionOptions(enable_high_accuracy=False, timeout=20, maximum_age=30)
REFINE = PositionOptions(enable_high_accuracy=True, timeout=20, maximum_age=0)
WATCH = PositionOptions(enable_high_accuracy=True, timeout=10, maximum_age=5)


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # meters


@dataclass(frozen=True)
class DeliveryLocation:
    lat: float
    lng: float
    address: str
    accuracy: Optional[float] = None

    def as_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "address": self.address}


PositionCallback = Callable[[Position], None]
ErrorCallback = Callable[[GeolocationError], None]


class PositionSource(Protocol):
    """Platform location capability; callbacks may fire from any thread"""

    def get_current_position(self, on_success: PositionCallback, on_error: ErrorCallback,
                             options: PositionOptions) -> None: ...

    def watch_position(self, on_success: PositionCallback, on_error: ErrorCallback,
                       options: PositionOptions) -> Any: ...

    def clear_watch(self, watch_id: Any) -> None: ...


class AcquisitionState(str, Enum):
    IDLE = "idle"
    QUICK = "quick-attempt"
    HIGH_ACCURACY = "high-accuracy-attempt"
    STANDARD = "standard-accuracy-attempt"
    LOCATED = "located"
    FAILED = "failed"


class Notice(str, Enum):
    QUICK_FIX = "quick_fix"  # fast, low confidence, refinement pending
    REFINED_FIX = "refined_fix"
    FINAL_FIX = "final_fix"
    MANUAL_FIX = "manual_fix"
    CONFIRMED = "confirmed"


def is_more_accurate(candidate: Optional[float], held: Optional[float],
                     min_improvement: float = 0.0) -> bool:
    """True when a reading with radius `candidate` should replace the held one"""
    if held is None:
        return True
    if candidate is None:
        return False
    return held - candidate > min_improvement


def _schedule_with_timer(delay: float, fn: Callable[[], None]) -> None:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()


class LocationAcquirer:
    """Holds the current delivery location of one picker session"""

    def __init__(
        self,
        source: PositionSource,
        resolver: Callable[[float, float], str],
        on_notice: Optional[Callable[[Notice, DeliveryLocation], None]] = None,
        on_error: Optional[ErrorCallback] = None,
        schedule: Callable[[float, Callable[[], None]], None] = _schedule_with_timer,
        refine_delay: float = 1.0,
        watch_delay: float = 3.0,
        min_improvement: float = Config.MIN_ACCURACY_IMPROVEMENT,
    ):
        self.source = source
        self.resolver = resolver
        self.on_notice = on_notice
        self.on_error = on_error
        self.schedule = schedule
        self.refine_delay = refine_delay
        self.watch_delay = watch_delay
        self.min_improvement = min_improvement

        self.state = AcquisitionState.IDLE
        self.location: Optional[DeliveryLocation] = None
        self.accuracy: Optional[float] = None
        self.error: Optional[GeolocationError] = None
        self._manual = False
        self._auto_attempted = False
        self._watch_id = None
        self._lock = threading.RLock()

    @property
    def watching(self) -> bool:
        return self._watch_id is not None

    # Automatic acquisition

    def auto_detect(self) -> None:
        """Locate once when the picker opens, then start watching"""
        if self._auto_attempted:
            return
        self._auto_attempted = True
        self.locate()
        self.schedule(self.watch_delay, self.start_watching)

    def locate(self) -> None:
        """Start (or restart, on user request) the layered acquisition"""
        with self._lock:
            self.state = AcquisitionState.QUICK
            self.error = None
            self._manual = False
        self.source.get_current_position(self._on_quick_fix, self._on_quick_error, QUICK)

    def _on_quick_fix(self, position: Position) -> None:
        self._accept(position, Notice.QUICK_FIX)
        if self._manual:
            return
        self.schedule(self.refine_delay, self._refine_in_background)

    def _on_quick_error(self, error: GeolocationError) -> None:
        if self._manual:
            return
        if isinstance(error, PermissionDenied):
            self._fail(error)
            return
        logger.info(f"Quick location failed ({error}), trying high accuracy")
        self.state = AcquisitionState.HIGH_ACCURACY
        self.source.get_current_position(self._on_final_fix, self._on_high_accuracy_error, HIGH_ACCURACY)

    def _on_high_accuracy_error(self, error: GeolocationError) -> None:
        if self._manual:
            return
        if isinstance(error, PermissionDenied):
            self._fail(error)
            return
        logger.info(f"High accuracy location failed ({error}), trying standard accuracy")
        self.state = AcquisitionState.STANDARD
        self.source.get_current_position(self._on_final_fix, self._fail, STANDARD)

    def _on_final_fix(self, position: Position) -> None:
        self._accept(position, Notice.FINAL_FIX)

    def _refine_in_background(self) -> None:
        self.source.get_current_position(self._on_refined_fix, self._on_refine_error, REFINE)

    def _on_refined_fix(self, position: Position) -> None:
        with self._lock:
            if self._manual or not is_more_accurate(position.accuracy, self.accuracy):
                logger.debug(f"Ignoring refinement with accuracy {position.accuracy}")
                return
        self._accept(position, Notice.REFINED_FIX, min_improvement=0.0)

    def _on_refine_error(self, error: GeolocationError) -> None:
        logger.info(f"Background high accuracy failed: {error}")

    # Watch mode

    def start_watching(self) -> None:
        with self._lock:
            if self._watch_id is not None or self._manual:
                return
            self._watch_id = self.source.watch_position(self._on_watch_fix, self._on_watch_error, WATCH)
        logger.debug(f"Watching position ({self._watch_id})")

    def stop_watching(self) -> None:
        with self._lock:
            if self._watch_id is None:
                return
            watch_id, self._watch_id = self._watch_id, None
        self.source.clear_watch(watch_id)
        logger.debug(f"Stopped watching position ({watch_id})")

    def _on_watch_fix(self, position: Position) -> None:
        with self._lock:
            if self._watch_id is None or self._manual:
                return
            if not is_more_accurate(position.accuracy, self.accuracy, self.min_improvement):
                return
        self._accept(position, Notice.REFINED_FIX, min_improvement=self.min_improvement)

    def _on_watch_error(self, error: GeolocationError) -> None:
        logger.info(f"Watch position error: {error}")

    # Manual selection and teardown

    def select_manually(self, lat: float, lng: float) -> DeliveryLocation:
        """Map click or marker drag: overrides any automatic fix"""
        self.stop_watching()
        address = self.resolver(lat, lng)
        with self._lock:
            self._manual = True
            self.accuracy = None
            self.state = AcquisitionState.LOCATED
            self.location = DeliveryLocation(lat=lat, lng=lng, address=address)
            location = self.location
        self._notify(Notice.MANUAL_FIX, location)
        return location

    def confirm(self) -> Optional[DeliveryLocation]:
        self.stop_watching()
        if self.location is not None:
            self._notify(Notice.CONFIRMED, self.location)
        return self.location

    def close(self) -> None:
        self.stop_watching()

    # Helpers

    def _accept(self, position: Position, notice: Notice,
                min_improvement: Optional[float] = None) -> None:
        """Resolve and hold a fix; with min_improvement set, re-check accuracy after the lookup"""
        address = self.resolver(position.latitude, position.longitude)
        with self._lock:
            if self._manual:
                logger.debug("Ignoring automatic fix after manual selection")
                return
            if min_improvement is not None and not is_more_accurate(
                position.accuracy, self.accuracy, min_improvement
            ):
                return
            self.state = AcquisitionState.LOCATED
            self.error = None
            self.accuracy = position.accuracy
            self.location = DeliveryLocation(
                lat=position.latitude,
                lng=position.longitude,
                address=address,
                accuracy=position.accuracy,
            )
            location = self.location
        self._notify(notice, location)

    def _fail(self, error: GeolocationError) -> None:
        with self._lock:
            if self._manual:
                return
            self.state = AcquisitionState.FAILED
            self.error = error
        logger.warning(f"Location acquisition failed: {error} ({error.remediation})")
        if self.on_error:
            self.on_error(error)

    def _notify(self, notice: Notice, location: DeliveryLocation) -> None:
        if location.accuracy is not None:
            logger.info(f"{notice.value}: ±{round(location.accuracy)}m {location.address}")
        else:
            logger.info(f"{notice.value}: {location.address}")
        if self.on_notice:
            self.on_notice(notice, location)

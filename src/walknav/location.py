# location.py
# Location producers feeding a navigation session.
# Real devices plug in by subclassing LocationSource.

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .models import Position

logger = logging.getLogger(__name__)

PositionCallback = Callable[[Position], object]


@dataclass
class LocationOptions:
    """Accuracy and freshness requested from the location provider."""
    high_accuracy: bool = True
    maximum_age_ms: int = 0
    timeout_ms: int = 15_000


class LocationSource:
    """
    A single stream of position samples.

    watch() registers one callback; samples are delivered one at a time.
    """

    def __init__(self, options: Optional[LocationOptions] = None) -> None:
        self.options = options or LocationOptions()
        self._callback: Optional[PositionCallback] = None

    @property
    def is_watching(self) -> bool:
        return self._callback is not None

    def watch(self, callback: PositionCallback) -> None:
        if self._callback is not None:
            raise RuntimeError("LocationSource already has a watcher.")
        self._callback = callback

    def clear_watch(self) -> None:
        self._callback = None

    def emit(self, position: Position) -> None:
        """Deliver one sample to the watcher, if any."""
        if self._callback is not None:
            self._callback(position)


class ReplayLocationSource(LocationSource):
    """
    Replays a fixed list of samples, e.g. a recorded walk.

    Args:
        samples:    Positions in delivery order.
        interval_s: Pause between samples (0 for tests).
        options:    LocationOptions (kept for interface parity).
    """

    def __init__(
        self,
        samples: Iterable[Position],
        interval_s: float = 0.0,
        options: Optional[LocationOptions] = None,
    ) -> None:
        super().__init__(options)
        self.samples: List[Position] = list(samples)
        self.interval_s = interval_s

    def run(self) -> int:
        """
        Deliver samples until exhausted or the watch is cleared.

        Returns:
            Number of samples delivered.
        """
        delivered = 0
        for position in self.samples:
            if not self.is_watching:
                logger.debug("Replay stopped: watch cleared.")
                break
            self.emit(position)
            delivered += 1
            if self.interval_s > 0:
                time.sleep(self.interval_s)
        return delivered

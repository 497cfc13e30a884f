"""
Detection State
---------------

Turns per-frame classifier candidates into a stable "current detection".

- A candidate is accepted when its confidence reaches the display floor.
- Accepting replaces the current detection and restarts the grace window.
- Without an accepted candidate the detection is kept until the grace window
  (500 ms by default) has passed, so a single missed frame does not make the
  displayed sign flicker off and on.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from ...domain.constants.vocabulary import normalize_model_output
from ..models.contracts import GestureCategory


def confidence_percent(score: float) -> float:
    """Classifier score (0..1) as a percentage rounded to two decimals."""
    return round(float(score) * 100, 2)


@dataclass(frozen=True)
class ConfidenceThresholds:
    """Percent floors: display for showing a sign, scoring for counting it correct."""
    display: float = 50.0
    scoring: float = 60.0

    def accepts(self, percent: float) -> bool:
        return percent >= self.display

    def scores(self, percent: float) -> bool:
        return percent >= self.scoring


@dataclass(frozen=True)
class ClassificationEvent:
    label: str                 # normalized sign, e.g. "A" or "THANK"
    confidence_percent: float  # 0..100
    timestamp_ms: float
    raw_label: str             # classifier category name


@dataclass
class DetectionState:
    event: Optional[ClassificationEvent] = None
    last_accepted_ms: Optional[float] = None

    @property
    def label(self) -> Optional[str]:
        return self.event.label if self.event else None

    @property
    def confidence_percent(self) -> float:
        return self.event.confidence_percent if self.event else 0.0


@dataclass(frozen=True)
class DetectionUpdate:
    accepted: Optional[ClassificationEvent] = None
    cleared: bool = False


class DetectionSmoother:
    """Holds the DetectionState and applies acceptance and decay rules."""

    def __init__(
        self,
        thresholds: Optional[ConfidenceThresholds] = None,
        grace_ms: float = 500.0,
        normalizer: Callable[[str], str] = normalize_model_output,
    ):
        self.thresholds = thresholds or ConfidenceThresholds()
        self.grace_ms = grace_ms
        self._normalize = normalizer
        self.state = DetectionState()

    def observe(self, candidate: Optional[GestureCategory], now_ms: float) -> DetectionUpdate:
        """Evaluate the top candidate of a freshly classified frame."""
        if candidate is not None:
            percent = confidence_percent(candidate.score)
            if self.thresholds.accepts(percent):
                event = ClassificationEvent(
                    label=self._normalize(candidate.category_name),
                    confidence_percent=percent,
                    timestamp_ms=now_ms,
                    raw_label=candidate.category_name,
                )
                self.state.event = event
                self.state.last_accepted_ms = now_ms
                return DetectionUpdate(accepted=event)
        return self.expire(now_ms)

    def expire(self, now_ms: float) -> DetectionUpdate:
        """Clear the detection once the grace window has passed."""
        if self.state.event is None or self.state.last_accepted_ms is None:
            return DetectionUpdate()
        if now_ms - self.state.last_accepted_ms > self.grace_ms:
            self.state.event = None
            return DetectionUpdate(cleared=True)
        return DetectionUpdate()

    def reset(self) -> None:
        self.state = DetectionState()

"""Practice mode: sign the shown item until the recognizer confirms it."""
import logging
from typing import Callable, List, Optional

from ...domain.constants.vocabulary import MODULE_ITEMS, normalize_model_output
from ...processing.recognition.detection_state import ClassificationEvent, ConfidenceThresholds

logger = logging.getLogger(__name__)

MatchCallback = Callable[[str, ClassificationEvent], None]


class PracticeMatcher:
    """
    Walks through the items of a category and reports each one once when a
    detection matches it at or above the scoring floor.
    """

    def __init__(
        self,
        items: List[str],
        thresholds: Optional[ConfidenceThresholds] = None,
        on_match: Optional[MatchCallback] = None,
    ):
        if not items:
            raise ValueError("Practice needs at least one item")
        self.items = list(items)
        self.thresholds = thresholds or ConfidenceThresholds()
        self.on_match = on_match
        self.index = 0
        self.matched = False
        self.completed: List[str] = []

    @classmethod
    def for_category(cls, category: str, **kwargs) -> "PracticeMatcher":
        return cls(MODULE_ITEMS.get(category, []), **kwargs)

    @property
    def target(self) -> str:
        return self.items[self.index]

    @property
    def expected(self) -> str:
        return normalize_model_output(self.target)

    def go_to(self, index: int) -> str:
        self.index = index % len(self.items)
        self.matched = False
        return self.target

    def next_item(self) -> str:
        return self.go_to(self.index + 1)

    def previous_item(self) -> str:
        return self.go_to(self.index - 1)

    def is_match(self, event: ClassificationEvent) -> bool:
        return event.label == self.expected and self.thresholds.scores(event.confidence_percent)

    def observe(self, event: ClassificationEvent) -> bool:
        """Returns True the first time the current target is matched."""
        if self.matched or not self.is_match(event):
            return False
        self.matched = True
        if self.target not in self.completed:
            self.completed.append(self.target)
        logger.info(f"Practice match: {self.target} ({event.confidence_percent}%)")
        if self.on_match is not None:
            self.on_match(self.target, event)
        return True

    @property
    def progress_percent(self) -> int:
        return round(len(self.completed) / len(self.items) * 100)

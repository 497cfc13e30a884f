"""
Challenge game
--------------

Three timed quiz modes scored by live sign detection:

- flash-sign: 10 words from one category, 10 seconds each
- sign-match: pick the matching sign from two options, then demonstrate it (no timer)
- endless: words from every category, 10 seconds each, until 3 lives are lost

A question is answered correctly when a detection's normalized label equals
the normalized word and its confidence reaches the scoring floor.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from ...domain.constants.vocabulary import CHALLENGE_WORDS, normalize_model_output
from ...exceptions import InvalidStateTransitionError
from ...processing.recognition.detection_state import ClassificationEvent, ConfidenceThresholds

logger = logging.getLogger(__name__)

TOTAL_QUESTIONS = 10
TIMER_SECONDS = 10
ENDLESS_LIVES = 3
POINTS_PER_CORRECT = 10
ENDLESS_INITIAL_PER_CATEGORY = 3
ENDLESS_REFILL_PER_CATEGORY = 2


class ChallengeMode(str, Enum):
    FLASH_SIGN = "flash-sign"
    SIGN_MATCH = "sign-match"
    ENDLESS = "endless"


class GamePhase(str, Enum):
    MENU = "menu"
    PLAYING = "playing"
    RESULTS = "results"


@dataclass(frozen=True)
class Question:
    word: str
    category: str


@dataclass
class ChallengeState:
    mode: Optional[ChallengeMode] = None
    questions: List[Question] = field(default_factory=list)
    current_index: int = 0
    score: int = 0
    correct: int = 0
    wrong: int = 0
    skipped: int = 0
    lives: int = ENDLESS_LIVES
    time_left: int = TIMER_SECONDS
    active: bool = False
    show_result: bool = False
    last_correct: bool = False
    reveal_used: bool = False
    show_reveal: bool = False
    sign_match_options: List[str] = field(default_factory=list)
    sign_match_selected: Optional[str] = None
    sign_match_phase: str = "select"  # "select" -> "demonstrate"
    detected_sign: Optional[str] = None
    detected_confidence: float = 0.0


class ChallengeGame:
    """Game state machine. Feed it detections with observe() and seconds with tick_second()."""

    def __init__(
        self,
        category: str = "alphabet",
        thresholds: Optional[ConfidenceThresholds] = None,
        words: Optional[Dict[str, List[str]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.category = category
        self.thresholds = thresholds or ConfidenceThresholds()
        self.words = words or CHALLENGE_WORDS
        self._rng = rng or random.Random()
        self.phase = GamePhase.MENU
        self.state = ChallengeState()

    # ------------------------------------------------------------------
    # Question generation
    # ------------------------------------------------------------------

    def _pick(self, category: str, count: int) -> List[Question]:
        words = list(self.words.get(category, []))
        self._rng.shuffle(words)
        return [Question(word, category) for word in words[:count]]

    def _endless_batch(self, per_category: int) -> List[Question]:
        batch: List[Question] = []
        for category in self.words:
            batch.extend(self._pick(category, per_category))
        self._rng.shuffle(batch)
        return batch

    def generate_questions(self, mode: ChallengeMode) -> List[Question]:
        if mode is ChallengeMode.ENDLESS:
            return self._endless_batch(ENDLESS_INITIAL_PER_CATEGORY)
        return self._pick(self.category, TOTAL_QUESTIONS)

    def sign_match_options(self, question: Question) -> List[str]:
        """The correct word plus one wrong word from the same category, shuffled."""
        others = [w for w in self.words.get(question.category, []) if w != question.word]
        wrong = self._rng.choice(others) if others else "A"
        options = [question.word, wrong]
        self._rng.shuffle(options)
        return options

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.state.current_index < len(self.state.questions):
            return self.state.questions[self.state.current_index]
        return None

    def start(self, mode: ChallengeMode) -> ChallengeState:
        mode = ChallengeMode(mode)
        questions = self.generate_questions(mode)
        if not questions:
            raise InvalidStateTransitionError(f"No challenge words for category {self.category!r}")

        self.state = ChallengeState(
            mode=mode,
            questions=questions,
            lives=ENDLESS_LIVES if mode is ChallengeMode.ENDLESS else 0,
            active=True,
        )
        if mode is ChallengeMode.SIGN_MATCH:
            self.state.sign_match_options = self.sign_match_options(questions[0])
        self.phase = GamePhase.PLAYING
        logger.info(f"Challenge started: {mode.value} with {len(questions)} questions")
        return self.state

    def tick_second(self) -> None:
        """Advance the countdown by one second. Running out counts as a wrong answer."""
        s = self.state
        if self.phase is not GamePhase.PLAYING or not s.active or s.show_result:
            return
        if s.mode is ChallengeMode.SIGN_MATCH:
            return
        if s.time_left <= 1:
            s.time_left = 0
            s.show_result = True
            s.last_correct = False
            s.wrong += 1
            if s.mode is ChallengeMode.ENDLESS:
                s.lives -= 1
            return
        s.time_left -= 1

    def observe(self, event: ClassificationEvent) -> bool:
        """
        Show a detection and check it against the current question.

        Returns:
            True if this detection answered the question correctly
        """
        s = self.state
        s.detected_sign = event.label
        s.detected_confidence = event.confidence_percent

        if self.phase is not GamePhase.PLAYING or not s.active or s.show_result:
            return False
        if s.mode is ChallengeMode.SIGN_MATCH and s.sign_match_phase != "demonstrate":
            return False
        question = self.current_question
        if question is None:
            return False

        if event.label == normalize_model_output(question.word) and self.thresholds.scores(event.confidence_percent):
            s.show_result = True
            s.last_correct = True
            s.correct += 1
            s.score += POINTS_PER_CORRECT
            return True
        return False

    def clear_detection(self) -> None:
        self.state.detected_sign = None
        self.state.detected_confidence = 0.0

    def select_option(self, selected: str) -> bool:
        """Sign-match: choose an option. A correct choice moves on to demonstrating it."""
        s = self.state
        question = self.current_question
        if s.mode is not ChallengeMode.SIGN_MATCH or question is None or s.show_result:
            return False
        s.sign_match_selected = selected
        if selected == question.word:
            s.sign_match_phase = "demonstrate"
            return True
        s.show_result = True
        s.last_correct = False
        s.wrong += 1
        return False

    def skip(self) -> bool:
        s = self.state
        if s.mode is ChallengeMode.ENDLESS or s.show_result or not s.active:
            return False
        s.show_result = True
        s.last_correct = False
        s.skipped += 1
        return True

    def reveal(self) -> bool:
        """Show the answer; allowed once per game."""
        if self.state.reveal_used:
            return False
        self.state.show_reveal = True
        self.state.reveal_used = True
        return True

    def next_question(self) -> GamePhase:
        s = self.state
        if s.mode is ChallengeMode.ENDLESS and s.lives <= 0:
            return self._finish()
        if s.mode is not ChallengeMode.ENDLESS and s.current_index >= len(s.questions) - 1:
            return self._finish()

        if s.mode is ChallengeMode.ENDLESS and s.current_index >= len(s.questions) - 2:
            s.questions.extend(self._endless_batch(ENDLESS_REFILL_PER_CATEGORY))

        s.current_index += 1
        s.time_left = TIMER_SECONDS
        s.show_result = False
        s.last_correct = False
        s.show_reveal = False
        s.sign_match_selected = None
        s.sign_match_phase = "select"
        s.sign_match_options = (
            self.sign_match_options(s.questions[s.current_index]) if s.mode is ChallengeMode.SIGN_MATCH else []
        )
        self.clear_detection()
        return self.phase

    def _finish(self) -> GamePhase:
        self.state.active = False
        self.phase = GamePhase.RESULTS
        logger.info(f"Challenge finished: score {self.state.score}, accuracy {self.accuracy}%")
        return self.phase

    def reset(self) -> None:
        self.phase = GamePhase.MENU
        self.state = ChallengeState()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def accuracy(self) -> int:
        answered = self.state.correct + self.state.wrong + self.state.skipped
        return round(self.state.correct / answered * 100) if answered else 0

    @property
    def performance_message(self) -> str:
        if self.accuracy >= 80:
            return "Excellent work!"
        if self.accuracy >= 50:
            return "Good effort!"
        return "Keep practicing!"

    def attach(self, subscribe: Callable[..., Callable[[], None]]) -> Callable[[], None]:
        """Subscribe to a detection source such as GestureSession.subscribe."""
        return subscribe(self.observe, self.clear_detection)

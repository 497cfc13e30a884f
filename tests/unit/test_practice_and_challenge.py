"""
Unit tests for practice matching and the challenge game.
"""
import random
from unittest.mock import MagicMock

import pytest

from signademy.application.services.challenge import (
    ENDLESS_LIVES,
    TIMER_SECONDS,
    TOTAL_QUESTIONS,
    ChallengeGame,
    ChallengeMode,
    GamePhase,
)
from signademy.application.services.practice import PracticeMatcher
from signademy.domain.constants.vocabulary import normalize_model_output
from signademy.exceptions import InvalidStateTransitionError
from signademy.processing.recognition.detection_state import ClassificationEvent

SMALL_WORDS = {"alphabet": ["A", "B", "C"], "numbers": ["1", "2", "3"]}


def detection(raw_label: str, percent: float = 90.0) -> ClassificationEvent:
    return ClassificationEvent(
        label=normalize_model_output(raw_label),
        confidence_percent=percent,
        timestamp_ms=0.0,
        raw_label=raw_label,
    )


def _game(category="alphabet", words=None) -> ChallengeGame:
    return ChallengeGame(category, words=words, rng=random.Random(7))


class TestPracticeMatcher:
    """Tests for PracticeMatcher"""

    def test_alias_matches_target(self):
        practice = PracticeMatcher.for_category("basicWords")
        practice.go_to(practice.items.index("ThankYou"))

        assert practice.expected == "THANK"
        assert practice.observe(detection("thank you", 72.0)) is True

    def test_match_reported_once_per_target(self):
        matches = []
        practice = PracticeMatcher(["A", "B"], on_match=lambda target, event: matches.append(target))

        assert practice.observe(detection("A")) is True
        assert practice.observe(detection("A")) is False
        practice.next_item()
        practice.previous_item()
        assert practice.observe(detection("A")) is True

        assert matches == ["A", "A"]
        assert practice.completed == ["A"]
        assert practice.progress_percent == 50

    def test_below_scoring_floor_does_not_match(self):
        practice = PracticeMatcher(["A"])
        assert practice.observe(detection("A", 59.99)) is False
        assert practice.observe(detection("A", 60.0)) is True

    def test_wrong_sign_does_not_match(self):
        practice = PracticeMatcher(["A"])
        assert practice.observe(detection("B", 99.0)) is False

    def test_navigation_wraps(self):
        practice = PracticeMatcher.for_category("numbers")
        assert practice.previous_item() == "9"
        assert practice.next_item() == "0"

    def test_empty_items(self):
        with pytest.raises(ValueError):
            PracticeMatcher.for_category("unknown")


class TestFlashSign:
    """Tests for the flash-sign mode"""

    def test_start_generates_questions_from_category(self):
        game = _game()
        state = game.start(ChallengeMode.FLASH_SIGN)

        assert len(state.questions) == TOTAL_QUESTIONS
        assert all(q.category == "alphabet" for q in state.questions)
        assert len({q.word for q in state.questions}) == TOTAL_QUESTIONS
        assert state.time_left == TIMER_SECONDS
        assert game.phase is GamePhase.PLAYING

    def test_start_without_words(self):
        with pytest.raises(InvalidStateTransitionError):
            _game(words={"alphabet": []}).start(ChallengeMode.FLASH_SIGN)

    def test_correct_detection_scores(self):
        game = _game()
        game.start(ChallengeMode.FLASH_SIGN)
        word = game.current_question.word

        assert game.observe(detection(word, 55.0)) is False
        assert game.state.detected_sign == word
        assert game.observe(detection(word, 60.0)) is True
        assert game.state.score == 10
        assert game.state.correct == 1
        assert game.observe(detection(word, 99.0)) is False
        assert game.state.score == 10

    def test_timer_running_out_is_wrong(self):
        game = _game()
        game.start(ChallengeMode.FLASH_SIGN)

        for _ in range(TIMER_SECONDS):
            game.tick_second()

        assert game.state.time_left == 0
        assert game.state.show_result is True
        assert game.state.wrong == 1

    def test_full_game_results(self):
        game = _game(words=SMALL_WORDS)
        game.start("flash-sign")
        assert len(game.state.questions) == 3

        game.observe(detection(game.current_question.word))
        assert game.next_question() is GamePhase.PLAYING
        assert game.state.time_left == TIMER_SECONDS
        assert game.state.detected_sign is None
        assert game.skip() is True
        game.next_question()
        for _ in range(TIMER_SECONDS):
            game.tick_second()

        assert game.next_question() is GamePhase.RESULTS
        assert game.state.active is False
        assert game.state.skipped == 1
        assert game.accuracy == 33
        assert game.performance_message == "Keep practicing!"

    def test_reveal_once_per_game(self):
        game = _game()
        game.start(ChallengeMode.FLASH_SIGN)

        assert game.reveal() is True
        game.next_question()
        assert game.state.show_reveal is False
        assert game.reveal() is False


class TestSignMatch:
    """Tests for the sign-match mode"""

    def test_detection_counts_only_after_correct_selection(self):
        game = _game()
        game.start(ChallengeMode.SIGN_MATCH)
        word = game.current_question.word

        assert word in game.state.sign_match_options
        assert len(game.state.sign_match_options) == 2
        assert game.observe(detection(word)) is False

        assert game.select_option(word) is True
        assert game.state.sign_match_phase == "demonstrate"
        assert game.observe(detection(word)) is True

    def test_wrong_selection(self):
        game = _game()
        game.start(ChallengeMode.SIGN_MATCH)
        word = game.current_question.word
        wrong = next(o for o in game.state.sign_match_options if o != word)

        assert game.select_option(wrong) is False
        assert game.state.wrong == 1
        assert game.state.show_result is True

    def test_no_timer(self):
        game = _game()
        game.start(ChallengeMode.SIGN_MATCH)

        for _ in range(TIMER_SECONDS * 2):
            game.tick_second()

        assert game.state.time_left == TIMER_SECONDS
        assert game.state.show_result is False


class TestEndless:
    """Tests for the endless mode"""

    def test_questions_from_every_category(self):
        game = _game(words=SMALL_WORDS)
        state = game.start(ChallengeMode.ENDLESS)

        assert len(state.questions) == 6
        assert {q.category for q in state.questions} == {"alphabet", "numbers"}
        assert state.lives == ENDLESS_LIVES

    def test_questions_are_refilled(self):
        game = _game(words=SMALL_WORDS)
        game.start(ChallengeMode.ENDLESS)

        for _ in range(5):
            game.next_question()

        assert game.state.current_index == 5
        assert len(game.state.questions) == 10

    def test_cannot_skip(self):
        game = _game(words=SMALL_WORDS)
        game.start(ChallengeMode.ENDLESS)
        assert game.skip() is False

    def test_game_ends_when_lives_run_out(self):
        game = _game(words=SMALL_WORDS)
        game.start(ChallengeMode.ENDLESS)

        for lost in range(1, ENDLESS_LIVES + 1):
            for _ in range(TIMER_SECONDS):
                game.tick_second()
            assert game.state.lives == ENDLESS_LIVES - lost
            phase = game.next_question()

        assert phase is GamePhase.RESULTS
        assert game.state.wrong == ENDLESS_LIVES
        assert game.accuracy == 0

    def test_attach_subscribes_observe_and_clear(self):
        game = _game()
        unsubscribe = MagicMock()
        subscribe = MagicMock(return_value=unsubscribe)

        assert game.attach(subscribe) is unsubscribe
        subscribe.assert_called_once_with(game.observe, game.clear_detection)

    def test_reset(self):
        game = _game()
        game.start(ChallengeMode.FLASH_SIGN)
        game.reset()
        assert game.phase is GamePhase.MENU
        assert game.state.questions == []

"""
Single-shot recognition
-----------------------

Classifies one still image: decode, downscale to fit 640x480, classify in
IMAGE mode and draw the landmarks once.

Every request takes a token. Starting a new request or cancelling bumps the
token, and a result whose token is no longer current is discarded instead
of being shown.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ...domain.constants.vocabulary import normalize_model_output
from ...exceptions import InvalidStateTransitionError, RecognitionError, StaleResultDiscarded
from ..data_input.still_image import ImageInput, fit_within, load_image
from ..drawing.landmark_overlay import OverlaySurface
from ..models.contracts import GestureClassifier, RecognitionResult, RunningMode
from .detection_state import confidence_percent

logger = logging.getLogger(__name__)

NO_HAND_MESSAGE = "No hand detected"


@dataclass
class StillRecognition:
    label: Optional[str]
    raw_label: Optional[str]
    confidence_percent: float
    result: RecognitionResult
    image: np.ndarray  # downscaled input with landmarks drawn

    @property
    def detected(self) -> bool:
        return self.label is not None

    @property
    def message(self) -> str:
        return self.label if self.label is not None else NO_HAND_MESSAGE


def _prepare(image: ImageInput) -> np.ndarray:
    return fit_within(load_image(image))


class StillImageRecognizer:
    """One-shot recognizer with stale-result protection."""

    def __init__(self, normalizer: Callable[[str], str] = normalize_model_output):
        self._normalize = normalizer
        self._token = 0

    @property
    def token(self) -> int:
        return self._token

    def begin(self) -> int:
        self._token += 1
        return self._token

    def cancel(self) -> None:
        """Invalidate any request in flight."""
        self._token += 1

    def is_current(self, token: int) -> bool:
        return token == self._token

    async def recognize(
        self,
        classifier: GestureClassifier,
        image: ImageInput,
        token: Optional[int] = None,
    ) -> StillRecognition:
        """
        Classify one image.

        Raises:
            StaleResultDiscarded: A newer request or a cancel happened meanwhile
            RecognitionError: The image could not be decoded or classified
        """
        if token is None:
            token = self.begin()

        try:
            frame = await asyncio.to_thread(_prepare, image)
        except (ValueError, FileNotFoundError) as e:
            raise RecognitionError(f"Could not read image: {e}", user_message="Could not read the image") from e

        if not self.is_current(token):
            raise StaleResultDiscarded()
        if classifier.running_mode is not RunningMode.IMAGE:
            raise InvalidStateTransitionError("Still recognition requires an IMAGE mode classifier")

        try:
            result = await asyncio.to_thread(classifier.recognize_image, frame)
        except Exception as e:
            logger.error(f"Error analyzing image: {e}", exc_info=True)
            raise RecognitionError(f"Error analyzing image: {e}", user_message="Error analyzing image") from e

        if not self.is_current(token):
            raise StaleResultDiscarded()

        overlay = OverlaySurface()
        overlay.resize(frame.shape[1], frame.shape[0])
        overlay.redraw(result)
        composed = overlay.compose(frame)

        top = result.top_gesture
        if top is None:
            return StillRecognition(None, None, 0.0, result, composed)
        return StillRecognition(
            label=self._normalize(top.category_name),
            raw_label=top.category_name,
            confidence_percent=confidence_percent(top.score),
            result=result,
            image=composed,
        )

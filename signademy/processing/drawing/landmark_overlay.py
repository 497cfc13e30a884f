"""
Landmark Overlay
----------------

Drawing utilities for hand landmarks and their skeleton.
The recognition loop redraws the overlay on every tick from the last
retained result, so the skeleton stays on screen between classified frames.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..models.contracts import Landmark, RecognitionResult


# MediaPipe hand skeleton (21 landmarks: wrist, then 4 joints per finger)
# Each tuple: (start_idx, end_idx) for drawing lines between landmarks
HAND_CONNECTIONS: List[Tuple[int, int]] = [
    (0, 1), (1, 2), (2, 3), (3, 4),           # thumb
    (0, 5), (5, 6), (6, 7), (7, 8),           # index
    (0, 9), (9, 10), (10, 11), (11, 12),      # middle
    (0, 13), (13, 14), (14, 15), (15, 16),    # ring
    (0, 17), (17, 18), (18, 19), (19, 20),    # pinky
    (5, 9), (9, 13), (13, 17),                # palm
]

CONNECTOR_COLOR = (0, 255, 0)  # BGR green
LANDMARK_COLOR = (0, 0, 255)   # BGR red
CONNECTOR_THICKNESS = 2
LANDMARK_RADIUS = 3


def draw_hand_landmarks(
    image: np.ndarray,
    hands: Sequence[Sequence[Landmark]],
    connections: Sequence[Tuple[int, int]] = HAND_CONNECTIONS,
    connector_color: Tuple[int, ...] = CONNECTOR_COLOR,
    landmark_color: Tuple[int, ...] = LANDMARK_COLOR,
) -> np.ndarray:
    """
    Draw hand skeletons in place on an image.

    Args:
        image: BGR (HxWx3) or BGRA (HxWx4) image, modified in place
        hands: Normalized landmarks per hand
        connections: Landmark index pairs joined by a line
        connector_color: Line color, same channel count as image
        landmark_color: Point color, same channel count as image

    Returns:
        The same image, for chaining.
    """
    height, width = image.shape[:2]

    for hand in hands:
        points = [(int(round(lm.x * width)), int(round(lm.y * height))) for lm in hand]

        for (i, j) in connections:
            if i < len(points) and j < len(points):
                cv2.line(image, points[i], points[j], connector_color, CONNECTOR_THICKNESS, cv2.LINE_AA)

        for pt in points:
            cv2.circle(image, pt, LANDMARK_RADIUS, landmark_color, -1, cv2.LINE_AA)

    return image


class OverlaySurface:
    """
    Transparent BGRA layer drawn over camera frames.

    The layer follows the frame size; a size change reallocates it.
    """

    def __init__(self) -> None:
        self.canvas: Optional[np.ndarray] = None
        self.redraw_count = 0

    @property
    def size(self) -> Tuple[int, int]:
        if self.canvas is None:
            return (0, 0)
        return (int(self.canvas.shape[1]), int(self.canvas.shape[0]))

    def resize(self, width: int, height: int) -> None:
        if self.size != (width, height):
            self.canvas = np.zeros((height, width, 4), dtype=np.uint8)

    def clear(self) -> None:
        if self.canvas is not None:
            self.canvas[:] = 0

    def redraw(self, result: Optional[RecognitionResult]) -> None:
        """Clear the layer and draw the landmarks of result (if any)."""
        self.clear()
        self.redraw_count += 1
        if self.canvas is None or result is None or not result.landmarks:
            return
        draw_hand_landmarks(
            self.canvas,
            result.landmarks,
            connector_color=CONNECTOR_COLOR + (255,),
            landmark_color=LANDMARK_COLOR + (255,),
        )

    def compose(self, frame: np.ndarray) -> np.ndarray:
        """Return a copy of frame with the layer painted over it."""
        out = frame.copy()
        if self.canvas is None or self.canvas.shape[:2] != frame.shape[:2]:
            return out
        mask = self.canvas[:, :, 3] > 0
        out[mask] = self.canvas[:, :, :3][mask]
        return out

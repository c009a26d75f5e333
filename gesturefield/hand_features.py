"""Hand landmark detection and feature extraction for gesturefield."""

import math
import tempfile
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from gesturefield.util import HandLandmark, N_HAND_LANDMARKS

Vec3 = Tuple[float, float, float]

HAND_LANDMARKER_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/latest/hand_landmarker.task"
)

# (tip, proximal joint) pairs used for finger extension
FINGER_TIP_INDICES = (
    HandLandmark.THUMB_TIP,
    HandLandmark.INDEX_FINGER_TIP,
    HandLandmark.MIDDLE_FINGER_TIP,
    HandLandmark.RING_FINGER_TIP,
    HandLandmark.PINKY_TIP,
)
FINGER_JOINT_INDICES = (
    HandLandmark.THUMB_IP,
    HandLandmark.INDEX_FINGER_DIP,
    HandLandmark.MIDDLE_FINGER_DIP,
    HandLandmark.RING_FINGER_DIP,
    HandLandmark.PINKY_DIP,
)


class TrackingInitError(Exception):
    """Raised when the camera or the landmark model cannot be initialized."""

    pass


# -------------------------------------------------------------------------------
# Hand frames
# -------------------------------------------------------------------------------


def _as_landmark_array(landmarks) -> np.ndarray:
    if hasattr(landmarks, 'landmark'):
        landmarks = landmarks.landmark
    if len(landmarks) and hasattr(landmarks[0], 'x'):
        landmarks = [(lm.x, lm.y, lm.z) for lm in landmarks]
    arr = np.array(landmarks, dtype=float)
    if arr.shape != (N_HAND_LANDMARKS, 3):
        raise ValueError(
            f"A hand frame needs {N_HAND_LANDMARKS} landmarks of 3 coordinates, "
            f"got an array of shape {arr.shape}"
        )
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class HandFrame:
    """
    One detected hand at one instant.

    Attributes:
        world: (21, 3) real-world metric coordinates (meters, hand-centered).
        image: (21, 3) image-normalized coordinates (x, y in [0, 1]).
    """

    world: np.ndarray
    image: np.ndarray

    @classmethod
    def from_landmarks(cls, world, image=None) -> 'HandFrame':
        """
        Build a frame from landmark sequences.

        Accepts (21, 3) array-likes, sequences of objects with ``x, y, z``
        attributes, or MediaPipe ``NormalizedLandmarkList`` objects.
        When ``image`` is not given the world coordinates are used for both.
        """
        world = _as_landmark_array(world)
        image = world if image is None else _as_landmark_array(image)
        return cls(world=world, image=image)


# -------------------------------------------------------------------------------
# Hand feature extraction
# -------------------------------------------------------------------------------


def calculate_euclidean_distance(point1, point2):
    """Calculate the Euclidean distance between two 3D points."""
    return math.sqrt(
        (point1[0] - point2[0]) ** 2
        + (point1[1] - point2[1]) ** 2
        + (point1[2] - point2[2]) ** 2
    )


@dataclass(frozen=True)
class HandFeatures:
    """Scalar geometric features of one hand frame."""

    pinch_distance: float
    spread_distance: float
    finger_extension: float
    palm_center: Vec3
    tilt_normalized: float
    depth_variance: float

    def to_dict(self):
        return {
            'pinch_distance': self.pinch_distance,
            'spread_distance': self.spread_distance,
            'finger_extension': self.finger_extension,
            'palm_center': list(self.palm_center),
            'tilt_normalized': self.tilt_normalized,
            'depth_variance': self.depth_variance,
        }


def extract_hand_features(frame: HandFrame) -> HandFeatures:
    """
    Compute the scalar features the gesture processor needs.

    All features come from the world (metric) landmarks, so distances are in
    meters regardless of how far the hand is from the camera.

    Args:
        frame: A HandFrame with 21 landmarks

    Returns:
        HandFeatures
    """
    hand = frame.world
    wrist = hand[HandLandmark.WRIST]
    middle_mcp = hand[HandLandmark.MIDDLE_FINGER_MCP]

    pinch_distance = calculate_euclidean_distance(
        hand[HandLandmark.THUMB_TIP], hand[HandLandmark.INDEX_FINGER_TIP]
    )
    spread_distance = calculate_euclidean_distance(
        hand[HandLandmark.INDEX_FINGER_MCP], hand[HandLandmark.PINKY_MCP]
    )
    finger_extension = sum(
        calculate_euclidean_distance(hand[tip], hand[joint])
        for tip, joint in zip(FINGER_TIP_INDICES, FINGER_JOINT_INDICES)
    ) / len(FINGER_TIP_INDICES)

    palm_center = tuple(float(c) for c in (wrist + middle_mcp) * 0.5)

    # Angle of the wrist -> middle knuckle vector, from (-pi, pi] onto [0, 1)
    tilt_angle = math.atan2(middle_mcp[1] - wrist[1], middle_mcp[0] - wrist[0])
    tilt_normalized = (tilt_angle + math.pi) / (2 * math.pi)
    if tilt_normalized >= 1.0:
        tilt_normalized = 0.0

    depth_variance = float(np.var(hand[:, 2]))

    return HandFeatures(
        pinch_distance=float(pinch_distance),
        spread_distance=float(spread_distance),
        finger_extension=float(finger_extension),
        palm_center=palm_center,
        tilt_normalized=float(tilt_normalized),
        depth_variance=depth_variance,
    )


def hand_features_dict(frame: Optional[HandFrame]) -> dict:
    """Features as a JSON-friendly dict (empty when there is no hand)."""
    if frame is None:
        return {}
    return extract_hand_features(frame).to_dict()


# -------------------------------------------------------------------------------
# Hand landmark detector
# -------------------------------------------------------------------------------


def get_hand_landmarker_model_path(
    model_url: str = HAND_LANDMARKER_URL, *, cache_dir=None
) -> str:
    """Download the hand_landmarker.task model if needed and return its path."""
    cache_dir = Path(cache_dir or Path(tempfile.gettempdir()) / "mediapipe_models")
    cache_dir.mkdir(parents=True, exist_ok=True)
    model_path = cache_dir / "hand_landmarker.task"
    if not model_path.exists():
        print(f"Downloading hand_landmarker model to {model_path} ...")
        # Only a complete download ever lands at model_path
        part_path = model_path.with_name(model_path.name + '.part')
        try:
            urllib.request.urlretrieve(model_url, str(part_path))
            part_path.replace(model_path)
        except OSError as e:
            part_path.unlink(missing_ok=True)
            raise TrackingInitError(f"Could not download the hand model: {e}") from e
    return str(model_path)


class HandLandmarkDetector:
    """
    Detects a single hand with MediaPipe's HandLandmarker (VIDEO running mode).

    Attributes:
        model_path (str): Path to the ``hand_landmarker.task`` model.
        detection_con (float): Minimum hand detection confidence.
        presence_con (float): Minimum hand presence confidence.
        track_con (float): Minimum tracking confidence.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        *,
        detection_con=0.5,
        presence_con=0.5,
        track_con=0.5,
    ):
        import mediapipe as mp
        from mediapipe.tasks.python import BaseOptions
        from mediapipe.tasks.python import vision as mp_vision

        self._mp = mp
        self.model_path = model_path or get_hand_landmarker_model_path()
        self.detection_con = detection_con
        self.presence_con = presence_con
        self.track_con = track_con

        options = mp_vision.HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=self.model_path),
            running_mode=mp_vision.RunningMode.VIDEO,
            num_hands=1,
            min_hand_detection_confidence=self.detection_con,
            min_hand_presence_confidence=self.presence_con,
            min_tracking_confidence=self.track_con,
        )
        try:
            self.landmarker = mp_vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise TrackingInitError(f"Could not load the hand model: {e}") from e
        self._last_timestamp_ms = -1

    def detect(self, img: np.ndarray, timestamp_ms: int) -> Optional[HandFrame]:
        """
        Detect a hand in a BGR image.

        Args:
            img: The input image (BGR, as read by OpenCV).
            timestamp_ms: Monotonic timestamp of the image, in milliseconds.

        Returns:
            A HandFrame, or None if no hand was found.
        """
        # VIDEO mode rejects timestamps that do not increase
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        img_rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        mp_image = self._mp.Image(
            image_format=self._mp.ImageFormat.SRGB, data=np.ascontiguousarray(img_rgb)
        )
        result = self.landmarker.detect_for_video(mp_image, timestamp_ms)
        return hand_frame_from_result(result)

    def close(self):
        self.landmarker.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def hand_frame_from_result(result) -> Optional[HandFrame]:
    """Convert a HandLandmarkerResult into a HandFrame (first hand only)."""
    world = getattr(result, 'hand_world_landmarks', None) or []
    image = getattr(result, 'hand_landmarks', None) or []
    if not world or not image:
        return None
    return HandFrame.from_landmarks(world[0], image[0])


"""
Anatomical landmark table and landmark set ingestion.

This module provides:
- The anatomical index table mapping facial roles to MediaPipe Face Mesh indices
- LandmarkSet: read-only container of normalized (x, y, z) landmarks
- LandmarkIngest: convert external landmark formats (arrays, MediaPipe JSON)
  into a LandmarkSet

MediaPipe Face Mesh outputs 478 landmarks when iris refinement is enabled
(468 without). Coordinates are normalized: x to image width, y to image
height, z is a relative depth estimate roughly on the same scale as x.

Note on sides: "left" and "right" below follow image space, i.e. the
landmarks with the smaller x are "left". For a camera facing the subject
that is the subject's right side.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


EXPECTED_LANDMARK_COUNT = 478


# =============================================================================
# Anatomical Index Table
# =============================================================================
# Anthropometric names follow Farkas (1994) where one exists.

LANDMARK_INDICES: Mapping[str, int] = MappingProxyType({
    # Eyes
    "left_pupil": 468,          # iris centre (refined model only)
    "right_pupil": 473,
    "left_eye_inner": 133,      # endocanthion (en)
    "left_eye_outer": 33,       # exocanthion (ex)
    "right_eye_inner": 362,
    "right_eye_outer": 263,
    "left_eye_upper": 159,
    "left_eye_lower": 145,
    "right_eye_upper": 386,
    "right_eye_lower": 374,

    # Eyebrows
    "left_brow_inner": 107,
    "left_brow_outer": 70,
    "right_brow_inner": 336,
    "right_brow_outer": 300,

    # Nose
    "nose_tip": 1,              # pronasale (prn)
    "nose_base": 2,             # subnasale (sn)
    "nasion": 168,              # sellion (se)
    "left_nostril": 129,        # alare (al)
    "right_nostril": 358,

    # Cheekbones
    "left_cheekbone": 234,      # zygion (zy)
    "right_cheekbone": 454,

    # Jaw
    "left_gonion": 172,         # gonion (go)
    "right_gonion": 397,
    "left_jaw": 136,
    "right_jaw": 365,
    "left_ramus": 127,          # upper ramus, toward the ear
    "right_ramus": 356,
    "chin": 152,                # gnathion (gn)

    # Forehead
    "forehead": 10,             # trichion approximation
    "glabella": 9,

    # Lips / mouth
    "upper_lip_top": 0,         # labiale superius (ls)
    "upper_lip_bottom": 13,
    "lower_lip_top": 14,
    "lower_lip_bottom": 17,     # labiale inferius (li)
    "mouth_left": 61,           # cheilion (ch)
    "mouth_right": 291,
    "philtrum_top": 2,
    "philtrum_bottom": 0,
})

# Highest index referenced by the table; sets shorter than this lose roles
MAX_REFERENCED_INDEX = max(LANDMARK_INDICES.values())

# Midline roles used to locate the facial axis
MIDLINE_ROLES = ("nasion", "nose_tip", "nose_base", "chin", "glabella")


def _build_mirror_permutation() -> Tuple[Tuple[int, int], ...]:
    """Index pairs that swap under a left/right reflection of the table."""
    pairs = []
    for role, index in LANDMARK_INDICES.items():
        if role.startswith("left_"):
            partner = LANDMARK_INDICES["right_" + role[len("left_"):]]
            pairs.append((index, partner))
        elif role == "mouth_left":
            pairs.append((index, LANDMARK_INDICES["mouth_right"]))
    return tuple(pairs)


MIRROR_INDEX_PAIRS = _build_mirror_permutation()


class MissingLandmarkError(IndexError):
    """Raised when a role's index lies beyond the end of a LandmarkSet."""


# =============================================================================
# LandmarkSet
# =============================================================================

class LandmarkSet:
    """
    Read-only, ordered set of normalized facial landmarks.

    Points are stored as a float64 array of shape (N, 3). Landmarks can be
    addressed positionally (``landmarks.point(152)``) or by anatomical role
    (``landmarks["chin"]``). Requesting a role whose index is beyond N raises
    MissingLandmarkError so that callers can degrade that one measurement
    instead of the whole analysis.
    """

    def __init__(self, points: NDArray[np.float64]):
        points = np.array(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Expected landmarks shape (N, 3), got {points.shape}")
        points.setflags(write=False)
        self._points = points

    @property
    def points(self) -> NDArray[np.float64]:
        """Underlying (N, 3) array (read-only)."""
        return self._points

    def __len__(self) -> int:
        return self._points.shape[0]

    def __getitem__(self, role: str) -> NDArray[np.float64]:
        try:
            index = LANDMARK_INDICES[role]
        except KeyError:
            raise KeyError(f"Unknown landmark role: '{role}'")
        return self.point(index)

    def __contains__(self, role: str) -> bool:
        index = LANDMARK_INDICES.get(role)
        return index is not None and index < len(self)

    def point(self, index: int) -> NDArray[np.float64]:
        """Landmark at a positional index."""
        if index < 0 or index >= len(self):
            raise MissingLandmarkError(
                f"Landmark index {index} out of range for {len(self)} landmarks"
            )
        return self._points[index]

    def mirrored(self) -> "LandmarkSet":
        """
        Reflect the set left-right about x = 0.5.

        x becomes 1 - x and every left/right role pair in the index table
        swaps places, so the mirrored set describes the same face seen in a
        mirror.
        """
        mirrored = self._points.copy()
        mirrored[:, 0] = 1.0 - mirrored[:, 0]
        n = len(self)
        for left, right in MIRROR_INDEX_PAIRS:
            if left < n and right < n:
                mirrored[[left, right]] = mirrored[[right, left]]
        return LandmarkSet(mirrored)

    def __repr__(self) -> str:
        return f"LandmarkSet(n={len(self)})"


# =============================================================================
# Landmark Ingestion
# =============================================================================

class LandmarkIngest:
    """
    Convert external landmark formats to a LandmarkSet.

    Supported input formats:
    - raw arrays or nested lists of (x, y) or (x, y, z) points
    - "mediapipe": JSON written by a MediaPipe FaceLandmarker extraction step

    Usage:
        landmarks = LandmarkIngest.from_json("landmarks.json")
        landmarks = LandmarkIngest.from_mediapipe(mp_points, image_size=(640, 480))
    """

    @staticmethod
    def from_array(
        landmarks: Union[List[List[float]], NDArray[np.float64]],
        expected_count: int = EXPECTED_LANDMARK_COUNT,
    ) -> LandmarkSet:
        """
        Build a LandmarkSet from an (N, 2) or (N, 3) array-like.

        Missing z is filled with zeros. A count other than expected_count is
        logged and tolerated.

        Raises:
            ValueError: If the set is empty or not two-dimensional.
        """
        lm = np.asarray(landmarks, dtype=np.float64)

        if lm.ndim != 2 or lm.shape[1] not in (2, 3):
            raise ValueError(
                f"Expected landmarks shape (N, 2) or (N, 3), got {lm.shape}"
            )
        if lm.shape[0] == 0:
            raise ValueError("Landmark set is empty")

        if lm.shape[1] == 2:
            lm = np.hstack([lm, np.zeros((lm.shape[0], 1), dtype=np.float64)])

        n = lm.shape[0]
        if n != expected_count:
            logger.warning(
                "Received %d landmarks, expected %d. Proceeding with analysis.",
                n, expected_count
            )
        if n <= MAX_REFERENCED_INDEX:
            logger.warning(
                "Landmark set is shorter than the anatomical index table "
                "(max index %d); affected measurements will use defaults",
                MAX_REFERENCED_INDEX
            )

        return LandmarkSet(lm)

    @staticmethod
    def from_mediapipe(
        landmarks: Union[List[List[float]], NDArray[np.float64]],
        image_size: Optional[Tuple[int, int]] = None,
        expected_count: int = EXPECTED_LANDMARK_COUNT,
    ) -> LandmarkSet:
        """
        Convert MediaPipe Face Mesh landmarks to a LandmarkSet.

        MediaPipe normalizes x to image width and y to image height. If
        image_size is given, y is rescaled into x units (y * h / w) so that
        distances are isotropic for non-square images. z is already roughly
        on the x scale and is left as is. Without image_size the raw
        normalized coordinates are used.

        Args:
            landmarks: MediaPipe face landmarks, shape (N, 3) or (N, 2)
            image_size: (width, height) of the source image
            expected_count: Nominal landmark count for the warning check

        Returns:
            LandmarkSet
        """
        lm = LandmarkIngest.from_array(landmarks, expected_count).points.copy()

        if image_size is not None:
            w, h = image_size
            if w <= 0 or h <= 0:
                raise ValueError(f"Invalid image_size: {image_size}")
            logger.debug(
                "Correcting aspect ratio with image_size=(%d, %d)", w, h
            )
            lm[:, 1] *= h / w
        else:
            logger.debug("No image_size provided, using raw normalized coordinates")

        return LandmarkSet(lm)

    @staticmethod
    def from_json(
        filepath: Union[str, Path],
        expected_count: int = EXPECTED_LANDMARK_COUNT,
        image_size: Optional[Tuple[int, int]] = None,
    ) -> LandmarkSet:
        """
        Load landmarks from a JSON file.

        Supported JSON formats:
        - MediaPipe: {"source": "mediapipe", "landmarks": [[x,y,z], ...],
          "image_size": [w, h]}

        Landmarks may also be given as objects: [{"x": .., "y": .., "z": ..}].
        An explicit image_size argument overrides the one stored in the file.

        Raises:
            ValueError: If format is unrecognized or data is invalid.
            FileNotFoundError: If file does not exist.
        """
        filepath = Path(filepath)
        with open(filepath, 'r') as f:
            data = json.load(f)

        source = data.get("source", "").lower()
        if source != "mediapipe":
            raise ValueError(
                f"Unsupported landmark source: '{source}' in {filepath}. "
                f"Supported: 'mediapipe'"
            )

        raw_landmarks = data.get("landmarks")
        if raw_landmarks is None:
            raise ValueError(f"MediaPipe JSON missing 'landmarks' field in {filepath}")

        if raw_landmarks and isinstance(raw_landmarks[0], dict):
            raw_landmarks = [
                [lm["x"], lm["y"], lm.get("z") or 0.0] for lm in raw_landmarks
            ]

        if image_size is None and data.get("image_size") is not None:
            image_size = tuple(data["image_size"])

        logger.debug(
            "Loading MediaPipe JSON from %s: %d landmarks, image_size=%s",
            filepath, len(raw_landmarks), image_size
        )
        return LandmarkIngest.from_mediapipe(
            raw_landmarks, image_size=image_size, expected_count=expected_count
        )

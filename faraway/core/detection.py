"""
Detection data structures.

A single detection consists of:
    - Bounding box [xmin, ymin, xmax, ymax], normalized to [0, 1]
      in source-image space
    - Confidence score of the winning class
    - Class index (one label per box)

A DetectionResult groups the detections produced by one inference
call, in NMS output order (descending confidence).
"""

import math
from collections.abc import Iterator
from dataclasses import dataclass, field

import torch


def _round_half_up(v: float) -> int:
    return math.floor(v + 0.5)


@dataclass(frozen=True)
class Detection:
    """
    Represents a single decoded detection.

    Only the best class hypothesis is kept for each box, so a box
    never carries two labels.
    """

    box: tuple[float, float, float, float]
    """Normalized [xmin, ymin, xmax, ymax] in source-image space."""

    score: float
    """Confidence of the winning class, in [0, 1]."""

    class_id: int
    """Index of the winning class."""

    def to_pixels(self, width: int, height: int) -> tuple[int, int, int, int]:
        """
        Converts the normalized box to an integer pixel rectangle.

        Each corner is rounded on its own, halves upwards, rather than
        rounding the width and height, so that adjacent boxes do not drift.

        Args:
            width: Source image width.
            height: Source image height.

        Returns
        -------
            rect: (left, top, right, bottom) pixel coordinates.
        """
        xmin, ymin, xmax, ymax = self.box
        return (
            _round_half_up(xmin * width),
            _round_half_up(ymin * height),
            _round_half_up(xmax * width),
            _round_half_up(ymax * height),
        )


@dataclass(frozen=True)
class DetectionResult:
    """Ordered collection of detections sharing one inference call."""

    detections: tuple[Detection, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __getitem__(self, index: int) -> Detection:
        return self.detections[index]

    @property
    def scores(self) -> list[float]:
        return [d.score for d in self.detections]

    @property
    def class_ids(self) -> list[int]:
        return [d.class_id for d in self.detections]

    def filter_class(self, class_id: int, min_score: float = 0.0) -> "DetectionResult":
        """
        Keeps the detections of one class scoring at least min_score.

        The relative order of the kept detections is unchanged.
        """
        return DetectionResult(
            tuple(d for d in self.detections if d.class_id == class_id and d.score >= min_score)
        )

    @classmethod
    def from_tensors(
        cls,
        boxes: torch.Tensor,
        scores: torch.Tensor,
        class_ids: torch.Tensor,
    ) -> "DetectionResult":
        """
        Builds a result from aligned (K, 4), (K,) and (K,) tensors.

        Args:
            boxes: (K, 4) normalized boxes.
            scores: (K,) confidence scores.
            class_ids: (K,) class indices.

        Returns
        -------
            result: DetectionResult with K detections, in tensor order.
        """
        box_list = boxes.cpu().tolist()
        score_list = scores.cpu().tolist()
        class_list = class_ids.cpu().tolist()
        return cls(
            tuple(
                Detection(box=tuple(b), score=float(s), class_id=int(c))
                for b, s, c in zip(box_list, score_list, class_list)
            )
        )

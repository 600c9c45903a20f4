"""
Region extraction.

Crops the detected cards or temples out of the source image so that
each can be analysed by its type-specific model. Every crop is an
independent copy of the pixels, so it outlives the source image.

Cards must be ordered left to right: placement order is turn order,
which decides what each card can see when scoring. Temples keep the
detection order so that score traces are repeatable.
"""

from dataclasses import dataclass

import torch
from PIL import Image

from .detection import Detection, DetectionResult
from .utils import tensor_to_pil


@dataclass
class CroppedRegion:
    """One cropped object and where it came from."""

    image: torch.Tensor
    """(3, h, w) tensor with values in [0, 1]."""

    source_box: tuple[int, int, int, int]
    """(left, top, right, bottom) pixel rectangle in the source image."""

    detection: Detection

    def to_pil(self) -> Image.Image:
        return tensor_to_pil(self.image)


def _pixel_rect(det: Detection, width: int, height: int) -> tuple[int, int, int, int]:
    left, top, right, bottom = det.to_pixels(width, height)
    left = min(max(left, 0), width)
    right = min(max(right, 0), width)
    top = min(max(top, 0), height)
    bottom = min(max(bottom, 0), height)
    return left, top, right, bottom


def extract_regions(
    image: torch.Tensor,
    detections: DetectionResult,
    target_class_id: int,
    score_threshold: float = 0.0,
    sort_left_to_right: bool = False,
) -> list[CroppedRegion]:
    """
    Crops every detection of one class out of an image.

    Args:
        image: (3, H, W) source image tensor.
        detections: Decoded detections with normalized boxes.
        target_class_id: Class to extract.
        score_threshold: Detections scoring below this are skipped.
        sort_left_to_right: Order the crops by ascending left edge.
            Otherwise the detection order is kept.

    Returns
    -------
        regions: The cropped regions. Boxes that are empty after
            clipping to the image are dropped.
    """
    _, H, W = image.shape

    regions = []
    for det in detections.filter_class(target_class_id, score_threshold):
        left, top, right, bottom = _pixel_rect(det, W, H)
        if right <= left or bottom <= top:
            continue

        crop = image[:, top:bottom, left:right].clone()
        regions.append(CroppedRegion(image=crop, source_box=(left, top, right, bottom), detection=det))

    if sort_left_to_right:
        regions.sort(key=lambda r: r.source_box[0])

    return regions

"""
Letterbox geometry.

Detection models take a fixed square input. Letterboxing resizes an
arbitrary image into that square while preserving its aspect ratio:
    1. Scale by min(S / W, S / H).
    2. Center the resized image on a mid-gray canvas, with any odd
       remainder pixel going to the bottom/right padding.

The transform object returned alongside the buffer is the only thing
needed to map model-space boxes back to source pixels. A plain stretch
resize is kept as a fallback policy with the same interface; a model
must use one policy consistently so that the inverse matches the
forward transform.
"""

import math
from dataclasses import dataclass

import torch
import torch.nn.functional as F

from ..config import settings as cfg


@dataclass(frozen=True)
class LetterboxTransform:
    """
    Affine map between model-input space and source-image pixels.

        model = source * scale + offset
        source = (model - offset) / scale
    """

    scale: float
    offset_x: int
    offset_y: int
    resized_width: int
    resized_height: int
    input_size: int

    def to_source(self, boxes: torch.Tensor) -> torch.Tensor:
        """
        Maps (K, 4) [x1, y1, x2, y2] boxes from model space to source pixels.

        Args:
            boxes: (K, 4) boxes in model-input pixel space.

        Returns
        -------
            mapped: (K, 4) boxes in source-image pixel space.
        """
        offsets = boxes.new_tensor([self.offset_x, self.offset_y, self.offset_x, self.offset_y])
        return (boxes - offsets) / self.scale

    def to_model(self, boxes: torch.Tensor) -> torch.Tensor:
        """Maps (K, 4) source-pixel boxes into model-input space."""
        offsets = boxes.new_tensor([self.offset_x, self.offset_y, self.offset_x, self.offset_y])
        return boxes * self.scale + offsets


@dataclass(frozen=True)
class StretchTransform:
    """Per-axis scaling for a non aspect-preserving resize."""

    scale_x: float
    scale_y: float
    input_size: int

    def to_source(self, boxes: torch.Tensor) -> torch.Tensor:
        scales = boxes.new_tensor([self.scale_x, self.scale_y, self.scale_x, self.scale_y])
        return boxes / scales

    def to_model(self, boxes: torch.Tensor) -> torch.Tensor:
        scales = boxes.new_tensor([self.scale_x, self.scale_y, self.scale_x, self.scale_y])
        return boxes * scales


def _check_size(src_width: int, src_height: int, input_size: int):
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Invalid source size {src_width}x{src_height}.")
    if input_size <= 0:
        raise ValueError(f"Invalid input size {input_size}.")


def compute_letterbox(src_width: int, src_height: int, input_size: int) -> LetterboxTransform:
    """
    Computes the letterbox transform for one image.

    Args:
        src_width: Source image width W.
        src_height: Source image height H.
        input_size: Side S of the square model input.

    Returns
    -------
        transform: LetterboxTransform with
            scale = min(S / W, S / H),
            resized = floor(W * scale) x floor(H * scale),
            offset = floor((S - resized) / 2) per axis.
    """
    _check_size(src_width, src_height, input_size)

    scale = min(input_size / src_width, input_size / src_height)
    # W * (S / W) can land just under S; the epsilon absorbs that float error
    resized_width = max(1, min(math.floor(src_width * scale + 1e-9), input_size))
    resized_height = max(1, min(math.floor(src_height * scale + 1e-9), input_size))

    return LetterboxTransform(
        scale=scale,
        offset_x=(input_size - resized_width) // 2,
        offset_y=(input_size - resized_height) // 2,
        resized_width=resized_width,
        resized_height=resized_height,
        input_size=input_size,
    )


def compute_stretch(src_width: int, src_height: int, input_size: int) -> StretchTransform:
    _check_size(src_width, src_height, input_size)
    return StretchTransform(
        scale_x=input_size / src_width,
        scale_y=input_size / src_height,
        input_size=input_size,
    )


def letterbox_image(
    image: torch.Tensor,
    input_size: int = cfg.MODEL_INPUT_SIZE,
    pad_value: float = cfg.PAD_VALUE,
) -> tuple[torch.Tensor, LetterboxTransform]:
    """
    Resizes an image into a padded square model input.

    Args:
        image: (3, H, W) tensor with values in [0, 1].
        input_size: Side S of the square model input.
        pad_value: Fill value of the padding, in [0, 1].

    Returns
    -------
        batch: (1, 3, S, S) tensor ready for the model.
        transform: The LetterboxTransform that was applied.
    """
    _, H, W = image.shape
    transform = compute_letterbox(W, H, input_size)

    resized = F.interpolate(
        image.unsqueeze(0).float(),
        size=(transform.resized_height, transform.resized_width),
        mode="bilinear",
        align_corners=False,
    )

    canvas = torch.full(
        (1, image.shape[0], input_size, input_size),
        pad_value,
        dtype=resized.dtype,
        device=resized.device,
    )
    y0, x0 = transform.offset_y, transform.offset_x
    canvas[:, :, y0 : y0 + transform.resized_height, x0 : x0 + transform.resized_width] = resized

    return canvas, transform


def stretch_image(
    image: torch.Tensor,
    input_size: int = cfg.MODEL_INPUT_SIZE,
) -> tuple[torch.Tensor, StretchTransform]:
    """
    Resizes an image to S x S without preserving its aspect ratio.

    Args:
        image: (3, H, W) tensor with values in [0, 1].
        input_size: Side S of the square model input.

    Returns
    -------
        batch: (1, 3, S, S) tensor ready for the model.
        transform: The StretchTransform that was applied.
    """
    _, H, W = image.shape
    transform = compute_stretch(W, H, input_size)

    resized = F.interpolate(
        image.unsqueeze(0).float(),
        size=(input_size, input_size),
        mode="bilinear",
        align_corners=False,
    )
    return resized, transform

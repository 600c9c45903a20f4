"""
Decoder for single-stage (YOLOv8-style) detection output.

The model returns one tensor of shape (1, 4 + N, K): for each of the
K candidates, a center-form box (xc, yc, w, h) in model-input pixels
followed by N class scores. Decoding:
    1. Transpose to (K, 4 + N) rows.
    2. Keep the best class per row (argmax), one label per box.
    3. Convert boxes to corner form.
    4. Class-agnostic greedy NMS over the candidates above threshold.
    5. Map kept boxes back to source pixels and normalize to [0, 1].

Every intermediate tensor is registered in a TensorScope and released
when the decode call exits, whether it returns or raises.
"""

import asyncio
import logging
import math

import torch
from torchvision.ops import nms

from ..config import settings as cfg
from .detection import DetectionResult
from .exceptions import DecodeError
from .letterbox import LetterboxTransform, StretchTransform

logger = logging.getLogger(__name__)


class TensorScope:
    """
    Tracks intermediate tensors for the duration of one decode call.

    On exit the references are dropped and, if any tracked tensor
    lived on a CUDA device, the allocator cache is emptied so the
    memory returns to the pool immediately.
    """

    def __init__(self):
        self._tensors: list[torch.Tensor] = []

    def track(self, tensor: torch.Tensor) -> torch.Tensor:
        self._tensors.append(tensor)
        return tensor

    def __len__(self) -> int:
        return len(self._tensors)

    def __enter__(self) -> "TensorScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        on_device = any(t.is_cuda for t in self._tensors)
        self._tensors.clear()
        if on_device:
            torch.cuda.empty_cache()
        return False


class YoloOutputDecoder:
    """
    Turns a raw output tensor into a DetectionResult.

    NMS is the only asynchronous step: it runs in a worker thread and
    the caller awaits it. A decode cannot be cancelled once started.
    """

    def __init__(
        self,
        iou_threshold: float = cfg.IOU_THRESHOLD,
        max_detections: int = cfg.MAX_DETECTIONS,
    ):
        """
        Args:
            iou_threshold: Overlap at or above which the lower-scoring
                of two boxes is suppressed.
            max_detections: Maximum number of boxes kept after NMS.
        """
        self.iou_threshold = iou_threshold
        self.max_detections = max_detections

    @staticmethod
    def _to_rows(raw: torch.Tensor) -> torch.Tensor:
        """
        Reshapes a (1, 4 + N, K) or (4 + N, K) output into (K, 4 + N) rows.
        """
        if raw.dim() == 3:
            if raw.shape[0] != 1:
                raise DecodeError(f"Expected a batch of one, got output of shape {tuple(raw.shape)}.")
            raw = raw.squeeze(0)
        if raw.dim() != 2:
            raise DecodeError(f"Expected a (1, 4 + N, K) output, got shape {tuple(raw.shape)}.")
        return raw.transpose(0, 1).float()

    @staticmethod
    def center_to_corners(boxes: torch.Tensor) -> torch.Tensor:
        """
        Converts (K, 4) [xc, yc, w, h] boxes to [x1, y1, x2, y2].
        """
        xc, yc, w, h = boxes.unbind(dim=1)
        return torch.stack([xc - w / 2, yc - h / 2, xc + w / 2, yc + h / 2], dim=1)

    def _suppress(self, boxes: torch.Tensor, scores: torch.Tensor) -> torch.Tensor:
        # Suppresses IoU >= threshold; nms drops only IoU > threshold, in the input dtype
        threshold = math.nextafter(self.iou_threshold, 0.0)
        keep = nms(boxes.double(), scores.double(), threshold)
        return keep[: self.max_detections]

    async def decode(
        self,
        raw: torch.Tensor,
        score_threshold: float,
        src_width: int,
        src_height: int,
        transform: LetterboxTransform | StretchTransform | None = None,
        input_size: int = cfg.MODEL_INPUT_SIZE,
    ) -> DetectionResult:
        """
        Decodes one raw model output.

        Args:
            raw: (1, 4 + N, K) tensor returned by the model.
            score_threshold: Minimum best-class score to keep a box.
            src_width: Width of the original image in pixels.
            src_height: Height of the original image in pixels.
            transform: Resize transform applied before inference. When
                None, model space is taken to be the source image
                scaled by input_size on both axes.
            input_size: Side of the square model input.

        Returns
        -------
            result: Detections in descending score order, with boxes
                normalized to the source image.

        Raises
        ------
            DecodeError: If the output has no class columns or the
                wrong rank.
        """
        with TensorScope() as scope:
            rows = scope.track(self._to_rows(raw))

            num_classes = rows.shape[1] - 4
            if num_classes <= 0:
                raise DecodeError(
                    f"Model output has {rows.shape[1]} columns per candidate, expected 4 + N with N > 0."
                )

            # Step 1: best class per candidate
            class_scores = scope.track(rows[:, 4:])
            max_scores, class_ids = class_scores.max(dim=1)
            scope.track(max_scores)
            scope.track(class_ids)

            # Step 2: corner-form boxes in model space
            corners = scope.track(self.center_to_corners(rows[:, :4]))

            # Step 3: threshold, then class-agnostic NMS
            candidates = scope.track(torch.nonzero(max_scores >= score_threshold).squeeze(1))
            cand_boxes = scope.track(corners[candidates])
            cand_scores = scope.track(max_scores[candidates])

            kept = await asyncio.to_thread(self._suppress, cand_boxes, cand_scores)
            scope.track(kept)

            logger.debug(
                "Decoded %d candidates, %d above %.2f, %d kept after NMS",
                rows.shape[0],
                candidates.numel(),
                score_threshold,
                kept.numel(),
            )

            # Step 4: back to source pixels, then normalize
            kept_boxes = scope.track(cand_boxes[kept])
            if transform is not None:
                source_boxes = scope.track(transform.to_source(kept_boxes))
                size = kept_boxes.new_tensor([src_width, src_height, src_width, src_height])
                normalized = scope.track((source_boxes / size).clamp(0.0, 1.0))
            else:
                normalized = scope.track((kept_boxes / input_size).clamp(0.0, 1.0))

            return DetectionResult.from_tensors(
                normalized,
                cand_scores[kept],
                class_ids[candidates][kept],
            )

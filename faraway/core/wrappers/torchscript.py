"""
Wrapper for exported single-stage detectors (TorchScript).

The exported network takes a (1, 3, S, S) float tensor in [0, 1] and
returns the raw (1, 4 + N, K) prediction tensor, without any built-in
post-processing. Resizing, NMS and coordinate mapping are done here
and in YoloOutputDecoder.

IMPORTANT: the resize policy (letterbox or stretch) must match the
one the weights were trained with. Mixing a letterboxed forward pass
with the stretch inverse, or the reverse, silently shifts every box.
"""

import logging

import torch

from ...config import settings as cfg
from ..decoder import YoloOutputDecoder
from ..detection import DetectionResult
from ..letterbox import letterbox_image, stretch_image
from .base import DetectorWrapper

logger = logging.getLogger(__name__)


class TorchScriptDetector(DetectorWrapper):
    """
    Wraps a callable returning raw YOLO output.

    Works with any torch.nn.Module or scripted module, which makes it
    easy to substitute a stub network in tests.
    """

    def __init__(
        self,
        model,
        input_size: int = cfg.MODEL_INPUT_SIZE,
        letterbox: bool = cfg.LETTERBOX,
        device: str = cfg.DEVICE,
        decoder: YoloOutputDecoder | None = None,
    ):
        """
        Args:
            model: Callable mapping a (1, 3, S, S) tensor to the raw
                (1, 4 + N, K) output (or a tuple whose first element
                is that output).
            input_size: Side S of the square model input.
            letterbox: True to letterbox inputs, False to stretch them.
            device: Device string ('cpu' or 'cuda').
            decoder: Decoder to use. Defaults to the standard IoU 0.45,
                50 detections configuration.
        """
        self.model = model
        self.input_size = input_size
        self.letterbox = letterbox
        self.device = device
        self.decoder = decoder or YoloOutputDecoder()

        if hasattr(self.model, "eval"):
            self.model.eval()

    @torch.no_grad()
    def _forward(self, batch: torch.Tensor) -> torch.Tensor:
        output = self.model(batch.to(self.device))
        if isinstance(output, (list, tuple)):
            output = output[0]
        return output.detach().cpu()

    def warmup(self):
        dummy = torch.zeros(1, 3, self.input_size, self.input_size)
        self._forward(dummy)

    async def detect(
        self,
        image: torch.Tensor,
        score_threshold: float,
        input_size: int | None = None,
    ) -> DetectionResult:
        """
        Runs the model on an image and decodes its output.

        Args:
            image: (3, H, W) tensor with values in [0, 1].
            score_threshold: Minimum confidence of kept detections.
            input_size: Override of the square input side.

        Returns
        -------
            result: Detections with boxes normalized to the image.
        """
        _, H, W = image.shape
        size = input_size or self.input_size

        if self.letterbox:
            batch, transform = letterbox_image(image, size)
        else:
            batch, transform = stretch_image(image, size)

        raw = self._forward(batch)
        del batch

        try:
            return await self.decoder.decode(
                raw,
                score_threshold,
                src_width=W,
                src_height=H,
                transform=transform,
                input_size=size,
            )
        finally:
            del raw

"""
Base class for detector wrappers.

Any model can be registered and used by the pipeline by subclassing
DetectorWrapper and implementing detect(). The network itself is a
black box: only its input buffer and raw output tensor matter.
"""

import torch

from ..detection import DetectionResult


class DetectorWrapper:
    """
    Abstract base class for detector wrappers.

    Subclasses must implement detect(), which takes an image tensor
    and resolves to a DetectionResult with normalized boxes.
    """

    input_size: int

    async def detect(
        self,
        image: torch.Tensor,
        score_threshold: float,
        input_size: int | None = None,
    ) -> DetectionResult:
        """
        Runs the detector on an image.

        Args:
            image: (3, H, W) image tensor with values in [0, 1].
            score_threshold: Minimum confidence of kept detections.
            input_size: Override of the square input side. Defaults
                to the size the model was loaded with.

        Returns
        -------
            result: Decoded detections, possibly empty.
        """
        raise NotImplementedError("Subclasses must implement the detect() method.")

    def warmup(self):
        """Runs one pass on a blank input so the first real call is not slow."""

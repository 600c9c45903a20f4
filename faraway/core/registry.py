"""
Process-wide model registry.

Lifecycle: empty at startup, an entry is added the first time a model
loads successfully, and entries are never removed. Concurrent load()
calls for the same name share one in-flight task, and loading a name
that is already registered is a no-op. A failed load is not cached,
so a later call may try again.

detect() on a name that was never registered resolves to None rather
than raising: the caller skips that step.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

import torch

from ..config import settings as cfg
from .detection import DetectionResult
from .exceptions import ModelLoadError
from .wrappers.base import DetectorWrapper
from .wrappers.torchscript import TorchScriptDetector

logger = logging.getLogger(__name__)


def load_torchscript(path: str, device: str = cfg.DEVICE):
    """
    Loads an exported TorchScript detector from disk.

    Args:
        path: Path to the .torchscript / .pt file.
        device: Device to map the weights to.

    Returns
    -------
        model: The loaded scripted module.

    Raises
    ------
        ModelLoadError: If the file is missing or not a valid model.
    """
    if not Path(path).is_file():
        raise ModelLoadError(f"Model file not found: {path}")
    try:
        return torch.jit.load(path, map_location=device)
    except (RuntimeError, ValueError) as e:
        raise ModelLoadError(f"Invalid model file {path}: {e}") from e


class ModelRegistry:
    """Maps model names to loaded detector wrappers."""

    def __init__(
        self,
        loader: Callable[[str, str], object] = load_torchscript,
        device: str = cfg.DEVICE,
    ):
        """
        Args:
            loader: Function (path, device) -> model callable. Runs in
                a worker thread.
            device: Device models are loaded onto.
        """
        self._loader = loader
        self.device = device
        self._models: dict[str, DetectorWrapper] = {}
        self._loading: dict[str, asyncio.Task] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._models

    @property
    def names(self) -> list[str]:
        return list(self._models)

    def get(self, name: str) -> DetectorWrapper | None:
        return self._models.get(name)

    def is_loading(self, name: str) -> bool:
        return name in self._loading

    def register(self, name: str, detector: DetectorWrapper):
        """
        Adds an already-built detector under a name.

        A name is bound once: registering it again, or while a load
        for it is in flight, leaves the existing entry in place.
        """
        if name in self._models or name in self._loading:
            logger.debug("Model %s already registered, ignoring", name)
            return
        self._models[name] = detector

    async def _load(self, path: str, name: str, input_size: int, letterbox: bool):
        logger.info("Loading model %s from %s", name, path)
        try:
            model = await asyncio.to_thread(self._loader, path, self.device)
            detector = TorchScriptDetector(
                model,
                input_size=input_size,
                letterbox=letterbox,
                device=self.device,
            )
            await asyncio.to_thread(detector.warmup)
        except ModelLoadError:
            raise
        except (OSError, RuntimeError, ValueError) as e:
            raise ModelLoadError(f"Could not load model {name} from {path}: {e}") from e

        self._models.setdefault(name, detector)
        logger.info("Model %s ready (input %dx%d)", name, input_size, input_size)

    async def load(
        self,
        path: str,
        name: str,
        input_size: int = cfg.MODEL_INPUT_SIZE,
        letterbox: bool = cfg.LETTERBOX,
    ):
        """
        Loads a model and registers it under a name.

        Args:
            path: Model file path.
            name: Registry key.
            input_size: Side of the square model input.
            letterbox: Resize policy the weights were trained with.

        Raises
        ------
            ModelLoadError: If the file is missing or invalid. Every
                caller waiting on the same load sees the same error.
        """
        if name in self._models:
            return

        task = self._loading.get(name)
        if task is None:
            task = asyncio.ensure_future(self._load(path, name, input_size, letterbox))
            self._loading[name] = task
            task.add_done_callback(lambda t: self._forget(name, t))

        await asyncio.shield(task)

    def _forget(self, name: str, task: asyncio.Task):
        # Runs whether or not any caller is still awaiting the load
        if self._loading.get(name) is task:
            del self._loading[name]
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Loading model %s failed: %s", name, task.exception())

    async def detect(
        self,
        image: torch.Tensor,
        score_threshold: float,
        model_name: str,
        input_size: int | None = None,
    ) -> DetectionResult | None:
        """
        Runs a registered model on an image.

        Args:
            image: (3, H, W) tensor with values in [0, 1].
            score_threshold: Minimum confidence of kept detections.
            model_name: Registry key of the model.
            input_size: Override of the model input side.

        Returns
        -------
            result: Decoded detections, or None if no model is
                registered under model_name.
        """
        detector = self._models.get(model_name)
        if detector is None:
            logger.warning("Model %s is not loaded, skipping detection", model_name)
            return None
        return await detector.detect(image, score_threshold, input_size=input_size)


default_registry = ModelRegistry()

"""Utility functions."""

import numpy as np
import torch
from PIL import Image
from torchvision import transforms


def load_image(image_path: str) -> torch.Tensor:
    """
    Loads an image from disk and converts it to a tensor.

    Args:
        image_path: Path to the image file.

    Returns
    -------
        image: (3, H, W) tensor with values in [0, 1].
    """
    img = Image.open(image_path).convert("RGB")
    return pil_to_tensor(img)


def pil_to_tensor(img: Image.Image) -> torch.Tensor:
    transform = transforms.ToTensor()
    return transform(img.convert("RGB"))


def tensor_to_pil(image: torch.Tensor) -> Image.Image:
    """
    Converts a (3, H, W) tensor in [0, 1] to an RGB PIL image.
    """
    img_np = (image.permute(1, 2, 0).clamp(0, 1).cpu().numpy() * 255).round().astype(np.uint8)
    return Image.fromarray(img_np)

"""Shared fixtures and helpers for the test suite.

Models are replaced by small torch modules that return fixed raw
output tensors, so the tests never need real weights.
"""
import logging

import pytest
import torch

from faraway.core.attributes import AttributeRecord

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)


def make_output(boxes, class_scores) -> torch.Tensor:
    """Build a (1, 4 + N, K) raw output from K center-form boxes and K x N scores."""
    boxes = torch.tensor(boxes, dtype=torch.float32).reshape(-1, 4)
    scores = torch.tensor(class_scores, dtype=torch.float32).reshape(boxes.shape[0], -1)
    rows = torch.cat([boxes, scores], dim=1)
    return rows.transpose(0, 1).unsqueeze(0)


def element_output(elements, num_classes) -> torch.Tensor:
    """Raw output with one separate, non-overlapping box per (class_id, score) pair."""
    boxes = []
    scores = []
    for k, (class_id, score) in enumerate(elements):
        boxes.append([40 + 70 * k, 60, 40, 40])
        row = [0.0] * num_classes
        row[class_id] = score
        scores.append(row)
    return make_output(boxes, scores)


class FakeModel(torch.nn.Module):
    """Returns queued outputs in order, then keeps returning the last one."""

    def __init__(self, *outputs: torch.Tensor):
        super().__init__()
        self.outputs = list(outputs)
        self.inputs = []

    def forward(self, x):
        self.inputs.append(tuple(x.shape))
        if len(self.outputs) > 1:
            return self.outputs.pop(0).clone()
        return self.outputs[0].clone()


def card(value=0, color="", multiplier="", conditions=(), options=()):
    return AttributeRecord(
        color=color,
        value=f"value_{value}" if value else "",
        multiplier=multiplier,
        conditions=tuple(conditions),
        options=tuple(options),
    )


temple = card


@pytest.fixture
def blank_image():
    """A 640 x 640 gray image, letterboxed with scale 1 and no padding."""
    return torch.full((3, 640, 640), 0.5)

"""Tests for letterbox geometry and its inverse mapping."""
import pytest
import torch

from faraway.core.letterbox import (
    compute_letterbox,
    compute_stretch,
    letterbox_image,
    stretch_image,
)


class TestComputeLetterbox:
    """Test suite for compute_letterbox."""

    def test_landscape_image(self):
        t = compute_letterbox(1280, 720, 640)

        assert t.scale == pytest.approx(0.5)
        assert (t.resized_width, t.resized_height) == (640, 360)
        assert (t.offset_x, t.offset_y) == (0, 140)

    def test_portrait_image(self):
        t = compute_letterbox(480, 960, 640)

        assert t.scale == pytest.approx(640 / 960)
        assert (t.resized_width, t.resized_height) == (320, 640)
        assert (t.offset_x, t.offset_y) == (160, 0)

    def test_odd_padding_goes_to_trailing_side(self):
        t = compute_letterbox(640, 481, 640)

        top = t.offset_y
        bottom = 640 - t.resized_height - t.offset_y
        assert (top, bottom) == (79, 80)

    @pytest.mark.parametrize(
        "width,height,size",
        [(1, 1, 640), (1920, 1080, 640), (333, 777, 640), (4032, 3024, 416), (641, 640, 640), (10, 5000, 320)],
    )
    def test_offsets_and_sizes_stay_in_bounds(self, width, height, size):
        t = compute_letterbox(width, height, size)

        assert t.offset_x >= 0 and t.offset_y >= 0
        assert t.resized_width <= size and t.resized_height <= size
        assert t.offset_x + t.resized_width <= size
        assert t.offset_y + t.resized_height <= size
        # One side fills the input, up to rounding
        assert max(t.resized_width, t.resized_height) >= size - 1

    @pytest.mark.parametrize("width,height", [(0, 100), (100, -1)])
    def test_invalid_size_rejected(self, width, height):
        with pytest.raises(ValueError):
            compute_letterbox(width, height, 640)


class TestInverseMapping:
    """Round trips between source and model space."""

    @pytest.mark.parametrize("width,height", [(1280, 720), (720, 1280), (640, 481), (3000, 2000)])
    def test_letterbox_round_trip(self, width, height):
        t = compute_letterbox(width, height, 640)
        boxes = torch.tensor([[10.0, 20.0, 300.0, 400.0], [0.0, 0.0, width, height]])

        back = t.to_source(t.to_model(boxes))

        assert torch.allclose(back, boxes, rtol=1e-3, atol=1e-3)

    def test_model_corners_map_to_image_corners(self):
        t = compute_letterbox(1280, 720, 640)
        model_box = torch.tensor([[0.0, 140.0, 640.0, 500.0]])

        source = t.to_source(model_box)

        assert torch.allclose(source, torch.tensor([[0.0, 0.0, 1280.0, 720.0]]))

    def test_stretch_round_trip(self):
        t = compute_stretch(1280, 720, 640)
        boxes = torch.tensor([[100.0, 50.0, 900.0, 700.0]])

        assert t.scale_x == pytest.approx(0.5)
        assert t.scale_y == pytest.approx(640 / 720)
        assert torch.allclose(t.to_source(t.to_model(boxes)), boxes, rtol=1e-3)


class TestImageResize:
    """Test suite for the image-level transforms."""

    def test_letterbox_image_pads_with_mid_gray(self):
        image = torch.ones(3, 481, 640)

        batch, t = letterbox_image(image, 640)

        assert batch.shape == (1, 3, 640, 640)
        pad = 127 / 255
        assert torch.allclose(batch[0, :, : t.offset_y, :], torch.full_like(batch[0, :, : t.offset_y, :], pad))
        assert torch.allclose(batch[0, :, 560:, :], torch.full_like(batch[0, :, 560:, :], pad))
        assert torch.allclose(batch[0, :, 79:560, :], torch.ones(3, 481, 640))

    def test_letterbox_image_centers_narrow_image(self):
        image = torch.zeros(3, 200, 100)

        batch, t = letterbox_image(image, 50)

        assert (t.resized_width, t.resized_height) == (25, 50)
        assert t.offset_x == 12
        assert torch.allclose(batch[0, :, :, 12:37], torch.zeros(3, 50, 25))
        assert batch[0, 0, 0, 49].item() == pytest.approx(127 / 255)
        assert batch[0, 0, 0, 0].item() == pytest.approx(127 / 255)

    def test_stretch_image_fills_input(self):
        image = torch.ones(3, 100, 300)

        batch, t = stretch_image(image, 64)

        assert batch.shape == (1, 3, 64, 64)
        assert torch.allclose(batch, torch.ones_like(batch))
        assert t.input_size == 64

import numpy as np
import pytest
from PIL import Image

from image_editor.models.parameters import FilterParameters, ParameterModel
from image_editor.services.filter_service import (
    FilterChain,
    FilterOperation,
    FilterService,
    hue_rotate_matrix,
    saturate_matrix,
    sepia_matrix,
)


@pytest.fixture
def service() -> FilterService:
    return FilterService()


def solid(color, size=(4, 3)) -> Image.Image:
    return Image.new("RGBA", size, color)


class TestComposeFilterChain:
    def test_defaults_give_empty_chain(self, service):
        chain = service.compose_filter_chain(FilterParameters())
        assert len(chain) == 0
        assert chain.to_css() == "none"

    def test_reset_gives_neutral_chain(self, service):
        model = ParameterModel()
        model.set_filter("saturation", 10)
        model.set_filter("hue", -45)
        model.reset()
        assert service.compose_filter_chain(model.filters) == FilterChain()

    def test_extremes_keep_only_non_neutral_operations(self, service):
        chain = service.compose_filter_chain(FilterParameters(brightness=40, sepia=100))
        assert chain.names == ("brightness", "sepia")
        assert [op.magnitude for op in chain] == [40, 100]
        assert chain.to_css() == "brightness(40%) sepia(100%)"

    def test_fixed_order(self, service):
        params = FilterParameters(brightness=120, contrast=80, saturation=150, hue=-30, blur=2.5, sepia=10)
        chain = service.compose_filter_chain(params)
        assert chain.names == ("brightness", "contrast", "saturate", "hue-rotate", "blur", "sepia")
        assert chain.to_css() == (
            "brightness(120%) contrast(80%) saturate(150%) hue-rotate(-30deg) blur(2.5px) sepia(10%)"
        )


class TestMatrices:
    def test_neutral_matrices_are_identity(self):
        assert np.allclose(saturate_matrix(1.0), np.eye(3), atol=1e-6)
        assert np.allclose(hue_rotate_matrix(0.0), np.eye(3), atol=1e-6)
        assert np.allclose(sepia_matrix(0.0), np.eye(3), atol=1e-6)

    def test_full_turn_hue_rotation_is_identity(self):
        assert np.allclose(hue_rotate_matrix(360.0), np.eye(3), atol=1e-5)

    def test_quarter_turn_hue_rotation_matches_reference(self):
        expected = np.array([
            [0.0, 0.0, 1.0],
            [0.356, 0.855, -0.211],
            [-0.574, 1.43, 0.144],
        ])
        assert np.allclose(hue_rotate_matrix(90.0), expected, atol=1e-5)

    def test_half_turn_hue_rotation_matches_reference(self):
        expected = np.array([
            [-0.574, 1.43, 0.144],
            [0.426, 0.43, 0.144],
            [0.426, 1.43, -0.856],
        ])
        assert np.allclose(hue_rotate_matrix(180.0), expected, atol=1e-5)


class TestApplyFilterChain:
    def test_empty_chain_copies_pixels(self, service):
        image = solid((10, 20, 30, 255))
        result = service.apply_filter_chain(image, FilterChain())
        assert result is not image
        assert np.array_equal(np.asarray(result), np.asarray(image))

    def test_brightness_scales_rgb(self, service):
        chain = FilterChain((FilterOperation("brightness", 50, "%"),))
        result = service.apply_filter_chain(solid((200, 100, 50, 255)), chain)
        assert result.getpixel((0, 0)) == (100, 50, 25, 255)

    def test_contrast_moves_towards_middle_gray(self, service):
        chain = FilterChain((FilterOperation("contrast", 50, "%"),))
        result = service.apply_filter_chain(solid((255, 255, 255, 255)), chain)
        assert result.getpixel((0, 0)) == (191, 191, 191, 255)

    def test_zero_saturation_is_gray(self, service):
        chain = service.compose_filter_chain(FilterParameters(saturation=0))
        r, g, b, a = service.apply_filter_chain(solid((255, 0, 0, 255)), chain).getpixel((0, 0))
        assert r == g == b
        assert a == 255

    def test_full_sepia_on_white(self, service):
        chain = service.compose_filter_chain(FilterParameters(sepia=100))
        result = service.apply_filter_chain(solid((255, 255, 255, 255)), chain)
        assert result.getpixel((0, 0)) == (255, 255, 239, 255)

    def test_hue_rotate_on_red(self, service):
        chain = service.compose_filter_chain(FilterParameters(hue=90))
        result = service.apply_filter_chain(solid((255, 0, 0, 255)), chain)
        assert result.getpixel((0, 0)) == (0, 91, 0, 255)

    def test_color_operations_keep_alpha(self, service):
        chain = service.compose_filter_chain(FilterParameters(brightness=140, hue=90, sepia=30))
        result = service.apply_filter_chain(solid((90, 140, 200, 128)), chain)
        assert result.getpixel((0, 0))[3] == 128

    def test_order_matters(self, service):
        image = solid((30, 160, 220, 255))
        forward = FilterChain((FilterOperation("brightness", 160, "%"), FilterOperation("sepia", 100, "%")))
        backward = FilterChain((FilterOperation("sepia", 100, "%"), FilterOperation("brightness", 160, "%")))
        assert service.apply_filter_chain(image, forward).getpixel((0, 0)) != \
            service.apply_filter_chain(image, backward).getpixel((0, 0))

    def test_blur_keeps_uniform_interior(self, service):
        chain = service.compose_filter_chain(FilterParameters(blur=3))
        result = service.apply_filter_chain(solid((200, 100, 50, 255), size=(64, 64)), chain)
        assert result.getpixel((32, 32)) == (200, 100, 50, 255)

    def test_blur_fades_borders_to_transparent(self, service):
        chain = service.compose_filter_chain(FilterParameters(blur=4))
        result = np.asarray(service.apply_filter_chain(solid((200, 100, 50, 255), size=(48, 48)), chain))
        corner, edge, center = result[0, 0, 3], result[0, 24, 3], result[24, 24, 3]
        assert corner < edge < center
        assert 40 < corner < 110
        assert 100 < edge < 175
        # colour is kept where the pixels become translucent
        assert np.all(np.abs(result[0, 0, :3].astype(int) - (200, 100, 50)) <= 6)

    def test_blur_softens_edges(self, service):
        pixels = np.zeros((10, 20, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        pixels[:, 10:, :3] = 255
        chain = service.compose_filter_chain(FilterParameters(blur=2))
        result = np.asarray(service.apply_filter_chain(Image.fromarray(pixels), chain))
        edge = result[5, 9, 0]
        assert 0 < edge < 255

    def test_converts_rgb_input_to_rgba(self, service):
        chain = service.compose_filter_chain(FilterParameters(brightness=50))
        result = service.apply_filter_chain(Image.new("RGB", (2, 2), (100, 100, 100)), chain)
        assert result.mode == "RGBA"
        assert result.getpixel((1, 1)) == (50, 50, 50, 255)

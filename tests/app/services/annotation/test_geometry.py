"""
Tests for coordinate mapping
"""
import pytest

from app.services.annotation import Annotation, CoordinateMapper, max_display_box


class TestCoordinateMapper:
    """Tests for CoordinateMapper"""

    def test_landscape_limited_by_width(self):
        """Test 2000x1000 fits an 800x600 box at ratio 0.4"""
        mapper = CoordinateMapper(2000, 1000, max_width=800, max_height=600)

        assert mapper.ratio == pytest.approx(0.4)
        size = mapper.display_size
        assert size.width == pytest.approx(800)
        assert size.height == pytest.approx(400)

    def test_portrait_limited_by_height(self):
        """Test 400x1000 fits an 800x600 box at ratio 0.6"""
        mapper = CoordinateMapper(400, 1000, max_width=800, max_height=600)

        assert mapper.ratio == pytest.approx(0.6)
        assert mapper.display_size.width == pytest.approx(240)
        assert mapper.display_size.height == pytest.approx(600)

    def test_small_images_are_upscaled(self):
        """Test a single ratio is used even when it is above 1"""
        mapper = CoordinateMapper(200, 100, max_width=800, max_height=600)
        assert mapper.ratio == pytest.approx(4.0)

    def test_aspect_ratio_preserved(self):
        mapper = CoordinateMapper(1234, 567)
        size = mapper.display_size
        assert size.width / size.height == pytest.approx(1234 / 567)

    @pytest.mark.parametrize("width,height", [(0, 100), (100, 0), (-5, 100)])
    def test_invalid_natural_size(self, width, height):
        with pytest.raises(ValueError):
            CoordinateMapper(width, height)

    def test_invalid_display_box(self):
        with pytest.raises(ValueError):
            CoordinateMapper(100, 100, max_width=0)

    def test_point_conversion(self):
        mapper = CoordinateMapper(2000, 1000, max_width=800, max_height=600)

        assert mapper.to_display(1000, 500) == pytest.approx((400, 200))
        assert mapper.to_natural(400, 200) == pytest.approx((1000, 500))

    def test_rect_to_natural(self):
        """Test annotation bbox is converted with positive extent"""
        mapper = CoordinateMapper(2000, 1000, max_width=800, max_height=600)
        annotation = Annotation(image_id="1", x=100, y=100, width=-40, height=20)

        assert mapper.rect_to_natural(annotation) == pytest.approx((150, 250, 100, 50))


class TestDisplayBox:
    """Tests for the responsive display box"""

    def test_default_box(self):
        assert max_display_box() == (800, 600)

    def test_narrow_viewport(self):
        assert max_display_box(1200) == (800, 600)

    def test_wide_viewport(self):
        assert max_display_box(1440) == (1000, 600)

    def test_for_viewport(self):
        mapper = CoordinateMapper.for_viewport(2000, 1000, viewport_width=1440)
        assert mapper.ratio == pytest.approx(0.5)
        assert mapper.display_size.width == pytest.approx(1000)

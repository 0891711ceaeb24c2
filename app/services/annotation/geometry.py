"""
Coordinate mapping between natural image pixels and the display surface

The image is scaled by a single ratio so its aspect ratio is preserved and it
fits the display box. Annotations are drawn and stored in display space.
Re-rendering at a different display size does not rescale stored
annotations; use rect_to_natural() when natural-pixel geometry is needed.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from app import config
from .models import Annotation


@dataclass(frozen=True)
class DisplaySize:
    """Scaled size of an image on the drawing surface"""
    width: float
    height: float
    ratio: float


def max_display_box(viewport_width: Optional[int] = None) -> Tuple[int, int]:
    """
    Get the display bounding box for a viewport

    Args:
        viewport_width: Browser viewport width in pixels (None if unknown)

    Returns:
        (max_width, max_height) tuple
    """
    if viewport_width is not None and viewport_width > config.WIDE_VIEWPORT_THRESHOLD:
        return config.WIDE_MAX_DISPLAY_WIDTH, config.MAX_DISPLAY_HEIGHT
    return config.MAX_DISPLAY_WIDTH, config.MAX_DISPLAY_HEIGHT


class CoordinateMapper:
    """
    Converts between natural image coordinates and display coordinates

    Example:
        mapper = CoordinateMapper(2000, 1000, max_width=800, max_height=600)
        mapper.ratio          # 0.4
        mapper.display_size   # DisplaySize(width=800.0, height=400.0, ratio=0.4)
    """

    def __init__(
        self,
        natural_width: float,
        natural_height: float,
        max_width: float = config.MAX_DISPLAY_WIDTH,
        max_height: float = config.MAX_DISPLAY_HEIGHT,
    ):
        if natural_width <= 0 or natural_height <= 0:
            raise ValueError(
                f"Natural image size must be positive, got {natural_width}x{natural_height}"
            )
        if max_width <= 0 or max_height <= 0:
            raise ValueError(f"Display box must be positive, got {max_width}x{max_height}")

        self.natural_width = natural_width
        self.natural_height = natural_height
        self.max_width = max_width
        self.max_height = max_height
        self.ratio = min(max_width / natural_width, max_height / natural_height)

    @classmethod
    def for_viewport(
        cls,
        natural_width: float,
        natural_height: float,
        viewport_width: Optional[int] = None,
    ) -> "CoordinateMapper":
        """Create a mapper using the responsive display box for a viewport"""
        max_width, max_height = max_display_box(viewport_width)
        return cls(natural_width, natural_height, max_width=max_width, max_height=max_height)

    @property
    def display_size(self) -> DisplaySize:
        return DisplaySize(
            width=self.natural_width * self.ratio,
            height=self.natural_height * self.ratio,
            ratio=self.ratio,
        )

    def to_display(self, x: float, y: float) -> Tuple[float, float]:
        """Natural pixel position to display position"""
        return x * self.ratio, y * self.ratio

    def to_natural(self, x: float, y: float) -> Tuple[float, float]:
        """Display position to natural pixel position"""
        return x / self.ratio, y / self.ratio

    def rect_to_natural(self, annotation: Annotation) -> Tuple[float, float, float, float]:
        """Annotation bounding box (left, top, width, height) in natural pixels"""
        left, top, width, height = annotation.get_bbox()
        return (
            left / self.ratio,
            top / self.ratio,
            width / self.ratio,
            height / self.ratio,
        )

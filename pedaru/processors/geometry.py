# pedaru/processors/geometry.py
"""
Coordinate transforms between PDF user space and overlay (screen) space.

Coordinate systems:
- PDF user space: origin at bottom-left of the page box, Y increases upward
- Screen space: origin at top-left of the rendered page, Y increases downward

All matrices use the PDF convention (a, b, c, d, e, f), i.e. the 3x3 matrix

    | a b 0 |
    | c d 0 |
    | e f 1 |

applied to row vectors: [x' y' 1] = [x y 1] x M.
"""

import logging
import math

from pedaru.models.types import Matrix, PageViewport

# Module logger
logger = logging.getLogger(__name__)

# Supported page rotations (degrees, clockwise)
VALID_ROTATIONS = (0, 90, 180, 270)

# (rotateA, rotateB, rotateC, rotateD) per rotation; Y axis is flipped at 0
_ROTATION_COEFFICIENTS = {
    0: (1, 0, 0, -1),
    90: (0, 1, 1, 0),
    180: (-1, 0, 0, 1),
    270: (0, -1, -1, 0),
}


def multiply_transform(m1: Matrix, m2: Matrix) -> Matrix:
    """
    Compose two transforms so that m2 is applied first, then m1.

    Same convention as the viewer library's Util.transform(m1, m2):
    transforming a point with the result equals transforming it with m2
    and then with m1.
    """
    return (
        m1[0] * m2[0] + m1[2] * m2[1],
        m1[1] * m2[0] + m1[3] * m2[1],
        m1[0] * m2[2] + m1[2] * m2[3],
        m1[1] * m2[2] + m1[3] * m2[3],
        m1[0] * m2[4] + m1[2] * m2[5] + m1[4],
        m1[1] * m2[4] + m1[3] * m2[5] + m1[5],
    )


def apply_transform(x: float, y: float, m: Matrix) -> tuple[float, float]:
    """Transform a point by matrix m."""
    return (
        x * m[0] + y * m[2] + m[4],
        x * m[1] + y * m[3] + m[5],
    )


def normalize_rotation(rotation: int) -> int:
    """Normalize a page /Rotate value to 0, 90, 180 or 270."""
    normalized = rotation % 360
    if normalized not in VALID_ROTATIONS:
        logger.warning("Unsupported page rotation %s, treating as 0", rotation)
        return 0
    return normalized


def create_viewport(
    view_box: tuple[float, float, float, float],
    scale: float,
    rotation: int = 0,
    offset_x: float = 0.0,
    offset_y: float = 0.0,
) -> PageViewport:
    """
    Build the viewport for a page box at the given zoom.

    Args:
        view_box: Page box (x0, y0, x1, y1) in PDF user space (usually the MediaBox)
        scale: Zoom factor; 1.0 maps one PDF point to one px
        rotation: Page rotation in degrees (multiple of 90)
        offset_x: Extra horizontal offset in px
        offset_y: Extra vertical offset in px

    Returns:
        PageViewport whose transform maps user space to screen px

    Raises:
        ValueError: If scale is not a positive finite number or the box is empty
    """
    if math.isnan(scale) or math.isinf(scale):
        raise ValueError(f"Invalid scale: {scale}. Must be a finite number.")
    if scale <= 0:
        raise ValueError(f"Invalid scale: {scale}. Must be positive.")

    x0, y0, x1, y1 = view_box
    if x1 <= x0 or y1 <= y0:
        raise ValueError(f"Invalid page box: {view_box}")

    rotation = normalize_rotation(rotation)
    rotate_a, rotate_b, rotate_c, rotate_d = _ROTATION_COEFFICIENTS[rotation]

    center_x = (x1 + x0) / 2
    center_y = (y1 + y0) / 2

    if rotate_a == 0:
        # Quarter turns swap width and height
        offset_canvas_x = abs(center_y - y0) * scale + offset_x
        offset_canvas_y = abs(center_x - x0) * scale + offset_y
        width = (y1 - y0) * scale
        height = (x1 - x0) * scale
    else:
        offset_canvas_x = abs(center_x - x0) * scale + offset_x
        offset_canvas_y = abs(center_y - y0) * scale + offset_y
        width = (x1 - x0) * scale
        height = (y1 - y0) * scale

    transform: Matrix = (
        rotate_a * scale,
        rotate_b * scale,
        rotate_c * scale,
        rotate_d * scale,
        offset_canvas_x - rotate_a * scale * center_x - rotate_c * scale * center_y,
        offset_canvas_y - rotate_b * scale * center_x - rotate_d * scale * center_y,
    )

    return PageViewport(
        width=width,
        height=height,
        scale=scale,
        rotation=rotation,
        transform=transform,
    )


def font_size_from_matrix(m: Matrix) -> float:
    """Euclidean norm of the transformed x basis vector."""
    return math.hypot(m[0], m[1])


def rotation_from_matrix(m: Matrix) -> float:
    """Angle (radians) of the transformed x basis vector."""
    return math.atan2(m[1], m[0])

"""
Pixel addressed lookups on organized clouds.

These only make sense on the transformed sensor cloud, which keeps the
sensor's row/column layout. Filtered or downsampled clouds are unorganized.
"""

from typing import Iterable, Sequence, Tuple

import numpy as np

from tabletop_perception.errors import InvalidPixelError
from tabletop_perception.geometry import PointCloud


def _require_organized(cloud: PointCloud) -> None:
    if not cloud.is_organized:
        raise InvalidPixelError("Pixel lookup needs an organized cloud")


def pixel_index(cloud: PointCloud, col: int, row: int) -> int:
    return row * cloud.width + col


def get_point(cloud: PointCloud, col: int, row: int) -> np.ndarray:
    """
    The 3D point seen at pixel (col, row).
    """
    _require_organized(cloud)
    if not (0 <= col < cloud.width and 0 <= row < cloud.height):
        raise InvalidPixelError(f"Pixel ({col}, {row}) outside {cloud.width}x{cloud.height} image")

    point = cloud.points[pixel_index(cloud, col, row)]
    if not np.isfinite(point).all():
        raise InvalidPixelError(f"No valid range at pixel ({col}, {row})")
    return point.copy()


def select_rect(cloud: PointCloud, rect: Sequence[int]) -> PointCloud:
    """
    Finite points inside rect = (col_min, row_min, col_max, row_max),
    max bounds exclusive and clipped to the image.
    """
    _require_organized(cloud)
    col_min, row_min, col_max, row_max = (int(v) for v in rect)
    col_min, row_min = max(col_min, 0), max(row_min, 0)
    col_max, row_max = min(col_max, cloud.width), min(row_max, cloud.height)

    if col_min >= col_max or row_min >= row_max:
        return cloud.select(np.zeros(0, dtype=np.int64))

    cols, rows = np.meshgrid(np.arange(col_min, col_max), np.arange(row_min, row_max))
    indices = (rows * cloud.width + cols).ravel()
    indices = indices[cloud.finite_mask[indices]]
    return cloud.select(indices)


def select_contour(cloud: PointCloud, pixels: Iterable[Tuple[int, int]]) -> PointCloud:
    """
    Finite points at the given (col, row) pixels. Pixels outside the image
    are skipped and repeated pixels are used once.
    """
    _require_organized(cloud)
    pixels = np.asarray(list(pixels), dtype=np.int64).reshape(-1, 2)
    cols, rows = pixels[:, 0], pixels[:, 1]

    inside = (cols >= 0) & (cols < cloud.width) & (rows >= 0) & (rows < cloud.height)
    indices = np.unique(rows[inside] * cloud.width + cols[inside])
    indices = indices[cloud.finite_mask[indices]]
    return cloud.select(indices)

"""
Seeded synthetic scenes: a table plane with boxes on it, tilted or vertical
planes, and organized depth grids. Used by the tests, the CLI and the demo.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from tabletop_perception.geometry import PointCloud
from tabletop_perception.hull import plane_basis

# (center xyz, edge lengths xyz, number of points)
BoxLayout = Tuple[Sequence[float], Sequence[float], int]

DEFAULT_BOXES = (
    ((0.0, 0.0, 0.1), (0.1, 0.1, 0.1), 300),
)


def plane_points(
    n: int,
    center: Sequence[float] = (0.0, 0.0, 0.0),
    normal: Sequence[float] = (0.0, 0.0, 1.0),
    size: float = 1.0,
    noise: float = 0.0,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """n points spread over a size x size square patch of a plane."""
    rng = rng if rng is not None else np.random.default_rng()
    normal = np.asarray(normal, dtype=np.float64)
    normal = normal / np.linalg.norm(normal)
    u, v = plane_basis(normal)

    uv = rng.uniform(-size / 2, size / 2, size=(n, 2))
    offsets = rng.normal(0.0, noise, size=n) if noise > 0 else np.zeros(n)
    return np.asarray(center) + uv[:, :1] * u + uv[:, 1:] * v + offsets[:, None] * normal


def box_points(
    n: int,
    center: Sequence[float],
    size: Sequence[float],
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """n points filling an axis-aligned box."""
    rng = rng if rng is not None else np.random.default_rng()
    half = np.asarray(size, dtype=np.float64) / 2
    return np.asarray(center) + rng.uniform(-half, half, size=(n, 3))


def make_tabletop_scene(
    n_plane: int = 1000,
    boxes: Sequence[BoxLayout] = DEFAULT_BOXES,
    table_size: float = 1.0,
    table_height: float = 0.0,
    noise: float = 0.002,
    frame_id: str = "base_link",
    seed: Optional[int] = 0,
) -> PointCloud:
    """A horizontal table patch centered at the origin with boxes standing on it."""
    rng = np.random.default_rng(seed)
    parts = [plane_points(n_plane, (0.0, 0.0, table_height), size=table_size, noise=noise, rng=rng)]
    for center, size, n in boxes:
        parts.append(box_points(n, center, size, rng))
    return PointCloud(np.vstack(parts), frame_id=frame_id)


def make_organized_scene(
    width: int = 64,
    height: int = 48,
    pixel_size: float = 0.01,
    table_height: float = 0.0,
    box: Optional[Tuple[int, int, int, int]] = (24, 16, 40, 32),
    box_height: float = 0.1,
    invalid_pixels: Sequence[Tuple[int, int]] = (),
    frame_id: str = "base_link",
) -> PointCloud:
    """
    Top-down depth grid: pixel (col, row) sees the table at
    x = col * pixel_size, y = row * pixel_size, or the top of the box when the
    pixel lies in box = (col_min, row_min, col_max, row_max).
    Listed invalid pixels hold NaN.
    """
    cols, rows = np.meshgrid(np.arange(width), np.arange(height))
    z = np.full((height, width), table_height, dtype=np.float64)
    if box is not None:
        c0, r0, c1, r1 = box
        z[r0:r1, c0:c1] = table_height + box_height

    grid = np.stack([cols * pixel_size, rows * pixel_size, z], axis=-1)
    for col, row in invalid_pixels:
        grid[row, col] = np.nan

    return PointCloud(grid.reshape(-1, 3), frame_id=frame_id, width=width, height=height)

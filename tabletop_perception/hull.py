"""
Planar convex hulls and polygonal prism extraction.

A plane's boundary polygon is the 2D convex hull of its inliers projected
onto the plane. Prism extraction then selects every point whose height above
the plane falls inside a band and whose projection lands inside that polygon,
i.e. the volume directly above a table.
"""

import logging
from typing import Sequence, Tuple

import numpy as np
from scipy.spatial import ConvexHull, QhullError

from tabletop_perception.errors import EmptyRegionError, NoPlaneFoundError
from tabletop_perception.geometry import Plane, PointCloud
from tabletop_perception.ransac import PlaneModel

logger = logging.getLogger(__name__)


def plane_basis(normal: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Two orthonormal in-plane axes (u, v) with u x v = normal.
    """
    normal = normal / np.linalg.norm(normal)
    helper = np.zeros(3)
    helper[np.argmin(np.abs(normal))] = 1.0

    u = np.cross(normal, helper)
    u /= np.linalg.norm(u)
    v = np.cross(normal, u)
    return u, v


def to_plane_coords(points: np.ndarray, model: PlaneModel) -> np.ndarray:
    """(N, 3) points -> (N, 2) coordinates of their projection in the plane basis."""
    u, v = plane_basis(model.normal)
    origin = -model.d * model.normal
    rel = points[:, :3] - origin
    return np.column_stack([rel @ u, rel @ v])


def convex_hull_polygon(points: np.ndarray, model: PlaneModel) -> np.ndarray:
    """
    Ordered (counter-clockwise seen from the normal) hull vertices of the
    points projected onto the plane, as 3D points lying on the plane.
    """
    projected = model.project(points)
    uv = to_plane_coords(projected, model)

    try:
        hull = ConvexHull(uv)
    except (QhullError, ValueError) as e:
        raise NoPlaneFoundError(f"Degenerate plane support, cannot build hull: {e}") from e

    # 2D hull vertices come back in counter-clockwise order
    return projected[hull.vertices]


def points_in_polygon(uv: np.ndarray, polygon_uv: np.ndarray, tol: float = 1e-9) -> np.ndarray:
    """
    Boolean mask of 2D points inside (or on) a convex polygon.
    """
    if len(polygon_uv) < 3:
        return np.zeros(len(uv), dtype=bool)

    x, y = polygon_uv[:, 0], polygon_uv[:, 1]
    signed_area = 0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)
    if signed_area < 0:
        polygon_uv = polygon_uv[::-1]

    edges = np.roll(polygon_uv, -1, axis=0) - polygon_uv

    # One half-plane per edge keeps memory at O(N)
    inside = np.ones(len(uv), dtype=bool)
    for start, edge in zip(polygon_uv, edges):
        cross = edge[0] * (uv[:, 1] - start[1]) - edge[1] * (uv[:, 0] - start[0])
        inside &= cross >= -tol
    return inside


def extract_polygonal_prism(
    points: np.ndarray,
    polygon: np.ndarray,
    model: PlaneModel,
    height_limits: Sequence[float],
) -> np.ndarray:
    """
    Indices of points inside the prism spanned by `polygon` between
    `height_limits` = (low, high), measured along the plane normal.
    """
    low, high = height_limits
    if len(points) == 0:
        return np.zeros(0, dtype=np.int64)

    heights = model.signed_distance(points)
    in_band = np.flatnonzero((heights >= low) & (heights <= high))
    if len(in_band) == 0:
        return in_band

    uv = to_plane_coords(points[in_band], model)
    polygon_uv = to_plane_coords(polygon, model)
    inside = points_in_polygon(uv, polygon_uv)

    return in_band[inside]


def extract_tabletop(
    cloud: PointCloud,
    plane: Plane,
    height_limits: Sequence[float],
) -> PointCloud:
    """
    Points of `cloud` standing on `plane` within the height band.
    """
    dense = cloud.dense()
    model = PlaneModel.from_coefficients(plane.coefficients)
    indices = extract_polygonal_prism(dense.points, plane.polygon, model, height_limits)

    if len(indices) == 0:
        raise EmptyRegionError(f"No points between heights {list(height_limits)} above the plane")

    logger.info("Tabletop region: %d/%d points", len(indices), len(dense))
    return dense.select(indices)


def project_to_plane(cloud: PointCloud, model: PlaneModel) -> PointCloud:
    return cloud.with_points(model.project(cloud.points))

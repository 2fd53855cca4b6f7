"""
Per-object descriptors: centroid, bounds, orientation and surface normals.

The default orientation comes from the cluster diameter: the horizontal
direction of the farthest point pair is taken as the object's Y axis and
world up as its Z axis. A PCA frame is available as an alternative.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import ConvexHull, KDTree, QhullError
from scipy.spatial.transform import Rotation

from tabletop_perception.geometry import BoundingBox, PointCloud, TabletopObject
from tabletop_perception.hull import project_to_plane
from tabletop_perception.ransac import PlaneModel

logger = logging.getLogger(__name__)

IDENTITY_QUATERNION = np.array([0.0, 0.0, 0.0, 1.0])
ORIENTATION_METHODS = ("diameter", "pca")


def _hull_vertices(xyz: np.ndarray) -> np.ndarray:
    """Convex hull vertices, joggling flat inputs. All points if no hull exists."""
    if len(xyz) < 5:
        return xyz
    for options in (None, "QJ"):
        try:
            return xyz[ConvexHull(xyz, qhull_options=options).vertices]
        except (QhullError, ValueError):
            continue
    return xyz


def max_segment(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    The two points realizing the largest pairwise distance.

    The farthest pair always lies on the convex hull, so only hull vertices
    are compared.
    """
    xyz = points[:, :3]
    if len(xyz) == 0:
        raise ValueError("Empty point set has no diameter")

    candidates = _hull_vertices(xyz)

    best_i, best_j, best_d2 = 0, 0, -1.0
    for i in range(len(candidates) - 1):
        d2 = np.sum((candidates[i + 1:] - candidates[i]) ** 2, axis=1)
        j = int(np.argmax(d2))
        if d2[j] > best_d2:
            best_i, best_j, best_d2 = i, i + 1 + j, float(d2[j])

    return candidates[best_i].copy(), candidates[best_j].copy()


def _frame_to_quaternion(x_axis: np.ndarray, y_axis: np.ndarray, z_axis: np.ndarray) -> np.ndarray:
    rot = np.column_stack([x_axis, y_axis, z_axis])
    return Rotation.from_matrix(rot).as_quat()


def orientation_from_segment(
    p_min: np.ndarray,
    p_max: np.ndarray,
    up: Sequence[float] = (0.0, 0.0, 1.0),
) -> np.ndarray:
    """
    Quaternion (x, y, z, w) of the frame whose Y axis is the horizontal
    direction of the segment and whose Z axis is `up`.
    """
    z_axis = np.asarray(up, dtype=np.float64)
    z_axis = z_axis / np.linalg.norm(z_axis)

    y_axis = np.asarray(p_min, dtype=np.float64) - np.asarray(p_max, dtype=np.float64)
    y_axis = y_axis - np.dot(y_axis, z_axis) * z_axis
    norm = np.linalg.norm(y_axis)
    if norm < 1e-9:
        return IDENTITY_QUATERNION.copy()
    y_axis /= norm

    x_axis = np.cross(y_axis, z_axis)
    return _frame_to_quaternion(x_axis, y_axis, z_axis)


def orientation_from_pca(cloud: PointCloud, model: Optional[PlaneModel] = None) -> np.ndarray:
    """
    Quaternion of the principal axes (major axis as X).
    With `model`, the cloud is projected onto that plane first.
    """
    if model is not None:
        cloud = project_to_plane(cloud, model)
    xyz = cloud.points
    if len(xyz) < 3:
        return IDENTITY_QUATERNION.copy()

    centered = xyz - xyz.mean(axis=0)
    _, eigen_vectors = np.linalg.eigh(centered.T @ centered / len(xyz))

    x_axis = eigen_vectors[:, 2]
    y_axis = eigen_vectors[:, 1]
    if x_axis[np.argmax(np.abs(x_axis))] < 0:
        x_axis = -x_axis
    z_axis = np.cross(x_axis, y_axis)
    return _frame_to_quaternion(x_axis, y_axis, z_axis)


def estimate_normals(
    points: np.ndarray,
    k: int = 10,
    viewpoint: Sequence[float] = (0.0, 0.0, 0.0),
    workers: int = -1,
) -> np.ndarray:
    """
    Per-point normals from the covariance of the k nearest neighbors,
    flipped to face `viewpoint`. Fewer than 3 points gives NaN normals.
    """
    xyz = points[:, :3]
    n = len(xyz)
    if n < 3:
        return np.full((n, 3), np.nan)

    k = int(np.clip(k, 3, n))
    tree = KDTree(xyz)
    _, neighbor_idx = tree.query(xyz, k=k, workers=workers)

    neighbors = xyz[neighbor_idx]
    centered = neighbors - neighbors.mean(axis=1, keepdims=True)
    covariances = np.einsum("nki,nkj->nij", centered, centered) / k

    _, eigen_vectors = np.linalg.eigh(covariances)
    normals = eigen_vectors[:, :, 0]

    to_view = np.asarray(viewpoint, dtype=np.float64) - xyz
    flip = np.einsum("ij,ij->i", normals, to_view) < 0
    normals[flip] *= -1
    return normals


def build_object(
    cloud: PointCloud,
    compute_normals: bool = False,
    k_search: int = 10,
    orientation_method: str = "diameter",
    plane_model: Optional[PlaneModel] = None,
    viewpoint: Sequence[float] = (0.0, 0.0, 0.0),
) -> TabletopObject:
    """
    Describe one cluster. Pure function of the cluster's points.
    """
    if orientation_method not in ORIENTATION_METHODS:
        raise ValueError(f"Unknown orientation method: {orientation_method!r}")

    points = cloud.points
    p_min, p_max = max_segment(points)
    if orientation_method == "pca":
        orientation = orientation_from_pca(cloud, plane_model)
    else:
        orientation = orientation_from_segment(p_min, p_max)

    normals = estimate_normals(points, k_search, viewpoint) if compute_normals else None

    return TabletopObject(
        cloud=cloud,
        center=cloud.centroid(),
        bounds=BoundingBox.from_points(points),
        orientation=orientation,
        segment=(p_min, p_max),
        normals=normals,
    )

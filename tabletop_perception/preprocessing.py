import logging
from typing import Sequence, Tuple

import numpy as np
from scipy.spatial import KDTree

from tabletop_perception.errors import EmptyCloudError
from tabletop_perception.geometry import PointCloud

logger = logging.getLogger(__name__)

AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


def _voxel_groups(xyz: np.ndarray, voxel_size: float) -> Tuple[np.ndarray, int]:
    """
    Assign each point to its voxel. Returns the per-point voxel id and voxel count.
    """
    # Compute voxel indices for each point
    # Then shift indices to handle negative values
    # Then create unique hash for each voxel
    voxel_indices = np.floor(xyz / voxel_size).astype(np.int64)

    min_indices = voxel_indices.min(axis=0)
    shifted_indices = voxel_indices - min_indices

    max_dim = shifted_indices.max(axis=0) + 1
    voxel_hash = (shifted_indices[:, 0] * (max_dim[1] * max_dim[2]) + shifted_indices[:, 1] * max_dim[2] + shifted_indices[:, 2])

    unique_hashes, inverse_indices = np.unique(voxel_hash, return_inverse=True)
    return inverse_indices.ravel(), len(unique_hashes)


def _group_mean(values: np.ndarray, groups: np.ndarray, num_groups: int) -> np.ndarray:
    counts = np.bincount(groups, minlength=num_groups)
    means = np.zeros((num_groups, values.shape[1]))
    for dim in range(values.shape[1]):
        means[:, dim] = np.bincount(groups, weights=values[:, dim], minlength=num_groups) / counts
    return means


def voxel_downsample_cloud(cloud: PointCloud, voxel_size: float) -> PointCloud:
    """Voxel grid filter on a dense cloud, averaging colors alongside positions."""
    if len(cloud) == 0:
        return cloud

    groups, num_voxels = _voxel_groups(cloud.points, voxel_size)
    centroids = _group_mean(cloud.points, groups, num_voxels)
    colors = None
    if cloud.colors is not None:
        colors = _group_mean(cloud.colors.astype(np.float64), groups, num_voxels)
        colors = colors.astype(cloud.colors.dtype)

    return PointCloud(centroids, colors, frame_id=cloud.frame_id, stamp=cloud.stamp)


def passthrough_filter(cloud: PointCloud, axis: str, low: float, high: float) -> PointCloud:
    """
    Keep finite points whose coordinate along `axis` lies in [low, high].
    """
    coord = cloud.points[:, AXIS_INDEX[axis]]
    keep = cloud.finite_mask & (coord >= low) & (coord <= high)
    return cloud.select(keep)


def crop_box(cloud: PointCloud, limits: Sequence[float]) -> PointCloud:
    """
    Crop to an axis-aligned box, limits = (xmin, xmax, ymin, ymax, zmin, zmax).
    """
    if len(limits) != 6:
        raise ValueError(f"Need 6 crop limits, got {len(limits)}")

    cropped = cloud
    for i, axis in enumerate("xyz"):
        cropped = passthrough_filter(cropped, axis, limits[2 * i], limits[2 * i + 1])
    return cropped


def filter_cloud(cloud: PointCloud, limits: Sequence[float], leaf_size: float) -> PointCloud:
    """
    Crop the scene to the working box, then downsample it.
    """
    cropped = crop_box(cloud, limits)
    if len(cropped) == 0:
        raise EmptyCloudError(f"No points left after cropping to {list(limits)}")

    if leaf_size <= 0:
        filtered = cropped
    else:
        filtered = voxel_downsample_cloud(cropped, leaf_size)

    logger.info("Filtered cloud: %d -> %d cropped -> %d downsampled",
                len(cloud), len(cropped), len(filtered))
    return filtered


def radius_outlier_removal(
    points: np.ndarray,
    radius: float = 0.01,
    min_neighbors: int = 5,
) -> np.ndarray:
    """
    Keep points with at least `min_neighbors` other points inside `radius`.
    Returns the boolean keep mask.
    """
    if len(points) == 0:
        return np.zeros(0, dtype=bool)

    xyz = points[:, :3]
    tree = KDTree(xyz)

    # The query point itself is always inside its own ball
    counts = tree.query_ball_point(xyz, radius, return_length=True)
    return counts - 1 >= min_neighbors


def remove_outliers(cloud: PointCloud, radius: float, min_neighbors: int) -> PointCloud:
    dense = cloud.dense()
    keep = radius_outlier_removal(dense.points, radius, min_neighbors)
    logger.debug("Outlier removal kept %d/%d points", int(keep.sum()), len(dense))
    return dense.select(keep)

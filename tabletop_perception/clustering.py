import logging
from collections import deque
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from scipy.spatial import KDTree

from tabletop_perception.errors import NoClustersFoundError
from tabletop_perception.geometry import PointCloud

logger = logging.getLogger(__name__)


@dataclass
class ClusterResult:
    labels: np.ndarray
    num_clusters: int
    cluster_sizes: List[int]
    noise_count: int

    def cluster_indices(self) -> List[np.ndarray]:
        return [np.flatnonzero(self.labels == cid) for cid in range(self.num_clusters)]


def euclidean_cluster(
    points: np.ndarray,
    tolerance: float = 0.02,
    min_cluster_size: Optional[int] = None,
    max_cluster_size: Optional[int] = None,
) -> ClusterResult:
    """
    Connected components of the graph linking points closer than `tolerance`.

    Components outside [min_cluster_size, max_cluster_size] are dropped and
    labelled -1. Surviving labels are ordered by size (largest first), ties
    broken by the lowest point index in the component.
    """
    if len(points) == 0:
        return ClusterResult(
            labels=np.array([], dtype=int),
            num_clusters=0,
            cluster_sizes=[],
            noise_count=0,
        )

    xyz = points[:, :3]
    n = len(xyz)
    tree = KDTree(xyz)

    neighborhoods = tree.query_ball_point(xyz, tolerance)

    labels = np.full(n, -1, dtype=int)
    cluster_id = 0

    for i in range(n):
        if labels[i] != -1:
            continue

        labels[i] = cluster_id
        queue = deque(neighborhoods[i])

        while queue:
            j = queue.popleft()
            if labels[j] != -1:
                continue
            labels[j] = cluster_id
            queue.extend(neighborhoods[j])

        cluster_id += 1

    # Components are discovered in order of their lowest index
    sizes = np.bincount(labels, minlength=cluster_id)
    keep = np.ones(cluster_id, dtype=bool)
    if min_cluster_size is not None:
        keep &= sizes >= min_cluster_size
    if max_cluster_size is not None:
        keep &= sizes <= max_cluster_size

    kept = sorted(np.flatnonzero(keep), key=lambda cid: (-sizes[cid], cid))
    remap = np.full(cluster_id, -1, dtype=int)
    for new, old in enumerate(kept):
        remap[old] = new
    labels = remap[labels]

    num_clusters = len(kept)
    cluster_sizes = [int(sizes[cid]) for cid in kept]
    noise_count = int((labels == -1).sum())

    return ClusterResult(
        labels=labels,
        num_clusters=num_clusters,
        cluster_sizes=cluster_sizes,
        noise_count=noise_count,
    )


def extract_clusters(
    cloud: PointCloud,
    tolerance: float,
    min_cluster_size: int,
    max_cluster_size: int,
) -> List[PointCloud]:
    """
    Split a cloud into object clusters, largest first.
    """
    result = euclidean_cluster(
        cloud.points,
        tolerance=tolerance,
        min_cluster_size=min_cluster_size,
        max_cluster_size=max_cluster_size,
    )

    if result.num_clusters == 0:
        raise NoClustersFoundError(
            f"No cluster of {min_cluster_size}-{max_cluster_size} points "
            f"among {len(cloud)} points (tolerance {tolerance})"
        )

    logger.info("number of clusters: %d (sizes %s, %d noise points)",
                result.num_clusters, result.cluster_sizes, result.noise_count)
    return [cloud.select(idx) for idx in result.cluster_indices()]

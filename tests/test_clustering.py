"""Tests for tabletop_perception.clustering: Euclidean cluster extraction."""

import numpy as np
import pytest

from tabletop_perception.clustering import euclidean_cluster, extract_clusters
from tabletop_perception.errors import NoClustersFoundError
from tabletop_perception.geometry import PointCloud
from tabletop_perception.synthetic import box_points


def three_blobs(seed=0):
    rng = np.random.default_rng(seed)
    return np.vstack([
        box_points(200, (0.0, 0.0, 0.05), (0.05, 0.05, 0.05), rng),
        box_points(120, (0.3, 0.0, 0.05), (0.05, 0.05, 0.05), rng),
        box_points(10, (0.0, 0.3, 0.05), (0.01, 0.01, 0.01), rng),
    ])


def membership(labels):
    """Set of clusters, each a frozenset of point ids."""
    groups = {}
    for i, label in enumerate(labels):
        if label >= 0:
            groups.setdefault(label, set()).add(i)
    return {frozenset(g) for g in groups.values()}


def test_euclidean_cluster_separates_blobs():
    result = euclidean_cluster(three_blobs(), tolerance=0.03)
    assert result.num_clusters == 3
    assert result.cluster_sizes == [200, 120, 10]
    assert result.noise_count == 0


def test_euclidean_cluster_labels_ordered_by_size():
    result = euclidean_cluster(three_blobs(), tolerance=0.03)
    assert np.all(result.labels[:200] == 0)
    assert np.all(result.labels[200:320] == 1)
    assert np.all(result.labels[320:] == 2)


def test_euclidean_cluster_membership_is_permutation_invariant():
    points = three_blobs()
    base = euclidean_cluster(points, tolerance=0.03)

    perm = np.random.default_rng(7).permutation(len(points))
    shuffled = euclidean_cluster(points[perm], tolerance=0.03)

    # Map shuffled positions back to original point ids
    restored = np.empty_like(shuffled.labels)
    restored[perm] = shuffled.labels
    assert membership(restored) == membership(base.labels)


def test_euclidean_cluster_drops_small_components():
    result = euclidean_cluster(three_blobs(), tolerance=0.03, min_cluster_size=50)
    assert result.num_clusters == 2
    assert np.all(result.labels[320:] == -1)
    assert result.noise_count == 10


def test_euclidean_cluster_drops_oversized_components():
    result = euclidean_cluster(three_blobs(), tolerance=0.03, min_cluster_size=50, max_cluster_size=150)
    assert result.num_clusters == 1
    assert result.cluster_sizes == [120]
    assert np.all(result.labels[:200] == -1)


def test_euclidean_cluster_empty_input():
    result = euclidean_cluster(np.zeros((0, 3)), tolerance=0.03)
    assert result.num_clusters == 0
    assert result.labels.shape == (0,)


def test_extract_clusters_returns_clouds_largest_first():
    clusters = extract_clusters(PointCloud(three_blobs()), 0.03, 5, 1000)
    assert [len(c) for c in clusters] == [200, 120, 10]


def test_extract_clusters_raises_when_nothing_qualifies():
    with pytest.raises(NoClustersFoundError):
        extract_clusters(PointCloud(three_blobs()), 0.03, 500, 1000)

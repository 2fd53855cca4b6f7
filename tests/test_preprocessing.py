"""Tests for tabletop_perception.preprocessing: cropping, voxel grid, outliers."""

import numpy as np
import pytest

from tabletop_perception.errors import EmptyCloudError
from tabletop_perception.geometry import PointCloud
from tabletop_perception.preprocessing import (
    crop_box,
    filter_cloud,
    passthrough_filter,
    radius_outlier_removal,
    remove_outliers,
    voxel_downsample_cloud,
)

LIMITS = (-0.5, 0.5, -0.5, 0.5, 0.0, 1.0)


def random_cloud(n=2000, seed=0):
    rng = np.random.default_rng(seed)
    return PointCloud(rng.uniform(-1.0, 1.0, size=(n, 3)), frame_id="base_link")


def test_passthrough_keeps_points_in_range():
    cloud = random_cloud()
    out = passthrough_filter(cloud, "z", 0.0, 0.5)
    assert len(out) > 0
    assert np.all((out.points[:, 2] >= 0.0) & (out.points[:, 2] <= 0.5))


def test_crop_box_respects_all_axes():
    out = crop_box(random_cloud(), LIMITS)
    lo = np.array(LIMITS[0::2])
    hi = np.array(LIMITS[1::2])
    assert np.all(out.points >= lo) and np.all(out.points <= hi)


def test_crop_box_is_idempotent():
    once = crop_box(random_cloud(), LIMITS)
    twice = crop_box(once, LIMITS)
    np.testing.assert_array_equal(once.points, twice.points)


def test_crop_box_drops_nan_points():
    points = np.array([[0.0, 0.0, 0.5], [np.nan, np.nan, np.nan], [0.1, 0.1, 0.1]])
    out = crop_box(PointCloud(points), LIMITS)
    assert len(out) == 2
    assert np.isfinite(out.points).all()


def test_crop_box_needs_six_limits():
    with pytest.raises(ValueError):
        crop_box(random_cloud(), (0, 1, 0, 1))


def test_filter_cloud_raises_when_crop_is_empty():
    cloud = PointCloud(np.array([[5.0, 5.0, 5.0]]))
    with pytest.raises(EmptyCloudError):
        filter_cloud(cloud, LIMITS, leaf_size=0.01)


def test_filter_cloud_without_leaf_size_only_crops():
    cloud = random_cloud()
    out = filter_cloud(cloud, LIMITS, leaf_size=0.0)
    assert len(out) == len(crop_box(cloud, LIMITS))


def test_voxel_downsample_never_increases_count():
    cloud = random_cloud(5000)
    for voxel_size in (0.01, 0.1, 0.5):
        assert len(voxel_downsample_cloud(cloud, voxel_size)) <= len(cloud)


def test_filter_cloud_output_stays_inside_cropped_bounds():
    cloud = random_cloud(5000)
    cropped = crop_box(cloud, LIMITS).points
    out = filter_cloud(cloud, LIMITS, leaf_size=0.2).points
    assert len(out) < len(cropped)
    assert np.all(out >= cropped.min(axis=0) - 1e-12)
    assert np.all(out <= cropped.max(axis=0) + 1e-12)


def test_voxel_downsample_replaces_cell_by_centroid():
    points = np.array([
        [0.01, 0.01, 0.01],
        [0.03, 0.03, 0.03],
        [0.51, 0.51, 0.51],
    ])
    out = voxel_downsample_cloud(PointCloud(points, frame_id="base_link"), 0.1)
    assert out.frame_id == "base_link"
    centroids = out.points[np.argsort(out.points[:, 0])]
    np.testing.assert_allclose(centroids, [[0.02, 0.02, 0.02], [0.51, 0.51, 0.51]])


def test_voxel_downsample_empty():
    assert len(voxel_downsample_cloud(PointCloud(np.zeros((0, 3))), 0.1)) == 0


def test_voxel_downsample_cloud_averages_colors():
    points = np.array([[0.01, 0.01, 0.01], [0.02, 0.02, 0.02]])
    colors = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])
    out = voxel_downsample_cloud(PointCloud(points, colors), 0.1)
    assert len(out) == 1
    np.testing.assert_allclose(out.colors, [[0.5, 0.5, 0.5]])


def test_radius_outlier_removal_drops_isolated_points():
    rng = np.random.default_rng(1)
    blob = rng.normal(0.0, 0.005, size=(200, 3))
    stray = np.array([[1.0, 1.0, 1.0], [-1.0, 0.0, 0.0]])
    keep = radius_outlier_removal(np.vstack([blob, stray]), radius=0.02, min_neighbors=5)
    assert not keep[-1] and not keep[-2]
    assert keep[:200].sum() > 190


def test_radius_outlier_removal_does_not_count_the_point_itself():
    points = np.array([[0.0, 0.0, 0.0], [0.001, 0.0, 0.0]])
    assert radius_outlier_removal(points, radius=0.01, min_neighbors=1).all()
    assert not radius_outlier_removal(points, radius=0.01, min_neighbors=2).any()


def test_remove_outliers_skips_nan():
    points = np.array([[0.0, 0.0, 0.0], [np.nan, 0.0, 0.0], [0.001, 0.0, 0.0]])
    out = remove_outliers(PointCloud(points), radius=0.01, min_neighbors=1)
    assert len(out) == 2

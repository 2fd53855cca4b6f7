"""Tests for tabletop_perception.descriptors: diameter, orientation, normals."""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from tabletop_perception.descriptors import (
    build_object,
    estimate_normals,
    max_segment,
    orientation_from_pca,
    orientation_from_segment,
)
from tabletop_perception.geometry import PointCloud
from tabletop_perception.ransac import PlaneModel
from tabletop_perception.synthetic import box_points, plane_points


def test_max_segment_finds_farthest_pair():
    rng = np.random.default_rng(0)
    blob = box_points(300, (0.0, 0.0, 0.0), (0.1, 0.1, 0.1), rng)
    ends = np.array([[-1.0, 0.0, 0.0], [1.0, 0.2, 0.0]])
    p_min, p_max = max_segment(np.vstack([blob, ends]))
    assert {tuple(p_min), tuple(p_max)} == {tuple(ends[0]), tuple(ends[1])}


def test_max_segment_handles_collinear_points():
    points = np.column_stack([np.linspace(0.0, 1.0, 20), np.zeros(20), np.zeros(20)])
    p_min, p_max = max_segment(points)
    assert abs(p_min[0] - p_max[0]) == pytest.approx(1.0)


def test_max_segment_single_point():
    p_min, p_max = max_segment(np.array([[1.0, 2.0, 3.0]]))
    np.testing.assert_allclose(p_min, p_max)


def test_orientation_from_segment_aligns_y_axis():
    q = orientation_from_segment(np.array([1.0, 0.0, 0.3]), np.array([0.0, 0.0, 0.0]))
    rot = Rotation.from_quat(q)
    assert np.linalg.norm(q) == pytest.approx(1.0)
    np.testing.assert_allclose(rot.apply([0, 1, 0]), [1, 0, 0], atol=1e-9)
    np.testing.assert_allclose(rot.apply([0, 0, 1]), [0, 0, 1], atol=1e-9)


def test_orientation_from_vertical_segment_is_identity():
    q = orientation_from_segment(np.array([0.0, 0.0, 1.0]), np.array([0.0, 0.0, 0.0]))
    np.testing.assert_allclose(q, [0, 0, 0, 1])


def test_orientation_from_pca_major_axis():
    rng = np.random.default_rng(0)
    points = box_points(500, (0.0, 0.0, 0.0), (0.4, 0.1, 0.02), rng)
    rot = Rotation.from_quat(orientation_from_pca(PointCloud(points)))
    np.testing.assert_allclose(rot.apply([1, 0, 0]), [1, 0, 0], atol=0.05)


def test_orientation_from_pca_projected_on_plane():
    rng = np.random.default_rng(0)
    points = box_points(500, (0.0, 0.0, 0.2), (0.1, 0.4, 0.3), rng)
    table = PlaneModel(normal=np.array([0.0, 0.0, 1.0]), d=0.0)
    rot = Rotation.from_quat(orientation_from_pca(PointCloud(points), table))
    np.testing.assert_allclose(np.abs(rot.apply([1, 0, 0])), [0, 1, 0], atol=0.05)


def test_estimate_normals_on_plane_face_viewpoint():
    points = plane_points(400, (0.0, 0.0, 0.0), size=0.5, rng=np.random.default_rng(0))
    normals = estimate_normals(points, k=10, viewpoint=(0.0, 0.0, 1.0))
    assert normals.shape == (400, 3)
    np.testing.assert_allclose(normals, np.tile([0.0, 0.0, 1.0], (400, 1)), atol=1e-6)

    flipped = estimate_normals(points, k=10, viewpoint=(0.0, 0.0, -1.0))
    np.testing.assert_allclose(flipped[:, 2], -1.0, atol=1e-6)


def test_estimate_normals_too_few_points():
    assert np.isnan(estimate_normals(np.zeros((2, 3)))).all()


def test_build_object_descriptor():
    rng = np.random.default_rng(0)
    cloud = PointCloud(box_points(300, (0.2, -0.1, 0.1), (0.1, 0.1, 0.1), rng))
    obj = build_object(cloud, compute_normals=True, k_search=8)

    np.testing.assert_allclose(obj.center, [0.2, -0.1, 0.1], atol=0.01)
    assert np.all(obj.bounds.min >= [0.15, -0.15, 0.05])
    assert np.all(obj.bounds.max <= [0.25, -0.05, 0.15])
    assert obj.normals.shape == (300, 3)
    assert obj.size == 300
    assert np.linalg.norm(obj.orientation) == pytest.approx(1.0)


def test_build_object_rejects_unknown_orientation_method():
    cloud = PointCloud(np.random.default_rng(0).normal(size=(20, 3)))
    with pytest.raises(ValueError):
        build_object(cloud, orientation_method="icp")


def test_build_object_pca_uses_support_plane():
    rng = np.random.default_rng(0)
    cloud = PointCloud(box_points(500, (0.0, 0.0, 0.2), (0.1, 0.4, 0.3), rng))
    table = PlaneModel(normal=np.array([0.0, 0.0, 1.0]), d=0.0)

    obj = build_object(cloud, orientation_method="pca", plane_model=table)
    np.testing.assert_allclose(obj.orientation, orientation_from_pca(cloud, table))
    rot = Rotation.from_quat(obj.orientation)
    np.testing.assert_allclose(np.abs(rot.apply([1, 0, 0])), [0, 1, 0], atol=0.05)
    # Descriptors describe the cloud itself, not its projection
    np.testing.assert_allclose(obj.center[2], 0.2, atol=0.02)


def test_build_object_arrays_are_read_only():
    cloud = PointCloud(box_points(100, (0.0, 0.0, 0.1), (0.1, 0.1, 0.1), np.random.default_rng(0)))
    obj = build_object(cloud, compute_normals=True)

    for arr in (obj.center, obj.orientation, obj.normals, *obj.segment):
        with pytest.raises(ValueError):
            arr[0] = 1.0

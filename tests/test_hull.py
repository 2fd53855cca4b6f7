"""Tests for tabletop_perception.hull: convex hull and prism extraction."""

import numpy as np
import pytest

from tabletop_perception.errors import EmptyRegionError
from tabletop_perception.geometry import PointCloud
from tabletop_perception.hull import (
    convex_hull_polygon,
    extract_polygonal_prism,
    extract_tabletop,
    plane_basis,
    points_in_polygon,
    project_to_plane,
)
from tabletop_perception.ransac import PlaneModel
from tabletop_perception.segmentation import build_plane

TABLE = PlaneModel(normal=np.array([0.0, 0.0, 1.0]), d=0.0)


def grid_table(half=0.5, step=0.05):
    xs = np.arange(-half, half + 1e-9, step)
    xx, yy = np.meshgrid(xs, xs)
    return np.column_stack([xx.ravel(), yy.ravel(), np.zeros(xx.size)])


def signed_area_xy(polygon):
    x, y = polygon[:, 0], polygon[:, 1]
    return 0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)


def test_plane_basis_is_orthonormal_and_right_handed():
    normal = np.array([0.3, -0.2, 0.9])
    normal /= np.linalg.norm(normal)
    u, v = plane_basis(normal)
    assert np.dot(u, v) == pytest.approx(0.0, abs=1e-12)
    assert np.dot(u, normal) == pytest.approx(0.0, abs=1e-12)
    np.testing.assert_allclose(np.cross(u, v), normal, atol=1e-12)


def test_convex_hull_of_square_grid_is_its_corners():
    polygon = convex_hull_polygon(grid_table(), TABLE)
    assert len(polygon) == 4
    np.testing.assert_allclose(np.sort(np.abs(polygon[:, :2]).ravel()), 0.5, atol=1e-9)
    assert signed_area_xy(polygon) == pytest.approx(1.0, abs=1e-6)


def test_convex_hull_projects_noisy_points_onto_plane():
    points = grid_table()
    points[:, 2] = np.random.default_rng(0).normal(0.0, 0.003, size=len(points))
    polygon = convex_hull_polygon(points, TABLE)
    np.testing.assert_allclose(polygon[:, 2], 0.0, atol=1e-12)


def test_points_in_polygon_accepts_either_winding():
    square = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    uv = np.array([[0.5, 0.5], [1.5, 0.5], [1.0, 0.5]])
    expected = [True, False, True]
    assert points_in_polygon(uv, square).tolist() == expected
    assert points_in_polygon(uv, square[::-1]).tolist() == expected


def test_points_in_polygon_many_vertices():
    angles = np.linspace(0.0, 2 * np.pi, 360, endpoint=False)
    circle = np.column_stack([np.cos(angles), np.sin(angles)])
    uv = np.random.default_rng(0).uniform(-1.2, 1.2, size=(20000, 2))
    radius = np.linalg.norm(uv, axis=1)

    inside = points_in_polygon(uv, circle)
    assert inside.shape == (20000,)
    # The 360-gon lies between radius cos(pi / 360) and 1
    assert inside[radius < 0.999].all()
    assert not inside[radius > 1.0].any()
    assert points_in_polygon(circle, circle).all()


def test_prism_height_band():
    polygon = convex_hull_polygon(grid_table(), TABLE)
    point = np.array([[0.1, -0.1, 0.02]])

    assert extract_polygonal_prism(point, polygon, TABLE, (0.0, 0.05)).tolist() == [0]
    assert extract_polygonal_prism(point, polygon, TABLE, (0.0, 0.01)).tolist() == []


def test_prism_excludes_points_outside_polygon_or_below_plane():
    polygon = convex_hull_polygon(grid_table(), TABLE)
    points = np.array([
        [0.0, 0.0, 0.1],
        [0.8, 0.0, 0.1],
        [0.0, 0.0, -0.1],
    ])
    assert extract_polygonal_prism(points, polygon, TABLE, (0.0, 0.5)).tolist() == [0]


def test_extract_tabletop_returns_point_above_plane():
    plane = build_plane(TABLE, PointCloud(grid_table()))
    above = PointCloud(np.array([[0.0, 0.0, 0.02]]))

    region = extract_tabletop(above, plane, (0.0, 0.05))
    np.testing.assert_allclose(region.points, [[0.0, 0.0, 0.02]])

    with pytest.raises(EmptyRegionError):
        extract_tabletop(above, plane, (0.0, 0.01))


def test_project_to_plane_flattens_cloud():
    cloud = PointCloud(np.array([[0.1, 0.2, 0.3], [0.0, 0.0, -0.4]]))
    projected = project_to_plane(cloud, TABLE)
    np.testing.assert_allclose(projected.points, [[0.1, 0.2, 0.0], [0.0, 0.0, 0.0]])

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from tabletop_perception.errors import NoPlaneFoundError

logger = logging.getLogger(__name__)


@dataclass
class PlaneModel:
    """
    Represents a 3D plane: normal * point + d = 0
    """
    # Unit vector with distance parameter to represent plane
    normal: np.ndarray
    d: float

    @classmethod
    def from_coefficients(cls, coefficients: Sequence[float]) -> "PlaneModel":
        a, b, c, d = coefficients
        normal = np.array([a, b, c], dtype=np.float64)
        norm = np.linalg.norm(normal)
        if norm < 1e-12:
            raise ValueError("Plane normal has zero length")
        return cls(normal=normal / norm, d=float(d) / norm)

    def signed_distance(self, points: np.ndarray) -> np.ndarray:
        return np.dot(points[:, :3], self.normal) + self.d

    def distance_to_points(self, points: np.ndarray) -> np.ndarray:
        return np.abs(self.signed_distance(points))

    def project(self, points: np.ndarray) -> np.ndarray:
        return points[:, :3] - np.outer(self.signed_distance(points), self.normal)

    def oriented(self) -> "PlaneModel":
        """
        Flip the normal so it points up (+Z). Vertical planes point along
        their dominant axis instead.
        """
        ref = 2 if abs(self.normal[2]) > 1e-6 else int(np.argmax(np.abs(self.normal)))
        if self.normal[ref] < 0:
            return PlaneModel(normal=-self.normal, d=-self.d)
        return self

    @property
    def coefficients(self) -> Tuple[float, float, float, float]:
        return (float(self.normal[0]), float(self.normal[1]), float(self.normal[2]), float(self.d))

    @property
    def equation_string(self) -> str:
        return f"{self.normal[0]:.4f}x + {self.normal[1]:.4f}y + {self.normal[2]:.4f}z + {self.d:.4f} = 0"


def fit_plane_from_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> PlaneModel:
    """
    Fit a plane through three 3D points.
    """
    v1 = p2 - p1
    v2 = p3 - p1

    normal = np.cross(v1, v2)

    norm = np.linalg.norm(normal)
    if norm < 1e-10:
        raise ValueError("Points are collinear")

    normal = normal / norm

    d = -np.dot(normal, p1)

    return PlaneModel(normal=normal, d=d)


def fit_plane_least_squares(points: np.ndarray) -> PlaneModel:
    """
    Total least-squares plane: the normal is the direction of least variance.
    """
    xyz = points[:, :3]
    if len(xyz) < 3:
        raise ValueError("Need at least 3 points")

    centroid = xyz.mean(axis=0)
    _, _, vh = np.linalg.svd(xyz - centroid, full_matrices=False)
    normal = vh[-1]
    normal = normal / np.linalg.norm(normal)

    return PlaneModel(normal=normal, d=-np.dot(normal, centroid))


def ransac_plane(
    points: np.ndarray,
    distance_threshold: float = 0.01,
    max_iterations: int = 100,
    axis: Optional[Sequence[float]] = None,
    eps_angle: Optional[float] = None,
    optimize: bool = True,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[PlaneModel, np.ndarray]:
    """
    Detect the best supported plane using RANSAC.

    When `axis` and `eps_angle` (degrees) are given, hypotheses whose normal
    deviates more than `eps_angle` from the axis (in either direction) are
    rejected. With `optimize`, the winning model is refit to its inliers by
    least squares and the inliers are reselected with the refined model.
    """
    xyz = points[:, :3]
    n_points = len(xyz)

    if n_points < 3:
        raise NoPlaneFoundError(f"Need at least 3 points, got {n_points}")

    if rng is None:
        rng = np.random.default_rng()

    min_cos = None
    if axis is not None and eps_angle is not None:
        axis = np.asarray(axis, dtype=np.float64)
        axis = axis / np.linalg.norm(axis)
        min_cos = np.cos(np.deg2rad(eps_angle))

    best_plane = None
    best_inlier_count = 0
    best_inlier_mask = np.zeros(n_points, dtype=bool)

    for _ in range(max_iterations):
        sample_indices = rng.choice(n_points, 3, replace=False)
        p1, p2, p3 = xyz[sample_indices]

        try:
            plane = fit_plane_from_points(p1, p2, p3)
        except ValueError:
            continue

        if min_cos is not None and abs(np.dot(plane.normal, axis)) < min_cos:
            continue

        distances = plane.distance_to_points(xyz)
        inlier_mask = distances <= distance_threshold
        inlier_count = np.sum(inlier_mask)

        if inlier_count > best_inlier_count:
            best_inlier_count = inlier_count
            best_plane = plane
            best_inlier_mask = inlier_mask

    if best_plane is None:
        raise NoPlaneFoundError(f"RANSAC found no supported plane after {max_iterations} iterations")

    if optimize and best_inlier_count >= 3:
        refined = fit_plane_least_squares(xyz[best_inlier_mask])
        refined_mask = refined.distance_to_points(xyz) <= distance_threshold
        if refined_mask.any():
            best_plane, best_inlier_mask = refined, refined_mask

    best_plane = best_plane.oriented()
    logger.debug("RANSAC plane %s with %d/%d inliers",
                 best_plane.equation_string, int(best_inlier_mask.sum()), n_points)

    return best_plane, best_inlier_mask

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from tabletop_perception.errors import NoPlaneFoundError
from tabletop_perception.geometry import BoundingBox, Plane, PlaneAxis, PointCloud
from tabletop_perception.hull import convex_hull_polygon
from tabletop_perception.ransac import PlaneModel, ransac_plane

logger = logging.getLogger(__name__)

AXIS_VECTORS = {
    "x": (1.0, 0.0, 0.0),
    "y": (0.0, 1.0, 0.0),
    "z": (0.0, 0.0, 1.0),
}


@dataclass
class SegmentationResult:
    plane: Plane
    inliers: PointCloud
    outliers: PointCloud


@dataclass
class MultiPlaneResult:
    """Accepted planes in peel-off order and the points none of them claimed."""
    planes: List[Plane]
    remaining: PointCloud


def classify_plane_axis(coefficients: Sequence[float], band: float = 0.1) -> PlaneAxis:
    """
    Label a plane by the axis its normal is aligned with.

    One normal component must be within `band` of unit length and the other
    two within `band` of zero; anything else is unaligned.
    """
    a, b, c = (abs(v) for v in coefficients[:3])

    def is_unit(v):
        return 1.0 - band < v < 1.0 + band

    def is_zero(v):
        return v < band

    if is_unit(a) and is_zero(b) and is_zero(c):
        return PlaneAxis.X
    if is_zero(a) and is_unit(b) and is_zero(c):
        return PlaneAxis.Y
    if is_zero(a) and is_zero(b) and is_unit(c):
        return PlaneAxis.Z
    return PlaneAxis.NONE


def build_plane(model: PlaneModel, inliers: PointCloud) -> Plane:
    """Assemble the Plane entity: hull polygon, centroid, bounds and axis label."""
    polygon = convex_hull_polygon(inliers.points, model)
    return Plane(
        coefficients=model.coefficients,
        cloud=inliers,
        polygon=polygon,
        center=inliers.centroid(),
        bounds=BoundingBox.from_points(inliers.points),
        axis=classify_plane_axis(model.coefficients),
    )


def segment_single_plane(
    cloud: PointCloud,
    distance_threshold: float = 0.01,
    max_iterations: int = 100,
    axis: Optional[str] = None,
    eps_angle: Optional[float] = None,
    rng: Optional[np.random.Generator] = None,
) -> SegmentationResult:
    """
    Find the best supported plane in a dense cloud.
    `axis` ("x", "y" or "z") with `eps_angle` (degrees) constrains the normal.
    """
    axis_vector = AXIS_VECTORS[axis] if axis is not None else None
    model, inlier_mask = ransac_plane(
        cloud.points,
        distance_threshold=distance_threshold,
        max_iterations=max_iterations,
        axis=axis_vector,
        eps_angle=eps_angle if axis is not None else None,
        rng=rng,
    )

    inliers = cloud.select(inlier_mask)
    plane = build_plane(model, inliers)

    logger.info("Segmented plane %s: %d inliers, axis %s",
                model.equation_string, plane.size, plane.axis.value)
    return SegmentationResult(plane=plane, inliers=inliers, outliers=cloud.select(~inlier_mask))


def segment_multiple_planes(
    cloud: PointCloud,
    distance_threshold: float = 0.01,
    max_iterations: int = 100,
    min_plane_size: int = 1000,
    rng: Optional[np.random.Generator] = None,
) -> MultiPlaneResult:
    """
    Peel planes off the cloud one at a time.

    Each accepted plane has at least `min_plane_size` inliers, which are
    removed before the next round. The loop ends at the first round that
    finds nothing or falls short of the minimum; the number of rounds is
    capped by len(cloud) // min_plane_size + 1. The points left after the
    last accepted plane are returned as `remaining`.
    """
    min_plane_size = max(1, min_plane_size)
    max_rounds = len(cloud) // min_plane_size + 1

    planes = []
    remaining = cloud
    for _ in range(max_rounds):
        try:
            model, inlier_mask = ransac_plane(
                remaining.points,
                distance_threshold=distance_threshold,
                max_iterations=max_iterations,
                rng=rng,
            )
        except NoPlaneFoundError:
            break

        inlier_count = int(inlier_mask.sum())
        if inlier_count < min_plane_size:
            logger.debug("Next plane has %d < %d inliers, stopping", inlier_count, min_plane_size)
            break

        try:
            plane = build_plane(model, remaining.select(inlier_mask))
        except NoPlaneFoundError as e:
            logger.debug("Stopping on degenerate plane: %s", e)
            break
        planes.append(plane)
        logger.info("%d. plane segmented! # of points: %d axis: %s",
                    len(planes), inlier_count, plane.axis.value)

        remaining = remaining.select(~inlier_mask)

    if not planes:
        raise NoPlaneFoundError(f"No plane with at least {min_plane_size} points")

    logger.info("%d planes segmented, %d points remaining", len(planes), len(remaining))
    return MultiPlaneResult(planes=planes, remaining=remaining)

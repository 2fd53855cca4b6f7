from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

import numpy as np


def _readonly(values) -> np.ndarray:
    """Private read-only copy of an array field."""
    arr = np.array(values, dtype=np.float64)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class PointCloud:
    """
    Point positions in one reference frame, with optional per-point colors.

    A cloud is organized when `height > 1` and `width * height == len(points)`.
    Points are stored row-major, so pixel (col, row) lives at row * width + col.
    Pixels without a valid range hold NaN coordinates.
    """
    points: np.ndarray
    colors: Optional[np.ndarray] = None
    frame_id: str = ""
    stamp: float = 0.0
    width: int = 0
    height: int = 1

    def __post_init__(self):
        points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        object.__setattr__(self, "points", points)
        if self.colors is not None:
            colors = np.asarray(self.colors).reshape(-1, 3)
            if len(colors) != len(points):
                raise ValueError(f"Got {len(colors)} colors for {len(points)} points")
            object.__setattr__(self, "colors", colors)
        if self.width == 0:
            object.__setattr__(self, "width", len(points))
            object.__setattr__(self, "height", 1)
        if self.width * self.height != len(points):
            raise ValueError(f"Layout {self.width}x{self.height} does not match {len(points)} points")

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_organized(self) -> bool:
        return self.height > 1

    @property
    def finite_mask(self) -> np.ndarray:
        return np.isfinite(self.points).all(axis=1)

    def select(self, indices: np.ndarray) -> PointCloud:
        """Sub-cloud from a boolean mask or index array. The result is unorganized."""
        indices = np.asarray(indices)
        colors = self.colors[indices] if self.colors is not None else None
        points = self.points[indices]
        return PointCloud(points, colors, frame_id=self.frame_id, stamp=self.stamp)

    def dense(self) -> PointCloud:
        """Drop invalid (NaN) points."""
        return self.select(self.finite_mask)

    def with_points(self, points: np.ndarray, frame_id: Optional[str] = None) -> PointCloud:
        """Same colors, layout and stamp with new positions."""
        return replace(
            self,
            points=points,
            frame_id=self.frame_id if frame_id is None else frame_id,
        )

    def centroid(self) -> np.ndarray:
        return self.points.mean(axis=0)


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    min_z: float
    max_x: float
    max_y: float
    max_z: float

    @classmethod
    def from_points(cls, points: np.ndarray) -> BoundingBox:
        lo = points[:, :3].min(axis=0)
        hi = points[:, :3].max(axis=0)
        return cls(*(float(v) for v in lo), *(float(v) for v in hi))

    @property
    def min(self) -> np.ndarray:
        return np.array([self.min_x, self.min_y, self.min_z])

    @property
    def max(self) -> np.ndarray:
        return np.array([self.max_x, self.max_y, self.max_z])

    def contains(self, points: np.ndarray, atol: float = 1e-9) -> np.ndarray:
        return np.all((points >= self.min - atol) & (points <= self.max + atol), axis=1)


class PlaneAxis(Enum):
    X = "X"
    Y = "Y"
    Z = "Z"
    NONE = "NO"


@dataclass(frozen=True, eq=False)
class Plane:
    """A segmented support surface, immutable once returned."""
    coefficients: Tuple[float, float, float, float]
    cloud: PointCloud
    polygon: np.ndarray
    center: np.ndarray
    bounds: BoundingBox
    axis: PlaneAxis = PlaneAxis.NONE

    def __post_init__(self):
        object.__setattr__(self, "polygon", _readonly(self.polygon))
        object.__setattr__(self, "center", _readonly(self.center))

    @property
    def size(self) -> int:
        return len(self.cloud)

    @property
    def normal(self) -> np.ndarray:
        return np.asarray(self.coefficients[:3])


@dataclass(frozen=True, eq=False)
class TabletopObject:
    """
    One cluster resting on a support surface.

    `orientation` is a unit quaternion (x, y, z, w). `segment` holds the two
    points realizing the cluster diameter the orientation was derived from.
    """
    cloud: PointCloud
    center: np.ndarray
    bounds: BoundingBox
    orientation: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    segment: Optional[Tuple[np.ndarray, np.ndarray]] = None
    normals: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "center", _readonly(self.center))
        object.__setattr__(self, "orientation", _readonly(self.orientation))
        if self.segment is not None:
            object.__setattr__(self, "segment", tuple(_readonly(p) for p in self.segment))
        if self.normals is not None:
            object.__setattr__(self, "normals", _readonly(self.normals))

    @property
    def size(self) -> int:
        return len(self.cloud)

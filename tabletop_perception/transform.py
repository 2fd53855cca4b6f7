"""
Bringing sensor clouds into the fixed frame.

T_A_B converts points FROM frame B INTO frame A.
"""

import logging
import threading
import time
from typing import Dict, Optional, Protocol, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from tabletop_perception.errors import (
    NoInputError,
    RequestCancelledError,
    TransformUnavailableError,
)
from tabletop_perception.geometry import PointCloud

logger = logging.getLogger(__name__)


class RigidTransform:
    """A 4x4 SE3 matrix."""

    def __init__(self, matrix: Optional[np.ndarray] = None):
        matrix = np.eye(4) if matrix is None else np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got {matrix.shape}")
        self.matrix = matrix

    @classmethod
    def from_translation_quaternion(
        cls,
        translation: Sequence[float],
        quaternion: Sequence[float] = (0.0, 0.0, 0.0, 1.0),
    ) -> "RigidTransform":
        """Quaternion is (x, y, z, w)."""
        T = np.eye(4)
        T[:3, :3] = Rotation.from_quat(quaternion).as_matrix()
        T[:3, 3] = translation
        return cls(T)

    @property
    def rotation(self) -> np.ndarray:
        return self.matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.matrix[:3, 3]

    def inverse(self) -> "RigidTransform":
        R = self.rotation
        t = self.translation
        T_inv = np.eye(4)
        T_inv[:3, :3] = R.T
        T_inv[:3, 3] = -R.T @ t
        return RigidTransform(T_inv)

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        return RigidTransform(self.matrix @ other.matrix)

    def apply(self, points: np.ndarray) -> np.ndarray:
        """p_A = R @ p_B + t for (N, 3) points. NaN points stay NaN."""
        return points[:, :3] @ self.rotation.T + self.translation


class PoseProvider(Protocol):
    def lookup(
        self,
        target_frame: str,
        source_frame: str,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> RigidTransform:
        """Return T_target_source or raise TransformUnavailableError."""
        ...


class StaticPoseProvider:
    """
    In-process pose provider holding fixed transforms between frame pairs.
    Lookups wait (bounded) for a pair that has not been registered yet.
    """

    def __init__(self):
        self._transforms: Dict[Tuple[str, str], RigidTransform] = {}
        self._cond = threading.Condition()

    def set_transform(self, target_frame: str, source_frame: str, transform: RigidTransform) -> None:
        with self._cond:
            self._transforms[(target_frame, source_frame)] = transform
            self._cond.notify_all()

    def _resolve(self, target_frame: str, source_frame: str) -> Optional[RigidTransform]:
        if target_frame == source_frame:
            return RigidTransform()
        if (target_frame, source_frame) in self._transforms:
            return self._transforms[(target_frame, source_frame)]
        if (source_frame, target_frame) in self._transforms:
            return self._transforms[(source_frame, target_frame)].inverse()
        return None

    def lookup(
        self,
        target_frame: str,
        source_frame: str,
        timeout: float = 2.0,
        cancel: Optional[threading.Event] = None,
        poll_interval: float = 0.1,
    ) -> RigidTransform:
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                transform = self._resolve(target_frame, source_frame)
                if transform is not None:
                    return transform
                if cancel is not None and cancel.is_set():
                    raise RequestCancelledError("Transform lookup cancelled")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransformUnavailableError(
                        f"No transform {source_frame} -> {target_frame} within {timeout:.1f}s"
                    )
                self._cond.wait(min(remaining, poll_interval))


class LatestCloudSlot:
    """
    Holds the most recent raw cloud.

    The ingestion callback replaces the reference in one step and never
    mutates a published cloud, so readers always get a complete frame.
    """

    def __init__(self):
        self._cloud: Optional[PointCloud] = None
        self._cond = threading.Condition()

    def publish(self, cloud: PointCloud) -> None:
        with self._cond:
            self._cloud = cloud
            self._cond.notify_all()

    def wait(
        self,
        timeout: float,
        poll_interval: float = 0.1,
        cancel: Optional[threading.Event] = None,
    ) -> PointCloud:
        deadline = time.monotonic() + timeout
        with self._cond:
            while self._cloud is None:
                if cancel is not None and cancel.is_set():
                    raise RequestCancelledError("Waiting for input cancelled")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise NoInputError(f"No point cloud received within {timeout:.1f}s")
                self._cond.wait(min(remaining, poll_interval))
            return self._cloud


class FrameTransformer:
    """
    Re-expresses the latest raw cloud in the fixed frame.
    Point count, order and organized layout are preserved.
    """

    def __init__(
        self,
        slot: LatestCloudSlot,
        provider: PoseProvider,
        fixed_frame: str = "base_link",
        input_timeout: float = 5.0,
        poll_interval: float = 0.1,
        transform_timeout: float = 2.0,
    ):
        self.slot = slot
        self.provider = provider
        self.fixed_frame = fixed_frame
        self.input_timeout = input_timeout
        self.poll_interval = poll_interval
        self.transform_timeout = transform_timeout

    def transform(self, cancel: Optional[threading.Event] = None) -> PointCloud:
        raw = self.slot.wait(self.input_timeout, self.poll_interval, cancel)

        try:
            T = self.provider.lookup(self.fixed_frame, raw.frame_id, self.transform_timeout, cancel)
        except TransformUnavailableError as e:
            logger.error("%s", e)
            raise

        transformed = raw.with_points(T.apply(raw.points), frame_id=self.fixed_frame)
        logger.debug("Transformed %d points from %s to %s", len(raw), raw.frame_id, self.fixed_frame)
        return transformed

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from tabletop_perception.clustering import extract_clusters
from tabletop_perception.config import PipelineParams
from tabletop_perception.descriptors import build_object
from tabletop_perception.errors import EmptyRegionError, PerceptionError
from tabletop_perception.geometry import Plane, PointCloud, TabletopObject
from tabletop_perception.hull import extract_tabletop
from tabletop_perception.organized import get_point, select_contour, select_rect
from tabletop_perception.preprocessing import filter_cloud, remove_outliers
from tabletop_perception.ransac import PlaneModel
from tabletop_perception.segmentation import (
    MultiPlaneResult,
    SegmentationResult,
    segment_multiple_planes,
    segment_single_plane,
)
from tabletop_perception.transform import FrameTransformer

logger = logging.getLogger(__name__)


@dataclass
class FrameResult:
    """Result of processing a single frame."""
    # Raw/preprocessing
    raw_count: int
    filtered_cloud: PointCloud
    filtered_count: int

    # Plane segmentation
    plane: Plane
    tabletop_cloud: PointCloud

    # Clustering
    objects: List[TabletopObject] = field(default_factory=list)

    @property
    def num_objects(self) -> int:
        return len(self.objects)


def segment_table(
    cloud: PointCloud,
    params: PipelineParams,
    axis: Optional[str] = None,
    rng: Optional[np.random.Generator] = None,
) -> SegmentationResult:
    axis = axis if axis is not None else params.plane_axis
    return segment_single_plane(
        cloud,
        distance_threshold=params.single_dist_thresh,
        max_iterations=params.max_iter,
        axis=axis,
        eps_angle=params.eps_angle,
        rng=rng if rng is not None else params.rng(),
    )


def cluster_objects(
    tabletop: PointCloud,
    plane: Plane,
    params: PipelineParams,
    compute_normals: bool = False,
) -> List[TabletopObject]:
    """
    Cluster the tabletop region and describe each cluster.
    """
    clusters = extract_clusters(
        tabletop,
        tolerance=params.cluster_tol,
        min_cluster_size=params.min_cluster_size,
        max_cluster_size=params.max_cluster_size,
    )

    model = PlaneModel.from_coefficients(plane.coefficients)
    objects = []
    for k, cluster in enumerate(clusters, start=1):
        obj = build_object(
            cluster,
            compute_normals=compute_normals,
            k_search=params.k_search,
            orientation_method=params.orientation_method,
            plane_model=model,
        )
        logger.debug("# of points in object %d : %d, center %s", k, obj.size, np.round(obj.center, 3))
        objects.append(obj)
    return objects


def run_frame_pipeline(
    cloud: PointCloud,
    params: PipelineParams,
    compute_normals: bool = False,
) -> FrameResult:
    """
    Run the full pipeline on a cloud already in the fixed frame.
    Any failing stage raises and stops the run.
    """
    # Crop + downsample
    filtered = filter_cloud(cloud, params.pass_limits, params.leaf_size)

    # Table plane
    segmentation = segment_table(filtered, params)

    # Region above the table
    tabletop = extract_tabletop(filtered, segmentation.plane, params.prism_limits)

    # Objects
    objects = cluster_objects(tabletop, segmentation.plane, params, compute_normals)

    return FrameResult(
        raw_count=len(cloud),
        filtered_cloud=filtered,
        filtered_count=len(filtered),
        plane=segmentation.plane,
        tabletop_cloud=tabletop,
        objects=objects,
    )


class TabletopPipeline:
    """
    Request-level entry points over the latest sensor frame.

    Every call is one independent invocation: it transforms the latest cloud
    and runs the stages it needs. Calls on one instance are serialized.
    """

    def __init__(self, params: PipelineParams, transformer: FrameTransformer):
        self.params = params
        self.transformer = transformer
        self._lock = threading.Lock()

    @contextmanager
    def _invocation(self, name: str):
        with self._lock:
            try:
                yield
            except PerceptionError as e:
                if e.benign:
                    logger.warning("%s: %s", name, e)
                else:
                    logger.error("%s failed: %s", name, e)
                raise

    def _filtered(self, cancel: Optional[threading.Event]) -> PointCloud:
        transformed = self.transformer.transform(cancel)
        return filter_cloud(transformed, self.params.pass_limits, self.params.leaf_size)

    def _table(self, cancel: Optional[threading.Event]) -> Tuple[PointCloud, Plane, PointCloud]:
        filtered = self._filtered(cancel)
        plane = segment_table(filtered, self.params).plane
        tabletop = extract_tabletop(filtered, plane, self.params.prism_limits)
        return filtered, plane, tabletop

    def get_filtered_cloud(self, cancel: Optional[threading.Event] = None) -> PointCloud:
        with self._invocation("get_filtered_cloud"):
            return self._filtered(cancel)

    def segment_single_plane(
        self,
        axis: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Plane:
        with self._invocation("segment_single_plane"):
            filtered = self._filtered(cancel)
            return segment_table(filtered, self.params, axis=axis).plane

    def segment_multiple_planes(self, cancel: Optional[threading.Event] = None) -> MultiPlaneResult:
        with self._invocation("segment_multiple_planes"):
            filtered = self._filtered(cancel)
            return segment_multiple_planes(
                filtered,
                distance_threshold=self.params.multi_dist_thresh,
                max_iterations=self.params.max_iter,
                min_plane_size=self.params.min_plane_size,
                rng=self.params.rng(),
            )

    def extract_tabletop_region(self, cancel: Optional[threading.Event] = None) -> PointCloud:
        with self._invocation("extract_tabletop_region"):
            _, _, tabletop = self._table(cancel)
            return tabletop

    def cluster_tabletop_objects(
        self,
        compute_normals: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> List[TabletopObject]:
        with self._invocation("cluster_tabletop_objects"):
            _, plane, tabletop = self._table(cancel)
            return cluster_objects(tabletop, plane, self.params, compute_normals)

    def get_point_at(self, col: int, row: int, cancel: Optional[threading.Event] = None) -> np.ndarray:
        with self._invocation("get_point_at"):
            return get_point(self.transformer.transform(cancel), col, row)

    def _object_from_selection(self, selection: PointCloud) -> TabletopObject:
        denoised = remove_outliers(
            selection,
            self.params.outlier_radius_search,
            self.params.outlier_min_neighbors,
        )
        if len(denoised) == 0:
            raise EmptyRegionError("Object cloud is empty after removing outliers")
        return build_object(denoised, k_search=self.params.k_search,
                            orientation_method=self.params.orientation_method)

    def get_object_from_bbox(
        self,
        rect: Sequence[int],
        cancel: Optional[threading.Event] = None,
    ) -> TabletopObject:
        """rect = (col_min, row_min, col_max, row_max) in sensor pixels."""
        with self._invocation("get_object_from_bbox"):
            selection = select_rect(self.transformer.transform(cancel), rect)
            return self._object_from_selection(selection)

    def get_object_from_contour(
        self,
        pixels: Iterable[Tuple[int, int]],
        cancel: Optional[threading.Event] = None,
    ) -> TabletopObject:
        """pixels = (col, row) pairs along the object contour."""
        with self._invocation("get_object_from_contour"):
            selection = select_contour(self.transformer.transform(cancel), pixels)
            return self._object_from_selection(selection)

"""
Tabletop Perception: table plane segmentation and object clustering from depth sensor point clouds.
"""

from .geometry import PointCloud, Plane, PlaneAxis, TabletopObject, BoundingBox
from .preprocessing import crop_box, filter_cloud, voxel_downsample_cloud, radius_outlier_removal
from .ransac import ransac_plane, PlaneModel
from .segmentation import segment_single_plane, segment_multiple_planes, classify_plane_axis, MultiPlaneResult
from .hull import convex_hull_polygon, extract_tabletop
from .clustering import euclidean_cluster, extract_clusters, ClusterResult
from .descriptors import build_object, estimate_normals
from .config import PipelineParams, load_config
from .pipeline import TabletopPipeline, run_frame_pipeline

__version__ = "0.1.0"

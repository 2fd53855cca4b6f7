"""Configuration: load the perception YAML file into PipelineParams."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import yaml

from tabletop_perception.descriptors import ORIENTATION_METHODS


@dataclass
class PipelineParams:
    """Parameters for the tabletop perception pipeline."""
    # Frames
    fixed_frame: str = "base_link"
    input_timeout: float = 5.0
    poll_interval: float = 0.1
    transform_timeout: float = 2.0
    # Filters
    leaf_size: float = 0.01
    pass_limits: Tuple[float, ...] = (-2.0, 2.0, -2.0, 2.0, -0.5, 2.0)
    prism_limits: Tuple[float, float] = (0.01, 0.5)
    outlier_min_neighbors: int = 5
    outlier_radius_search: float = 0.02
    # Plane segmentation
    eps_angle: float = 15.0
    single_dist_thresh: float = 0.01
    multi_dist_thresh: float = 0.02
    min_plane_size: int = 1000
    max_iter: int = 200
    plane_axis: Optional[str] = None
    # Clustering
    cluster_tol: float = 0.02
    min_cluster_size: int = 50
    max_cluster_size: int = 25000
    # Objects
    k_search: int = 10
    orientation_method: str = "diameter"
    seed: Optional[int] = None

    def rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)


def _validate(params: PipelineParams) -> None:
    """Validate parameter values. Raises ValueError on bad input."""
    pl = params.pass_limits
    if len(pl) != 6 or pl[0] > pl[1] or pl[2] > pl[3] or pl[4] > pl[5]:
        raise ValueError(f"Bad pass limits: {list(pl)}")
    if len(params.prism_limits) != 2 or params.prism_limits[0] > params.prism_limits[1]:
        raise ValueError(f"Bad prism limits: {list(params.prism_limits)}")
    if params.leaf_size < 0:
        raise ValueError(f"Leaf size must be >= 0, got {params.leaf_size}")
    if params.single_dist_thresh <= 0 or params.multi_dist_thresh <= 0:
        raise ValueError("Plane distance thresholds must be positive")
    if params.max_iter < 1:
        raise ValueError(f"Max iterations must be >= 1, got {params.max_iter}")
    if params.min_plane_size < 1:
        raise ValueError(f"Min plane size must be >= 1, got {params.min_plane_size}")
    if params.cluster_tol <= 0:
        raise ValueError(f"Cluster tolerance must be positive, got {params.cluster_tol}")
    if params.min_cluster_size > params.max_cluster_size:
        raise ValueError(
            f"Bad cluster size bounds: min={params.min_cluster_size}, max={params.max_cluster_size}"
        )
    if params.plane_axis not in (None, "x", "y", "z"):
        raise ValueError(f"Plane axis must be x, y or z, got {params.plane_axis!r}")
    if params.orientation_method not in ORIENTATION_METHODS:
        raise ValueError(f"Unknown orientation method: {params.orientation_method!r}")
    if min(params.input_timeout, params.transform_timeout) <= 0 or params.poll_interval <= 0:
        raise ValueError("Timeouts and poll interval must be positive")


def load_config(path: str | Path) -> PipelineParams:
    """Load a perception YAML file and return validated PipelineParams."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    seg = raw.get("segmentation", {})
    filters = raw.get("filters", {})
    tf = raw.get("transform", {})
    objects = raw.get("objects", {})
    defaults = PipelineParams()

    params = PipelineParams(
        fixed_frame=str(raw.get("fixed_frame", defaults.fixed_frame)),
        input_timeout=float(tf.get("input_timeout", defaults.input_timeout)),
        poll_interval=float(tf.get("poll_interval", defaults.poll_interval)),
        transform_timeout=float(tf.get("transform_timeout", defaults.transform_timeout)),
        leaf_size=float(filters.get("leaf_size", defaults.leaf_size)),
        pass_limits=tuple(float(v) for v in filters.get("pass_limits", defaults.pass_limits)),
        prism_limits=tuple(float(v) for v in filters.get("prism_limits", defaults.prism_limits)),
        outlier_min_neighbors=int(filters.get("outlier_min_neighbors", defaults.outlier_min_neighbors)),
        outlier_radius_search=float(filters.get("outlier_radius_search", defaults.outlier_radius_search)),
        eps_angle=float(seg.get("sac_eps_angle", defaults.eps_angle)),
        single_dist_thresh=float(seg.get("sac_dist_thresh_single", defaults.single_dist_thresh)),
        multi_dist_thresh=float(seg.get("sac_dist_thresh_multi", defaults.multi_dist_thresh)),
        min_plane_size=int(seg.get("sac_min_plane_size", defaults.min_plane_size)),
        max_iter=int(seg.get("sac_max_iter", defaults.max_iter)),
        plane_axis=seg.get("sac_axis", defaults.plane_axis),
        cluster_tol=float(seg.get("ec_cluster_tol", defaults.cluster_tol)),
        min_cluster_size=int(seg.get("ec_min_cluster_size", defaults.min_cluster_size)),
        max_cluster_size=int(seg.get("ec_max_cluster_size", defaults.max_cluster_size)),
        k_search=int(seg.get("ne_k_search", defaults.k_search)),
        orientation_method=str(objects.get("orientation_method", defaults.orientation_method)),
        seed=raw.get("seed", defaults.seed),
    )
    _validate(params)
    return params

"""Shared fixtures: a seeded tabletop scene and parameters sized for it."""

import pytest

from tabletop_perception.config import PipelineParams
from tabletop_perception.synthetic import make_tabletop_scene


@pytest.fixture
def tabletop_scene():
    # 1000 table points around z=0, 300 box points centered at (0, 0, 0.1)
    return make_tabletop_scene(n_plane=1000, seed=0)


@pytest.fixture
def scene_params():
    return PipelineParams(
        leaf_size=0.0,
        pass_limits=(-1.0, 1.0, -1.0, 1.0, -1.0, 1.0),
        prism_limits=(0.02, 0.2),
        single_dist_thresh=0.01,
        max_iter=200,
        cluster_tol=0.03,
        min_cluster_size=50,
        max_cluster_size=1000,
        min_plane_size=500,
        outlier_radius_search=0.025,
        outlier_min_neighbors=2,
        input_timeout=0.2,
        transform_timeout=0.2,
        poll_interval=0.01,
        seed=0,
    )

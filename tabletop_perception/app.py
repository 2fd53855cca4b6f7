"""Streamlit UI for tabletop perception visualization"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import streamlit as st
import numpy as np
import plotly.graph_objects as go

from tabletop_perception.config import PipelineParams, load_config
from tabletop_perception.data_loader import load_point_cloud
from tabletop_perception.errors import PerceptionError
from tabletop_perception.logging_config import setup_logging
from tabletop_perception.pipeline import FrameResult, run_frame_pipeline
from tabletop_perception.preprocessing import filter_cloud
from tabletop_perception.segmentation import segment_multiple_planes
from tabletop_perception.synthetic import make_tabletop_scene
from tabletop_perception.visualizations import (
    scatter_2d,
    scatter_3d_objects,
    scatter_3d_planes,
    scatter_3d_table_tabletop,
    top_view_with_objects,
)

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


def base_params() -> PipelineParams:
    return load_config(DEFAULT_CONFIG) if DEFAULT_CONFIG.exists() else PipelineParams()


def get_params_from_sidebar() -> PipelineParams:
    """Render parameter controls in sidebar and return PipelineParams."""
    params = base_params()

    with st.popover("Filters", use_container_width=True):
        params.leaf_size = st.slider(
            "Voxel leaf size, 0=off (larger = fewer points, faster)",
            0.0, 0.05, params.leaf_size, 0.005,
        )
        z_min, z_max = st.slider(
            "Crop Z range (m)",
            -1.0, 2.0, (params.pass_limits[4], params.pass_limits[5]), 0.05,
        )
        params.pass_limits = params.pass_limits[:4] + (z_min, z_max)
        params.prism_limits = st.slider(
            "Height band above table (m)",
            0.0, 1.0, tuple(params.prism_limits), 0.005,
        )

    with st.popover("RANSAC", use_container_width=True):
        params.max_iter = st.slider(
            "Iterations (more = better fit, slower)",
            10, 1000, params.max_iter, 10,
        )
        params.single_dist_thresh = st.slider(
            "Distance threshold (larger = thicker table layer)",
            0.002, 0.05, params.single_dist_thresh, 0.002,
        )
        params.min_plane_size = st.number_input(
            "Min plane size (multi-plane mode)",
            10, 100000, params.min_plane_size,
        )

    with st.popover("Clustering", use_container_width=True):
        params.cluster_tol = st.slider(
            "Cluster tolerance (larger = merges nearby objects)",
            0.005, 0.1, params.cluster_tol, 0.005,
        )
        params.min_cluster_size = st.number_input(
            "Min cluster size (filters tiny clusters)",
            1, 10000, params.min_cluster_size,
        )
        params.max_cluster_size = st.number_input(
            "Max cluster size (filters huge clusters)",
            1, 1000000, params.max_cluster_size,
        )
        params.orientation_method = st.radio(
            "Orientation", ["diameter", "pca"], horizontal=True,
        )

    params.seed = 0
    return params


def get_input_cloud():
    """Render input controls in sidebar and return the scene cloud (or None)."""
    source = st.radio("Source", ["Synthetic scene", "File"], horizontal=True)
    if source == "File":
        path = st.text_input("Point cloud path (.txt/.npy/.npz)", value="data/scene.npz")
        if not Path(path).exists():
            st.error(f"File not found: {path}")
            return None
        return load_point_cloud(path, frame_id="base_link")

    n_plane = st.slider("Table points", 500, 20000, 4000, 500)
    n_boxes = st.slider("Objects", 0, 5, 2)
    rng = np.random.default_rng(1)
    boxes = []
    for _ in range(n_boxes):
        xy = rng.uniform(-0.35, 0.35, size=2)
        size = rng.uniform(0.04, 0.12, size=3)
        boxes.append(((xy[0], xy[1], size[2] / 2 + 0.005), tuple(size), 400))
    return make_tabletop_scene(n_plane=n_plane, boxes=boxes, seed=0)


# =============================================================================
# Tabs
# =============================================================================

def render_preprocessing_tab(cloud, r: FrameResult):
    """Render preprocessing tab content."""
    st.caption(
        f"Raw: **{r.raw_count:,}** pts | "
        f"Filtered: **{r.filtered_count:,}** pts"
    )

    col_left, col_right = st.columns(2)
    with col_left:
        fig = scatter_2d([cloud.dense().points], ["Raw"], ["#4363d8"], "Before Filtering", "X (m)", "Y (m)")
        st.plotly_chart(fig, use_container_width=True)

    with col_right:
        fig = scatter_2d([r.filtered_cloud.points], ["Filtered"], ["#3cb44b"], "After Filtering", "X (m)", "Y (m)")
        st.plotly_chart(fig, use_container_width=True)


def render_table_tab(r: FrameResult):
    """Render table plane tab content."""
    plane = r.plane
    a, b, c, d = plane.coefficients
    st.caption(
        f"Plane: **{a:.3f}x + {b:.3f}y + {c:.3f}z + {d:.3f} = 0** | "
        f"axis **{plane.axis.value}** | **{plane.size:,}** inliers | "
        f"tabletop **{len(r.tabletop_cloud):,}** pts"
    )

    view = st.radio("View", ["3D", "Side View (XZ)"], horizontal=True)
    table = plane.cloud.points
    tabletop = r.tabletop_cloud.points

    if view == "3D":
        fig = scatter_3d_table_tabletop(table, tabletop, plane.polygon)
    else:
        fig = scatter_2d(
            [table, tabletop],
            [f"Table ({len(table):,})", f"Tabletop ({len(tabletop):,})"],
            ["blue", "red"],
            "Table vs Tabletop - Side View",
            "X (m)", "Z (m)",
            x_idx=0, y_idx=2,
        )
        if abs(c) > 1e-6:
            x_line = np.linspace(plane.bounds.min_x, plane.bounds.max_x, 100)
            z_line = (-a * x_line - d) / c
            fig.add_trace(go.Scattergl(
                x=x_line, y=z_line,
                mode="lines",
                line=dict(color="green", width=3),
                name="Table Plane",
            ))

    st.plotly_chart(fig, use_container_width=True)


def render_objects_tab(r: FrameResult):
    """Render objects tab content."""
    rows = [
        {
            "points": obj.size,
            "center": np.round(obj.center, 3).tolist(),
            "min": np.round(obj.bounds.min, 3).tolist(),
            "max": np.round(obj.bounds.max, 3).tolist(),
            "orientation (xyzw)": np.round(obj.orientation, 3).tolist(),
        }
        for obj in r.objects
    ]
    st.dataframe(rows, use_container_width=True)

    view = st.radio("View", ["3D", "Top View"], horizontal=True, key="objects_view")
    if view == "3D":
        fig = scatter_3d_objects(r.objects, r.plane.cloud.points)
    else:
        fig = top_view_with_objects(r.plane.cloud.points, r.objects)
    st.plotly_chart(fig, use_container_width=True)


def render_planes_tab(cloud, params: PipelineParams):
    """Render multi-plane segmentation tab content."""
    if not st.button("Segment all planes"):
        return
    try:
        filtered = filter_cloud(cloud, params.pass_limits, params.leaf_size)
        result = segment_multiple_planes(
            filtered,
            distance_threshold=params.multi_dist_thresh,
            max_iterations=params.max_iter,
            min_plane_size=params.min_plane_size,
            rng=params.rng(),
        )
    except PerceptionError as e:
        show_failure(e)
        return

    st.caption(
        ", ".join(f"{p.axis.value}: {p.size:,} pts" for p in result.planes)
        + f" | remaining: {len(result.remaining):,} pts"
    )
    st.plotly_chart(scatter_3d_planes(result.planes, result.remaining.points), use_container_width=True)


def show_failure(e: PerceptionError):
    if e.benign:
        st.warning(f"{type(e).__name__}: {e}")
    else:
        st.error(f"{type(e).__name__}: {e}")


# =============================================================================
# Main
# =============================================================================

def main():
    setup_logging()
    st.set_page_config(page_title="Tabletop Perception", layout="wide")
    st.title("Tabletop Perception")

    with st.sidebar:
        st.header("Input")
        cloud = get_input_cloud()

        st.header("Parameters")
        params = get_params_from_sidebar()
        compute_normals = st.checkbox("Estimate object normals")

        run_button = st.button("Run Pipeline", type="primary", use_container_width=True)

    if cloud is None:
        return

    if run_button:
        with st.spinner("Running pipeline..."):
            try:
                st.session_state["frame_result"] = run_frame_pipeline(cloud, params, compute_normals)
            except PerceptionError as e:
                st.session_state.pop("frame_result", None)
                show_failure(e)

    tab_preproc, tab_table, tab_objects, tab_planes = st.tabs(
        ["Preprocessing", "Table Plane", "Objects", "All Planes"]
    )

    with tab_planes:
        render_planes_tab(cloud, params)

    if "frame_result" not in st.session_state:
        st.info("Configure parameters in the sidebar and click **Run Pipeline** to begin.")
        return

    r = st.session_state["frame_result"]
    with tab_preproc:
        render_preprocessing_tab(cloud, r)
    with tab_table:
        render_table_tab(r)
    with tab_objects:
        render_objects_tab(r)


if __name__ == "__main__":
    main()

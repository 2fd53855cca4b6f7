"""Plotly visualization functions for the tabletop perception demo"""

import numpy as np
import plotly.graph_objects as go

CLUSTER_COLORS = [
    "#e6194b", "#3cb44b", "#ffe119", "#4363d8", "#f58231",
    "#911eb4", "#42d4f4", "#f032e6", "#bfef45", "#fabed4",
    "#469990", "#dcbeff", "#9A6324", "#800000", "#aaffc3",
    "#808000", "#ffd8b1", "#000075", "#a9a9a9", "#ffffff",
]


def _hex_to_rgba(color, alpha):
    if not color.startswith("#"):
        return color
    r = int(color[1:3], 16)
    g = int(color[3:5], 16)
    b = int(color[5:7], 16)
    return f"rgba({r},{g},{b},{alpha})"


def scatter_2d(points_list, names, colors, title, xlabel, ylabel, x_idx=0, y_idx=1):
    """Create a 2D scatter plot with multiple point sets."""
    fig = go.Figure()
    for pts, name, color in zip(points_list, names, colors):
        if len(pts) > 0:
            fig.add_trace(go.Scattergl(
                x=pts[:, x_idx], y=pts[:, y_idx],
                mode="markers",
                marker=dict(size=2, color=color, opacity=0.5),
                name=name,
            ))
    fig.update_layout(
        title=title,
        xaxis=dict(title=xlabel, scaleanchor="y"),
        yaxis=dict(title=ylabel),
        height=550,
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def polygon_trace(polygon, name="Table hull", color="green"):
    """Closed 3D line through the plane boundary polygon."""
    closed = np.vstack([polygon, polygon[:1]])
    return go.Scatter3d(
        x=closed[:, 0], y=closed[:, 1], z=closed[:, 2],
        mode="lines",
        line=dict(color=color, width=5),
        name=name,
    )


def scatter_3d_planes(planes, remaining=None):
    """Create a 3D scatter plot with one color per segmented plane."""
    fig = go.Figure()
    for i, plane in enumerate(planes):
        pts = plane.cloud.points
        color = CLUSTER_COLORS[i % len(CLUSTER_COLORS)]
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=1, color=color, opacity=0.5),
            name=f"Plane {i + 1} [{plane.axis.value}] ({plane.size:,})",
        ))
        fig.add_trace(polygon_trace(plane.polygon, name=f"Hull {i + 1}", color=color))
    if remaining is not None and len(remaining) > 0:
        fig.add_trace(go.Scatter3d(
            x=remaining[:, 0], y=remaining[:, 1], z=remaining[:, 2],
            mode="markers",
            marker=dict(size=1, color="gray", opacity=0.2),
            name=f"Other ({len(remaining):,})",
        ))
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def scatter_3d_table_tabletop(table, tabletop, polygon=None):
    """Create a 3D scatter plot showing table vs tabletop points."""
    fig = go.Figure()
    if len(table) > 0:
        fig.add_trace(go.Scatter3d(
            x=table[:, 0], y=table[:, 1], z=table[:, 2],
            mode="markers",
            marker=dict(size=1, color="blue", opacity=0.4),
            name=f"Table ({len(table):,})",
        ))
    if len(tabletop) > 0:
        fig.add_trace(go.Scatter3d(
            x=tabletop[:, 0], y=tabletop[:, 1], z=tabletop[:, 2],
            mode="markers",
            marker=dict(size=2, color="red", opacity=0.6),
            name=f"Tabletop ({len(tabletop):,})",
        ))
    if polygon is not None and len(polygon) > 0:
        fig.add_trace(polygon_trace(polygon))
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def scatter_3d_objects(objects, table=None):
    """Create a 3D scatter plot with colored objects and their centroids."""
    fig = go.Figure()
    if table is not None and len(table) > 0:
        fig.add_trace(go.Scatter3d(
            x=table[:, 0], y=table[:, 1], z=table[:, 2],
            mode="markers",
            marker=dict(size=1, color="gray", opacity=0.2),
            name=f"Table ({len(table):,})",
        ))
    for i, obj in enumerate(objects):
        pts = obj.cloud.points
        color = CLUSTER_COLORS[i % len(CLUSTER_COLORS)]
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=2, color=color, opacity=0.7),
            name=f"Object {i} ({obj.size:,})",
        ))
        fig.add_trace(go.Scatter3d(
            x=[obj.center[0]], y=[obj.center[1]], z=[obj.center[2]],
            mode="markers",
            marker=dict(size=6, color=color, symbol="diamond"),
            showlegend=False,
            hovertemplate=f"Object {i} center<extra></extra>",
        ))
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def top_view_with_objects(table_points, objects):
    """
    Top-down view of the table with each object's bounding box and the
    horizontal axis of its orientation.

    Args:
        table_points: Nx3 array of table plane points
        objects: List of TabletopObject

    Returns:
        Plotly figure
    """
    fig = go.Figure()

    if len(table_points) > 0:
        fig.add_trace(go.Scattergl(
            x=table_points[:, 0],
            y=table_points[:, 1],
            mode="markers",
            marker=dict(size=2, color="#666666", opacity=0.5),
            name="Table",
            hoverinfo="skip",
        ))

    for i, obj in enumerate(objects):
        bbox = obj.bounds
        color = CLUSTER_COLORS[i % len(CLUSTER_COLORS)]

        fig.add_trace(go.Scatter(
            x=[bbox.min_x, bbox.max_x, bbox.max_x, bbox.min_x, bbox.min_x],
            y=[bbox.min_y, bbox.min_y, bbox.max_y, bbox.max_y, bbox.min_y],
            mode="lines",
            line=dict(color=color, width=2),
            fill="toself",
            fillcolor=_hex_to_rgba(color, 0.15),
            name=f"Object {i}",
            showlegend=False,
            hovertemplate=f"Object {i} ({obj.size} pts)<extra></extra>",
        ))

        if obj.segment is not None:
            p_min, p_max = obj.segment
            fig.add_trace(go.Scatter(
                x=[p_min[0], p_max[0]],
                y=[p_min[1], p_max[1]],
                mode="lines",
                line=dict(color=color, width=2, dash="dot"),
                showlegend=False,
                hoverinfo="skip",
            ))

    fig.update_layout(
        title=None,
        xaxis=dict(title="X (m)", showgrid=True, gridcolor="rgba(100,100,100,0.3)"),
        yaxis=dict(title="Y (m)", showgrid=True, gridcolor="rgba(100,100,100,0.3)", scaleanchor="x"),
        height=650,
        margin=dict(l=50, r=20, t=20, b=50),
        showlegend=False,
        plot_bgcolor="rgb(20, 20, 25)",
        paper_bgcolor="rgb(20, 20, 25)",
        font=dict(color="white"),
        hoverlabel=dict(bgcolor="rgba(0,0,0,0.8)", font_size=14),
    )

    return fig

import numpy as np
from pathlib import Path
from typing import Union

from tabletop_perception.geometry import PointCloud


def _from_array(data: np.ndarray, frame_id: str) -> PointCloud:
    """
    (N, 3+) arrays give unorganized clouds, (H, W, 3+) arrays organized ones.
    Columns after x, y, z are read as r, g, b.
    """
    if data.ndim == 3:
        height, width = data.shape[:2]
        data = data.reshape(height * width, -1)
    elif data.ndim == 2:
        height, width = 1, len(data)
    else:
        raise ValueError(f"Unsupported point array shape: {data.shape}")

    if data.shape[1] < 3:
        raise ValueError(f"Need at least x, y, z columns, got {data.shape[1]}")

    colors = data[:, 3:6] if data.shape[1] >= 6 else None
    return PointCloud(data[:, :3], colors, frame_id=frame_id, width=width, height=height)


def load_point_cloud(file_path: Union[str, Path], frame_id: str = "sensor") -> PointCloud:
    """
    Load a point cloud from a .txt, .npy or .npz file
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == ".txt":
        data = np.loadtxt(file_path, dtype=np.float64, ndmin=2)
    elif suffix == ".npy":
        data = np.load(file_path)
    elif suffix == ".npz":
        with np.load(file_path) as archive:
            points = archive["points"]
            if "colors" in archive:
                colors = archive["colors"].reshape(*points.shape[:-1], 3)
                points = np.concatenate([points, colors], axis=-1)
            data = points
    else:
        raise ValueError(f"Unsupported point cloud format: {suffix}")

    return _from_array(np.asarray(data, dtype=np.float64), frame_id)


def save_point_cloud(cloud: PointCloud, file_path: Union[str, Path]) -> None:
    """Write a cloud as .npz, keeping the organized layout."""
    points = cloud.points.reshape(cloud.height, cloud.width, 3) if cloud.is_organized else cloud.points
    arrays = {"points": points}
    if cloud.colors is not None:
        arrays["colors"] = cloud.colors.reshape(points.shape)
    np.savez(file_path, **arrays)

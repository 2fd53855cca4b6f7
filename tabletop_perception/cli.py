"""Run tabletop perception on a point cloud file and print a JSON summary.

Usage:
    tabletop-perception scene.npz --config config/default.yaml
    tabletop-perception --synthetic --normals
    tabletop-perception scene.npy --sensor-pose 0 0 1.2 0 0.7071 0 0.7071 --planes
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from tabletop_perception.config import PipelineParams, load_config
from tabletop_perception.data_loader import load_point_cloud
from tabletop_perception.errors import PerceptionError
from tabletop_perception.geometry import Plane, TabletopObject
from tabletop_perception.logging_config import setup_logging
from tabletop_perception.pipeline import TabletopPipeline
from tabletop_perception.synthetic import make_tabletop_scene
from tabletop_perception.transform import (
    FrameTransformer,
    LatestCloudSlot,
    RigidTransform,
    StaticPoseProvider,
)

logger = logging.getLogger(__name__)


def _round(values, ndigits: int = 4) -> List[float]:
    return [round(float(v), ndigits) for v in values]


def plane_summary(plane: Plane) -> dict:
    return {
        "coefficients": _round(plane.coefficients),
        "center": _round(plane.center),
        "min": _round(plane.bounds.min),
        "max": _round(plane.bounds.max),
        "axis": plane.axis.value,
        "size": plane.size,
        "polygon_vertices": len(plane.polygon),
    }


def object_summary(obj: TabletopObject) -> dict:
    summary = {
        "center": _round(obj.center),
        "min": _round(obj.bounds.min),
        "max": _round(obj.bounds.max),
        "orientation": _round(obj.orientation),
        "size": obj.size,
    }
    if obj.normals is not None:
        summary["normals"] = len(obj.normals)
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("input", nargs="?", help="Point cloud file (.txt, .npy, .npz)")
    parser.add_argument("--synthetic", action="store_true", help="Use a synthetic tabletop scene")
    parser.add_argument("--config", help="YAML parameter file")
    parser.add_argument("--frame", default="sensor", help="Frame id of the input cloud")
    parser.add_argument(
        "--sensor-pose", nargs=7, type=float, metavar=("X", "Y", "Z", "QX", "QY", "QZ", "QW"),
        help="Pose of the sensor frame in the fixed frame (identity if omitted)",
    )
    parser.add_argument("--planes", action="store_true", help="Segment multiple planes instead of objects")
    parser.add_argument("--normals", action="store_true", help="Estimate per-point object normals")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    parser.add_argument("--log-file", help="Also log everything to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO), args.log_file)

    params = load_config(args.config) if args.config else PipelineParams()

    if args.synthetic:
        cloud = make_tabletop_scene(n_plane=4000, frame_id=args.frame, seed=params.seed)
    elif args.input:
        cloud = load_point_cloud(args.input, frame_id=args.frame)
    else:
        print("error: give an input file or --synthetic", file=sys.stderr)
        return 2
    logger.info("Loaded %d points from %s", len(cloud), args.input or "synthetic scene")

    provider = StaticPoseProvider()
    if args.sensor_pose:
        pose = RigidTransform.from_translation_quaternion(args.sensor_pose[:3], args.sensor_pose[3:])
    else:
        pose = RigidTransform()
    provider.set_transform(params.fixed_frame, args.frame, pose)

    slot = LatestCloudSlot()
    slot.publish(cloud)
    transformer = FrameTransformer(
        slot,
        provider,
        fixed_frame=params.fixed_frame,
        input_timeout=params.input_timeout,
        poll_interval=params.poll_interval,
        transform_timeout=params.transform_timeout,
    )
    pipeline = TabletopPipeline(params, transformer)

    try:
        if args.planes:
            result = pipeline.segment_multiple_planes()
            output = {
                "planes": [plane_summary(p) for p in result.planes],
                "remaining": len(result.remaining),
            }
        else:
            objects = pipeline.cluster_tabletop_objects(compute_normals=args.normals)
            output = {"objects": [object_summary(o) for o in objects]}
    except PerceptionError as e:
        output = {"error": type(e).__name__, "message": str(e), "benign": e.benign}
        print(json.dumps(output, indent=2))
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

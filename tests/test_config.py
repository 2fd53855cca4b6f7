"""Tests for tabletop_perception.config."""

from pathlib import Path

import pytest

from tabletop_perception.config import PipelineParams, load_config

DEFAULT_CONFIG = Path(__file__).resolve().parents[1] / "config" / "default.yaml"


def test_default_config_matches_dataclass_defaults():
    params = load_config(DEFAULT_CONFIG)
    defaults = PipelineParams()

    assert params.fixed_frame == "base_link"
    assert params.min_plane_size == 1000
    assert params.pass_limits == defaults.pass_limits
    assert params.prism_limits == defaults.prism_limits
    assert params.cluster_tol == pytest.approx(0.02)
    assert params.plane_axis is None
    assert params.orientation_method == "diameter"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_partial_config_keeps_defaults(tmp_path):
    path = tmp_path / "partial.yaml"
    path.write_text("segmentation:\n  sac_axis: z\n  ec_cluster_tol: 0.05\nseed: 3\n")

    params = load_config(path)
    assert params.plane_axis == "z"
    assert params.cluster_tol == pytest.approx(0.05)
    assert params.seed == 3
    assert params.leaf_size == PipelineParams().leaf_size


@pytest.mark.parametrize("yaml_text", [
    "filters:\n  pass_limits: [1, -1, 0, 1, 0, 1]\n",
    "filters:\n  prism_limits: [0.5, 0.1]\n",
    "segmentation:\n  ec_min_cluster_size: 100\n  ec_max_cluster_size: 10\n",
    "segmentation:\n  sac_axis: w\n",
    "objects:\n  orientation_method: obb\n",
])
def test_invalid_values_rejected(tmp_path, yaml_text):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml_text)
    with pytest.raises(ValueError):
        load_config(path)

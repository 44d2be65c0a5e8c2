import csv
import logging
from pathlib import Path

import numpy as np
import pytest

from tsdf_submaps.core.types import EsdfConfig, RegistrationFilterConfig, SubmapConfig
from tsdf_submaps.utils.angles import AngleLocalParameterization, normalize_angle
from tsdf_submaps.utils.io import CodeTimer, load_submap_config
from tsdf_submaps.utils.profiler import SubmapProfiler

CONFIG_DIR = Path(__file__).resolve().parents[1] / 'config'


# ----------------------------------------------------------------------
# Angles
# ----------------------------------------------------------------------

@pytest.mark.parametrize('angle, expected', [
    (0.0, 0.0),
    (np.pi, -np.pi),
    (-np.pi, -np.pi),
    (3 * np.pi / 2, -np.pi / 2),
    (-3 * np.pi / 2, np.pi / 2),
    (5 * np.pi + 0.25, -np.pi + 0.25),
])
def test_normalize_angle(angle, expected):
    assert normalize_angle(angle) == pytest.approx(expected)


def test_normalize_angle_range_on_arrays():
    angles = np.linspace(-20.0, 20.0, 1001)
    wrapped = normalize_angle(angles)
    assert np.all(wrapped >= -np.pi)
    assert np.all(wrapped < np.pi)
    np.testing.assert_allclose(np.sin(wrapped), np.sin(angles), atol=1e-12)


def test_angle_local_parameterization():
    parameterization = AngleLocalParameterization()
    assert parameterization.plus(3.0, 0.5) == pytest.approx(3.5 - 2 * np.pi)
    assert parameterization(0.1, -0.3) == pytest.approx(-0.2)


# ----------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------

def test_default_config_file_matches_defaults():
    config = load_submap_config(CONFIG_DIR / 'submap.yaml')
    assert config == SubmapConfig()


def test_config_from_nested_dict():
    config = SubmapConfig.from_dict({
        'voxel_size': 0.05,
        'voxels_per_side': 8,
        'registration_filter': {'max_voxel_distance': 0.3, 'use_esdf_distance': False},
        'esdf': {'max_distance_m': 4.0},
    })
    assert config.block_size == pytest.approx(0.4)
    assert isinstance(config.registration_filter, RegistrationFilterConfig)
    assert config.registration_filter.max_voxel_distance == 0.3
    assert config.registration_filter.min_voxel_weight == 1e-6
    assert not config.registration_filter.use_esdf_distance
    assert config.esdf == EsdfConfig(max_distance_m=4.0)


def test_unknown_config_key_raises():
    with pytest.raises(ValueError):
        RegistrationFilterConfig(max_distance=1.0)


def test_invalid_voxel_size_raises():
    with pytest.raises(ValueError):
        SubmapConfig(voxel_size=0.0)


def test_config_file_without_submap_section(tmp_path):
    path = tmp_path / 'other.yaml'
    path.write_text('mapping:\n  voxel_size: 0.1\n')
    with pytest.raises(ValueError):
        load_submap_config(path)


# ----------------------------------------------------------------------
# Profiling
# ----------------------------------------------------------------------

def test_profiler_writes_csv(tmp_path):
    path = tmp_path / 'submaps.csv'
    profiler = SubmapProfiler(path)
    profiler.start()
    profiler.record(3, relevant_voxels=10, isosurface_vertices=4, timestamp=1.5)
    profiler.close()

    with open(path) as f:
        rows = list(csv.reader(f))
    assert rows[0] == SubmapProfiler.COLUMNS
    assert rows[1][0] == '3'
    assert rows[1][1] == '1.5'
    assert rows[1][4] == '10'
    assert rows[1][5] == '4'


def test_profiler_in_memory():
    profiler = SubmapProfiler()
    profiler.start()
    profiler.record('a', relevant_voxels=1)
    profiler.record('a', relevant_voxels=2)
    assert profiler.get('a', 'relevant_voxels') == 2
    assert profiler.get('b', 'relevant_voxels', 0) == 0


def test_code_timer_logs_duration(caplog):
    logger = logging.getLogger('test_code_timer')
    with caplog.at_level(logging.DEBUG, logger='test_code_timer'):
        with CodeTimer('block', logger) as timer:
            sum(range(1000))
    assert timer.took_ms >= 0.0
    assert 'block :' in caplog.text

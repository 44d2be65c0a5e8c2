"""Shared fixtures: synthetic TSDF layers and submaps built from them."""
import gtsam
import numpy as np
import pytest

from tsdf_submaps.core.layer import Layer
from tsdf_submaps.core.submap import Submap
from tsdf_submaps.core.types import RegistrationFilterConfig, SubmapConfig

VOXEL_SIZE = 0.1
VOXELS_PER_SIDE = 8
PLANE_Z = 0.43
TRUNCATION = 0.3


def make_plane_layer(plane_z=PLANE_Z, blocks=((0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0)),
                     truncation=TRUNCATION, weight=1.0):
    """TSDF of the horizontal plane z = plane_z, positive above it"""
    layer = Layer(VOXEL_SIZE, VOXELS_PER_SIDE)
    for block_index in blocks:
        block = layer.allocate_block_by_index(block_index)
        coordinates = block.compute_all_voxel_coordinates()
        block.distance = np.clip(coordinates[:, 2] - plane_z, -truncation, truncation).astype(np.float32)
        block.weight = np.full(block.num_voxels, weight, dtype=np.float32)
    return layer


def make_config(max_voxel_distance=0.25, use_esdf_distance=False):
    return SubmapConfig(
        voxel_size=VOXEL_SIZE,
        voxels_per_side=VOXELS_PER_SIDE,
        registration_filter=RegistrationFilterConfig(
            min_voxel_weight=1e-6,
            max_voxel_distance=max_voxel_distance,
            use_esdf_distance=use_esdf_distance))


@pytest.fixture
def plane_layer():
    return make_plane_layer()


@pytest.fixture
def plane_submap(plane_layer):
    return Submap(gtsam.Pose3(), 0, make_config(), tsdf_layer=plane_layer, seed=0)


@pytest.fixture
def finished_plane_submap(plane_submap):
    plane_submap.finish_submap()
    return plane_submap

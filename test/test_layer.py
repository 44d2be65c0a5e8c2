import gtsam
import numpy as np
import pytest

from tsdf_submaps.core.esdf import generate_esdf
from tsdf_submaps.core.interpolator import Interpolator
from tsdf_submaps.core.layer import Layer
from tsdf_submaps.core.mesh import Mesh, extract_isosurface_mesh
from tsdf_submaps.core.resampling import transform_layer
from tsdf_submaps.core.types import EsdfConfig

from conftest import PLANE_Z, VOXEL_SIZE, VOXELS_PER_SIDE, make_plane_layer


def test_linear_index_and_coordinates():
    layer = Layer(0.1, 4)
    block = layer.allocate_block_by_index((1, 0, -1))
    np.testing.assert_allclose(block.origin, [0.4, 0.0, -0.4])
    linear = block.linear_index_from_voxel_index((1, 2, 3))
    assert linear == 1 + 4 * (2 + 4 * 3)
    np.testing.assert_allclose(block.compute_coordinates_from_linear_index(linear),
                               [0.55, 0.25, -0.05])
    np.testing.assert_allclose(block.compute_all_voxel_coordinates()[linear],
                               [0.55, 0.25, -0.05])
    assert block.is_valid_linear_index(63)
    assert not block.is_valid_linear_index(64)


def test_set_and_get_voxel():
    layer = Layer(0.1, 4)
    assert layer.get_voxel([0.05, 0.05, 0.05]) is None
    layer.set_voxel([-0.27, 0.31, 0.02], 0.5, 2.0)
    assert layer.has_block((-1, 0, 0))
    assert layer.get_voxel([-0.25, 0.35, 0.05]) == pytest.approx((0.5, 2.0))
    assert layer.get_voxel([-0.15, 0.35, 0.05]) == pytest.approx((0.0, 0.0))


def test_dense_packing_preserves_voxels(plane_layer):
    distance, weight, origin = plane_layer.to_dense()
    assert distance.shape == (16, 16, 8)
    np.testing.assert_array_equal(origin, [0, 0, 0])
    repacked = Layer.from_dense(distance, weight, origin, VOXEL_SIZE, VOXELS_PER_SIDE)
    assert repacked.get_all_allocated_blocks() == plane_layer.get_all_allocated_blocks()
    for index in plane_layer.get_all_allocated_blocks():
        np.testing.assert_array_equal(repacked.get_block_by_index(index).distance,
                                      plane_layer.get_block_by_index(index).distance)


def test_empty_layer_to_dense():
    assert Layer(0.1, 4).to_dense() == (None, None, None)


def test_interpolator_reproduces_linear_field():
    layer = Layer(0.1, 4)
    for index in [(0, 0, 0), (1, 0, 0)]:
        block = layer.allocate_block_by_index(index)
        coordinates = block.compute_all_voxel_coordinates()
        block.distance = (coordinates @ [1.0, -2.0, 0.5]).astype(np.float32)
        block.weight[:] = 1.0
    interpolator = Interpolator(layer)

    point = np.array([0.37, 0.21, 0.13])
    distance, weight = interpolator.get_voxel(point)
    assert distance == pytest.approx(point @ [1.0, -2.0, 0.5], abs=1e-6)
    assert weight == pytest.approx(1.0)


def test_interpolator_fails_outside_known_space(plane_layer):
    interpolator = Interpolator(plane_layer)
    assert interpolator.get_voxel([5.0, 5.0, 5.0]) is None
    # Below the first voxel center there is nothing to interpolate from
    assert interpolator.get_voxel([0.5, 0.5, 0.01]) is None
    _, _, success = interpolator.interpolate([[0.5, 0.5, 0.4], [-3.0, 0.0, 0.0]])
    np.testing.assert_array_equal(success, [True, False])


def test_interpolator_requires_observed_neighbors():
    layer = make_plane_layer()
    layer.set_voxel([0.55, 0.55, 0.45], 0.02, 0.0)
    interpolator = Interpolator(layer)
    assert interpolator.get_voxel([0.5, 0.5, 0.43]) is None
    # On a voxel center only that voxel is needed
    assert interpolator.get_voxel([0.35, 0.35, 0.45]) is not None


def test_esdf_keeps_band_and_propagates(plane_layer):
    esdf = generate_esdf(plane_layer, EsdfConfig(min_distance_m=0.2, max_distance_m=2.0))
    assert esdf.get_all_allocated_blocks() == plane_layer.get_all_allocated_blocks()

    # Inside the fixed band the TSDF distance is copied
    distance, weight = esdf.get_voxel([0.55, 0.55, 0.45])
    assert distance == pytest.approx(0.45 - PLANE_Z, abs=1e-6)
    assert weight == 1.0
    # Above it: nearest band voxel (z=0.55, d=0.12) plus two voxels
    distance, _ = esdf.get_voxel([0.55, 0.55, 0.75])
    assert distance == pytest.approx(0.32, abs=1e-5)
    # Below the plane the sign is kept
    distance, _ = esdf.get_voxel([0.55, 0.55, 0.05])
    assert distance == pytest.approx(-0.38, abs=1e-5)


def test_esdf_of_empty_layer_is_empty():
    assert len(generate_esdf(Layer(0.1, 4))) == 0


def test_isosurface_of_plane(plane_layer):
    mesh = extract_isosurface_mesh(plane_layer, min_weight=1e-6)
    np.testing.assert_allclose(mesh.vertices[:, 2], PLANE_Z, atol=1e-6)
    connected = mesh.get_connected_vertices(0.5 * VOXEL_SIZE)
    # One vertex per voxel column
    assert len(connected) == 16 * 16
    assert len(mesh) > len(connected)


def test_isosurface_respects_weight_floor():
    layer = make_plane_layer(weight=0.5)
    assert len(extract_isosurface_mesh(layer, min_weight=1.0)) == 0
    assert len(extract_isosurface_mesh(layer, min_weight=0.1)) > 0


def test_connected_vertices_merge_close_points():
    mesh = Mesh([[0.0, 0.0, 0.0], [0.01, 0.0, 0.0], [1.0, 0.0, 0.0]])
    connected = mesh.get_connected_vertices(0.05)
    np.testing.assert_allclose(connected.vertices, [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    assert len(Mesh().get_connected_vertices(0.05)) == 0


def test_identity_transform_keeps_layer(plane_layer):
    transformed = transform_layer(plane_layer, gtsam.Pose3())
    assert transformed.get_all_allocated_blocks() == plane_layer.get_all_allocated_blocks()
    for index in plane_layer.get_all_allocated_blocks():
        np.testing.assert_allclose(transformed.get_block_by_index(index).distance,
                                   plane_layer.get_block_by_index(index).distance, atol=1e-6)


def test_transform_moves_surface(plane_layer):
    shift = gtsam.Pose3(gtsam.Rot3(), gtsam.Point3(0.0, 0.0, 0.2))
    transformed = transform_layer(plane_layer, shift)
    distance, _ = Interpolator(transformed).get_voxel([0.8, 0.8, PLANE_Z + 0.2])
    assert distance == pytest.approx(0.0, abs=1e-5)


def test_transform_of_empty_layer():
    assert len(transform_layer(Layer(0.1, 4), gtsam.Pose3())) == 0


def test_dense_packing_spans_block_range():
    layer = Layer(0.1, 4)
    layer.set_voxel([0.05, 0.05, 0.05], 0.1, 1.0)
    layer.set_voxel([1.25, 0.05, 0.05], 0.1, 1.0)
    distance, weight, origin = layer.to_dense()
    # Two allocated blocks, four blocks of storage along x
    assert distance.shape == (16, 4, 4)
    np.testing.assert_array_equal(origin, [0, 0, 0])
    assert not np.any(weight[4:12])

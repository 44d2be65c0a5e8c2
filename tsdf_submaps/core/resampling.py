"""
Rigid transformation of a voxel layer by resampling.
"""
import numpy as np

from tsdf_submaps.core.bounding_box import BoundingBox
from tsdf_submaps.core.interpolator import Interpolator
from tsdf_submaps.core.layer import Layer


def transform_layer(layer_in, T_out_in, min_weight=0.0):
    """
    Resample a layer into a rotated/translated frame

    Every voxel of the output grid that can see the input layer gets the
    trilinearly interpolated input value at its back-transformed center.
    Output blocks without any observed voxel are not allocated.

    Args:
        layer_in: Layer expressed in the "in" frame
        T_out_in: gtsam.Pose3 mapping "in" coordinates to "out" coordinates
        min_weight: Input voxels at or below this weight count as unobserved

    Returns:
        Layer expressed in the "out" frame, same voxel geometry as the input
    """
    layer_out = Layer(layer_in.voxel_size, layer_in.voxels_per_side)
    if not layer_in.blocks:
        return layer_out

    # Region of the output grid covered by the transformed input blocks
    extent_in = BoundingBox()
    for block_index in layer_in.get_all_allocated_blocks():
        low = np.asarray(block_index, dtype=np.float64) * layer_in.block_size
        extent_in.expand_to_include(low, low + layer_in.block_size)
    extent_out = BoundingBox.get_aabb_from_obb_and_pose(extent_in, T_out_in)

    vps = layer_in.voxels_per_side
    min_block = np.floor(extent_out.min / layer_in.block_size).astype(np.int64)
    max_block = np.floor(extent_out.max / layer_in.block_size).astype(np.int64)
    origin_voxel_index = min_block * vps
    shape = tuple((max_block - min_block + 1) * vps)

    centers_out = layer_out.voxel_centers(origin_voxel_index, shape).reshape(-1, 3)
    T_in_out = T_out_in.inverse().matrix()
    centers_in = centers_out @ T_in_out[:3, :3].T + T_in_out[:3, 3]

    interpolator = Interpolator(layer_in, min_weight=min_weight)
    distance, weight, success = interpolator.interpolate(centers_in)

    distance = np.where(success, distance, 0.0).reshape(shape).astype(np.float32)
    weight = np.where(success, weight, 0.0).reshape(shape).astype(np.float32)

    return Layer.from_dense(distance, weight, origin_voxel_index,
                            layer_in.voxel_size, vps, min_weight=0.0)

"""
ESDF generation from a TSDF layer.

Voxels close to the surface (the fixed band) keep their TSDF distance. All
other observed voxels get the distance of their nearest band voxel plus the
Euclidean distance to it, signed like their TSDF value and clamped to
max_distance_m. The ESDF layer allocates exactly the TSDF's blocks so that
any TSDF block/linear index pair is also valid in the ESDF.
"""
import numpy as np
from scipy import ndimage

from tsdf_submaps.core.layer import Layer
from tsdf_submaps.core.types import EsdfConfig


def generate_esdf(tsdf_layer, config=None):
    """
    Compute the ESDF of a TSDF layer

    Args:
        tsdf_layer: Layer with TSDF distances and integration weights
        config: EsdfConfig (default EsdfConfig())

    Returns:
        Layer whose weight is 1 for observed voxels and 0 otherwise
    """
    if config is None:
        config = EsdfConfig()

    distance, weight, origin_voxel_index = tsdf_layer.to_dense()
    if distance is None:
        return Layer(tsdf_layer.voxel_size, tsdf_layer.voxels_per_side)

    observed = weight > config.min_weight
    fixed_band = observed & (np.abs(distance) < config.min_distance_m)
    sign = np.where(distance < 0.0, -1.0, 1.0)

    esdf = np.full(distance.shape, config.default_distance_m, dtype=np.float64)
    if np.any(fixed_band):
        # Distance (meters) and index of the nearest fixed band voxel
        edt, nearest = ndimage.distance_transform_edt(
            ~fixed_band, sampling=tsdf_layer.voxel_size, return_indices=True)
        band_distance = np.abs(distance[tuple(nearest)]).astype(np.float64)
        esdf = np.minimum(band_distance + edt, config.max_distance_m)
        esdf = np.where(fixed_band, np.abs(distance), esdf)
    esdf = sign * esdf

    esdf_distance = np.where(observed, esdf, config.default_distance_m).astype(np.float32)
    esdf_weight = observed.astype(np.float32)

    return Layer.from_dense(
        esdf_distance, esdf_weight, origin_voxel_index,
        tsdf_layer.voxel_size, tsdf_layer.voxels_per_side,
        keep_blocks=set(tsdf_layer.blocks.keys()))

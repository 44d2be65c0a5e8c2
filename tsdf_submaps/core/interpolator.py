"""
Trilinear interpolation of distance and weight at arbitrary positions.
"""
import numpy as np

# Fractional offsets closer than this to a voxel center are snapped onto it
SNAP_TOLERANCE = 1e-9


class Interpolator:
    """
    Interpolates a Layer at continuous positions

    The 8 voxel centers surrounding a query point must all be allocated and
    observed (weight > min_weight), otherwise the query fails. The layer is
    packed into dense arrays once at construction, so the interpolator does
    not see later edits to the layer.
    """

    def __init__(self, layer, min_weight=0.0):
        """
        Args:
            layer: Layer to interpolate
            min_weight: Voxels at or below this weight count as unobserved
        """
        self.voxel_size = layer.voxel_size
        self.min_weight = float(min_weight)
        self.distance, self.weight, self.origin_voxel_index = layer.to_dense()

    def interpolate(self, points):
        """
        Interpolate at many positions

        Args:
            points: (N, 3) positions in the layer frame

        Returns:
            distance: (N,) float64, NaN where the query failed
            weight: (N,) float64, NaN where the query failed
            success: (N,) bool
        """
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        n = points.shape[0]
        distance = np.full(n, np.nan)
        weight = np.full(n, np.nan)
        success = np.zeros(n, dtype=bool)
        if self.distance is None or n == 0:
            return distance, weight, success

        # Continuous index where integer values sit on voxel centers
        u = points / self.voxel_size - 0.5 - self.origin_voxel_index
        nearest = np.round(u)
        u = np.where(np.abs(u - nearest) < SNAP_TOLERANCE, nearest, u)
        base = np.floor(u).astype(np.int64)
        frac = u - base

        shape = np.array(self.distance.shape)
        observed = np.ones(n, dtype=bool)
        d_acc = np.zeros(n)
        w_acc = np.zeros(n)
        for corner in range(8):
            offset = np.array([corner & 1, (corner >> 1) & 1, (corner >> 2) & 1])
            coeff = np.prod(np.where(offset, frac, 1.0 - frac), axis=1)
            c = base + offset
            in_range = np.all((c >= 0) & (c < shape), axis=1)
            c = np.clip(c, 0, shape - 1)
            w_corner = self.weight[c[:, 0], c[:, 1], c[:, 2]].astype(np.float64)
            d_corner = self.distance[c[:, 0], c[:, 1], c[:, 2]].astype(np.float64)

            # Corners with a zero coefficient do not need to exist
            needed = coeff > 0.0
            observed &= ~needed | (in_range & (w_corner > self.min_weight))
            d_acc += np.where(needed, coeff * d_corner, 0.0)
            w_acc += np.where(needed, coeff * w_corner, 0.0)

        distance[observed] = d_acc[observed]
        weight[observed] = w_acc[observed]
        success[observed] = True
        return distance, weight, success

    def get_voxel(self, point):
        """
        Interpolate at a single position

        Returns:
            (distance, weight) or None if the position is outside known space
        """
        distance, weight, success = self.interpolate(np.asarray(point).reshape(1, 3))
        if not success[0]:
            return None
        return float(distance[0]), float(weight[0])

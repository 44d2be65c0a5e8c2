"""
Axis aligned bounding box used for submap OBBs and world frame AABBs.

A freshly constructed box is "unset": min is +inf and max is -inf on every
axis, so it fails is_valid() until something has been added to it.
"""
import numpy as np


class BoundingBox:
    """
    Box spanned by a min and a max corner

    Corner ordering used by get_corner_coordinates():
    - Bit 0 (value 1): X takes max
    - Bit 1 (value 2): Y takes max
    - Bit 2 (value 4): Z takes max
    """

    def __init__(self, min_point=None, max_point=None):
        """
        Args:
            min_point: [x, y, z] min corner (default +inf, i.e. unset)
            max_point: [x, y, z] max corner (default -inf, i.e. unset)
        """
        if min_point is None:
            min_point = [np.inf] * 3
        if max_point is None:
            max_point = [-np.inf] * 3
        self.min = np.array(min_point, dtype=np.float64)
        self.max = np.array(max_point, dtype=np.float64)

    def is_valid(self):
        """True once every min coefficient is <= its max counterpart"""
        return bool(np.all(self.min <= self.max))

    def reset(self):
        """Return to the unset state"""
        self.min = np.full(3, np.inf)
        self.max = np.full(3, -np.inf)

    def expand_to_include(self, low, high=None):
        """
        Grow the box so it contains [low, high]

        Args:
            low: [x, y, z] lower corner of the region to include
            high: [x, y, z] upper corner (default: same as low)
        """
        if high is None:
            high = low
        self.min = np.minimum(self.min, np.asarray(low, dtype=np.float64))
        self.max = np.maximum(self.max, np.asarray(high, dtype=np.float64))

    def copy(self):
        return BoundingBox(self.min.copy(), self.max.copy())

    def get_corner_coordinates(self):
        """
        Get the 8 box corners

        Returns:
            (3, 8) array, one corner per column
        """
        corners = np.empty((3, 8))
        for i in range(8):
            corners[0, i] = self.max[0] if (i & 1) else self.min[0]
            corners[1, i] = self.max[1] if (i & 2) else self.min[1]
            corners[2, i] = self.max[2] if (i & 4) else self.min[2]
        return corners

    @staticmethod
    def get_aabb_from_obb_and_pose(obb, pose):
        """
        Axis aligned box in the pose's target frame enclosing a rotated box

        The per-axis extrema of the 8 transformed corners are used rather
        than a closed form on the extents.

        Args:
            obb: BoundingBox expressed in the pose's source frame
            pose: gtsam.Pose3 mapping source frame to target frame

        Returns:
            BoundingBox in the target frame (unset if obb is unset)
        """
        if not obb.is_valid():
            return BoundingBox()
        corners = obb.get_corner_coordinates()
        T = pose.matrix()
        transformed = T[:3, :3] @ corners + T[:3, 3:4]
        return BoundingBox(transformed.min(axis=1), transformed.max(axis=1))

    def __eq__(self, other):
        if not isinstance(other, BoundingBox):
            return NotImplemented
        return np.array_equal(self.min, other.min) and np.array_equal(self.max, other.max)

    def __repr__(self):
        return f"BoundingBox(min={self.min.tolist()}, max={self.max.tolist()})"

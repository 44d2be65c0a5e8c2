"""
Isosurface vertex extraction from a TSDF layer.

Vertices are placed the way marching cubes places them: on every edge of a
voxel-center cube whose two end voxels have a sign change, at the linearly
interpolated zero crossing. A cube is only meshed if all 8 of its corner
voxels are observed above the confidence floor. Neighboring cubes share
edges, so the raw vertex list holds duplicates until it is connected.
"""
import numpy as np
from scipy.spatial import KDTree

# The 12 cube edges as (corner offset, axis)
CUBE_EDGES = [
    ((0, 0, 0), 0), ((0, 1, 0), 0), ((0, 0, 1), 0), ((0, 1, 1), 0),
    ((0, 0, 0), 1), ((1, 0, 0), 1), ((0, 0, 1), 1), ((1, 0, 1), 1),
    ((0, 0, 0), 2), ((1, 0, 0), 2), ((0, 1, 0), 2), ((1, 1, 0), 2),
]


class Mesh:
    """Isosurface vertices in the layer frame"""

    def __init__(self, vertices=None):
        if vertices is None:
            vertices = np.empty((0, 3))
        self.vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)

    def __len__(self):
        return len(self.vertices)

    def get_connected_vertices(self, approximate_vertex_proximity_threshold):
        """
        Merge vertices closer than a threshold

        Vertices are visited in order; each one absorbs every later vertex
        within the threshold, and keeps its own position.

        Args:
            approximate_vertex_proximity_threshold: Merge distance in meters

        Returns:
            Mesh holding the deduplicated vertices
        """
        if len(self.vertices) == 0:
            return Mesh()

        tree = KDTree(self.vertices)
        neighbors = tree.query_ball_point(self.vertices, approximate_vertex_proximity_threshold)

        merged = np.zeros(len(self.vertices), dtype=bool)
        keep = []
        for i, group in enumerate(neighbors):
            if merged[i]:
                continue
            keep.append(i)
            merged[group] = True
        return Mesh(self.vertices[keep])


def extract_isosurface_mesh(tsdf_layer, min_weight):
    """
    Extract the zero level set of a TSDF layer

    Args:
        tsdf_layer: Layer with TSDF distances and integration weights
        min_weight: Voxels must have a weight strictly above this to be meshed

    Returns:
        Mesh with one vertex per (cube, crossing edge), not yet deduplicated
    """
    distance, weight, origin_voxel_index = tsdf_layer.to_dense()
    if distance is None or min(distance.shape) < 2:
        return Mesh()

    distance = distance.astype(np.float64)
    valid = weight > min_weight

    # A cube at [i, j, k] spans voxel centers [i:i+2, j:j+2, k:k+2]
    nx, ny, nz = (s - 1 for s in distance.shape)
    cube_valid = np.ones((nx, ny, nz), dtype=bool)
    for corner in range(8):
        ox, oy, oz = corner & 1, (corner >> 1) & 1, (corner >> 2) & 1
        cube_valid &= valid[ox:ox + nx, oy:oy + ny, oz:oz + nz]

    vertices = []
    for (ox, oy, oz), axis in CUBE_EDGES:
        step = np.zeros(3, dtype=int)
        step[axis] = 1
        px, py, pz = ox + step[0], oy + step[1], oz + step[2]
        d_a = distance[ox:ox + nx, oy:oy + ny, oz:oz + nz]
        d_b = distance[px:px + nx, py:py + ny, pz:pz + nz]
        crossing = cube_valid & ((d_a < 0.0) != (d_b < 0.0))
        if not np.any(crossing):
            continue

        cubes = np.argwhere(crossing)
        d_a = d_a[crossing]
        d_b = d_b[crossing]
        t = d_a / (d_a - d_b)

        start = (cubes + (ox, oy, oz) + origin_voxel_index + 0.5) * tsdf_layer.voxel_size
        points = start.copy()
        points[:, axis] += t * tsdf_layer.voxel_size
        vertices.append(points)

    if not vertices:
        return Mesh()
    return Mesh(np.vstack(vertices))

"""
Block sparse voxel layer holding a signed distance and a weight per voxel.

Space is split into cubic blocks of voxels_per_side^3 voxels. Only blocks
that have been allocated are stored. Voxels inside a block are addressed by
a linear index x + vps * (y + vps * z).

The same layer type backs both the TSDF (weight = integration weight) and
the ESDF (weight > 0 marks an observed voxel).
"""
import numpy as np


class Block:
    """
    Single block of voxels

    Stores float32 distance and weight arrays in linear index order
    """

    def __init__(self, block_index, voxel_size, voxels_per_side):
        """
        Args:
            block_index: (i, j, k) integer block grid index
            voxel_size: Voxel edge length in meters
            voxels_per_side: Number of voxels along each block edge
        """
        self.block_index = tuple(int(i) for i in block_index)
        self.voxel_size = float(voxel_size)
        self.voxels_per_side = int(voxels_per_side)
        self.num_voxels = self.voxels_per_side ** 3
        self.block_size = self.voxel_size * self.voxels_per_side
        self.origin = np.array(self.block_index, dtype=np.float64) * self.block_size

        self.distance = np.zeros(self.num_voxels, dtype=np.float32)
        self.weight = np.zeros(self.num_voxels, dtype=np.float32)

    def is_valid_linear_index(self, linear_index):
        return 0 <= linear_index < self.num_voxels

    def get_voxel_by_linear_index(self, linear_index):
        """Returns (distance, weight) of a voxel"""
        return float(self.distance[linear_index]), float(self.weight[linear_index])

    def set_voxel_by_linear_index(self, linear_index, distance, weight):
        self.distance[linear_index] = distance
        self.weight[linear_index] = weight

    def voxel_index_from_linear_index(self, linear_index):
        vps = self.voxels_per_side
        return np.array([linear_index % vps,
                         (linear_index // vps) % vps,
                         linear_index // (vps * vps)])

    def linear_index_from_voxel_index(self, voxel_index):
        vps = self.voxels_per_side
        return int(voxel_index[0] + vps * (voxel_index[1] + vps * voxel_index[2]))

    def compute_coordinates_from_linear_index(self, linear_index):
        """Center of a voxel, in the layer frame"""
        voxel_index = self.voxel_index_from_linear_index(linear_index)
        return self.origin + (voxel_index + 0.5) * self.voxel_size

    def compute_all_voxel_coordinates(self):
        """
        Centers of every voxel in the block

        Returns:
            (num_voxels, 3) array in linear index order
        """
        linear = np.arange(self.num_voxels)
        vps = self.voxels_per_side
        voxel_indices = np.stack([linear % vps, (linear // vps) % vps, linear // (vps * vps)], axis=1)
        return self.origin + (voxel_indices + 0.5) * self.voxel_size

    def has_observed_voxels(self, min_weight=0.0):
        return bool(np.any(self.weight > min_weight))

    def copy(self):
        block = Block(self.block_index, self.voxel_size, self.voxels_per_side)
        block.distance = self.distance.copy()
        block.weight = self.weight.copy()
        return block


class Layer:
    """
    Block sparse voxel grid

    Attributes:
        voxel_size: Voxel edge length in meters
        voxels_per_side: Voxels along each block edge
        block_size: Block edge length in meters
        blocks: Dict mapping (i, j, k) block index to Block
    """

    def __init__(self, voxel_size, voxels_per_side):
        if voxel_size <= 0.0 or voxels_per_side <= 0:
            raise ValueError(
                f"Invalid layer geometry: voxel_size={voxel_size}, voxels_per_side={voxels_per_side}")
        self.voxel_size = float(voxel_size)
        self.voxels_per_side = int(voxels_per_side)
        self.block_size = self.voxel_size * self.voxels_per_side
        self.blocks = {}

    def __len__(self):
        return len(self.blocks)

    def get_all_allocated_blocks(self):
        """Block indices of every allocated block, in a stable order"""
        return sorted(self.blocks.keys())

    def has_block(self, block_index):
        return tuple(block_index) in self.blocks

    def get_block_by_index(self, block_index):
        return self.blocks[tuple(block_index)]

    def get_block_ptr_by_index(self, block_index):
        """Block at index or None if not allocated"""
        return self.blocks.get(tuple(block_index))

    def allocate_block_by_index(self, block_index):
        block_index = tuple(int(i) for i in block_index)
        block = self.blocks.get(block_index)
        if block is None:
            block = Block(block_index, self.voxel_size, self.voxels_per_side)
            self.blocks[block_index] = block
        return block

    def remove_block(self, block_index):
        self.blocks.pop(tuple(block_index), None)

    def block_index_from_point(self, point):
        return tuple(int(i) for i in np.floor(np.asarray(point, dtype=np.float64) / self.block_size))

    def global_voxel_index_from_point(self, point):
        return np.floor(np.asarray(point, dtype=np.float64) / self.voxel_size).astype(np.int64)

    def block_center(self, block_index):
        """Center of a block grid cell"""
        return (np.asarray(block_index, dtype=np.float64) + 0.5) * self.block_size

    def _locate(self, global_voxel_index):
        vps = self.voxels_per_side
        block_index = tuple(int(i) for i in np.floor_divide(global_voxel_index, vps))
        local = np.mod(global_voxel_index, vps)
        linear = int(local[0] + vps * (local[1] + vps * local[2]))
        return block_index, linear

    def set_voxel(self, point, distance, weight):
        """Write the voxel containing point, allocating its block if needed"""
        block_index, linear = self._locate(self.global_voxel_index_from_point(point))
        self.allocate_block_by_index(block_index).set_voxel_by_linear_index(linear, distance, weight)

    def get_voxel(self, point):
        """(distance, weight) of the voxel containing point, None if not allocated"""
        block_index, linear = self._locate(self.global_voxel_index_from_point(point))
        block = self.blocks.get(block_index)
        if block is None:
            return None
        return block.get_voxel_by_linear_index(linear)

    def copy(self):
        layer = Layer(self.voxel_size, self.voxels_per_side)
        layer.blocks = {index: block.copy() for index, block in self.blocks.items()}
        return layer

    def to_dense(self, padding_blocks=0):
        """
        Pack the allocated blocks into dense arrays

        Unallocated space inside the bounding block range gets weight 0, so
        memory grows with the block range, not with the number of allocated
        blocks. The ESDF adds three int32 nearest-index arrays of the same
        shape on top. Keep submaps compact; a long diagonal submap pays for
        its whole bounding box.

        Args:
            padding_blocks: Extra empty blocks added on every side

        Returns:
            distance: (X, Y, Z) float32 array indexed [x, y, z]
            weight: (X, Y, Z) float32 array
            origin_voxel_index: Global voxel index of element [0, 0, 0]
            (all None when no block is allocated)
        """
        if not self.blocks:
            return None, None, None

        vps = self.voxels_per_side
        indices = np.array(list(self.blocks.keys()), dtype=np.int64)
        min_block = indices.min(axis=0) - padding_blocks
        max_block = indices.max(axis=0) + padding_blocks
        shape = tuple((max_block - min_block + 1) * vps)

        distance = np.zeros(shape, dtype=np.float32)
        weight = np.zeros(shape, dtype=np.float32)
        for block_index, block in self.blocks.items():
            start = (np.array(block_index) - min_block) * vps
            sl = tuple(slice(s, s + vps) for s in start)
            # Linear index x + vps * (y + vps * z) is C order over [z, y, x]
            distance[sl] = block.distance.reshape(vps, vps, vps).transpose(2, 1, 0)
            weight[sl] = block.weight.reshape(vps, vps, vps).transpose(2, 1, 0)

        return distance, weight, min_block * vps

    @classmethod
    def from_dense(cls, distance, weight, origin_voxel_index, voxel_size, voxels_per_side,
                   min_weight=0.0, keep_blocks=None):
        """
        Inverse of to_dense()

        Args:
            distance, weight: (X, Y, Z) arrays, shape a multiple of voxels_per_side
            origin_voxel_index: Global voxel index of element [0, 0, 0], block aligned
            min_weight: Blocks without any voxel above this weight are dropped
            keep_blocks: Optional set of block indices allocated regardless of weight

        Returns:
            Layer
        """
        layer = cls(voxel_size, voxels_per_side)
        if distance is None:
            return layer

        vps = layer.voxels_per_side
        origin_block = np.asarray(origin_voxel_index, dtype=np.int64) // vps
        num_blocks = np.array(distance.shape) // vps
        keep_blocks = keep_blocks or set()

        for offset in np.ndindex(*num_blocks):
            block_index = tuple(int(i) for i in origin_block + offset)
            sl = tuple(slice(o * vps, (o + 1) * vps) for o in offset)
            block_weight = weight[sl]
            if block_index not in keep_blocks and not np.any(block_weight > min_weight):
                continue
            block = layer.allocate_block_by_index(block_index)
            block.distance = np.ascontiguousarray(distance[sl].transpose(2, 1, 0)).reshape(-1).astype(np.float32)
            block.weight = np.ascontiguousarray(block_weight.transpose(2, 1, 0)).reshape(-1).astype(np.float32)

        return layer

    def voxel_centers(self, origin_voxel_index, shape):
        """
        Centers of a dense voxel grid

        Returns:
            (X, Y, Z, 3) array
        """
        axes = [(np.arange(n) + o + 0.5) * self.voxel_size
                for n, o in zip(shape, origin_voxel_index)]
        return np.stack(np.meshgrid(*axes, indexing='ij'), axis=-1)

"""
TSDF submap with cached registration points and bounding boxes.

A submap owns a TSDF layer expressed in its own frame and a pose T_world_submap.
While it is being built, robot poses are added to its pose history. Once
finish_submap() has run, the derived state (ESDF, registration point
samplers, bounding boxes) is cached. Moving the submap with transform_submap()
resamples the TSDF and regenerates all of it.

Algorithm (finish_submap):
    1. ESDF from the TSDF
    2. Voxel registration points: observed voxels inside the truncation band
    3. Isosurface registration points: connected isosurface vertices with
       their interpolated TSDF distance and weight
    4. Submap OBB (all allocated blocks) and surface OBB (relevant voxels)
"""

import logging

import numpy as np

from tsdf_submaps.core.bounding_box import BoundingBox
from tsdf_submaps.core.esdf import generate_esdf
from tsdf_submaps.core.interpolator import Interpolator
from tsdf_submaps.core.layer import Layer
from tsdf_submaps.core.mesh import extract_isosurface_mesh
from tsdf_submaps.core.resampling import transform_layer
from tsdf_submaps.core.types import (
    InvalidEsdfIndexError,
    IsosurfaceConsistencyError,
    RegistrationFilterConfig,
    RegistrationPoint,
    RegistrationPointType,
    SubmapConfig,
    SubmapNotFinishedError,
)
from tsdf_submaps.core.weighted_sampler import WeightedSampler
from tsdf_submaps.utils.io import CodeTimer

# Isosurface vertices must interpolate to |distance| <= this * voxel_size
ISOSURFACE_DISTANCE_TOLERANCE = 1e-2


class Submap:
    """
    Spatially bounded map fragment with its own frame

    Attributes:
        submap_id: Opaque identifier
        config (SubmapConfig): Layer geometry, registration filter and ESDF params
        tsdf_layer (Layer): TSDF in submap frame
        finished (bool): True once finish_submap() has run (never reset)
    """

    def __init__(self, T_world_submap, submap_id, config=None, tsdf_layer=None,
                 logger=None, profiler=None, seed=None):
        """
        Args:
            T_world_submap: gtsam.Pose3 of the submap in world frame
            submap_id: Identifier of the submap
            config: SubmapConfig or dict (default SubmapConfig())
            tsdf_layer: Layer to take ownership of (default: empty layer)
            logger: Logger to use (e.g. a ROS node logger)
            profiler: Optional SubmapProfiler receiving finish statistics
            seed: Seed for the registration point samplers
        """
        if config is None:
            config = SubmapConfig()
        elif isinstance(config, SubmapConfig):
            # Each submap owns its config
            config = SubmapConfig.from_dict(config.to_dict())
        else:
            config = SubmapConfig.from_dict(config)
        self.config = config

        self.submap_id = submap_id
        self._pose = T_world_submap
        self._pose_history = {}
        self.finished = False

        if tsdf_layer is None:
            tsdf_layer = Layer(config.voxel_size, config.voxels_per_side)
        self.tsdf_layer = tsdf_layer
        self.esdf_layer = Layer(config.voxel_size, config.voxels_per_side)

        rng = np.random.default_rng(seed)
        self.relevant_voxels = WeightedSampler(rng=rng)
        self.isosurface_vertices = WeightedSampler(rng=rng)

        # Cached OBBs, unset until first computed
        self.surface_obb = BoundingBox()
        self.map_obb = BoundingBox()

        if logger is not None:
            self.logger = logger
        else:
            self.logger = logging.getLogger('Submap')
        self.profiler = profiler

    @classmethod
    def from_tsdf_layer(cls, T_world_submap, submap_id, tsdf_layer, config=None, **kwargs):
        """
        Create a submap holding a copy of an existing TSDF layer

        The voxel size and voxels per side are taken from the layer.
        """
        if config is None:
            config = SubmapConfig()
        elif not isinstance(config, SubmapConfig):
            config = SubmapConfig.from_dict(config)
        config = SubmapConfig(
            voxel_size=tsdf_layer.voxel_size,
            voxels_per_side=tsdf_layer.voxels_per_side,
            registration_filter=config.registration_filter,
            esdf=config.esdf)
        return cls(T_world_submap, submap_id, config, tsdf_layer.copy(), **kwargs)

    @property
    def pose(self):
        """T_world_submap"""
        return self._pose

    @pose.setter
    def pose(self, T_world_submap):
        # OBBs are expressed in submap frame and stay valid
        self._pose = T_world_submap

    @property
    def voxel_size(self):
        return self.tsdf_layer.voxel_size

    @property
    def block_size(self):
        return self.tsdf_layer.block_size

    def get_esdf_layer(self):
        return self.esdf_layer

    def set_registration_filter_config(self, registration_filter_config):
        """
        Update the registration filter (takes effect on next finish_submap())

        Args:
            registration_filter_config: RegistrationFilterConfig or dict, copied
        """
        if isinstance(registration_filter_config, RegistrationFilterConfig):
            registration_filter_config = registration_filter_config.to_dict()
        self.config.registration_filter = RegistrationFilterConfig.from_dict(
            registration_filter_config)
        # The surface box is measured with the filter
        self.surface_obb.reset()

    # ------------------------------------------------------------------
    # Pose history
    # ------------------------------------------------------------------

    def add_pose_to_history(self, timestamp, T_world_robot):
        """
        Record a robot pose observed while building this submap

        Args:
            timestamp: Time in seconds
            T_world_robot: gtsam.Pose3 of the robot in world frame
        """
        timestamp = float(timestamp)
        if timestamp in self._pose_history:
            raise ValueError(
                f"Submap {self.submap_id} already has a pose at t={timestamp}")
        self._pose_history[timestamp] = self._pose.inverse().compose(T_world_robot)

    def get_pose_history(self):
        """List of (timestamp, T_submap_robot) sorted by timestamp"""
        return sorted(self._pose_history.items(), key=lambda kv: kv[0])

    def get_creation_time(self):
        """Earliest pose history timestamp, 0.0 if the history is empty"""
        if not self._pose_history:
            return 0.0
        return min(self._pose_history)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def finish_submap(self):
        """Generate the ESDF, the registration points and the bounding boxes

        Can be called again after the TSDF or the registration filter changed;
        every cached value is rebuilt from the current state.
        """
        self.invalidate_bounding_boxes()
        with CodeTimer(f"Submap {self.submap_id} finish", self.logger) as finish_timer:
            with CodeTimer(f"Submap {self.submap_id} ESDF", self.logger) as esdf_timer:
                self.esdf_layer = generate_esdf(self.tsdf_layer, self.config.esdf)

            self.find_relevant_voxel_indices()
            self.logger.info(
                f"Submap {self.submap_id}: # relevant voxels: {len(self.relevant_voxels)}")

            interpolation_misses = self.find_isosurface_vertices()
            self.logger.info(
                f"Submap {self.submap_id}: # isosurface vertices: {len(self.isosurface_vertices)}")

            self.compute_submap_frame_submap_obb()
            self.compute_submap_frame_surface_obb()

            self.finished = True

        if self.profiler is not None:
            self.profiler.record(
                self.submap_id,
                finish_ms=finish_timer.took_ms,
                esdf_ms=esdf_timer.took_ms,
                relevant_voxels=len(self.relevant_voxels),
                isosurface_vertices=len(self.isosurface_vertices),
                interpolation_misses=interpolation_misses,
                allocated_blocks=len(self.tsdf_layer))

    def transform_submap(self, T_new_old):
        """
        Move the submap content by a rigid transform

        The TSDF is resampled, the OBBs and pose history are re-expressed and
        the pose is compensated so the content stays put in world frame.
        All cached values are regenerated before returning.

        Args:
            T_new_old: gtsam.Pose3 mapping the old submap frame to the new one
        """
        self.tsdf_layer = transform_layer(self.tsdf_layer, T_new_old)

        self.invalidate_bounding_boxes()

        for timestamp, T_submap_robot in self._pose_history.items():
            self._pose_history[timestamp] = T_new_old.compose(T_submap_robot)

        self._pose = self._pose.compose(T_new_old.inverse())

        self.finish_submap()

    def invalidate_bounding_boxes(self):
        self.surface_obb.reset()
        self.map_obb.reset()

    # ------------------------------------------------------------------
    # Registration points
    # ------------------------------------------------------------------

    def get_registration_points(self, registration_point_type):
        """
        Sampler over the cached registration points

        Args:
            registration_point_type: RegistrationPointType

        Returns:
            WeightedSampler of RegistrationPoint
        """
        if not self.finished:
            raise SubmapNotFinishedError(
                "The cached registration points are only available once the "
                f"submap {self.submap_id} has been declared finished.")
        if registration_point_type == RegistrationPointType.VOXELS:
            return self.relevant_voxels
        if registration_point_type == RegistrationPointType.ISOSURFACE_POINTS:
            return self.isosurface_vertices
        raise ValueError(f"Unknown registration point type {registration_point_type}")

    def _relevant_voxel_mask(self, block):
        registration_filter = self.config.registration_filter
        return ((block.weight > registration_filter.min_voxel_weight)
                & (np.abs(block.distance) < registration_filter.max_voxel_distance))

    def find_relevant_voxel_indices(self):
        """Rebuild the voxel sampler from the observed voxels in the truncation band"""
        self.relevant_voxels.clear()
        use_esdf_distance = self.config.registration_filter.use_esdf_distance

        for block_index in self.tsdf_layer.get_all_allocated_blocks():
            tsdf_block = self.tsdf_layer.get_block_by_index(block_index)
            esdf_block = None
            if use_esdf_distance:
                esdf_block = self.esdf_layer.get_block_ptr_by_index(block_index)

            linear_indices = np.nonzero(self._relevant_voxel_mask(tsdf_block))[0]
            if linear_indices.size == 0:
                continue
            coordinates = tsdf_block.compute_all_voxel_coordinates()

            for linear_index in linear_indices:
                distance, weight = tsdf_block.get_voxel_by_linear_index(linear_index)
                if use_esdf_distance:
                    if esdf_block is None or not esdf_block.is_valid_linear_index(linear_index):
                        raise InvalidEsdfIndexError(
                            f"ESDF of submap {self.submap_id} has no voxel at block "
                            f"{block_index}, linear index {linear_index}")
                    distance, _ = esdf_block.get_voxel_by_linear_index(linear_index)

                point = RegistrationPoint.create(coordinates[linear_index], distance, weight)
                self.relevant_voxels.add_item(point, weight)

    def find_isosurface_vertices(self):
        """
        Rebuild the isosurface vertex sampler

        Returns:
            Number of vertices skipped because they could not be interpolated
        """
        self.isosurface_vertices.clear()
        min_voxel_weight = self.config.registration_filter.min_voxel_weight

        mesh = extract_isosurface_mesh(self.tsdf_layer, min_voxel_weight)
        connected_mesh = mesh.get_connected_vertices(0.5 * self.voxel_size)
        if len(connected_mesh) == 0:
            return 0

        interpolator = Interpolator(self.tsdf_layer)
        distances, weights, success = interpolator.interpolate(connected_mesh.vertices)

        misses = int(np.count_nonzero(~success))
        if misses:
            self.logger.debug(
                f"Submap {self.submap_id}: {misses} isosurface vertices outside known space")

        tolerance = ISOSURFACE_DISTANCE_TOLERANCE * self.voxel_size
        for vertex, distance, weight in zip(connected_mesh.vertices[success],
                                            distances[success], weights[success]):
            if abs(distance) > tolerance:
                self.logger.error(
                    f"Submap {self.submap_id}: isosurface vertex {vertex.tolist()} "
                    f"interpolates to distance {distance}")
                raise IsosurfaceConsistencyError(
                    f"Isosurface vertex at {vertex.tolist()} has distance {distance} "
                    f"(tolerance {tolerance})")
            point = RegistrationPoint.create(vertex, distance, weight)
            self.isosurface_vertices.add_item(point, weight)

        return misses

    # ------------------------------------------------------------------
    # Bounding boxes
    # ------------------------------------------------------------------

    def compute_submap_frame_surface_obb(self):
        """
        Box around the registration relevant voxels, in submap frame

        Measured on first call after construction or invalidation, cached after.
        Stays unset if no voxel is relevant.
        """
        if not self.surface_obb.is_valid():
            half_voxel = 0.5 * self.voxel_size
            for block_index in self.tsdf_layer.get_all_allocated_blocks():
                block = self.tsdf_layer.get_block_by_index(block_index)
                mask = self._relevant_voxel_mask(block)
                if not np.any(mask):
                    continue
                centers = block.compute_all_voxel_coordinates()[mask]
                self.surface_obb.expand_to_include(
                    centers.min(axis=0) - half_voxel, centers.max(axis=0) + half_voxel)
        return self.surface_obb

    def compute_submap_frame_submap_obb(self):
        """
        Box around every allocated block, in submap frame

        Measured on first call after construction or invalidation, cached after.
        """
        if not self.map_obb.is_valid():
            half_block = 0.5 * self.block_size
            for block_index in self.tsdf_layer.get_all_allocated_blocks():
                center = self.tsdf_layer.block_center(block_index)
                self.map_obb.expand_to_include(center - half_block, center + half_block)
        return self.map_obb

    def _transform_corners(self, corners):
        homogeneous = np.vstack([corners, np.ones((1, 8))])
        return (self._pose.matrix() @ homogeneous)[:3, :]

    def compute_world_frame_surface_obb_corners(self):
        """(3, 8) corners of the surface OBB in world frame"""
        return self._transform_corners(self.compute_submap_frame_surface_obb().get_corner_coordinates())

    def compute_world_frame_submap_obb_corners(self):
        """(3, 8) corners of the submap OBB in world frame"""
        return self._transform_corners(self.compute_submap_frame_submap_obb().get_corner_coordinates())

    def compute_world_frame_surface_aabb(self):
        """Axis aligned box around the isosurface in world frame"""
        return BoundingBox.get_aabb_from_obb_and_pose(
            self.compute_submap_frame_surface_obb(), self._pose)

    def compute_world_frame_submap_aabb(self):
        """Axis aligned box around the full submap in world frame"""
        return BoundingBox.get_aabb_from_obb_and_pose(
            self.compute_submap_frame_submap_obb(), self._pose)

    def compute_world_frame_surface_aabb_corners(self):
        return self.compute_world_frame_surface_aabb().get_corner_coordinates()

    def compute_world_frame_submap_aabb_corners(self):
        return self.compute_world_frame_submap_aabb().get_corner_coordinates()

    # ------------------------------------------------------------------
    # Overlap
    # ------------------------------------------------------------------

    def overlaps_with(self, other_submap):
        """
        Approximate overlap test on the world frame surface AABBs

        Args:
            other_submap: Submap

        Returns:
            False if the boxes are separated along any axis (or either is unset)
        """
        aabb = self.compute_world_frame_surface_aabb()
        other_aabb = other_submap.compute_world_frame_surface_aabb()
        if not aabb.is_valid() or not other_aabb.is_valid():
            return False
        # If there's a separation along any of the 3 axes, the AABBs don't intersect
        for axis in range(3):
            if aabb.max[axis] < other_aabb.min[axis] or aabb.min[axis] > other_aabb.max[axis]:
                return False
        return True

    def __repr__(self):
        return (f"Submap(id={self.submap_id}, finished={self.finished}, "
                f"blocks={len(self.tsdf_layer)})")

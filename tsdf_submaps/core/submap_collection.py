"""
Submap Collection Module

Keyed container of submaps sharing one configuration, with pose access and
the list of overlapping submap pairs used to pick registration candidates.
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Dict, List, Tuple

import gtsam

from tsdf_submaps.core.submap import Submap
from tsdf_submaps.core.types import SubmapConfig


class SubmapCollection:
    """Owns submaps by id and hands out the ones that overlap."""

    def __init__(self, config: SubmapConfig = None, logger=None, profiler=None):
        """Initialize an empty collection.

        Args:
            config: SubmapConfig used for every submap created here
            logger: Logger, also passed on to the submaps when given
            profiler: SubmapProfiler passed on to the submaps
        """
        self.config = config if config is not None else SubmapConfig()
        self.logger = logger if logger is not None else logging.getLogger('SubmapCollection')
        # Submaps fall back to their own logger unless one was injected
        self._submap_logger = logger
        self.profiler = profiler

        # Submap storage (single source of truth)
        self.submaps: Dict[int, Submap] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self.submaps)

    def size(self) -> int:
        return len(self.submaps)

    def exists(self, submap_id) -> bool:
        return submap_id in self.submaps

    def get_ids(self) -> List:
        """Get all submap ids, in insertion order."""
        return list(self.submaps.keys())

    def create_new_submap(self, T_world_submap: gtsam.Pose3 = None, submap_id=None) -> Submap:
        """Create an empty submap and add it to the collection.

        Args:
            T_world_submap: Pose of the new submap (default: identity)
            submap_id: Id to use (default: next free integer)

        Returns:
            Submap: The new submap
        """
        if T_world_submap is None:
            T_world_submap = gtsam.Pose3()
        if submap_id is None:
            while self._next_id in self.submaps:
                self._next_id += 1
            submap_id = self._next_id

        submap = Submap(T_world_submap, submap_id, self.config,
                        logger=self._submap_logger, profiler=self.profiler)
        self.add_submap(submap)
        return submap

    def add_submap(self, submap: Submap) -> None:
        """Add an existing submap.

        Args:
            submap: Submap whose id is not yet used
        """
        if submap.submap_id in self.submaps:
            raise ValueError(f"Submap id {submap.submap_id} is already in the collection")
        self.submaps[submap.submap_id] = submap

    def get_submap(self, submap_id) -> Submap:
        """Get submap by id (KeyError if unknown)."""
        return self.submaps[submap_id]

    def get_submap_pose(self, submap_id) -> gtsam.Pose3:
        return self.submaps[submap_id].pose

    def set_submap_pose(self, submap_id, T_world_submap: gtsam.Pose3) -> None:
        self.submaps[submap_id].pose = T_world_submap

    def get_overlapping_submap_pairs(self) -> List[Tuple]:
        """Find all pairs of finished submaps whose world surface AABBs overlap.

        Returns:
            List of (first_id, second_id), in insertion order
        """
        finished = [s for s in self.submaps.values() if s.finished]
        pairs = [(a.submap_id, b.submap_id)
                 for a, b in combinations(finished, 2) if a.overlaps_with(b)]
        self.logger.debug(f"{len(pairs)} overlapping pairs among {len(finished)} finished submaps")
        return pairs

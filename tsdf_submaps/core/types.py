"""
Shared types for the submap core: registration points, parameter classes
and the exceptions raised on sequencing errors.
"""

from enum import Enum
from typing import NamedTuple

import numpy as np


class RegistrationPointType(Enum):
    """Which registration point pool to draw from."""
    VOXELS = 0
    ISOSURFACE_POINTS = 1


class RegistrationPoint(NamedTuple):
    """Weighted 3D sample used to align a submap against another one."""
    position: np.ndarray
    distance: float
    weight: float

    @classmethod
    def create(cls, position, distance, weight):
        """Build a point whose position array cannot be modified afterwards"""
        position = np.array(position, dtype=np.float64)
        position.setflags(write=False)
        return cls(position, float(distance), float(weight))

    def __eq__(self, other):
        if not isinstance(other, RegistrationPoint):
            return NotImplemented
        return (np.array_equal(self.position, other.position)
                and self.distance == other.distance
                and self.weight == other.weight)

    def __ne__(self, other):
        equal = self.__eq__(other)
        if equal is NotImplemented:
            return equal
        return not equal


class SubmapError(RuntimeError):
    """Base class for submap sequencing and consistency errors."""


class SubmapNotFinishedError(SubmapError):
    """Registration data was requested before finish_submap() ran."""


class InvalidEsdfIndexError(SubmapError):
    """ESDF lookup at a block or linear index the ESDF layer does not hold."""


class IsosurfaceConsistencyError(SubmapError):
    """An isosurface vertex interpolated to a distance far from zero."""


class _Params(object):
    """Attribute bag with defaults, filled from a plain config dict."""

    _defaults = {}

    def __init__(self, **kwargs):
        for key, value in self._defaults.items():
            setattr(self, key, value)
        for key, value in kwargs.items():
            if key not in self._defaults:
                raise ValueError(
                    f"Unknown {type(self).__name__} parameter '{key}'")
            setattr(self, key, value)

    @classmethod
    def from_dict(cls, config):
        if config is None:
            return cls()
        return cls(**dict(config))

    def to_dict(self):
        return {key: getattr(self, key) for key in self._defaults}

    def __eq__(self, other):
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __repr__(self):
        params = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"{type(self).__name__}({params})"


class RegistrationFilterConfig(_Params):
    """
    Truncation band / weight policy selecting registration relevant voxels

    Attributes:
        min_voxel_weight: Voxels must have a weight strictly above this
        max_voxel_distance: Voxels must satisfy |distance| strictly below this
        use_esdf_distance: Take the distance from the ESDF instead of the TSDF
    """

    _defaults = {
        'min_voxel_weight': 1e-6,
        'max_voxel_distance': 0.6,
        'use_esdf_distance': True,
    }


class EsdfConfig(_Params):
    """
    Parameters of the ESDF generated from the TSDF on finish

    Attributes:
        min_distance_m: TSDF voxels with |distance| below this are copied as is
        max_distance_m: Propagated distances are clamped to this magnitude
        default_distance_m: Distance assigned when no surface band exists
        min_weight: TSDF voxels at or below this weight are unobserved
    """

    _defaults = {
        'min_distance_m': 0.2,
        'max_distance_m': 2.0,
        'default_distance_m': 2.0,
        'min_weight': 1e-6,
    }


class SubmapConfig(_Params):
    """Layer geometry plus the nested registration filter and ESDF params."""

    _defaults = {
        'voxel_size': 0.1,
        'voxels_per_side': 16,
        'registration_filter': None,
        'esdf': None,
    }

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Nested sections may arrive as dicts straight from YAML
        if not isinstance(self.registration_filter, RegistrationFilterConfig):
            self.registration_filter = RegistrationFilterConfig.from_dict(
                self.registration_filter)
        if not isinstance(self.esdf, EsdfConfig):
            self.esdf = EsdfConfig.from_dict(self.esdf)

        self.voxel_size = float(self.voxel_size)
        self.voxels_per_side = int(self.voxels_per_side)
        if self.voxel_size <= 0.0:
            raise ValueError(f"voxel_size must be positive, got {self.voxel_size}")
        if self.voxels_per_side <= 0:
            raise ValueError(
                f"voxels_per_side must be positive, got {self.voxels_per_side}")

    @property
    def block_size(self):
        return self.voxel_size * self.voxels_per_side

    def to_dict(self):
        return {
            'voxel_size': self.voxel_size,
            'voxels_per_side': self.voxels_per_side,
            'registration_filter': self.registration_filter.to_dict(),
            'esdf': self.esdf.to_dict(),
        }

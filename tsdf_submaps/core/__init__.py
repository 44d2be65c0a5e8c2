from .bounding_box import BoundingBox
from .weighted_sampler import WeightedSampler
from .layer import Block, Layer
from .interpolator import Interpolator
from .esdf import generate_esdf
from .mesh import Mesh, extract_isosurface_mesh
from .resampling import transform_layer
from .types import (RegistrationPoint, RegistrationPointType, RegistrationFilterConfig,
                    EsdfConfig, SubmapConfig, SubmapError, SubmapNotFinishedError,
                    InvalidEsdfIndexError, IsosurfaceConsistencyError)
from .submap import Submap
from .submap_collection import SubmapCollection

__all__ = [
    'BoundingBox',
    'WeightedSampler',
    'Block',
    'Layer',
    'Interpolator',
    'generate_esdf',
    'Mesh',
    'extract_isosurface_mesh',
    'transform_layer',
    'RegistrationPoint',
    'RegistrationPointType',
    'RegistrationFilterConfig',
    'EsdfConfig',
    'SubmapConfig',
    'SubmapError',
    'SubmapNotFinishedError',
    'InvalidEsdfIndexError',
    'IsosurfaceConsistencyError',
    'Submap',
    'SubmapCollection',
]

"""
FEM-Decomp

A Python package for decomposing finite-element meshes into partitions.
"""

from . import femesh
from . import decomp
from .errors import (
    ConfigurationError,
    DataIntegrityError,
    DecompositionError,
    ExternalToolError,
)

__all__ = [
    "femesh",
    "decomp",
    "DecompositionError",
    "DataIntegrityError",
    "ConfigurationError",
    "ExternalToolError",
]

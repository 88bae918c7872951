# -*- coding: utf-8 -*-
"""
Exception types raised by the decomposition engine.

Every error here is fatal for the current run: a partially decomposed mesh is
unusable by a distributed solver, so nothing is retried or skipped.

Classes:
    DecompositionError: Common base class.
    DataIntegrityError: Out-of-range indices or inconsistent masks/maps.
    ConfigurationError: Invalid options, detected before partition work starts.
    ExternalToolError: Failure reported by the partitioner or mesh reader.
"""


class DecompositionError(Exception):
    """Base class for all decomposition errors."""


class DataIntegrityError(DecompositionError, RuntimeError):
    """An index, mask or local numbering is inconsistent with the mesh."""


class ConfigurationError(DecompositionError, ValueError):
    """The requested decomposition cannot be configured."""


class ExternalToolError(DecompositionError, RuntimeError):
    """An external collaborator (METIS, Gmsh) reported a failure."""

"""
Core landscape evolution functionality.
"""

from .graph import EdgeAttributedUndirectedGraph
from .parameters import TopographicalParameters
from .model import TerrainModel, TerrainModel2D, TerrainModel2DBuilder, Terrain2D, generate_jittered_sites
from .stream_tree import StreamTree
from .drainage_basin import DrainageBasin
from .terrain_generator import (
    TerrainGenerator, ElevationSolver, PassMode,
    GenerationError, ModelNotSet, ParametersNotSet, InvalidNumberOfParameters,
)

__all__ = ['EdgeAttributedUndirectedGraph', 'TopographicalParameters',
           'TerrainModel', 'TerrainModel2D', 'TerrainModel2DBuilder', 'Terrain2D', 'generate_jittered_sites',
           'StreamTree', 'DrainageBasin',
           'TerrainGenerator', 'ElevationSolver', 'PassMode',
           'GenerationError', 'ModelNotSet', 'ParametersNotSet', 'InvalidNumberOfParameters']

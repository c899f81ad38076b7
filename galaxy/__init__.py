"""Direct-summation galaxy N-body simulation core."""

from .errors import ConfigurationError, DegenerateMassError, GalaxySimError, PopulationError
from .particles import Particle, Population, SimParams
from .forces import ForceLaw, evaluate
from .integrator import Integrator
from .buffers import ParticleBuffers, step
from .colors import ColorMapper, ColorMode, GlyphMode
from .initialize import generate_population
from .simulation import GalaxySimulation

__all__ = [
    "ConfigurationError", "DegenerateMassError", "GalaxySimError", "PopulationError",
    "Particle", "Population", "SimParams",
    "ForceLaw", "evaluate",
    "Integrator",
    "ParticleBuffers", "step",
    "ColorMapper", "ColorMode", "GlyphMode",
    "generate_population",
    "GalaxySimulation",
]

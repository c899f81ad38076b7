"""Exceptions raised when a simulation is set up with invalid input."""


class GalaxySimError(ValueError):
    """Base class for all galaxy simulation errors."""


class ConfigurationError(GalaxySimError):
    """Invalid per-step parameters (dt, gravity, softening, ...)."""


class DegenerateMassError(GalaxySimError):
    """A particle mass is zero, negative or not finite."""


class PopulationError(GalaxySimError):
    """Particle arrays have inconsistent shapes or invalid values."""

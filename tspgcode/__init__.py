"""Reorder the islands of each G-code layer to shorten travel moves."""

__version__ = "0.2.0"

from .config import Config, load_config
from .errors import (
    ConfigError,
    InputError,
    OptimizerError,
    ParseError,
    ResourceExhaustionError,
    SolverInvocationError,
    TourValidationError,
)
from .optimizer import Optimizer, OptimizeResult

__all__ = [
    "Config",
    "load_config",
    "Optimizer",
    "OptimizeResult",
    "OptimizerError",
    "ParseError",
    "ConfigError",
    "InputError",
    "SolverInvocationError",
    "TourValidationError",
    "ResourceExhaustionError",
]

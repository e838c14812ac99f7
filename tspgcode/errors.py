"""Errors raised while optimizing a G-code file.

Layer-local errors (ParseError, SolverInvocationError, TourValidationError)
are recovered from; the rest abort the run.
"""

import errno


class OptimizerError(Exception):
    """Base class for every error raised by tspgcode."""


class ParseError(OptimizerError):
    """A line could not be classified by the active dialect."""

    def __init__(self, line_number, raw, reason):
        super().__init__("line {}: {} ({})".format(line_number, reason, raw))
        self.line_number = line_number
        self.raw = raw
        self.reason = reason


class ConfigError(OptimizerError):
    """Missing or invalid configuration."""


class InputError(OptimizerError):
    """The input G-code file is missing, unreadable or empty."""


class SolverInvocationError(OptimizerError):
    """The route solver could not be run, failed, or timed out."""


class TourValidationError(OptimizerError):
    """The route solver produced a tour we cannot use."""


class ResourceExhaustionError(OptimizerError):
    """The operating system ran out of file handles, memory or processes."""


RESOURCE_ERRNOS = frozenset(
    code
    for code in (
        getattr(errno, "EMFILE", None),
        getattr(errno, "ENFILE", None),
        getattr(errno, "ENOMEM", None),
        getattr(errno, "EAGAIN", None),
    )
    if code is not None
)


def is_resource_exhaustion(exc):
    return isinstance(exc, OSError) and exc.errno in RESOURCE_ERRNOS

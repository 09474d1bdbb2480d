"""Exception hierarchy shared by the experiment pipeline."""

from __future__ import annotations


class ForceGridError(Exception):
    """Base class for all errors raised by forcegrid."""


class InvalidConfiguration(ForceGridError, ValueError):
    """Settings could not be merged or failed validation."""


class UnresolvedGeometry(ForceGridError):
    """A metric was asked to measure a graph whose nodes have no positions yet."""


class SimulationTimeout(ForceGridError):
    """The layout simulator did not settle within the per-test time budget."""


class ExternalServiceFailure(ForceGridError):
    """The graph source could not deliver graphs."""


class GraphFormatError(ExternalServiceFailure):
    """The graph source answered with text that is not a list of edge lists."""


class ExperimentCancelled(ForceGridError):
    """The cancel token was set while the experiment was running."""

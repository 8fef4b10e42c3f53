"""Error taxonomy for the site response tool.

Every failure that must reach the caller derives from :class:`SiteResponseError`
and carries a distinct ``exit_code`` so the CLI can report configuration
problems and exhausted time-step recovery as different outcomes.

Local (single-step) non-convergence is NOT an exception: it is handled inside
the adaptive time-integration driver and never escapes it.
"""

from __future__ import annotations


class SiteResponseError(Exception):
    """Base class for all site response failures."""

    exit_code = 1


class ConfigurationError(SiteResponseError):
    """Invalid model input: missing motion, zero-element layer, bad file."""

    exit_code = 2


class RecoveryExhaustedError(SiteResponseError):
    """Time-step bisection exceeded its depth bound during the dynamic stage."""

    exit_code = 3

    def __init__(self, message: str, time: float = 0.0, depth: int = 0):
        super().__init__(message)
        self.time = time
        self.depth = depth


class StageError(SiteResponseError):
    """Stage controller driven out of order (stages are strictly forward)."""

    exit_code = 4

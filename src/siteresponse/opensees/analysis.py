"""
OpenSees Analysis Sequences for Site Response Columns.

Provides the two analysis configurations the column is walked through and
the adaptive time-integration driver of the dynamic stage:

    gravity   Penalty constraints, NormDispIncr, Newton, RCM, BandGeneral,
              Newmark (γ = 5/6, β = 4/9), Transient. The over-damped Newmark
              constants let the column settle to its static state.
    dynamic   Newmark average acceleration (γ = 0.5, β = 0.25), Rayleigh
              damping anchored at a target minimum frequency.

The adaptive driver is written against two callables (``step`` and
``get_time``) so it runs on OpenSees or on a synthetic step function alike.

Units: kN, m, s, Mg.

References:
    - Newmark, N.M. (1959). "A Method of Computation for Structural Dynamics."
      ASCE J. Engineering Mechanics Division.
    - Chopra, A.K. (2017). Dynamics of Structures, 5th Edition, Ch. 11
      (Rayleigh damping).
    - Kwok, A.O.L. et al. (2007). "Use of Exact Solutions of Wave Propagation
      Problems to Guide Implementation of Nonlinear Seismic Ground Response
      Analysis Procedures." ASCE JGGE 133(11).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

import openseespy.opensees as ops

logger = logging.getLogger(__name__)


# ============================================================================
# GRAVITY ANALYSIS
# ============================================================================

def configure_gravity(penalty: float = 1.0e16, tol: float = 1.0e-4,
                      max_iter: int = 35, gamma: float = 5.0 / 6.0,
                      beta: float = 4.0 / 9.0, interp=ops) -> str:
    """Set up the transient gravity analysis.

    Args:
        penalty:   Penalty factor for SP and MP constraints. Default: 1e16.
        tol:       NormDispIncr tolerance. Default: 1e-4.
        max_iter:  Maximum Newton iterations per step. Default: 35.
        gamma:     Newmark γ. Default: 5/6.
        beta:      Newmark β. Default: 4/9.

    Returns:
        Name of the active configuration ("gravity").
    """
    interp.constraints('Penalty', penalty, penalty)
    interp.test('NormDispIncr', tol, max_iter, 1)
    interp.algorithm('Newton')
    interp.numberer('RCM')
    interp.system('BandGeneral')
    interp.integrator('Newmark', gamma, beta)
    interp.analysis('Transient')
    return "gravity"


def gravity_analysis(analyze: Callable[[int, float], int], steps: int = 10,
                     dt: float = 1.0) -> int:
    """Advance ``steps`` gravity steps of ``dt``, one at a time.

    Non-convergence is reported and the stage carries on: gravity is
    best-effort and a failed step is not retried.

    Args:
        analyze:  ``analyze(n, dt) -> int`` (0 = converged).
        steps:    Number of steps. Default: 10.
        dt:       Pseudo-time step. Default: 1.0.

    Returns:
        Number of steps that did not converge.
    """
    failures = 0
    for i in range(steps):
        ok = analyze(1, dt)
        if ok != 0:
            failures += 1
            logger.warning("Gravity step %d/%d did not converge (code %s)",
                           i + 1, steps, ok)
    return failures


# ============================================================================
# DYNAMIC ANALYSIS
# ============================================================================

def rayleigh_coefficients(f_min: float = 5.01,
                          damping: float = 0.025) -> Tuple[float, float]:
    """Mass and stiffness proportional factors for a target frequency.

    a0 = ξ Ω and a1 = ξ / Ω with Ω = 2π f_min; the damping ratio equals ξ at
    f_min and is minimal there.

    Args:
        f_min:    Target frequency (Hz). Default: 5.01.
        damping:  Target damping ratio ξ. Default: 0.025.

    Returns:
        (a0, a1).
    """
    if f_min <= 0.0:
        raise ValueError(f"f_min must be positive, got {f_min}")
    omega = 2.0 * math.pi * f_min
    return damping * omega, damping / omega


def damping_ratio_at(frequency: float, a0: float, a1: float) -> float:
    """Rayleigh damping ratio at ``frequency``: ξ = a0 / 2ω + a1 ω / 2."""
    omega = 2.0 * math.pi * frequency
    return a0 / (2.0 * omega) + a1 * omega / 2.0


def configure_dynamic(a0: float, a1: float, penalty: float = 1.0e16,
                      tol: float = 1.0e-4, max_iter: int = 35,
                      gamma: float = 0.5, beta: float = 0.25,
                      interp=ops) -> str:
    """Replace the gravity analysis by the transient shaking analysis.

    Args:
        a0, a1:    Rayleigh factors (mass, current stiffness).
        penalty:   Penalty factor. Default: 1e16.
        tol:       NormDispIncr tolerance. Default: 1e-4.
        max_iter:  Maximum Newton iterations per step. Default: 35.
        gamma:     Newmark γ. Default: 0.5.
        beta:      Newmark β. Default: 0.25.

    Returns:
        Name of the active configuration ("dynamic").
    """
    interp.wipeAnalysis()
    interp.constraints('Penalty', penalty, penalty)
    interp.test('NormDispIncr', tol, max_iter, 0)
    interp.algorithm('Newton')
    interp.numberer('RCM')
    interp.system('BandGeneral')
    interp.integrator('Newmark', gamma, beta)
    interp.rayleigh(a0, a1, 0.0, 0.0)
    interp.analysis('Transient')
    return "dynamic"


# ============================================================================
# ADAPTIVE TIME INTEGRATION
# ============================================================================

class StepOutcome(str, Enum):
    """Result of one integration attempt."""
    CONVERGED = "converged"
    FAILED = "failed"          # recoverable; handled inside the driver
    EXHAUSTED = "exhausted"    # bisection depth bound exceeded


@dataclass
class SteppingResult:
    """Summary of an adaptive run.

    Attributes:
        outcome:      CONVERGED or EXHAUSTED.
        total_steps:  Steps of size dt requested.
        time:         Solution time reached (s).
        min_dt:       Smallest step attempted (s).
        max_depth:    Deepest bisection level reached.
        recoveries:   Failures recovered by bisection.
        failed_at:    Time of the unrecovered failure, if any.
    """
    outcome: StepOutcome
    total_steps: int
    time: float
    min_dt: float
    max_depth: int = 0
    recoveries: int = 0
    failed_at: Optional[float] = None

    @property
    def converged(self) -> bool:
        return self.outcome is StepOutcome.CONVERGED


class AdaptiveStepper:
    """Recursive time-step bisection around a step function.

    Args:
        step:       ``step(n, dt) -> int``; advances n steps, 0 = converged.
        get_time:   Current solution time.
        max_depth:  Deepest bisection level allowed. Default: 10.
    """

    def __init__(self, step: Callable[[int, float], int],
                 get_time: Callable[[], float], max_depth: int = 10):
        self.step = step
        self.get_time = get_time
        self.max_depth = max_depth
        self._min_dt = math.inf
        self._deepest = 0

    def bisect(self, dt: float, depth: int) -> StepOutcome:
        """Cover one interval of 2·dt with two steps of dt, recursing on failure."""
        if depth > self.max_depth:
            return StepOutcome.EXHAUSTED
        self._deepest = max(self._deepest, depth)
        self._min_dt = min(self._min_dt, dt)
        for half in ("left", "right"):
            if self.step(1, dt) == 0:
                logger.debug("Substep %d: %s half converged with dt = %g",
                             depth, half, dt)
                continue
            if self.bisect(dt / 2.0, depth + 1) is StepOutcome.EXHAUSTED:
                return StepOutcome.EXHAUSTED
        return StepOutcome.CONVERGED

    def run(self, total_steps: int, dt: float) -> SteppingResult:
        """Integrate ``total_steps`` steps of ``dt`` from the current time."""
        self._min_dt = dt
        self._deepest = 0
        start = self.get_time()
        remaining = total_steps
        recoveries = 0

        while remaining > 0:
            if self.step(remaining, dt) == 0:
                break
            failed_at = self.get_time()
            logger.warning("Analysis failed at t = %.6f s; trying substeps", failed_at)
            outcome = self.bisect(dt / 2.0, 1)
            if outcome is StepOutcome.EXHAUSTED:
                logger.error("Substepping exhausted at t = %.6f s (depth > %d)",
                             failed_at, self.max_depth)
                return SteppingResult(StepOutcome.EXHAUSTED, total_steps,
                                      self.get_time(), self._min_dt,
                                      self._deepest, recoveries, failed_at)
            recoveries += 1
            completed = int(round((failed_at - start) / dt)) + 1
            remaining = total_steps - completed
            logger.info("Current step: %d, remaining steps: %d", completed, remaining)

        return SteppingResult(StepOutcome.CONVERGED, total_steps, self.get_time(),
                              self._min_dt, self._deepest, recoveries)


def adaptive_script(max_depth: int = 10) -> str:
    """OpenSeesPy source of the same bisection scheme, for generated scripts."""
    return f'''\
def sub_step_analyze(dt, depth):
    if depth > {max_depth}:
        return -10
    for half in ('left', 'right'):
        ok = ops.analyze(1, dt)
        if ok != 0:
            ok = sub_step_analyze(dt / 2.0, depth + 1)
            if ok == -10:
                return ok
    return 0


def run_dynamic(n_steps, dt):
    start = ops.getTime()
    remaining = n_steps
    while remaining > 0:
        if ops.analyze(remaining, dt) == 0:
            return 0
        failed_at = ops.getTime()
        print('Analysis failed at %f. Try substepping.' % failed_at)
        if sub_step_analyze(dt / 2.0, 1) == -10:
            print('Did not converge.')
            return -10
        remaining = n_steps - (int(round((failed_at - start) / dt)) + 1)
    return 0
'''

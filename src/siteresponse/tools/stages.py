"""Stage Controller — walks the assembled column through its analysis stages.

    ElasticGravity → PlasticGravity → PermeabilityUpdate → Dynamic

Strictly forward and one pass: asking for a stage out of order raises
StageError. Material behavior only changes through Parameters between solves;
the mesh is never rebuilt.

ElasticGravity
    materialState ← 0 everywhere, gravity analysis, fixed number of steps.
PlasticGravity
    materialState ← 1, FirstCall ← 0 and poissonRatio ← ν_plastic per
    element, same steps again from the current equilibrium.
PermeabilityUpdate
    horizontal then vertical permeability per element set to the
    near-impermeable value (hPerm/vPerm on quads, xPerm/zPerm and yPerm on
    bricks); no solve.
Dynamic
    gravity-only fixities removed, compliant base installed (dashpot node
    pair, ties, Lysmer dashpot), clock reset, Rayleigh damping, velocity
    load pattern(s), recorders, optional script, adaptive time stepping.

Gravity non-convergence is logged and the run carries on.

References:
    - Joyner, W.B. & Chen, A.T.F. (1975). BSSA 65(5): outcrop motion applied
      as a force proportional to the outcrop velocity at a viscous base.
    - Lysmer, J. & Kuhlemeyer, R.L. (1969). ASCE J. Engineering Mechanics
      Division, 95(4): viscous boundary c = ρ Vs A.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from siteresponse.errors import ConfigurationError, RecoveryExhaustedError, StageError
from siteresponse.opensees.analysis import (
    AdaptiveStepper,
    SteppingResult,
    adaptive_script,
    configure_dynamic,
    configure_gravity,
    damping_ratio_at,
    gravity_analysis,
    rayleigh_coefficients,
)
from siteresponse.opensees.materials import MATERIAL_KNOBS, dashpot_coefficient, viscous
from siteresponse.opensees.elements import (
    HORIZONTAL,
    VERTICAL,
    permeability_knobs,
    zero_length,
)
from siteresponse.tools.assembler import AssembledColumn, generate_script
from siteresponse.tools.domain import DASHPOT, ElementRecord, MaterialRecord, SiteDomain
from siteresponse.tools.layering import SiteLayering
from siteresponse.tools.mesh import DIM_3D
from siteresponse.tools.motion import OutcropMotion
from siteresponse.tools.recorders import RecorderSpec, attach_recorders, pore_pressure_node
from siteresponse.tools.site_input import AnalysisSettings

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    ASSEMBLED = "assembled"
    ELASTIC_GRAVITY = "elastic_gravity"
    PLASTIC_GRAVITY = "plastic_gravity"
    PERMEABILITY_UPDATE = "permeability_update"
    DYNAMIC = "dynamic"


STAGE_ORDER = [Stage.ASSEMBLED, Stage.ELASTIC_GRAVITY, Stage.PLASTIC_GRAVITY,
               Stage.PERMEABILITY_UPDATE, Stage.DYNAMIC]


@dataclass
class StageReport:
    """Outcome of one gravity stage."""
    stage: Stage
    steps: int
    failed_steps: int
    time: float
    surface_disp: float

    @property
    def converged(self) -> bool:
        return self.failed_steps == 0


def active_motions(motion_x: OutcropMotion, motion_z: OutcropMotion,
                   dimension: str) -> List[Tuple[int, OutcropMotion]]:
    """(dof, motion) pairs that will excite the base.

    Raises:
        ConfigurationError: no initialized horizontal motion.
    """
    pairs = []
    if motion_x.is_initialized:
        pairs.append((1, motion_x))
    if dimension == DIM_3D and motion_z.is_initialized:
        pairs.append((3, motion_z))
    if not pairs:
        raise ConfigurationError(
            "No initialized horizontal motion: supply at least the X motion"
            + (" or the Z motion." if dimension == DIM_3D else ".")
        )
    return pairs


class StageController:
    """Forward-only state machine over an assembled column.

    Args:
        domain:    Domain holding the assembled column.
        column:    Assembly summary.
        site:      Layering (bedrock supplies the dashpot impedance).
        settings:  Analysis constants.
    """

    def __init__(self, domain: SiteDomain, column: AssembledColumn,
                 site: SiteLayering, settings: AnalysisSettings):
        self.domain = domain
        self.column = column
        self.site = site
        self.settings = settings
        self.stage = Stage.ASSEMBLED
        self.reports: List[StageReport] = []
        self.baseline_surface_disp: Optional[float] = None
        self.recorders: List[RecorderSpec] = []
        self.dashpot_nodes: Tuple[int, int] = (0, 0)

    def _enter(self, target: Stage):
        current = STAGE_ORDER.index(self.stage)
        if STAGE_ORDER.index(target) != current + 1:
            raise StageError(
                f"Cannot enter stage '{target.value}' from '{self.stage.value}'."
            )
        logger.info("Stage: %s", target.value)
        self.domain.ops.section(f"STAGE: {target.value}")
        self.stage = target

    def material_state(self) -> List[float]:
        """Read back every materialState parameter."""
        return [self.domain.read_parameter(p)
                for p in self.domain.parameters_named("materialState")]

    # ------------------------------------------------------------------
    # gravity stages
    # ------------------------------------------------------------------

    def _gravity_steps(self, stage: Stage) -> StageReport:
        steps, dt = self.settings.gravity_steps, self.settings.gravity_dt
        self.domain.ops.emit(f"for _ in range({steps}):",
                             f"    ops.analyze(1, {dt!r})")
        failed = gravity_analysis(self.domain.analyze, steps, dt)
        if failed:
            logger.warning("%s: %d of %d steps did not converge; continuing",
                           stage.value, failed, steps)
        disp = self.domain.node_response(self.column.surface_node, 2, "disp")
        report = StageReport(stage, steps, failed, self.domain.get_time(), disp)
        self.reports.append(report)
        logger.info("%s finished at t = %g, surface settlement %.6e m",
                    stage.value, report.time, disp)
        return report

    def elastic_gravity(self) -> StageReport:
        self._enter(Stage.ELASTIC_GRAVITY)
        domain = self.domain
        for param in domain.parameters_named("materialState"):
            domain.update_parameter(param, 0.0)
        s = self.settings
        domain.context.config = configure_gravity(
            s.penalty, s.gravity_tol, s.gravity_max_iter, s.gravity_gamma,
            s.gravity_beta, interp=domain.ops)
        report = self._gravity_steps(Stage.ELASTIC_GRAVITY)
        self.baseline_surface_disp = report.surface_disp
        return report

    def plastic_gravity(self) -> StageReport:
        self._enter(Stage.PLASTIC_GRAVITY)
        domain = self.domain
        for param in domain.parameters_named("materialState"):
            domain.update_parameter(param, 1.0)
        for element in domain.soil_elements():
            domain.add_parameter("FirstCall", element.tag, 0.0)
        for element in domain.soil_elements():
            domain.add_parameter("poissonRatio", element.tag,
                                 self.settings.plastic_poisson)
        return self._gravity_steps(Stage.PLASTIC_GRAVITY)

    def permeability_update(self):
        self._enter(Stage.PERMEABILITY_UPDATE)
        domain = self.domain
        k = self.settings.permeability
        for direction in (HORIZONTAL, VERTICAL):
            for element in domain.soil_elements():
                for knob in permeability_knobs(element.kind, direction):
                    domain.add_parameter(knob, element.tag, k)
        logger.info("Permeability set to %.4e m/s on %d elements",
                    k, len(domain.soil_elements()))

    # ------------------------------------------------------------------
    # dynamic stage
    # ------------------------------------------------------------------

    def _install_compliant_base(self) -> float:
        """Swap the gravity fixities for the Lysmer dashpot; returns c."""
        domain, column = self.domain, self.column
        for fixity in domain.gravity_fixities():
            domain.remove_fixity(fixity)

        ndm = 3 if column.dimension == DIM_3D else 2
        origin = (0.0,) * ndm
        fixed = domain.tags.next("node")
        free = domain.tags.next("node")
        domain.add_node(fixed, origin, ndm, role=DASHPOT)
        domain.add_node(free, origin, ndm, role=DASHPOT)
        for dof in range(1, ndm + 1):
            domain.fix(fixed, dof)
        domain.fix(free, 2)
        self.dashpot_nodes = (fixed, free)

        shaking = column.shaking_dofs
        base = column.base_nodes
        domain.equal_dof(base[0], free, shaking)
        for node in base[1:]:
            domain.equal_dof(base[0], node, shaking, horizon=0)

        rock = self.site.rock
        c = dashpot_coefficient(rock.density, rock.vs, column.area)
        mats = []
        for _ in shaking:
            tag = viscous(domain.tags.next("material"), c, 1.0, interp=domain.ops)
            domain.add_material(MaterialRecord(tag, "Viscous", None, (c, 1.0),
                                               MATERIAL_KNOBS["Viscous"]))
            mats.append(tag)
        zero_length(column.dashpot_element, (fixed, free), mats, list(shaking),
                    interp=domain.ops)
        domain.add_element(ElementRecord(column.dashpot_element, "zeroLength",
                                         (fixed, free), mats[0], role=DASHPOT))
        logger.info("Compliant base: c = %.4g kN·s/m on element %d (nodes %d, %d)",
                    c, column.dashpot_element, fixed, free)
        return c

    def _apply_motions(self, motions: List[Tuple[int, OutcropMotion]], factor: float):
        domain = self.domain
        free = self.dashpot_nodes[1]
        ndf = domain.nodes[free].ndf
        for dof, motion in motions:
            times, velocity = motion.velocity()
            series = domain.tags.next("time_series")
            pattern = domain.tags.next("pattern")
            domain.ops.timeSeries('Path', series, '-values', *velocity,
                                  '-time', *times, '-factor', factor)
            domain.ops.pattern('Plain', pattern, series)
            load = [0.0] * ndf
            load[dof - 1] = 1.0
            domain.ops.load(free, *load)
            domain.time_series.append(series)
            domain.patterns.append(pattern)
            logger.info("Motion %s (%s, %d points) on DOF %d, pattern %d",
                        motion.name, motion.kind, len(times), dof, pattern)

    def dynamic(self, motion_x: OutcropMotion,
                motion_z: Optional[OutcropMotion] = None,
                output_dir: Optional[str] = None,
                script_path: Optional[str | Path] = None,
                title: str = "site") -> SteppingResult:
        """Install the compliant base and integrate the shaking.

        Args:
            motion_x:     Outcrop motion along X.
            motion_z:     Outcrop motion along Z (3-D only).
            output_dir:   Recorder directory (None → no recorders).
            script_path:  Where to write the OpenSeesPy script (None → skip).
            title:        Script header label.

        Returns:
            SteppingResult of the adaptive driver.

        Raises:
            ConfigurationError: no initialized motion or a bad pore-pressure node.
            RecoveryExhaustedError: bisection bound exceeded.
        """
        motions = active_motions(motion_x, motion_z or OutcropMotion.empty(),
                                 self.column.dimension)
        if self.column.effective:
            pore_pressure_node(self.column, self.settings.pore_pressure_node)
        self._enter(Stage.DYNAMIC)
        domain, s = self.domain, self.settings

        c = self._install_compliant_base()
        domain.set_time(0.0)

        a0, a1 = rayleigh_coefficients(s.rayleigh_f_min, s.damping_ratio)
        domain.context.rayleigh = (a0, a1, 0.0, 0.0)
        domain.context.config = configure_dynamic(
            a0, a1, s.penalty, s.dynamic_tol, s.dynamic_max_iter,
            s.dynamic_gamma, s.dynamic_beta, interp=domain.ops)
        f0 = self.site.natural_frequency()
        logger.info("Rayleigh a0 = %.4e, a1 = %.4e (ξ = %.2f%% at f0 = %.2f Hz)",
                    a0, a1, 100.0 * damping_ratio_at(f0, a0, a1), f0)

        self._apply_motions(motions, c)

        if output_dir is not None:
            self.recorders = attach_recorders(domain, self.column, output_dir,
                                              s.pore_pressure_node)

        dt = s.dynamic_dt or min(m.min_dt() for _, m in motions)
        duration = max(m.duration for _, m in motions)
        steps = max(int(round(duration / dt)), 1)
        domain.context.dt = dt

        domain.ops.section("ADAPTIVE TIME STEPPING")
        domain.ops.emit(adaptive_script(s.max_bisections),
                        f"run_dynamic({steps}, {dt!r})",
                        "ops.wipe()")
        if script_path is not None:
            Path(script_path).write_text(generate_script(domain, title))
            logger.info("Script written to %s", script_path)

        logger.info("Dynamic analysis: %d steps of %g s", steps, dt)
        stepper = AdaptiveStepper(domain.analyze, domain.get_time, s.max_bisections)
        result = stepper.run(steps, dt)
        if not result.converged:
            raise RecoveryExhaustedError(
                f"Time-step bisection exhausted at t = {result.failed_at:.6f} s "
                f"(more than {s.max_bisections} levels).",
                time=result.failed_at or 0.0, depth=result.max_depth,
            )
        logger.info("Dynamic analysis finished at t = %.4f s "
                    "(%d recoveries, smallest dt %g)",
                    result.time, result.recoveries, result.min_dt)
        return result

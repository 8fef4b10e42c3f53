"""Site Response Model — one complete run of the soil column.

Wires the pieces together in their load-bearing order::

    SiteLayering → plan_mesh → assemble_domain → StageController
        (elastic gravity → plastic gravity → permeability → dynamic)

OpenSees global state is wiped at the start of every run; one SiteDomain owns
all tables for the duration of the run.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from siteresponse.opensees.analysis import SteppingResult
from siteresponse.tools.assembler import AssembledColumn, assemble_domain
from siteresponse.tools.domain import SiteDomain
from siteresponse.tools.layering import SiteLayering
from siteresponse.tools.mesh import MeshPlan, plan_mesh
from siteresponse.tools.motion import OutcropMotion
from siteresponse.tools.recorders import peak_values
from siteresponse.tools.site_input import AnalysisSettings, SiteInput
from siteresponse.tools.stages import StageController, StageReport, active_motions

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Summary of a finished run.

    Attributes:
        name:                  Site name.
        mode:                  "total" or "effective".
        dimension:             "2D" or "3D".
        num_nodes:             Soil nodes in the column.
        num_elements:          Soil elements in the column.
        stages:                Gravity stage reports.
        material_state:        materialState readback after each gravity stage.
        removed_fixities:      Gravity-only fixities released for shaking.
        stepping:              Adaptive driver summary.
        surface_velocity:      Final surface X velocity (m/s).
        surface_acceleration:  Final surface X acceleration (m/s²).
        peak_surface_accel:    Peak |a| from the surface recorder, if any.
        output_dir:            Recorder directory, if any.
        script_path:           Generated script, if any.
    """
    name: str
    mode: str
    dimension: str
    num_nodes: int
    num_elements: int
    stages: List[StageReport] = field(default_factory=list)
    material_state: Dict[str, List[float]] = field(default_factory=dict)
    removed_fixities: int = 0
    stepping: Optional[SteppingResult] = None
    surface_velocity: float = 0.0
    surface_acceleration: float = 0.0
    peak_surface_accel: Optional[float] = None
    output_dir: Optional[str] = None
    script_path: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["stages"] = [dict(asdict(r), stage=r.stage.value) for r in self.stages]
        if self.stepping is not None:
            data["stepping"]["outcome"] = self.stepping.outcome.value
        return data


class SiteResponseModel:
    """A layered site, its motions and the settings of one analysis.

    Args:
        site:      Surface-first layering, bedrock last.
        motion_x:  Outcrop motion along X.
        motion_z:  Outcrop motion along Z (3-D only).
        settings:  Analysis constants (defaults if None).
        name:      Label for logs and the script header.

    Raises:
        ConfigurationError: no initialized horizontal motion.
    """

    def __init__(self, site: SiteLayering, motion_x: OutcropMotion,
                 motion_z: Optional[OutcropMotion] = None,
                 settings: Optional[AnalysisSettings] = None,
                 name: str = "site"):
        self.site = site
        self.motion_x = motion_x
        self.motion_z = motion_z or OutcropMotion.empty(name="z")
        self.settings = settings or AnalysisSettings()
        self.name = name
        active_motions(self.motion_x, self.motion_z, self.settings.dimension)

        self.domain: Optional[SiteDomain] = None
        self.column: Optional[AssembledColumn] = None
        self.controller: Optional[StageController] = None

    @classmethod
    def from_input(cls, data: SiteInput) -> "SiteResponseModel":
        return cls(data.site, data.motion_x, data.motion_z, data.settings,
                   name=data.name)

    def plan(self) -> MeshPlan:
        s = self.settings
        return plan_mesh(self.site, s.dimension, s.max_frequency,
                         s.nodes_per_wavelength)

    def build(self, apply: bool = True) -> StageController:
        """Wipe OpenSees, assemble the column and return its stage controller."""
        self.domain = SiteDomain(apply=apply)
        self.domain.wipe()
        plan = self.plan()
        logger.info("Mesh plan:\n%s", plan.describe())
        self.column = assemble_domain(self.domain, self.site, plan, self.settings)
        self.controller = StageController(self.domain, self.column, self.site,
                                          self.settings)
        return self.controller

    def run(self, output_dir: Optional[str] = None,
            script_path: Optional[str | Path] = None,
            apply: bool = True) -> RunResult:
        """Build the column and walk it through every stage.

        Args:
            output_dir:   Recorder directory (None → settings.output_dir).
            script_path:  Write the OpenSeesPy script here before shaking.
            apply:        False for a dry run (nothing reaches OpenSees).

        Returns:
            RunResult.

        Raises:
            ConfigurationError: invalid layering, mesh or mode combination.
            RecoveryExhaustedError: dynamic bisection bound exceeded.
        """
        output_dir = output_dir or self.settings.output_dir
        if script_path is None and self.settings.dump_script:
            script_path = os.path.join(output_dir, self.settings.script_name)
        if script_path is not None:
            Path(script_path).parent.mkdir(parents=True, exist_ok=True)

        ctl = self.build(apply=apply)
        domain, column = self.domain, self.column
        result = RunResult(self.name, self.settings.mode, column.dimension,
                           column.plan.num_nodes, column.plan.num_elements,
                           output_dir=output_dir,
                           script_path=str(script_path) if script_path else None)

        result.stages.append(ctl.elastic_gravity())
        result.material_state["elastic_gravity"] = ctl.material_state()
        result.stages.append(ctl.plastic_gravity())
        result.material_state["plastic_gravity"] = ctl.material_state()
        ctl.permeability_update()

        result.removed_fixities = len(domain.gravity_fixities())
        result.stepping = ctl.dynamic(self.motion_x, self.motion_z,
                                      output_dir=output_dir,
                                      script_path=script_path, title=self.name)

        surface = column.surface_node
        result.surface_velocity = domain.node_response(surface, 1, "vel")
        result.surface_acceleration = domain.node_response(surface, 1, "accel")
        domain.close_recorders()
        if apply:
            accel_file = os.path.join(output_dir, "surface.acc")
            if os.path.exists(accel_file):
                result.peak_surface_accel = peak_values(accel_file).get(1)
        logger.info("Run '%s' complete: %s", self.name, domain.summary())
        return result

    def write_script(self, path: str | Path) -> str:
        """Dry-run every stage and write the OpenSeesPy script to ``path``."""
        self.run(script_path=path, apply=False)
        return Path(path).read_text()

"""Site Input — JSON site file schema and analysis settings.

A site file describes the layering (surface first, bedrock last), the
groundwater depth, the outcrop motions and optional analysis overrides::

    {
      "name": "two-layer",
      "gwt_depth": 2.0,
      "layers": [
        {"name": "sand", "thickness": 6.0, "vs": 180.0, "density": 1.8,
         "material": "PM4Sand", "sand_preset": "soft", "element_count": 24},
        {"name": "rock", "thickness": 0.0, "vs": 760.0, "density": 2.4}
      ],
      "motions": {
        "x": {"file": "motion_x.txt", "kind": "acceleration", "scale": 9.81, "dt": 0.005}
      },
      "analysis": {"mode": "effective", "dimension": "2D"}
    }

Validation is done with pydantic; any schema failure surfaces as a
ConfigurationError. Bedrock thickness is irrelevant (never meshed) and may be
given as zero.

Units: kN, m, s, Mg.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from siteresponse.errors import ConfigurationError
from siteresponse.tools.layering import (
    Layer,
    MaterialType,
    SandParameters,
    SiteLayering,
)
from siteresponse.tools.mesh import (
    DEFAULT_MAX_FREQUENCY,
    DEFAULT_NODES_PER_WAVELENGTH,
    normalize_dimension,
)
from siteresponse.tools.motion import OutcropMotion, load_motion_file

logger = logging.getLogger(__name__)

TOTAL = "total"
EFFECTIVE = "effective"

#: Bedrock thickness used when the file gives none (never meshed).
ROCK_PLACEHOLDER_THICKNESS = 1.0


# ============================================================================
# ANALYSIS SETTINGS
# ============================================================================

@dataclass(frozen=True)
class AnalysisSettings:
    """Run constants. Defaults reproduce the reference column analysis.

    Attributes:
        mode:                  "total" (single phase) or "effective" (u-p).
        dimension:             "2D" or "3D".
        max_frequency:         Mesh frequency target (Hz).
        nodes_per_wavelength:  Mesh density target.
        gravity_steps:         Steps per gravity stage.
        gravity_dt:            Pseudo-time step of gravity stages.
        gravity_tol:           Gravity NormDispIncr tolerance.
        gravity_max_iter:      Gravity iteration cap.
        gravity_gamma:         Gravity Newmark γ.
        gravity_beta:          Gravity Newmark β.
        penalty:               Penalty constraint factor.
        dynamic_tol:           Dynamic NormDispIncr tolerance.
        dynamic_max_iter:      Dynamic iteration cap.
        dynamic_gamma:         Dynamic Newmark γ.
        dynamic_beta:          Dynamic Newmark β.
        dynamic_dt:            Solution step (None → smallest motion step).
        rayleigh_f_min:        Rayleigh target frequency (Hz).
        damping_ratio:         Rayleigh target damping ratio.
        max_bisections:        Deepest time-step bisection level.
        column_width:          Element width (None → 1.0 total, 0.25 effective).
        column_thickness:      Out-of-plane thickness (2-D).
        permeability:          Permeability set on every element before shaking (m/s).
        plastic_poisson:       Poisson ratio pushed to sand at plastic gravity.
        fluid_bulk:            Pore-fluid bulk modulus (kPa).
        fluid_density:         Pore-fluid density (Mg/m³).
        pore_pressure_node:    Node whose pore pressure is recorded
                               (None → first node of the mid-height horizon).
        output_dir:            Recorder output directory.
        dump_script:           Write the OpenSeesPy script before shaking.
        script_name:           File name of the generated script.
    """
    mode: str = TOTAL
    dimension: str = "2D"
    max_frequency: float = DEFAULT_MAX_FREQUENCY
    nodes_per_wavelength: int = DEFAULT_NODES_PER_WAVELENGTH
    gravity_steps: int = 10
    gravity_dt: float = 1.0
    gravity_tol: float = 1.0e-4
    gravity_max_iter: int = 35
    gravity_gamma: float = 5.0 / 6.0
    gravity_beta: float = 4.0 / 9.0
    penalty: float = 1.0e16
    dynamic_tol: float = 1.0e-4
    dynamic_max_iter: int = 35
    dynamic_gamma: float = 0.5
    dynamic_beta: float = 0.25
    dynamic_dt: Optional[float] = None
    rayleigh_f_min: float = 5.01
    damping_ratio: float = 0.025
    max_bisections: int = 10
    column_width: Optional[float] = None
    column_thickness: float = 1.0
    permeability: float = 1.0e-7 / 9.81
    plastic_poisson: float = 0.3
    fluid_bulk: float = 2.2e6
    fluid_density: float = 1.0
    pore_pressure_node: Optional[int] = None
    output_dir: str = "out"
    dump_script: bool = False
    script_name: str = "model.py"

    def __post_init__(self):
        if self.mode not in (TOTAL, EFFECTIVE):
            raise ConfigurationError(
                f"Mode must be '{TOTAL}' or '{EFFECTIVE}', got '{self.mode}'."
            )
        object.__setattr__(self, "dimension", normalize_dimension(self.dimension))
        if self.gravity_steps < 1:
            raise ConfigurationError("gravity_steps must be at least 1.")
        if self.max_bisections < 0:
            raise ConfigurationError("max_bisections must be non-negative.")

    @property
    def effective(self) -> bool:
        return self.mode == EFFECTIVE

    @property
    def width(self) -> float:
        if self.column_width is not None:
            return self.column_width
        return 0.25 if self.effective else 1.0

    def column_area(self) -> float:
        """Cross-section tributary to the base dashpot (m²)."""
        if self.dimension == "3D":
            return self.width * self.width
        return self.width * self.column_thickness

    def override(self, **changes) -> "AnalysisSettings":
        """Copy with the non-None ``changes`` applied."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown analysis settings: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


# ============================================================================
# FILE SCHEMA
# ============================================================================

class SandSection(BaseModel):
    Dr: float = Field(gt=0.0, lt=1.0)
    G0: float = Field(gt=0.0)
    hpo: float = Field(gt=0.0)
    Den: float = Field(gt=0.0)
    patm: float = 101.3
    h0: float = -1.0
    emax: float = 0.8
    emin: float = 0.5
    nb: float = 0.5
    nd: float = 0.1
    Ado: float = -1.0
    zmax: float = -1.0
    cz: float = 250.0
    ce: float = -1.0
    phic: float = 33.0
    nu: float = 0.3333333333333333


class LayerSection(BaseModel):
    name: str
    thickness: float = Field(ge=0.0)
    vs: float = Field(gt=0.0)
    density: float = Field(gt=0.0)
    material: str = "ElasticIsotropic"
    poisson: float = 0.3
    element_count: Optional[int] = None
    sand_preset: Optional[str] = None
    sand: Optional[SandSection] = None
    void_ratio: Optional[float] = None

    @field_validator("material")
    @classmethod
    def _known_material(cls, value: str) -> str:
        try:
            return MaterialType.parse(value).value
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc


class MotionSection(BaseModel):
    """Either inline ``times``/``values`` or a ``file``."""
    file: Optional[str] = None
    times: Optional[List[float]] = None
    values: Optional[List[float]] = None
    dt: Optional[float] = None
    kind: str = "acceleration"
    scale: float = 1.0

    @field_validator("kind")
    @classmethod
    def _known_kind(cls, value: str) -> str:
        if value not in ("velocity", "acceleration"):
            raise ValueError(f"kind must be 'velocity' or 'acceleration', got '{value}'")
        return value


class AnalysisSection(BaseModel):
    mode: Optional[str] = None
    dimension: Optional[str] = None
    max_frequency: Optional[float] = Field(default=None, gt=0.0)
    nodes_per_wavelength: Optional[int] = Field(default=None, gt=0)
    gravity_steps: Optional[int] = None
    dynamic_dt: Optional[float] = Field(default=None, gt=0.0)
    rayleigh_f_min: Optional[float] = Field(default=None, gt=0.0)
    damping_ratio: Optional[float] = Field(default=None, ge=0.0)
    max_bisections: Optional[int] = None
    column_width: Optional[float] = Field(default=None, gt=0.0)
    permeability: Optional[float] = Field(default=None, gt=0.0)
    pore_pressure_node: Optional[int] = None
    output_dir: Optional[str] = None
    dump_script: Optional[bool] = None


class SiteFile(BaseModel):
    name: str = "site"
    gwt_depth: float = Field(default=2.0, ge=0.0)
    layers: List[LayerSection]
    motions: Dict[str, MotionSection] = Field(default_factory=dict)
    analysis: AnalysisSection = Field(default_factory=AnalysisSection)


# ============================================================================
# CONVERSION
# ============================================================================

@dataclass(frozen=True)
class SiteInput:
    """Everything a run needs, validated."""
    name: str
    site: SiteLayering
    motion_x: OutcropMotion
    motion_z: OutcropMotion
    settings: AnalysisSettings


def _layer(section: LayerSection, is_rock: bool) -> Layer:
    thickness = section.thickness
    if thickness <= 0.0:
        if not is_rock:
            raise ConfigurationError(
                f"Layer '{section.name}': thickness must be positive, got {thickness}."
            )
        thickness = ROCK_PLACEHOLDER_THICKNESS
    sand = SandParameters(**section.sand.model_dump()) if section.sand else None
    return Layer(
        name=section.name,
        thickness=thickness,
        vs=section.vs,
        density=section.density,
        material=MaterialType.parse(section.material),
        poisson=section.poisson,
        element_count=section.element_count,
        sand=sand,
        sand_preset=section.sand_preset,
        void_ratio=section.void_ratio,
    )


def _motion(label: str, section: Optional[MotionSection], base: Path) -> OutcropMotion:
    if section is None:
        return OutcropMotion.empty(name=label)
    if section.file is not None:
        path = Path(section.file)
        if not path.is_absolute():
            path = base / path
        return load_motion_file(path, kind=section.kind, dt=section.dt,
                                scale=section.scale, name=label)
    values = [v * section.scale for v in (section.values or [])]
    if section.times is not None:
        return OutcropMotion(times=tuple(section.times), values=tuple(values),
                             kind=section.kind, name=label)
    if section.dt is None:
        raise ConfigurationError(f"Motion '{label}' needs 'times', 'dt' or 'file'.")
    return OutcropMotion.uniform(section.dt, values, kind=section.kind, name=label)


def parse_site(data: dict, base_dir: Optional[Path] = None,
               settings: Optional[AnalysisSettings] = None) -> SiteInput:
    """Validate a decoded site file.

    Args:
        data:       Decoded JSON object.
        base_dir:   Directory against which relative motion files resolve.
        settings:   Base settings the file's ``analysis`` section overrides.

    Raises:
        ConfigurationError: schema violations, unreadable motions.
    """
    try:
        doc = SiteFile.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid site file: {exc}") from exc

    base_dir = base_dir or Path.cwd()
    count = len(doc.layers)
    layers = tuple(_layer(s, i == count - 1) for i, s in enumerate(doc.layers))
    site = SiteLayering(layers=layers, gwt_depth=doc.gwt_depth)

    unknown = set(doc.motions) - {"x", "z"}
    if unknown:
        raise ConfigurationError(f"Motion directions must be 'x' or 'z', got {sorted(unknown)}.")
    motion_x = _motion("x", doc.motions.get("x"), base_dir)
    motion_z = _motion("z", doc.motions.get("z"), base_dir)

    settings = (settings or AnalysisSettings()).override(
        **doc.analysis.model_dump())
    logger.debug("Parsed site '%s': %d layers, settings %s", doc.name, count, settings)
    return SiteInput(doc.name, site, motion_x, motion_z, settings)


def load_site_input(path: str | Path,
                    settings: Optional[AnalysisSettings] = None) -> SiteInput:
    """Read and validate a JSON site file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except OSError as exc:
        raise ConfigurationError(f"Cannot read site file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Site file {path} is not valid JSON: {exc}") from exc
    return parse_site(data, base_dir=path.parent, settings=settings)

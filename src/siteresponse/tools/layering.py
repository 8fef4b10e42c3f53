"""Layering Model — ordered soil layers over an elastic bedrock half-space.

The layering is listed from the ground surface downward. The LAST layer is the
bedrock (outcrop) layer: it is never meshed, it only supplies the impedance of
the compliant base. Every other layer becomes a stack of soil elements.

Layers are immutable once loaded. The mesh discretizer and the domain
assembler read them; nothing mutates them.

Units: kN, m, s, Mg (density in Mg/m³, stresses in kPa).

References:
    - Boulanger, R.W. & Ziotopoulou, K. (2017). PM4Sand (Version 3.1):
      A Sand Plasticity Model for Earthquake Engineering Applications.
      UCD/CGM-17/01.
    - Kramer, S.L. (1996). Geotechnical Earthquake Engineering, Ch. 7.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from siteresponse.errors import ConfigurationError


# ============================================================================
# MATERIAL TYPES
# ============================================================================

class MaterialType(str, Enum):
    """Constitutive behavior declared by a soil layer."""
    ELASTIC = "ElasticIsotropic"
    PM4SAND = "PM4Sand"

    @classmethod
    def parse(cls, value: str) -> "MaterialType":
        """Accept the OpenSees name or the descriptive alias."""
        aliases = {
            "elasticisotropic": cls.ELASTIC,
            "elastic": cls.ELASTIC,
            "linear-elastic": cls.ELASTIC,
            "pm4sand": cls.PM4SAND,
            "nonlinear-sand": cls.PM4SAND,
            "sand": cls.PM4SAND,
        }
        key = str(value).strip().lower()
        if key not in aliases:
            raise ConfigurationError(
                f"Unknown material type '{value}'. "
                f"Use one of {sorted(set(aliases))}."
            )
        return aliases[key]


# ============================================================================
# PM4SAND PARAMETERS
# ============================================================================

@dataclass(frozen=True)
class SandParameters:
    """PM4Sand constants (primary + the secondary ones the tool sets).

    Attributes:
        Dr:    Relative density (fraction).
        G0:    Shear modulus coefficient (dimensionless).
        hpo:   Contraction rate parameter.
        Den:   Mass density (Mg/m³).
        patm:  Atmospheric pressure (kPa).
        h0:    Plastic modulus ratio (-1 → model default).
        emax:  Maximum void ratio.
        emin:  Minimum void ratio.
        nb:    Bounding surface parameter.
        nd:    Dilatancy surface parameter.
        Ado:   Dilatancy parameter (-1 → model default).
        zmax:  Fabric-dilatancy tensor limit (-1 → model default).
        cz:    Fabric growth parameter.
        ce:    Dilatancy multiplier (-1 → model default).
        phic:  Critical state friction angle (degrees).
        nu:    Poisson ratio used in the plastic stage.
    """
    Dr: float
    G0: float
    hpo: float
    Den: float
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

    @property
    def void_ratio(self) -> float:
        """Void ratio implied by the relative density: e = emax - Dr (emax - emin)."""
        return self.emax - self.Dr * (self.emax - self.emin)

    def as_args(self) -> Tuple[float, ...]:
        """Positional arguments in OpenSees nDMaterial PM4Sand order."""
        return (self.Dr, self.G0, self.hpo, self.Den, self.patm, self.h0,
                self.emax, self.emin, self.nb, self.nd, self.Ado, self.zmax,
                self.cz, self.ce, self.phic, self.nu)


#: Calibrated constant sets. A layer selects one by name through
#: ``Layer.sand_preset``; "soft" is used when nothing is specified.
SAND_PRESETS: Dict[str, SandParameters] = {
    "stiff": SandParameters(Dr=0.4662524041201569, G0=584.1, hpo=0.450,
                            Den=2.00594878429427),
    "soft": SandParameters(Dr=0.4662524041201569, G0=468.3, hpo=0.463,
                           Den=1.6083133257878446),
}

DEFAULT_SAND_PRESET = "soft"

#: Void ratio handed to u-p elements of non-sand layers (Dr = 0.463).
DEFAULT_VOID_RATIO = 0.8 - 0.463 * (0.8 - 0.5)


# ============================================================================
# LAYER
# ============================================================================

@dataclass(frozen=True)
class Layer:
    """One horizontal slab of soil with uniform properties.

    Attributes:
        name:           Label used in logs and the generated script.
        thickness:      Layer thickness (m).
        vs:             Shear-wave velocity (m/s).
        density:        Mass density (Mg/m³).
        material:       Declared constitutive behavior.
        poisson:        Poisson ratio for the elastic variant.
        element_count:  Explicit element count (effective-stress mesh mode).
        sand:           Explicit PM4Sand constants (overrides any preset).
        sand_preset:    Name of a SAND_PRESETS entry.
        void_ratio:     Void ratio for u-p elements (None → derived).
    """
    name: str
    thickness: float
    vs: float
    density: float
    material: MaterialType = MaterialType.ELASTIC
    poisson: float = 0.3
    element_count: Optional[int] = None
    sand: Optional[SandParameters] = None
    sand_preset: Optional[str] = None
    void_ratio: Optional[float] = None

    def __post_init__(self):
        if self.thickness <= 0.0:
            raise ConfigurationError(
                f"Layer '{self.name}': thickness must be positive, got {self.thickness}."
            )
        if self.vs <= 0.0:
            raise ConfigurationError(
                f"Layer '{self.name}': shear velocity must be positive, got {self.vs}."
            )
        if self.density <= 0.0:
            raise ConfigurationError(
                f"Layer '{self.name}': density must be positive, got {self.density}."
            )
        if self.sand_preset is not None and self.sand_preset not in SAND_PRESETS:
            raise ConfigurationError(
                f"Layer '{self.name}': unknown sand preset '{self.sand_preset}'. "
                f"Available: {sorted(SAND_PRESETS)}."
            )

    def sand_parameters(self) -> SandParameters:
        """Resolve the PM4Sand constants: explicit > named preset > default."""
        if self.sand is not None:
            return self.sand
        return SAND_PRESETS[self.sand_preset or DEFAULT_SAND_PRESET]

    def initial_void_ratio(self) -> float:
        """Void ratio used by the u-p element formulation."""
        if self.void_ratio is not None:
            return self.void_ratio
        if self.material is MaterialType.PM4SAND:
            return self.sand_parameters().void_ratio
        return DEFAULT_VOID_RATIO


# ============================================================================
# SITE LAYERING
# ============================================================================

@dataclass(frozen=True)
class SiteLayering:
    """Ordered layers from the surface down; the last one is bedrock.

    Attributes:
        layers:     Surface-first layers, bedrock last.
        gwt_depth:  Groundwater table depth below the surface (m).
    """
    layers: Tuple[Layer, ...]
    gwt_depth: float = 2.0

    def __post_init__(self):
        layers = tuple(self.layers)
        object.__setattr__(self, "layers", layers)
        if len(layers) < 2:
            raise ConfigurationError(
                "A site needs at least one soil layer above the bedrock layer "
                f"(got {len(layers)} layer(s))."
            )
        if self.gwt_depth < 0.0:
            raise ConfigurationError(
                f"Groundwater depth must be non-negative, got {self.gwt_depth}."
            )

    @property
    def num_layers(self) -> int:
        return len(self.layers)

    @property
    def rock(self) -> Layer:
        """Bedrock half-space (never meshed)."""
        return self.layers[-1]

    @property
    def soil_layers(self) -> Tuple[Layer, ...]:
        """Meshed layers, surface first."""
        return self.layers[:-1]

    def soil_layers_bottom_up(self) -> Tuple[Layer, ...]:
        """Meshed layers in numbering order (deepest first)."""
        return tuple(reversed(self.soil_layers))

    @property
    def total_thickness(self) -> float:
        """Thickness of the soil column above bedrock (m)."""
        return sum(layer.thickness for layer in self.soil_layers)

    def average_vs(self) -> float:
        """Travel-time averaged shear velocity of the soil column."""
        travel_time = sum(l.thickness / l.vs for l in self.soil_layers)
        return self.total_thickness / travel_time

    def natural_frequency(self) -> float:
        """Fundamental frequency of the column on rigid base, f0 = Vs / 4H (Hz)."""
        return self.average_vs() / (4.0 * self.total_thickness)

    def describe(self) -> str:
        rows = [f"{l.name}: h={l.thickness:g} m, Vs={l.vs:g} m/s, "
                f"rho={l.density:g}, {l.material.value}" for l in self.layers]
        return "\n".join(rows)

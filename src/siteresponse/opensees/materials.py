"""
OpenSees Material Library for Site Response Columns.

Wrappers around the three constitutive models the soil column uses:

    ElasticIsotropic   total- or effective-stress linear soil
    PM4Sand            plane-strain sand plasticity (staged elastic → plastic)
    Viscous            Lysmer-Kuhlemeyer dashpot at the compliant base

Every wrapper takes the OpenSees interpreter as ``interp`` (the
``openseespy.opensees`` module by default, or a recording stand-in) and
returns the material tag.

Units: kN, m, s, Mg.

References:
    - Boulanger, R.W. & Ziotopoulou, K. (2017). PM4Sand (Version 3.1).
      Report No. UCD/CGM-17/01, UC Davis.
    - Lysmer, J. & Kuhlemeyer, R.L. (1969). "Finite Dynamic Model for
      Infinite Media." ASCE J. Engineering Mechanics Division, 95(4).
    - Joyner, W.B. & Chen, A.T.F. (1975). "Calculation of Nonlinear Ground
      Response in Earthquakes." BSSA 65(5).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import openseespy.opensees as ops

if TYPE_CHECKING:
    from siteresponse.tools.layering import SandParameters

# ============================================================================
# ACCEPTED BEHAVIOR KNOBS
# ============================================================================

#: Parameter names each material kind responds to through setParameter.
MATERIAL_KNOBS = {
    "ElasticIsotropic": (),
    "PM4Sand": ("materialState", "FirstCall", "poissonRatio"),
    "Viscous": (),
}


# ============================================================================
# SOIL MATERIALS
# ============================================================================

def elastic_modulus(density: float, vs: float, poisson: float = 0.3) -> float:
    """Young's modulus from shear velocity: E = 2 ρ Vs² (1 + ν) (kPa).

    Args:
        density:  Mass density (Mg/m³).
        vs:       Shear-wave velocity (m/s).
        poisson:  Poisson ratio. Default: 0.3.
    """
    return 2.0 * density * vs ** 2 * (1.0 + poisson)


def elastic_isotropic(tag: int, E: float, nu: float, rho: float,
                      interp=ops) -> int:
    """Define a linear-elastic isotropic nDMaterial.

    Args:
        tag:  Material tag.
        E:    Young's modulus (kPa).
        nu:   Poisson ratio.
        rho:  Mass density (Mg/m³).

    Returns:
        Material tag.
    """
    if E <= 0.0:
        raise ValueError(f"E must be positive, got {E}")
    interp.nDMaterial('ElasticIsotropic', tag, E, nu, rho)
    return tag


def pm4sand(tag: int, params: "SandParameters", interp=ops) -> int:
    """Define a PM4Sand nDMaterial.

    The material starts in stage 0 (elastic) and is switched to plastic by
    updating its ``materialState`` parameter after elastic gravity.

    Args:
        tag:     Material tag.
        params:  Primary and secondary PM4Sand constants.

    Returns:
        Material tag.

    Reference:
        Boulanger & Ziotopoulou (2017), Table 4.1 (secondary parameters).
    """
    if not 0.0 < params.Dr < 1.0:
        raise ValueError(f"Dr must lie in (0, 1), got {params.Dr}")
    interp.nDMaterial('PM4Sand', tag, *params.as_args())
    return tag


# ============================================================================
# RADIATION BOUNDARY
# ============================================================================

def dashpot_coefficient(density: float, vs: float, area: float) -> float:
    """Lysmer dashpot coefficient c = ρ Vs A (kN·s/m).

    Args:
        density:  Bedrock mass density (Mg/m³).
        vs:       Bedrock shear velocity (m/s).
        area:     Column cross-section tributary to the base (m²).
    """
    return density * vs * area


def viscous(tag: int, c: float, alpha: float = 1.0, interp=ops) -> int:
    """Define a Viscous uniaxial material, F = c · v^alpha.

    Args:
        tag:    Material tag.
        c:      Damping coefficient (kN·s/m).
        alpha:  Velocity exponent (1.0 = linear). Default: 1.0.

    Returns:
        Material tag.
    """
    interp.uniaxialMaterial('Viscous', tag, c, alpha)
    return tag

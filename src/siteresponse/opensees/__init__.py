"""
OpenSees Abstraction Layer for the Site Response Tool.

Provides soil materials, SSP continuum elements, the base dashpot and the
analysis sequences (gravity, dynamic, adaptive stepping) built on OpenSeesPy.
All internal units: kN-m-s-Mg.

Modules:
    materials  — ElasticIsotropic, PM4Sand, Viscous dashpot
    elements   — SSPquad(UP), SSPbrick(UP), zeroLength
    analysis   — Gravity / dynamic configuration and adaptive time stepping
"""

from siteresponse.opensees.materials import (
    elastic_modulus,
    elastic_isotropic,
    pm4sand,
    dashpot_coefficient,
    viscous,
    MATERIAL_KNOBS,
)

from siteresponse.opensees.elements import (
    ssp_quad,
    ssp_quad_up,
    ssp_brick,
    ssp_brick_up,
    zero_length,
    soil_element_kind,
    ELEMENT_KNOBS,
    ELEMENT_NDF,
    permeability_knobs,
)

from siteresponse.opensees.analysis import (
    configure_gravity,
    gravity_analysis,
    configure_dynamic,
    rayleigh_coefficients,
    damping_ratio_at,
    AdaptiveStepper,
    StepOutcome,
    SteppingResult,
    adaptive_script,
)

__all__ = [
    # Materials
    "elastic_modulus", "elastic_isotropic", "pm4sand",
    "dashpot_coefficient", "viscous", "MATERIAL_KNOBS",
    # Elements
    "ssp_quad", "ssp_quad_up", "ssp_brick", "ssp_brick_up", "zero_length",
    "soil_element_kind", "ELEMENT_KNOBS", "ELEMENT_NDF", "permeability_knobs",
    # Analysis
    "configure_gravity", "gravity_analysis", "configure_dynamic",
    "rayleigh_coefficients", "damping_ratio_at",
    "AdaptiveStepper", "StepOutcome", "SteppingResult", "adaptive_script",
]

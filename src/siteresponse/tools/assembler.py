"""Assembler Tool — builds the soil column domain from a mesh plan.

Takes a SiteLayering, its MeshPlan and the AnalysisSettings and populates a
SiteDomain in a fixed order (later tags depend on earlier ones):

1. Nodes, bottom-up, a pair (2-D) or quadruple (3-D) per horizon; nodes at or
   above H − gwt are flagged dry in effective-stress models
2. Base horizon fixed in every displacement DOF; the horizontal fixities are
   flagged gravity-only and are removed when shaking starts
3. Periodic equalDOF on the translational DOFs of every horizon above the base
4. Pore pressure pinned at every dry node (effective stress)
5. One material per soil layer, deepest layer lowest tag
6. One SSP element per mesh cell with self-weight body force
7. Dashpot element tag reserved, then one ``materialState`` parameter per
   soil element

It also renders the standalone OpenSeesPy script from everything the domain
recorded.

Node layout per horizon:
    2-D:  (0, y)  (w, y)
    3-D:  (0, y, 0)  (0, y, w)  (w, y, w)  (w, y, 0)

Units: kN, m, s, Mg.
"""

from __future__ import annotations

import logging
import textwrap
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Tuple

from siteresponse.errors import ConfigurationError
from siteresponse.opensees.elements import (
    ELEMENT_KNOBS,
    ELEMENT_NDF,
    GRAVITY,
    soil_element_kind,
    ssp_brick,
    ssp_brick_up,
    ssp_quad,
    ssp_quad_up,
)
from siteresponse.opensees.materials import (
    MATERIAL_KNOBS,
    elastic_isotropic,
    elastic_modulus,
    pm4sand,
)
from siteresponse.tools.domain import (
    ElementRecord,
    MaterialRecord,
    SiteDomain,
)
from siteresponse.tools.layering import Layer, MaterialType, SiteLayering
from siteresponse.tools.mesh import DIM_2D, DIM_3D, MeshPlan
from siteresponse.tools.site_input import AnalysisSettings

logger = logging.getLogger(__name__)

#: Tolerance on elevation comparisons (accumulated element sizes).
ELEVATION_TOL = 1.0e-9

#: Horizontal DOFs released when the compliant base is installed.
SHAKING_DOFS = {DIM_2D: (1,), DIM_3D: (1, 3)}

#: Translational DOFs per dimension.
TRANSLATIONAL_DOFS = {DIM_2D: (1, 2), DIM_3D: (1, 2, 3)}


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class AssembledColumn:
    """What the stages need to know about the built column.

    Attributes:
        plan:             Mesh plan the column was built from.
        dimension:        "2D" or "3D".
        effective:        u-p formulation in use.
        soil_ndf:         DOFs per soil node.
        height:           Column height H (m).
        width:            Element width (m).
        area:             Cross-section tributary to the base dashpot (m²).
        material_tags:    Soil material tags, deepest layer first.
        dashpot_element:  Reserved tag of the base dashpot element.
        warnings:         Non-fatal assembly notes.
    """
    plan: MeshPlan
    dimension: str
    effective: bool
    soil_ndf: int
    height: float
    width: float
    area: float
    material_tags: List[int] = field(default_factory=list)
    dashpot_element: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def base_nodes(self) -> List[int]:
        return self.plan.base_nodes()

    @property
    def surface_node(self) -> int:
        return self.plan.surface_node

    @property
    def shaking_dofs(self) -> Tuple[int, ...]:
        return SHAKING_DOFS[self.dimension]

    @property
    def translational_dofs(self) -> Tuple[int, ...]:
        return TRANSLATIONAL_DOFS[self.dimension]

    @property
    def pore_pressure_dof(self) -> int:
        return self.soil_ndf if self.effective else 0


# ============================================================================
# ASSEMBLY STEPS
# ============================================================================

def _horizon_coords(dimension: str, y: float, w: float) -> List[Tuple[float, ...]]:
    if dimension == DIM_2D:
        return [(0.0, y), (w, y)]
    return [(0.0, y, 0.0), (0.0, y, w), (w, y, w), (w, y, 0.0)]


def _create_nodes(domain: SiteDomain, column: AssembledColumn, gwt: float):
    plan = column.plan
    water_table = column.height - gwt
    for y in plan.horizon_elevations():
        dry = column.effective and y >= water_table - ELEVATION_TOL
        coords = _horizon_coords(column.dimension, y, column.width)
        for xyz in coords:
            tag = domain.tags.next("node")
            domain.add_node(tag, xyz, column.soil_ndf, dry=dry)
            logger.debug("Node %d: %s%s", tag, xyz, " (dry)" if dry else "")


def _fix_base(domain: SiteDomain, column: AssembledColumn):
    for node in column.base_nodes:
        for dof in column.translational_dofs:
            domain.fix(node, dof, gravity_only=dof in column.shaking_dofs)


def _periodic_constraints(domain: SiteDomain, column: AssembledColumn):
    plan = column.plan
    dofs = column.translational_dofs
    for horizon in range(1, plan.num_horizons):
        nodes = plan.horizon_nodes(horizon)
        retained = nodes[0]
        for constrained in nodes[1:]:
            domain.equal_dof(retained, constrained, dofs, horizon=horizon)


def _fix_dry_pore_pressure(domain: SiteDomain, column: AssembledColumn):
    for node in domain.dry_nodes():
        domain.fix(node, column.pore_pressure_dof)


def _create_material(domain: SiteDomain, layer: Layer, layer_index: int) -> int:
    tag = domain.tags.next("material")
    if layer.material is MaterialType.PM4SAND:
        params = layer.sand_parameters()
        pm4sand(tag, params, interp=domain.ops)
        record = MaterialRecord(tag, "PM4Sand", layer_index, params.as_args(),
                                MATERIAL_KNOBS["PM4Sand"])
    else:
        E = elastic_modulus(layer.density, layer.vs, layer.poisson)
        elastic_isotropic(tag, E, layer.poisson, layer.density, interp=domain.ops)
        record = MaterialRecord(tag, "ElasticIsotropic", layer_index,
                                (E, layer.poisson, layer.density),
                                MATERIAL_KNOBS["ElasticIsotropic"])
    domain.add_material(record)
    logger.debug("Material %d (%s) for layer %s", tag, record.kind, layer.name)
    return tag


def _element_nodes(column: AssembledColumn, element: int) -> Tuple[int, ...]:
    """Connectivity of the element sitting on horizon ``element - 1``."""
    npw = column.plan.nodes_per_horizon
    lower = (element - 1) * npw
    if column.dimension == DIM_2D:
        n1, n2, n3, n4 = (lower + i for i in range(1, 5))
        return (n1, n2, n4, n3)
    return tuple(lower + i for i in range(1, 9))


def _create_element(domain: SiteDomain, column: AssembledColumn, kind: str,
                    tag: int, material: int, layer: Layer,
                    settings: AnalysisSettings) -> ElementRecord:
    nodes = _element_nodes(column, tag)
    rho = layer.density
    if kind == "SSPquad":
        ssp_quad(tag, nodes, material, settings.column_thickness,
                 0.0, -GRAVITY * rho, interp=domain.ops)
    elif kind == "SSPquadUP":
        ssp_quad_up(tag, nodes, material, settings.column_thickness,
                    layer.initial_void_ratio(), fluid_bulk=settings.fluid_bulk,
                    fluid_density=settings.fluid_density, b2=-GRAVITY,
                    interp=domain.ops)
    elif kind == "SSPbrick":
        ssp_brick(tag, nodes, material, 0.0, -GRAVITY * rho, 0.0,
                  interp=domain.ops)
    else:
        ssp_brick_up(tag, nodes, material, layer.initial_void_ratio(),
                     fluid_bulk=settings.fluid_bulk,
                     fluid_density=settings.fluid_density, b2=-GRAVITY,
                     interp=domain.ops)
    return domain.add_element(ElementRecord(tag, kind, nodes, material,
                                            knobs=ELEMENT_KNOBS[kind]))


# ============================================================================
# MAIN ASSEMBLY FUNCTION
# ============================================================================

def assemble_domain(domain: SiteDomain, site: SiteLayering, plan: MeshPlan,
                    settings: AnalysisSettings) -> AssembledColumn:
    """Populate ``domain`` with the soil column described by ``plan``.

    Args:
        domain:    Fresh SiteDomain (wiped by the caller).
        site:      Layering the plan was derived from.
        plan:      Mesh plan.
        settings:  Mode, width and fluid constants.

    Returns:
        AssembledColumn describing the built model.

    Raises:
        ConfigurationError: PM4Sand in a 3-D model, plan/settings mismatch.
    """
    if plan.dimension != settings.dimension:
        raise ConfigurationError(
            f"Mesh plan is {plan.dimension} but settings ask for {settings.dimension}."
        )
    if plan.dimension == DIM_3D and any(
            l.material is MaterialType.PM4SAND for l in site.soil_layers):
        raise ConfigurationError(
            "PM4Sand is a plane-strain model and cannot be used in a 3D column."
        )

    kind = soil_element_kind(plan.dimension, settings.effective)
    column = AssembledColumn(
        plan=plan,
        dimension=plan.dimension,
        effective=settings.effective,
        soil_ndf=ELEMENT_NDF[kind],
        height=plan.height,
        width=settings.width,
        area=settings.column_area(),
    )
    if site.gwt_depth > column.height:
        column.warnings.append(
            f"Groundwater depth {site.gwt_depth} m lies below the column base "
            f"({column.height:.3f} m); every node is dry."
        )

    domain.ops.section("1. NODES")
    _create_nodes(domain, column, site.gwt_depth)

    domain.ops.section("2. BASE FIXITIES")
    _fix_base(domain, column)

    domain.ops.section("3. PERIODIC BOUNDARY CONDITIONS")
    _periodic_constraints(domain, column)

    if column.effective:
        domain.ops.section("4. DRY NODES")
        _fix_dry_pore_pressure(domain, column)

    domain.ops.section("5. MATERIALS")
    layer_material = {}
    for lm in plan.layers:
        layer = site.layers[lm.layer_index]
        tag = _create_material(domain, layer, lm.layer_index)
        layer_material[lm.layer_index] = tag
        column.material_tags.append(tag)

    domain.ops.section("6. SOIL ELEMENTS")
    for lm in plan.layers:
        layer = site.layers[lm.layer_index]
        for expected in lm.element_tags():
            tag = domain.tags.next("element")
            if tag != expected:
                raise ConfigurationError(
                    f"Element tag {tag} does not match the mesh plan ({expected})."
                )
            _create_element(domain, column, kind, tag,
                            layer_material[lm.layer_index], layer, settings)

    domain.ops.section("7. MATERIAL STATE PARAMETERS")
    column.dashpot_element = domain.tags.reserve("element")
    domain.reserved_dashpot_element = column.dashpot_element
    for element in domain.soil_elements():
        domain.add_parameter("materialState", element.tag, 0.0)

    for warning in column.warnings:
        logger.warning(warning)
    logger.info("Assembled %s %s column: %s", column.dimension,
                settings.mode, domain.summary())
    return column


# ============================================================================
# SCRIPT GENERATOR
# ============================================================================

def _script_preamble(title: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    return textwrap.dedent(f'''\
        #!/usr/bin/env python3
        """Auto-generated OpenSeesPy site response model: {title}.

        Generated by the siteresponse tool on {stamp}.
        Units: kN-m-s-Mg.
        """

        import os

        import openseespy.opensees as ops
        ''')


def generate_script(domain: SiteDomain, title: str = "site") -> str:
    """Render everything ``domain`` recorded as a standalone OpenSeesPy script.

    Args:
        domain:  Domain whose command recorder holds the build and stages.
        title:   Site name for the header.

    Returns:
        Complete Python script as a string.
    """
    return _script_preamble(title) + "\n" + domain.script()

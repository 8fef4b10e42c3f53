"""
OpenSees Element Wrappers for Site Response Columns.

Stabilized single-point (SSP) continuum elements for the soil column and a
zero-length element for the compliant-base dashpot.

    SSPquad     2-D, single phase, 2 DOF/node
    SSPquadUP   2-D, u-p formulation, 3 DOF/node (ux, uy, p)
    SSPbrick    3-D, single phase, 3 DOF/node
    SSPbrickUP  3-D, u-p formulation, 4 DOF/node (ux, uy, uz, p)

Every wrapper takes the OpenSees interpreter as ``interp`` and returns the
element tag.

Units: kN, m, s, Mg.

References:
    - McGann, C.R., Arduino, P. & Mackenzie-Helnwein, P. (2012). "Stabilized
      single-point 4-node quadrilateral element for dynamic analysis of fluid
      saturated porous media." Acta Geotechnica 7(4).
    - Zienkiewicz, O.C. & Shiomi, T. (1984). "Dynamic behaviour of saturated
      porous media; the generalized Biot formulation and its numerical
      solution." IJNAMG 8(1).
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import openseespy.opensees as ops

GRAVITY = 9.81

HORIZONTAL = "horizontal"
VERTICAL = "vertical"

#: Permeability parameter names per element kind and direction. The brick
#: is y-up, so its horizontal permeability is split over x and z.
PERMEABILITY_KNOBS = {
    "SSPquadUP": {HORIZONTAL: ("hPerm",), VERTICAL: ("vPerm",)},
    "SSPbrickUP": {HORIZONTAL: ("xPerm", "zPerm"), VERTICAL: ("yPerm",)},
}

#: Names recorded for kinds without permeability (parameters stay unbound).
DEFAULT_PERMEABILITY_KNOBS = {HORIZONTAL: ("hPerm",), VERTICAL: ("vPerm",)}


def permeability_knobs(kind: str, direction: str) -> Tuple[str, ...]:
    """Parameter names that set ``direction`` permeability on ``kind``."""
    return PERMEABILITY_KNOBS.get(kind, DEFAULT_PERMEABILITY_KNOBS)[direction]


ELEMENT_KNOBS = {
    "SSPquad": (),
    "SSPquadUP": ("hPerm", "vPerm"),
    "SSPbrick": (),
    "SSPbrickUP": ("xPerm", "yPerm", "zPerm"),
    "zeroLength": (),
}

#: Nodal DOF count each soil element kind needs.
ELEMENT_NDF = {"SSPquad": 2, "SSPquadUP": 3, "SSPbrick": 3, "SSPbrickUP": 4}


def soil_element_kind(dimension: str, effective: bool) -> str:
    """Pick the SSP element for a model mode."""
    if dimension == "2D":
        return "SSPquadUP" if effective else "SSPquad"
    return "SSPbrickUP" if effective else "SSPbrick"


# ============================================================================
# 2-D QUADRILATERALS
# ============================================================================

def ssp_quad(tag: int, nodes: Sequence[int], material: int,
             thickness: float = 1.0, b1: float = 0.0, b2: float = 0.0,
             interp=ops) -> int:
    """Create a plane-strain SSPquad element.

    Args:
        tag:        Element tag.
        nodes:      4 node tags, counter-clockwise.
        material:   nDMaterial tag.
        thickness:  Out-of-plane thickness (m).
        b1, b2:     Body force per unit volume (kN/m³).

    Returns:
        Element tag.
    """
    _check_nodes(nodes, 4)
    interp.element('SSPquad', tag, *nodes, material, 'PlaneStrain',
                   thickness, b1, b2)
    return tag


def ssp_quad_up(tag: int, nodes: Sequence[int], material: int,
                thickness: float, void_ratio: float,
                fluid_bulk: float = 2.2e6, fluid_density: float = 1.0,
                h_perm: float = 1.0, v_perm: float = 1.0,
                alpha: float = 0.0, b1: float = 0.0, b2: float = -GRAVITY,
                interp=ops) -> int:
    """Create an SSPquadUP (u-p) element.

    Body forces are accelerations here; the element scales them by the
    mixture density.

    Args:
        tag:            Element tag.
        nodes:          4 node tags, counter-clockwise.
        material:       nDMaterial tag.
        thickness:      Out-of-plane thickness (m).
        void_ratio:     Initial void ratio.
        fluid_bulk:     Fluid bulk modulus (kPa). Default: 2.2e6.
        fluid_density:  Fluid mass density (Mg/m³). Default: 1.0.
        h_perm:         Horizontal permeability (m/s). Default: 1.0.
        v_perm:         Vertical permeability (m/s). Default: 1.0.
        alpha:          Pressure stabilization parameter. Default: 0.0.
        b1, b2:         Body accelerations (m/s²).

    Returns:
        Element tag.
    """
    _check_nodes(nodes, 4)
    interp.element('SSPquadUP', tag, *nodes, material, thickness, fluid_bulk,
                   fluid_density, h_perm, v_perm, void_ratio, alpha, b1, b2)
    return tag


# ============================================================================
# 3-D BRICKS
# ============================================================================

def ssp_brick(tag: int, nodes: Sequence[int], material: int,
              b1: float = 0.0, b2: float = 0.0, b3: float = 0.0,
              interp=ops) -> int:
    """Create an SSPbrick element (8 nodes)."""
    _check_nodes(nodes, 8)
    interp.element('SSPbrick', tag, *nodes, material, b1, b2, b3)
    return tag


def ssp_brick_up(tag: int, nodes: Sequence[int], material: int,
                 void_ratio: float, fluid_bulk: float = 2.2e6,
                 fluid_density: float = 1.0, perm_x: float = 1.0,
                 perm_y: float = 1.0, perm_z: float = 1.0,
                 alpha: float = 0.0, b1: float = 0.0, b2: float = -GRAVITY,
                 b3: float = 0.0, interp=ops) -> int:
    """Create an SSPbrickUP element (8 nodes, 4 DOF each)."""
    _check_nodes(nodes, 8)
    interp.element('SSPbrickUP', tag, *nodes, material, fluid_bulk,
                   fluid_density, perm_x, perm_y, perm_z, void_ratio, alpha,
                   b1, b2, b3)
    return tag


# ============================================================================
# ZERO-LENGTH ELEMENTS
# ============================================================================

def zero_length(tag: int, nodes: Tuple[int, int],
                materials: List[int], directions: List[int],
                interp=ops) -> int:
    """Create a zero-length element (used for the base dashpot).

    Args:
        tag:         Element tag.
        nodes:       (iNode, jNode), coincident.
        materials:   Uniaxial material tags, one per direction.
        directions:  DOF directions (1=x, 2=y, 3=z).

    Returns:
        Element tag.

    Raises:
        ValueError: If materials and directions have different lengths.
    """
    if len(materials) != len(directions):
        raise ValueError(
            f"materials ({len(materials)}) and directions ({len(directions)}) "
            f"must have the same length."
        )
    interp.element('zeroLength', tag, *nodes,
                   '-mat', *materials, '-dir', *directions)
    return tag


def _check_nodes(nodes: Sequence[int], count: int):
    if len(nodes) != count:
        raise ValueError(f"Expected {count} nodes, got {len(nodes)}")

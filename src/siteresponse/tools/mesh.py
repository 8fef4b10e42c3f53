"""Mesh Discretizer — converts a layering into a numbered soil column.

Two modes:

    wavelength   For every soil layer, λ_min = Vs / f_max. The thickness is
                 clamped up to at least one λ_min and the element count is
                 n = floor(npw · h / λ_min) − 1 (at least 1). Element size is
                 h_clamped / n.

    explicit     The layer's own ``element_count`` is used (effective-stress
                 models); size = h / n with the thickness unclamped.

Numbering is contiguous from the deepest soil layer upward. The deepest layer
carries one extra horizon (the base), so nodes 1..k are the base horizon and
the highest regular node tag sits on the free surface. Element tags follow the
same bottom-up order starting at 1.

The plan is a pure function of its inputs: planning twice gives equal plans.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from siteresponse.errors import ConfigurationError
from siteresponse.tools.layering import Layer, SiteLayering

logger = logging.getLogger(__name__)

DIM_2D = "2D"
DIM_3D = "3D"

WAVELENGTH = "wavelength"
EXPLICIT = "explicit"

#: Nodes on one horizon of the column.
NODES_PER_HORIZON = {DIM_2D: 2, DIM_3D: 4}

DEFAULT_MAX_FREQUENCY = 100.0
DEFAULT_NODES_PER_WAVELENGTH = 10


def normalize_dimension(dimension: str) -> str:
    key = str(dimension).strip().upper()
    if key in ("2", "2D"):
        return DIM_2D
    if key in ("3", "3D"):
        return DIM_3D
    raise ConfigurationError(f"Dimension must be '2D' or '3D', got '{dimension}'.")


@dataclass(frozen=True)
class LayerMesh:
    """Discretization of one soil layer.

    Attributes:
        layer_index:    Index of the layer in the surface-first layering.
        name:           Layer name.
        element_count:  Number of elements through the layer.
        element_size:   Element height (m).
        thickness:      Meshed thickness (m); clamped in wavelength mode.
        first_node:     Tag of the first node this layer creates.
        node_count:     Nodes created by this layer (extra base horizon included).
        first_element:  Tag of the lowest element in the layer.
        bottom:         Elevation of the layer bottom above the column base (m).
    """
    layer_index: int
    name: str
    element_count: int
    element_size: float
    thickness: float
    first_node: int
    node_count: int
    first_element: int
    bottom: float

    @property
    def last_element(self) -> int:
        return self.first_element + self.element_count - 1

    @property
    def top(self) -> float:
        return self.bottom + self.thickness

    def element_tags(self) -> range:
        return range(self.first_element, self.first_element + self.element_count)


@dataclass(frozen=True)
class MeshPlan:
    """Numbering plan of the whole column, deepest layer first."""
    dimension: str
    mode: str
    layers: Tuple[LayerMesh, ...]
    nodes_per_horizon: int

    @property
    def num_elements(self) -> int:
        return sum(lm.element_count for lm in self.layers)

    @property
    def num_nodes(self) -> int:
        return sum(lm.node_count for lm in self.layers)

    @property
    def num_horizons(self) -> int:
        return self.num_elements + 1

    @property
    def height(self) -> float:
        """Meshed column height H (m)."""
        return sum(lm.thickness for lm in self.layers)

    @property
    def surface_node(self) -> int:
        """Highest regular node tag (first node of the surface horizon)."""
        return self.num_nodes - self.nodes_per_horizon + 1

    def base_nodes(self) -> List[int]:
        return list(range(1, self.nodes_per_horizon + 1))

    def horizon_nodes(self, horizon: int) -> List[int]:
        """Node tags of horizon ``horizon`` (0 = base)."""
        first = horizon * self.nodes_per_horizon + 1
        return list(range(first, first + self.nodes_per_horizon))

    def horizon_elevations(self) -> List[float]:
        """Elevation of every horizon, base first."""
        elevations = [0.0]
        for lm in self.layers:
            for i in range(1, lm.element_count + 1):
                elevations.append(lm.bottom + i * lm.element_size)
        return elevations

    def describe(self) -> str:
        rows = [f"{self.dimension} column, {self.mode} mode: "
                f"{self.num_nodes} nodes, {self.num_elements} elements, "
                f"H = {self.height:.3f} m"]
        for lm in reversed(self.layers):
            rows.append(
                f"  {lm.name:<16} n={lm.element_count:<4d} dz={lm.element_size:.4f} m  "
                f"elements {lm.first_element}-{lm.last_element}  "
                f"nodes from {lm.first_node}"
            )
        return "\n".join(rows)


def wavelength_element_count(layer: Layer, max_frequency: float,
                             nodes_per_wavelength: int) -> Tuple[int, float]:
    """Return (element count, clamped thickness) for one layer."""
    wavelength = layer.vs / max_frequency
    thickness = max(layer.thickness, wavelength)
    count = max(int(math.floor(nodes_per_wavelength * thickness / wavelength)) - 1, 1)
    return count, thickness


def plan_mesh(site: SiteLayering, dimension: str = DIM_2D,
              max_frequency: float = DEFAULT_MAX_FREQUENCY,
              nodes_per_wavelength: int = DEFAULT_NODES_PER_WAVELENGTH,
              mode: Optional[str] = None) -> MeshPlan:
    """Discretize the soil column.

    Args:
        site:                  Surface-first layering, bedrock last.
        dimension:             "2D" or "3D".
        max_frequency:         Highest frequency the mesh must carry (Hz).
        nodes_per_wavelength:  Minimum nodes per shear wavelength.
        mode:                  "wavelength" or "explicit". ``None`` selects
                               explicit when every soil layer has an
                               ``element_count``; partial counts are
                               ignored with a warning.

    Returns:
        MeshPlan numbered bottom-up.

    Raises:
        ConfigurationError: zero or negative element count, bad dimension,
            non-positive frequency.
    """
    dimension = normalize_dimension(dimension)
    npw = NODES_PER_HORIZON[dimension]
    soil = site.soil_layers_bottom_up()
    counted = [l.name for l in soil if l.element_count is not None]
    if mode is None:
        mode = EXPLICIT if len(counted) == len(soil) else WAVELENGTH
    if mode == WAVELENGTH and 0 < len(counted) < len(soil):
        logger.warning("Element counts given for %s ignored: not every soil layer "
                       "has one, meshing by wavelength", ", ".join(counted))
    if mode not in (WAVELENGTH, EXPLICIT):
        raise ConfigurationError(f"Unknown mesh mode '{mode}'.")
    if mode == WAVELENGTH and (max_frequency <= 0.0 or nodes_per_wavelength <= 0):
        raise ConfigurationError(
            "Maximum frequency and nodes per wavelength must be positive "
            f"(got {max_frequency}, {nodes_per_wavelength})."
        )

    meshes = []
    next_node = 1
    next_element = 1
    bottom = 0.0
    for position, layer in enumerate(soil):
        if mode == EXPLICIT:
            if layer.element_count is None or layer.element_count < 1:
                raise ConfigurationError(
                    f"Layer '{layer.name}' needs a positive element count, "
                    f"got {layer.element_count}."
                )
            count, thickness = layer.element_count, layer.thickness
        else:
            count, thickness = wavelength_element_count(
                layer, max_frequency, nodes_per_wavelength)

        horizons = count + 1 if position == 0 else count
        lm = LayerMesh(
            layer_index=len(soil) - 1 - position,
            name=layer.name,
            element_count=count,
            element_size=thickness / count,
            thickness=thickness,
            first_node=next_node,
            node_count=horizons * npw,
            first_element=next_element,
            bottom=bottom,
        )
        logger.debug("Layer %s: %d elements of %.4f m, nodes %d-%d",
                     lm.name, count, lm.element_size, lm.first_node,
                     lm.first_node + lm.node_count - 1)
        meshes.append(lm)
        next_node += lm.node_count
        next_element += count
        bottom += thickness

    return MeshPlan(dimension=dimension, mode=mode, layers=tuple(meshes),
                    nodes_per_horizon=npw)

"""Output Recorder Bindings.

Attaches the dynamic-stage recorders to the column:

    surface.disp / .vel / .acc   first node of the surface horizon
    base.disp / .vel / .acc      node 1
    pwp.out                      pore pressure at one node (effective stress)
    stress.out / strain.out      every soil element (dashpot excluded)

Files are plain whitespace-separated tables with the time in column 0.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from siteresponse.errors import ConfigurationError
from siteresponse.tools.assembler import AssembledColumn
from siteresponse.tools.domain import SiteDomain

logger = logging.getLogger(__name__)

NODE_RESPONSES = (("disp", "disp"), ("vel", "vel"), ("accel", "acc"))


@dataclass(frozen=True)
class RecorderSpec:
    """One attached recorder."""
    path: str
    kind: str
    targets: Tuple[int, ...]
    response: str
    dofs: Tuple[int, ...] = ()


def pore_pressure_node(column: AssembledColumn, node: Optional[int] = None) -> int:
    """Node whose pore pressure is recorded; default mid-height horizon.

    Raises:
        ConfigurationError: ``node`` is not a soil node of the column (the
            dashpot nodes carry no pressure DOF).
    """
    plan = column.plan
    if node is not None:
        if not 1 <= node <= plan.num_nodes:
            raise ConfigurationError(
                f"Pore-pressure node {node} is not a soil node "
                f"(expected 1..{plan.num_nodes})."
            )
        return node
    return plan.horizon_nodes(plan.num_horizons // 2)[0]


def _node_recorder(domain: SiteDomain, path: str, nodes, dofs,
                   response: str) -> RecorderSpec:
    domain.ops.recorder('Node', '-file', path, '-time', '-node', *nodes,
                        '-dof', *dofs, response)
    return RecorderSpec(path, "node", tuple(nodes), response, tuple(dofs))


def attach_recorders(domain: SiteDomain, column: AssembledColumn,
                     output_dir: str,
                     pwp_node: Optional[int] = None) -> List[RecorderSpec]:
    """Attach every dynamic-stage recorder.

    Args:
        domain:      Domain holding the assembled column.
        column:      Assembly summary.
        output_dir:  Directory for the output files (created if missing).
        pwp_node:    Pore-pressure node override.

    Returns:
        The attached recorders.
    """
    if domain.apply:
        os.makedirs(output_dir, exist_ok=True)
    domain.ops.emit(f"os.makedirs({output_dir!r}, exist_ok=True)")

    dofs = column.translational_dofs
    specs = []
    for prefix, node in (("surface", column.surface_node), ("base", column.base_nodes[0])):
        for response, suffix in NODE_RESPONSES:
            path = os.path.join(output_dir, f"{prefix}.{suffix}")
            specs.append(_node_recorder(domain, path, [node], dofs, response))

    if column.effective:
        node = pore_pressure_node(column, pwp_node)
        path = os.path.join(output_dir, "pwp.out")
        # u-p nodes report pore pressure through the velocity of the last DOF
        specs.append(_node_recorder(domain, path, [node],
                                    [column.pore_pressure_dof], "vel"))

    soil = [e.tag for e in domain.soil_elements()]
    for response in ("stress", "strain"):
        path = os.path.join(output_dir, f"{response}.out")
        domain.ops.recorder('Element', '-file', path, '-time', '-ele', *soil, response)
        specs.append(RecorderSpec(path, "element", tuple(soil), response))

    logger.info("Attached %d recorders in %s", len(specs), output_dir)
    return specs


def read_history(path: str) -> List[List[float]]:
    """Read a recorder file into rows of floats."""
    rows = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                rows.append([float(v) for v in line.split()])
    return rows


def peak_values(path: str) -> Dict[int, float]:
    """Largest absolute value of every data column (1-based, time excluded)."""
    peaks: Dict[int, float] = {}
    for row in read_history(path):
        for i, value in enumerate(row[1:], start=1):
            peaks[i] = max(peaks.get(i, 0.0), abs(value))
    return peaks

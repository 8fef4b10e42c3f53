"""Simulation context — tables, tag allocation and script capture.

A :class:`SiteDomain` is created once per run and handed to every stage. It
owns:

    - the TagAllocator (non-colliding tags per category)
    - the node / fixity / equal-dof / material / element / parameter tables
    - the element → material side table used for parameter wiring
    - the AnalysisContext (clock, step size, Rayleigh coefficients)
    - the command recorder that forwards to OpenSeesPy and captures every
      model-building command as a line of a standalone OpenSeesPy script

With ``apply=False`` nothing reaches OpenSees: commands are only recorded and
``analyze`` advances the context clock and reports success. This dry-run mode
backs ``srt script`` and the solver-free tests.

Tag Ranges:
    Nodes, elements, materials, fixities, equal-dofs, time series and patterns
    each count from 1 in their own category. Parameter tags share the element
    namespace inside OpenSees, so the parameter category is floored above the
    highest element tag handed out (dashpot reservation included).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import openseespy.opensees as ops

logger = logging.getLogger(__name__)


# ============================================================================
# TAG ALLOCATOR
# ============================================================================

TAG_CATEGORIES = ("node", "fixity", "equal_dof", "material", "element",
                  "parameter", "time_series", "pattern")


class TagAllocator:
    """Hands out increasing tags per category.

    The ``parameter`` category never returns a tag at or below the highest
    element tag allocated or reserved so far.
    """

    def __init__(self):
        self._last: Dict[str, int] = {kind: 0 for kind in TAG_CATEGORIES}

    def _check(self, kind: str):
        if kind not in self._last:
            raise KeyError(f"Unknown tag category '{kind}'")

    def next(self, kind: str) -> int:
        """Allocate the next tag of ``kind``."""
        self._check(kind)
        tag = self._last[kind] + 1
        if kind == "parameter":
            tag = max(tag, self._last["element"] + 1)
        self._last[kind] = tag
        return tag

    def reserve(self, kind: str) -> int:
        """Allocate a tag now that will be used by a later stage."""
        return self.next(kind)

    def highest(self, kind: str) -> int:
        self._check(kind)
        return self._last[kind]


# ============================================================================
# TABLE RECORDS
# ============================================================================

SOIL = "soil"
DASHPOT = "dashpot"


@dataclass
class NodeRecord:
    tag: int
    coords: Tuple[float, ...]
    ndf: int
    role: str = SOIL
    dry: bool = False


@dataclass
class Fixity:
    """One node, one DOF pinned to zero."""
    tag: int
    node: int
    dof: int
    gravity_only: bool = False
    active: bool = True


@dataclass
class EqualDof:
    tag: int
    retained: int
    constrained: int
    dofs: Tuple[int, ...]
    horizon: Optional[int] = None


@dataclass
class MaterialRecord:
    """Material table entry.

    Attributes:
        tag:       Material tag.
        kind:      "ElasticIsotropic", "PM4Sand" or "Viscous".
        layer:     Index of the source layer (None for dashpots).
        args:      Constructor arguments after the tag.
        knobs:     Behavior knobs the material accepts through parameters.
    """
    tag: int
    kind: str
    layer: Optional[int]
    args: Tuple[float, ...]
    knobs: Tuple[str, ...] = ()


@dataclass
class ElementRecord:
    tag: int
    kind: str
    nodes: Tuple[int, ...]
    material: int
    role: str = SOIL
    knobs: Tuple[str, ...] = ()


@dataclass
class Parameter:
    """Binding of a behavior knob to one element/material pair.

    ``bound`` tells whether the solver-side objects accept the knob; unbound
    parameters still track their value so stage readback is uniform.
    """
    tag: int
    knob: str
    element: int
    material: int
    value: float = 0.0
    bound: bool = False


@dataclass
class AnalysisContext:
    """Clock and integration state shared by the stages."""
    time: float = 0.0
    dt: float = 0.0
    rayleigh: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    config: str = ""


# ============================================================================
# COMMAND RECORDER
# ============================================================================

def format_command(name: str, args: Tuple[Any, ...]) -> str:
    """Render one OpenSeesPy call as Python source."""
    return f"ops.{name}({', '.join(repr(a) for a in args)})"


class CommandRecorder:
    """Stand-in for the ``openseespy.opensees`` module.

    Attribute access returns a callable that appends the call to the script
    and, when ``apply`` is true, forwards it to OpenSeesPy. The opensees
    wrapper functions accept this object in place of the module.
    """

    def __init__(self, apply: bool = True):
        self.apply = apply
        self.lines: List[str] = []

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def command(*args):
            self.lines.append(format_command(name, args))
            if self.apply:
                return getattr(ops, name)(*args)
            return 0

        command.__name__ = name
        return command

    def emit(self, *lines: str):
        """Append raw script text (comments, loops, helper functions)."""
        self.lines.extend(lines)

    def section(self, title: str):
        self.lines.extend([
            "",
            "# " + "=" * 60,
            f"# {title}",
            "# " + "=" * 60,
        ])


# ============================================================================
# SITE DOMAIN
# ============================================================================

class SiteDomain:
    """One run's worth of model state.

    Args:
        apply:  Forward commands to OpenSeesPy (False = dry run).
    """

    def __init__(self, apply: bool = True):
        self.apply = apply
        self.tags = TagAllocator()
        self.ops = CommandRecorder(apply=apply)
        self.context = AnalysisContext()

        self.nodes: Dict[int, NodeRecord] = {}
        self.fixities: Dict[int, Fixity] = {}
        self.equal_dofs: Dict[int, EqualDof] = {}
        self.materials: Dict[int, MaterialRecord] = {}
        self.elements: Dict[int, ElementRecord] = {}
        self.parameters: Dict[int, Parameter] = {}
        self.element_material: Dict[int, int] = {}
        self.time_series: List[int] = []
        self.patterns: List[int] = []

        self.reserved_dashpot_element: Optional[int] = None
        self.ndm = 0
        self.ndf = 0

    # ------------------------------------------------------------------
    # model builder
    # ------------------------------------------------------------------

    def wipe(self):
        """Clear OpenSees global state (start of a run)."""
        if self.apply:
            ops.wipe()
        self.ops.emit("ops.wipe()")
        self.ndm = self.ndf = 0

    def model(self, ndm: int, ndf: int):
        """Switch the builder's dimension / DOF count for subsequent nodes."""
        if (ndm, ndf) == (self.ndm, self.ndf):
            return
        self.ops.model("basic", "-ndm", ndm, "-ndf", ndf)
        self.ndm, self.ndf = ndm, ndf

    # ------------------------------------------------------------------
    # table entries
    # ------------------------------------------------------------------

    def add_node(self, tag: int, coords: Tuple[float, ...], ndf: int,
                 role: str = SOIL, dry: bool = False) -> NodeRecord:
        if tag in self.nodes:
            raise ValueError(f"Node {tag} already defined")
        self.model(len(coords), ndf)
        self.ops.node(tag, *coords)
        record = NodeRecord(tag, tuple(coords), ndf, role, dry)
        self.nodes[tag] = record
        return record

    def fix(self, node: int, dof: int, gravity_only: bool = False) -> Fixity:
        """Pin one DOF of ``node``; returns the tagged fixity."""
        ndf = self.nodes[node].ndf
        flags = [0] * ndf
        flags[dof - 1] = 1
        self.ops.fix(node, *flags)
        fixity = Fixity(self.tags.next("fixity"), node, dof, gravity_only)
        self.fixities[fixity.tag] = fixity
        return fixity

    def remove_fixity(self, fixity: Fixity):
        self.ops.remove("sp", fixity.node, fixity.dof)
        fixity.active = False
        logger.debug("Removed fixity %d (node %d, dof %d)",
                     fixity.tag, fixity.node, fixity.dof)

    def equal_dof(self, retained: int, constrained: int, dofs,
                  horizon: Optional[int] = None) -> EqualDof:
        dofs = tuple(dofs)
        self.ops.equalDOF(retained, constrained, *dofs)
        record = EqualDof(self.tags.next("equal_dof"), retained, constrained,
                          dofs, horizon)
        self.equal_dofs[record.tag] = record
        return record

    def add_material(self, record: MaterialRecord) -> MaterialRecord:
        self.materials[record.tag] = record
        return record

    def add_element(self, record: ElementRecord) -> ElementRecord:
        self.elements[record.tag] = record
        self.element_material[record.tag] = record.material
        return record

    # ------------------------------------------------------------------
    # parameters
    # ------------------------------------------------------------------

    def accepts(self, element: int, knob: str) -> bool:
        """Whether the element or its material takes ``knob``."""
        ele = self.elements[element]
        mat = self.materials[ele.material]
        return knob in ele.knobs or knob in mat.knobs

    def add_parameter(self, knob: str, element: int, value: float) -> Parameter:
        """Create a parameter on ``element`` and set it to ``value``."""
        material = self.element_material[element]
        param = Parameter(self.tags.next("parameter"), knob, element, material,
                          value, bound=self.accepts(element, knob))
        if param.bound:
            if knob in self.elements[element].knobs:
                self.ops.parameter(param.tag, "element", element, knob)
            else:
                self.ops.parameter(param.tag, "element", element, knob, str(material))
            self.ops.updateParameter(param.tag, float(value))
        self.parameters[param.tag] = param
        return param

    def update_parameter(self, param: Parameter, value: float):
        param.value = float(value)
        if param.bound:
            self.ops.updateParameter(param.tag, param.value)

    def parameters_named(self, knob: str) -> List[Parameter]:
        return [p for p in self.parameters.values() if p.knob == knob]

    def read_parameter(self, param: Parameter) -> float:
        """Current value; bound parameters are read back from OpenSees."""
        if param.bound and self.apply:
            return float(ops.getParamValue(param.tag))
        return param.value

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def soil_elements(self) -> List[ElementRecord]:
        return [e for e in self.elements.values() if e.role == SOIL]

    def gravity_fixities(self) -> List[Fixity]:
        return [f for f in self.fixities.values() if f.gravity_only]

    def active_fixities(self) -> List[Fixity]:
        return [f for f in self.fixities.values() if f.active]

    def dry_nodes(self) -> List[int]:
        return [n.tag for n in self.nodes.values() if n.dry]

    # ------------------------------------------------------------------
    # analysis
    # ------------------------------------------------------------------

    def analyze(self, steps: int, dt: Optional[float] = None) -> int:
        """Advance the solution; not recorded in the script."""
        if self.apply:
            ok = ops.analyze(steps, dt) if dt is not None else ops.analyze(steps)
            self.context.time = ops.getTime()
            return ok
        self.context.time += steps * (dt if dt is not None else 1.0)
        return 0

    def get_time(self) -> float:
        if self.apply:
            return ops.getTime()
        return self.context.time

    def set_time(self, time: float):
        self.ops.setTime(time)
        self.context.time = time

    def node_response(self, node: int, dof: int, kind: str = "disp") -> float:
        if not self.apply:
            return 0.0
        query = {"disp": ops.nodeDisp, "vel": ops.nodeVel, "accel": ops.nodeAccel}[kind]
        return query(node, dof)

    def close_recorders(self):
        """Flush and drop every recorder (output files become complete)."""
        if self.apply:
            ops.remove("recorders")

    def script(self) -> str:
        return "\n".join(self.ops.lines) + "\n"

    def summary(self) -> str:
        return (f"{len(self.nodes)} nodes, {len(self.elements)} elements, "
                f"{len(self.materials)} materials, "
                f"{len(self.active_fixities())} fixities, "
                f"{len(self.equal_dofs)} equalDOFs, "
                f"{len(self.parameters)} parameters")

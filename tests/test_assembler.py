"""Tests for the assembler tool.

All tests build the column in dry-run mode (nothing reaches OpenSees) and
check the domain tables and the recorded script.

Covers:
- Base fixities (2 of 4 gravity-only in 2-D, 8 of 12 in 3-D)
- Periodic equalDOF groups on every horizon above the base
- Dry nodes above the water table (effective stress)
- Material numbering (deepest layer lowest tag)
- Element connectivity and kind per mode
- Dashpot reservation before the materialState parameters
- PM4Sand rejected in 3-D
- Script generation produces valid Python
"""

from __future__ import annotations

import ast

import pytest

from siteresponse.errors import ConfigurationError
from siteresponse.tools.assembler import (
    AssembledColumn,
    assemble_domain,
    generate_script,
)
from siteresponse.tools.domain import SiteDomain
from siteresponse.tools.layering import Layer, MaterialType, SiteLayering
from siteresponse.tools.mesh import plan_mesh
from siteresponse.tools.site_input import AnalysisSettings


# ============================================================================
# FIXTURES
# ============================================================================

def _site(material=MaterialType.ELASTIC, gwt=2.0) -> SiteLayering:
    """Two soil layers with explicit counts (3 over 5) on rock."""
    return SiteLayering((
        Layer("upper", 3.0, 150.0, 1.7, material, element_count=3),
        Layer("lower", 5.0, 250.0, 1.9, element_count=5),
        Layer("rock", 0.5, 760.0, 2.4),
    ), gwt_depth=gwt)


def _build(site=None, **settings) -> tuple[SiteDomain, AssembledColumn]:
    site = site or _site()
    settings = AnalysisSettings(**settings)
    plan = plan_mesh(site, settings.dimension)
    domain = SiteDomain(apply=False)
    domain.wipe()
    return domain, assemble_domain(domain, site, plan, settings)


# ============================================================================
# TESTS
# ============================================================================

class TestNodes:

    def test_2d_layout(self):
        domain, column = _build()
        assert len(domain.nodes) == 18
        assert domain.nodes[1].coords == (0.0, 0.0)
        assert domain.nodes[2].coords == (1.0, 0.0)
        assert domain.nodes[18].coords[1] == pytest.approx(8.0)
        assert column.surface_node == 17

    def test_3d_layout(self):
        domain, column = _build(dimension="3D")
        assert len(domain.nodes) == 36
        assert [domain.nodes[n].coords for n in (1, 2, 3, 4)] == [
            (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 0.0, 0.0)]
        assert column.base_nodes == [1, 2, 3, 4]

    def test_effective_width_and_ndf(self):
        domain, column = _build(mode="effective")
        assert column.width == 0.25
        assert column.soil_ndf == 3
        assert domain.nodes[2].coords == (0.25, 0.0)


class TestFixities:

    def test_2d_base(self):
        domain, _ = _build()
        assert len(domain.fixities) == 4
        gravity = domain.gravity_fixities()
        assert len(gravity) == 2
        assert {(f.node, f.dof) for f in gravity} == {(1, 1), (2, 1)}

    def test_3d_base(self):
        domain, _ = _build(dimension="3D")
        assert len(domain.fixities) == 12
        gravity = domain.gravity_fixities()
        assert len(gravity) == 8
        assert {f.dof for f in gravity} == {1, 3}

    def test_dry_nodes_pinned(self):
        domain, column = _build(mode="effective")
        dry = domain.dry_nodes()
        # water table at 6 m; horizons at 6, 7 and 8 m are dry
        assert dry == [13, 14, 15, 16, 17, 18]
        pinned = {f.node for f in domain.fixities.values() if f.dof == 3}
        assert pinned == set(dry)
        assert column.pore_pressure_dof == 3

    def test_total_stress_has_no_dry_nodes(self):
        domain, _ = _build()
        assert domain.dry_nodes() == []

    def test_deep_water_table_warns(self):
        _, column = _build(site=_site(gwt=20.0), mode="effective")
        assert any("below the column base" in w for w in column.warnings)


class TestPeriodicConstraints:

    def test_2d_pairs(self):
        domain, column = _build()
        ties = list(domain.equal_dofs.values())
        assert len(ties) == column.plan.num_horizons - 1
        assert ties[0].retained == 3 and ties[0].constrained == 4
        assert ties[0].dofs == (1, 2)
        assert {t.horizon for t in ties} == set(range(1, 9))

    def test_3d_groups(self):
        domain, _ = _build(dimension="3D")
        first = [t for t in domain.equal_dofs.values() if t.horizon == 1]
        assert [(t.retained, t.constrained) for t in first] == [(5, 6), (5, 7), (5, 8)]
        assert all(t.dofs == (1, 2, 3) for t in first)
        assert len(domain.equal_dofs) == 8 * 3


class TestMaterialsAndElements:

    def test_deepest_layer_lowest_tag(self):
        domain, column = _build()
        assert column.material_tags == [1, 2]
        assert domain.materials[1].layer == 1
        assert domain.materials[2].layer == 0
        assert domain.element_material[1] == 1
        assert domain.element_material[8] == 2

    def test_quad_connectivity(self):
        domain, _ = _build()
        assert domain.elements[1].nodes == (1, 2, 4, 3)
        assert domain.elements[1].kind == "SSPquad"
        assert "ops.element('SSPquad', 1, 1, 2, 4, 3, 1, 'PlaneStrain', 1.0, 0.0, " \
               f"{-9.81 * 1.9!r})" in domain.ops.lines

    def test_brick_connectivity(self):
        domain, _ = _build(dimension="3D")
        assert domain.elements[2].nodes == tuple(range(5, 13))
        assert domain.elements[2].kind == "SSPbrick"

    @pytest.mark.parametrize("mode,dim,kind", [
        ("effective", "2D", "SSPquadUP"),
        ("effective", "3D", "SSPbrickUP"),
    ])
    def test_up_elements(self, mode, dim, kind):
        domain, _ = _build(mode=mode, dimension=dim)
        assert {e.kind for e in domain.soil_elements()} == {kind}

    def test_pm4sand_layer(self):
        domain, _ = _build(site=_site(material=MaterialType.PM4SAND))
        assert domain.materials[2].kind == "PM4Sand"
        assert domain.materials[1].kind == "ElasticIsotropic"

    def test_pm4sand_rejected_in_3d(self):
        with pytest.raises(ConfigurationError, match="PM4Sand"):
            _build(site=_site(material=MaterialType.PM4SAND), dimension="3D")

    def test_plan_dimension_mismatch(self):
        site = _site()
        plan = plan_mesh(site, "3D")
        with pytest.raises(ConfigurationError):
            assemble_domain(SiteDomain(apply=False), site, plan, AnalysisSettings())


class TestParameters:

    def test_dashpot_reserved_before_parameters(self):
        domain, column = _build()
        assert column.dashpot_element == 9
        params = domain.parameters_named("materialState")
        assert len(params) == 8
        assert min(p.tag for p in params) > column.dashpot_element
        assert [p.element for p in params] == list(range(1, 9))

    def test_only_sand_parameters_bound(self):
        domain, _ = _build(site=_site(material=MaterialType.PM4SAND))
        bound = [p.element for p in domain.parameters_named("materialState") if p.bound]
        assert bound == [6, 7, 8]


class TestScriptGeneration:

    def test_valid_python(self):
        domain, _ = _build(mode="effective")
        script = generate_script(domain, "two-layer")
        ast.parse(script)
        assert "import openseespy.opensees as ops" in script
        assert "two-layer" in script
        assert "# 1. NODES" in script

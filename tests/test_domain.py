"""Tests for the simulation context (tags, tables, dry-run recording)."""

import pytest

from siteresponse.tools.domain import (
    DASHPOT,
    CommandRecorder,
    ElementRecord,
    MaterialRecord,
    SiteDomain,
    TagAllocator,
    format_command,
)


class TestTagAllocator:

    def test_independent_categories(self):
        tags = TagAllocator()
        assert [tags.next("node") for _ in range(3)] == [1, 2, 3]
        assert tags.next("material") == 1
        assert tags.highest("node") == 3

    def test_parameter_floor(self):
        tags = TagAllocator()
        for _ in range(5):
            tags.next("element")
        assert tags.next("parameter") == 6

    def test_reservation_raises_floor(self):
        tags = TagAllocator()
        tags.next("element")
        reserved = tags.reserve("element")
        assert reserved == 2
        assert tags.next("parameter") == 3
        assert tags.next("parameter") == 4

    def test_unknown_category(self):
        with pytest.raises(KeyError):
            TagAllocator().next("section")


class TestCommandRecorder:

    def test_dry_run_records(self):
        rec = CommandRecorder(apply=False)
        assert rec.node(1, 0.0, 2.5) == 0
        rec.fix(1, 1, 0)
        assert rec.lines == ["ops.node(1, 0.0, 2.5)", "ops.fix(1, 1, 0)"]

    def test_strings_quoted(self):
        assert format_command("timeSeries", ("Path", 1, "-factor", 2.0)) == \
            "ops.timeSeries('Path', 1, '-factor', 2.0)"

    def test_section_and_emit(self):
        rec = CommandRecorder(apply=False)
        rec.section("NODES")
        rec.emit("for _ in range(2):", "    ops.analyze(1, 1.0)")
        assert "# NODES" in rec.lines
        assert rec.lines[-1] == "    ops.analyze(1, 1.0)"

    def test_private_attributes_not_recorded(self):
        with pytest.raises(AttributeError):
            CommandRecorder(apply=False)._secret


def _quad_domain(material_kind="PM4Sand", knobs=("materialState",),
                 element_knobs=()) -> SiteDomain:
    domain = SiteDomain(apply=False)
    for tag, xy in enumerate([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)], 1):
        domain.add_node(tag, xy, 2)
    domain.add_material(MaterialRecord(1, material_kind, 0, (), knobs))
    domain.add_element(ElementRecord(domain.tags.next("element"), "SSPquad",
                                     (1, 2, 4, 3), 1, knobs=element_knobs))
    return domain


class TestSiteDomain:

    def test_model_switches_once(self):
        domain = SiteDomain(apply=False)
        domain.add_node(1, (0.0, 0.0), 2)
        domain.add_node(2, (1.0, 0.0), 2)
        domain.add_node(3, (0.0, 0.0), 3)
        models = [l for l in domain.ops.lines if l.startswith("ops.model")]
        assert models == ["ops.model('basic', '-ndm', 2, '-ndf', 2)",
                          "ops.model('basic', '-ndm', 2, '-ndf', 3)"]

    def test_duplicate_node(self):
        domain = SiteDomain(apply=False)
        domain.add_node(1, (0.0, 0.0), 2)
        with pytest.raises(ValueError):
            domain.add_node(1, (0.0, 1.0), 2)

    def test_fix_one_dof(self):
        domain = SiteDomain(apply=False)
        domain.add_node(1, (0.0, 0.0, 0.0), 4)
        fixity = domain.fix(1, 4)
        assert "ops.fix(1, 0, 0, 0, 1)" in domain.ops.lines
        assert fixity.tag == 1 and fixity.active

    def test_remove_fixity(self):
        domain = SiteDomain(apply=False)
        domain.add_node(1, (0.0, 0.0), 2)
        fixity = domain.fix(1, 1, gravity_only=True)
        domain.fix(1, 2)
        domain.remove_fixity(fixity)
        assert domain.ops.lines[-1] == "ops.remove('sp', 1, 1)"
        assert [f.dof for f in domain.active_fixities()] == [2]
        assert domain.gravity_fixities() == [fixity]

    def test_bound_material_parameter(self):
        domain = _quad_domain()
        param = domain.add_parameter("materialState", 1, 0.0)
        assert param.bound
        assert param.tag == 2
        assert "ops.parameter(2, 'element', 1, 'materialState', '1')" in domain.ops.lines
        assert domain.ops.lines[-1] == "ops.updateParameter(2, 0.0)"

    def test_bound_element_parameter(self):
        domain = _quad_domain(knobs=(), element_knobs=("hPerm",))
        domain.add_parameter("hPerm", 1, 1.0e-8)
        assert "ops.parameter(2, 'element', 1, 'hPerm')" in domain.ops.lines

    def test_unbound_parameter_tracks_value(self):
        domain = _quad_domain(material_kind="ElasticIsotropic", knobs=())
        param = domain.add_parameter("materialState", 1, 0.0)
        before = list(domain.ops.lines)
        domain.update_parameter(param, 1.0)
        assert not param.bound
        assert domain.ops.lines == before
        assert domain.read_parameter(param) == 1.0

    def test_parameters_named(self):
        domain = _quad_domain()
        domain.add_parameter("materialState", 1, 0.0)
        domain.add_parameter("FirstCall", 1, 0.0)
        assert [p.knob for p in domain.parameters_named("FirstCall")] == ["FirstCall"]

    def test_soil_elements_exclude_dashpot(self):
        domain = _quad_domain()
        domain.add_element(ElementRecord(2, "zeroLength", (5, 6), 1, role=DASHPOT))
        assert [e.tag for e in domain.soil_elements()] == [1]
        assert domain.element_material[2] == 1

    def test_dry_analyze_advances_clock(self):
        domain = SiteDomain(apply=False)
        assert domain.analyze(10, 1.0) == 0
        assert domain.get_time() == pytest.approx(10.0)
        domain.set_time(0.0)
        assert domain.get_time() == 0.0
        assert domain.ops.lines == ["ops.setTime(0.0)"]
        assert domain.node_response(1, 1, "vel") == 0.0

    def test_wipe_resets_model(self):
        domain = SiteDomain(apply=False)
        domain.add_node(1, (0.0, 0.0), 2)
        domain.wipe()
        assert (domain.ndm, domain.ndf) == (0, 0)
        assert domain.ops.lines[-1] == "ops.wipe()"

    def test_script(self):
        domain = SiteDomain(apply=False)
        domain.add_node(1, (0.0, 0.0), 2)
        assert domain.script().endswith("ops.node(1, 0.0, 0.0)\n")
        assert "1 nodes" in domain.summary()

"""Tests for the layering model.

Covers:
- Material name parsing (OpenSees names and aliases)
- Layer validation
- PM4Sand constant resolution (explicit > preset > default)
- Site validation: at least one soil layer above bedrock
- Column frequency estimates
"""

import math

import pytest

from siteresponse.errors import ConfigurationError
from siteresponse.tools.layering import (
    DEFAULT_SAND_PRESET,
    DEFAULT_VOID_RATIO,
    SAND_PRESETS,
    Layer,
    MaterialType,
    SandParameters,
    SiteLayering,
)


def _two_layer(gwt: float = 2.0) -> SiteLayering:
    return SiteLayering((
        Layer("soil", 10.0, 200.0, 1.8),
        Layer("rock", 1.0, 760.0, 2.4),
    ), gwt_depth=gwt)


class TestMaterialType:

    def test_opensees_names(self):
        assert MaterialType.parse("ElasticIsotropic") is MaterialType.ELASTIC
        assert MaterialType.parse("PM4Sand") is MaterialType.PM4SAND

    def test_aliases_case_insensitive(self):
        assert MaterialType.parse(" Linear-Elastic ") is MaterialType.ELASTIC
        assert MaterialType.parse("nonlinear-sand") is MaterialType.PM4SAND

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown material"):
            MaterialType.parse("PressureDependMultiYield")


class TestLayer:

    @pytest.mark.parametrize("field,value", [
        ("thickness", 0.0), ("vs", -1.0), ("density", 0.0),
    ])
    def test_non_positive_properties(self, field, value):
        kwargs = dict(name="bad", thickness=1.0, vs=100.0, density=1.8)
        kwargs[field] = value
        with pytest.raises(ConfigurationError):
            Layer(**kwargs)

    def test_unknown_preset(self):
        with pytest.raises(ConfigurationError, match="sand preset"):
            Layer("sand", 5.0, 150.0, 1.7, MaterialType.PM4SAND, sand_preset="loose")

    def test_default_preset(self):
        layer = Layer("sand", 5.0, 150.0, 1.7, MaterialType.PM4SAND)
        assert layer.sand_parameters() == SAND_PRESETS[DEFAULT_SAND_PRESET]

    def test_named_preset(self):
        layer = Layer("sand", 5.0, 150.0, 1.7, MaterialType.PM4SAND,
                      sand_preset="stiff")
        assert layer.sand_parameters().G0 == pytest.approx(584.1)

    def test_explicit_constants_win(self):
        sand = SandParameters(Dr=0.6, G0=700.0, hpo=0.5, Den=1.9)
        layer = Layer("sand", 5.0, 150.0, 1.7, MaterialType.PM4SAND,
                      sand=sand, sand_preset="stiff")
        assert layer.sand_parameters() is sand

    def test_void_ratio_resolution(self):
        elastic = Layer("clay", 5.0, 150.0, 1.7)
        sand = Layer("sand", 5.0, 150.0, 1.7, MaterialType.PM4SAND)
        given = Layer("clay", 5.0, 150.0, 1.7, void_ratio=0.9)
        assert elastic.initial_void_ratio() == pytest.approx(DEFAULT_VOID_RATIO)
        assert sand.initial_void_ratio() == pytest.approx(
            0.8 - sand.sand_parameters().Dr * 0.3)
        assert given.initial_void_ratio() == 0.9


class TestSandParameters:

    def test_argument_order(self):
        args = SAND_PRESETS["soft"].as_args()
        assert len(args) == 16
        assert args[:4] == (SAND_PRESETS["soft"].Dr, 468.3, 0.463,
                            SAND_PRESETS["soft"].Den)
        assert args[-2] == 33.0


class TestSiteLayering:

    def test_needs_soil_layer(self):
        with pytest.raises(ConfigurationError, match="at least one soil layer"):
            SiteLayering((Layer("rock", 1.0, 760.0, 2.4),))

    def test_negative_gwt(self):
        with pytest.raises(ConfigurationError):
            _two_layer(gwt=-1.0)

    def test_rock_is_last(self):
        site = _two_layer()
        assert site.rock.name == "rock"
        assert [l.name for l in site.soil_layers] == ["soil"]
        assert site.total_thickness == pytest.approx(10.0)

    def test_bottom_up_order(self):
        site = SiteLayering((
            Layer("top", 2.0, 150.0, 1.7),
            Layer("middle", 3.0, 200.0, 1.8),
            Layer("rock", 1.0, 760.0, 2.4),
        ))
        assert [l.name for l in site.soil_layers_bottom_up()] == ["middle", "top"]

    def test_layers_become_tuple(self):
        site = SiteLayering([Layer("soil", 1.0, 100.0, 1.8),
                             Layer("rock", 1.0, 760.0, 2.4)])
        assert isinstance(site.layers, tuple)

    def test_quarter_wavelength_frequency(self):
        site = _two_layer()
        assert site.natural_frequency() == pytest.approx(200.0 / 40.0)

    def test_travel_time_average(self):
        site = SiteLayering((
            Layer("a", 10.0, 100.0, 1.7),
            Layer("b", 10.0, 300.0, 1.9),
            Layer("rock", 1.0, 760.0, 2.4),
        ))
        expected = 20.0 / (10.0 / 100.0 + 10.0 / 300.0)
        assert site.average_vs() == pytest.approx(expected)
        assert not math.isclose(site.average_vs(), 200.0)

"""Tests for the JSON site file schema and analysis settings."""

import json

import pytest

from siteresponse.errors import ConfigurationError
from siteresponse.tools.layering import MaterialType
from siteresponse.tools.motion import ACCELERATION
from siteresponse.tools.site_input import (
    ROCK_PLACEHOLDER_THICKNESS,
    AnalysisSettings,
    load_site_input,
    parse_site,
)


def _doc(**overrides) -> dict:
    doc = {
        "name": "two-layer",
        "gwt_depth": 1.5,
        "layers": [
            {"name": "sand", "thickness": 6.0, "vs": 180.0, "density": 1.8,
             "material": "nonlinear-sand", "sand_preset": "stiff",
             "element_count": 12},
            {"name": "rock", "thickness": 0.0, "vs": 760.0, "density": 2.4},
        ],
        "motions": {
            "x": {"dt": 0.01, "values": [0.0, 0.1, -0.1, 0.0], "scale": 9.81},
        },
    }
    doc.update(overrides)
    return doc


class TestAnalysisSettings:

    def test_defaults(self):
        s = AnalysisSettings()
        assert s.mode == "total"
        assert s.dimension == "2D"
        assert s.gravity_steps == 10
        assert s.max_bisections == 10
        assert s.width == 1.0
        assert s.column_area() == 1.0

    def test_effective_width(self):
        s = AnalysisSettings(mode="effective")
        assert s.effective
        assert s.width == 0.25
        assert s.column_area() == pytest.approx(0.25)

    def test_3d_area(self):
        s = AnalysisSettings(mode="effective", dimension="3d")
        assert s.dimension == "3D"
        assert s.column_area() == pytest.approx(0.0625)

    def test_bad_mode(self):
        with pytest.raises(ConfigurationError):
            AnalysisSettings(mode="undrained")

    def test_override_skips_none(self):
        s = AnalysisSettings().override(mode="effective", dimension=None)
        assert s.mode == "effective"
        assert s.dimension == "2D"

    def test_override_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown analysis settings"):
            AnalysisSettings().override(solver="mumps")


class TestParseSite:

    def test_layers(self):
        data = parse_site(_doc())
        assert data.name == "two-layer"
        assert data.site.gwt_depth == 1.5
        sand = data.site.layers[0]
        assert sand.material is MaterialType.PM4SAND
        assert sand.sand_parameters().G0 == pytest.approx(584.1)
        assert sand.element_count == 12
        assert data.site.rock.thickness == ROCK_PLACEHOLDER_THICKNESS

    def test_inline_motion(self):
        data = parse_site(_doc())
        assert data.motion_x.kind == ACCELERATION
        assert data.motion_x.values == pytest.approx((0.0, 0.981, -0.981, 0.0))
        assert not data.motion_z.is_initialized

    def test_explicit_times(self):
        doc = _doc(motions={"z": {"times": [0.0, 0.02, 0.03],
                                  "values": [0.0, 0.1, 0.0], "kind": "velocity"}})
        data = parse_site(doc)
        assert data.motion_z.min_dt() == pytest.approx(0.01)
        assert not data.motion_x.is_initialized

    def test_motion_file_relative(self, tmp_path):
        (tmp_path / "rec.txt").write_text("0.0 0.0\n0.005 1.0\n")
        doc = _doc(motions={"x": {"file": "rec.txt", "kind": "velocity"}})
        data = parse_site(doc, base_dir=tmp_path)
        assert data.motion_x.times == pytest.approx((0.0, 0.005))

    def test_analysis_overrides(self):
        doc = _doc(analysis={"mode": "effective", "max_bisections": 6,
                             "dynamic_dt": 0.002})
        s = parse_site(doc).settings
        assert s.effective
        assert s.max_bisections == 6
        assert s.dynamic_dt == 0.002
        assert s.gravity_steps == 10

    def test_base_settings(self):
        base = AnalysisSettings(dimension="3D")
        assert parse_site(_doc(), settings=base).settings.dimension == "3D"

    def test_zero_thickness_soil(self):
        doc = _doc()
        doc["layers"][0]["thickness"] = 0.0
        with pytest.raises(ConfigurationError, match="thickness"):
            parse_site(doc)

    def test_unknown_material(self):
        doc = _doc()
        doc["layers"][0]["material"] = "Cam-Clay"
        with pytest.raises(ConfigurationError, match="Invalid site file"):
            parse_site(doc)

    def test_bad_direction(self):
        with pytest.raises(ConfigurationError, match="'x' or 'z'"):
            parse_site(_doc(motions={"y": {"dt": 0.01, "values": [0.0, 1.0]}}))

    def test_motion_needs_sampling(self):
        with pytest.raises(ConfigurationError, match="needs"):
            parse_site(_doc(motions={"x": {"values": [0.0, 1.0]}}))

    def test_schema_violation(self):
        doc = _doc()
        doc["layers"][0]["vs"] = -5.0
        with pytest.raises(ConfigurationError):
            parse_site(doc)

    def test_single_layer(self):
        doc = _doc()
        doc["layers"] = doc["layers"][1:]
        with pytest.raises(ConfigurationError, match="at least one soil layer"):
            parse_site(doc)


class TestLoadSiteInput:

    def test_round_trip_from_disk(self, tmp_path):
        path = tmp_path / "site.json"
        path.write_text(json.dumps(_doc()))
        assert load_site_input(path).name == "two-layer"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "site.json"
        path.write_text("{layers: ")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_site_input(path)

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_site_input(tmp_path / "nope.json")

"""Tests for outcrop motion input."""

import pytest

from siteresponse.errors import ConfigurationError
from siteresponse.tools.motion import (
    ACCELERATION,
    VELOCITY,
    OutcropMotion,
    load_motion_file,
)


class TestOutcropMotion:

    def test_empty_is_uninitialized(self):
        motion = OutcropMotion.empty()
        assert not motion.is_initialized
        assert motion.duration == 0.0
        assert motion.min_dt() == 0.0

    def test_single_sample_is_uninitialized(self):
        assert not OutcropMotion(times=(0.0,), values=(1.0,)).is_initialized

    def test_uniform(self):
        motion = OutcropMotion.uniform(0.01, [0.0, 1.0, 0.0, -1.0])
        assert motion.is_initialized
        assert len(motion.times) == 4
        assert motion.duration == pytest.approx(0.03)
        assert motion.min_dt() == pytest.approx(0.01)

    def test_non_uniform_steps(self):
        motion = OutcropMotion(times=(0.0, 0.01, 0.015, 0.035),
                               values=(0.0, 0.1, 0.2, 0.0))
        assert motion.dt_vector() == pytest.approx([0.01, 0.005, 0.02])
        assert motion.min_dt() == pytest.approx(0.005)

    def test_length_mismatch(self):
        with pytest.raises(ConfigurationError, match="time stamps"):
            OutcropMotion(times=(0.0, 0.1), values=(1.0,))

    def test_times_must_increase(self):
        with pytest.raises(ConfigurationError, match="increase"):
            OutcropMotion(times=(0.0, 0.1, 0.1), values=(0.0, 0.0, 0.0))

    def test_bad_kind(self):
        with pytest.raises(ConfigurationError, match="kind"):
            OutcropMotion(times=(0.0, 0.1), values=(0.0, 0.0), kind="displacement")

    def test_bad_dt(self):
        with pytest.raises(ConfigurationError):
            OutcropMotion.uniform(0.0, [0.0, 1.0])

    def test_velocity_passthrough(self):
        motion = OutcropMotion.uniform(0.1, [0.0, 0.5, 1.0], kind=VELOCITY)
        times, vel = motion.velocity()
        assert vel == (0.0, 0.5, 1.0)
        assert times == motion.times

    def test_acceleration_integrated(self):
        motion = OutcropMotion.uniform(0.1, [1.0, 1.0, 1.0], kind=ACCELERATION)
        _, vel = motion.velocity()
        assert vel == pytest.approx((0.0, 0.1, 0.2))


class TestLoadMotionFile:

    def test_two_column(self, tmp_path):
        path = tmp_path / "rec.txt"
        path.write_text("# time accel\n0.0 0.0\n0.01 0.1\n\n0.02 -0.1\n")
        motion = load_motion_file(path, kind=ACCELERATION, scale=9.81)
        assert motion.name == "rec"
        assert motion.times == pytest.approx((0.0, 0.01, 0.02))
        assert motion.values == pytest.approx((0.0, 0.981, -0.981))
        assert motion.kind == ACCELERATION

    def test_single_column_with_dt(self, tmp_path):
        path = tmp_path / "rec.txt"
        path.write_text("0.0 0.1 0.2\n0.3 0.4\n")
        motion = load_motion_file(path, dt=0.005, name="x")
        assert motion.name == "x"
        assert len(motion.values) == 5
        assert motion.duration == pytest.approx(0.02)

    def test_single_column_needs_dt(self, tmp_path):
        path = tmp_path / "rec.txt"
        path.write_text("0.0\n0.1\n0.2\n")
        with pytest.raises(ConfigurationError, match="supply dt"):
            load_motion_file(path)

    def test_malformed(self, tmp_path):
        path = tmp_path / "rec.txt"
        path.write_text("0.0 abc\n")
        with pytest.raises(ConfigurationError, match="Malformed"):
            load_motion_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_motion_file(tmp_path / "nope.txt")

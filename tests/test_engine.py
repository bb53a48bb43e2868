"""
Engine Tests - end-to-end putts through simulate().

Scenario A: flat 10 ft, full power - drops.
Scenario B: same green, half power - misses with partial accuracy.
Scenario C: side slope - final x displaced toward +x, growing with slope.
Scenario D: steep uphill - rolls shorter than the flat baseline.

Monotonicity checks use a 20 ft hole with a 10 ft stroke so no run can
reach the cup; capture would otherwise cut some rolls short.
"""

import sys
import os
import logging
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from engine import simulate
from physics import (
    InvalidDistance, InvalidInput, MAX_STEPS, PuttingInput, SimulationContext, Termination,
)
from presets import CALIBRATED


def putt(hole=10.0, power_distance=None, percent=100.0, **kw) -> PuttingInput:
    return PuttingInput(power_distance_feet=hole if power_distance is None else power_distance,
                        hole_distance_feet=hole, power_percent=percent, **kw)


class TestScenarioA:

    def test_flat_ten_footer_drops(self):
        out = simulate(putt())
        assert out.success, out.reason
        assert out.accuracy == 100.0
        assert out.roll_distance_feet == pytest.approx(10.0, abs=0.5)
        assert out.termination is Termination.CAPTURED
        assert out.capture_index == len(out.trajectory) - 1
        assert out.time_to_hole_seconds == pytest.approx(out.capture_index / 60.0)
        assert out.tier_label == "medium"

    def test_drops_on_calibrated_preset(self):
        out = simulate(putt(), config=CALIBRATED)
        assert out.success, out.reason
        assert out.roll_distance_feet == pytest.approx(10.0, abs=0.5)


class TestScenarioB:

    def test_half_power_misses(self):
        out = simulate(putt(percent=50.0))
        assert not out.success
        assert 0.0 < out.accuracy < 100.0, f"accuracy {out.accuracy} should be partial"
        assert out.termination is Termination.STOPPED
        assert out.time_to_hole_seconds == pytest.approx((len(out.trajectory) - 1) / 60.0)

    def test_half_power_rolls_half_distance_when_calibrated(self):
        out = simulate(putt(percent=50.0), config=CALIBRATED)
        assert not out.success
        assert out.roll_distance_feet == pytest.approx(5.0, abs=1.0)


class TestScenarioC:

    SLOPES = (0.0, 2.0, 5.0, 10.0)

    def final_x(self, slope):
        return float(simulate(putt(percent=50.0, slope_left_right=slope)).final_position[0])

    def test_right_slope_pushes_positive_x(self):
        baseline = self.final_x(0.0)
        assert baseline == 0.0
        assert self.final_x(10.0) > baseline + 1.0, "break must be clearly measurable"

    def test_displacement_grows_with_slope(self):
        xs = [self.final_x(s) for s in self.SLOPES]
        assert all(b > a for a, b in zip(xs, xs[1:])), f"not monotone: {xs}"

    def test_reproducible(self):
        assert self.final_x(10.0) == self.final_x(10.0)

    def test_persistent_break_hits_step_cap(self, caplog):
        with caplog.at_level(logging.WARNING, logger="physics"):
            out = simulate(putt(percent=50.0, slope_left_right=10.0))
        assert out.degraded
        assert len(out.trajectory) == MAX_STEPS + 1
        assert caplog.records, "step-limited putt must log a warning"


class TestScenarioD:

    def test_uphill_rolls_shorter(self):
        flat = simulate(putt())
        uphill = simulate(putt(slope_up_down=15.0))
        assert uphill.roll_distance_feet < flat.roll_distance_feet - 0.5
        assert not uphill.success

    def test_roll_decreases_with_uphill_slope(self):
        rolls = [simulate(putt(hole=20.0, power_distance=10.0, slope_up_down=s)).roll_distance_feet
                 for s in (0.0, 5.0, 10.0, 15.0, 20.0)]
        assert all(b < a for a, b in zip(rolls, rolls[1:])), f"not monotone: {rolls}"

    def test_downhill_rolls_longer(self):
        flat = simulate(putt(hole=20.0, power_distance=8.0))
        down = simulate(putt(hole=20.0, power_distance=8.0, slope_up_down=-5.0))
        assert down.roll_distance_feet > flat.roll_distance_feet


class TestPower:

    def test_roll_increases_with_power(self):
        rolls = [simulate(putt(hole=20.0, power_distance=10.0, percent=p)).roll_distance_feet
                 for p in (10.0, 25.0, 50.0, 75.0, 100.0)]
        assert all(b > a for a, b in zip(rolls, rolls[1:])), f"not monotone: {rolls}"

    def test_roll_never_drops_with_power_on_reachable_hole(self):
        outs = [simulate(putt(percent=p / 2.0)) for p in range(0, 201)]
        rolls = [o.roll_distance_feet for o in outs]
        assert all(b >= a for a, b in zip(rolls, rolls[1:])), f"not monotone: {rolls}"
        made = [o for o in outs if o.success]
        assert made, "a 10 ft stroke must hole out somewhere in the sweep"
        assert all(o.roll_distance_feet == pytest.approx(10.0) for o in made)

    def test_zero_power_misses(self):
        out = simulate(putt(percent=0.0))
        assert len(out.trajectory) <= 2
        assert not out.success
        assert out.roll_distance_feet == 0.0
        assert out.accuracy == 0.0

    def test_zero_power_inside_radius_drops(self):
        out = simulate(putt(hole=0.2, power_distance=5.0, percent=0.0))
        assert len(out.trajectory) <= 2
        assert out.success
        assert out.capture_index == 0
        assert out.time_to_hole_seconds == 0.0


class TestEngineContract:

    def test_bit_identical(self):
        p = putt(hole=17.0, percent=88.0, aim_angle_degrees=1.5, green_speed=11.0,
                 slope_up_down=-2.0, slope_left_right=3.0)
        a, b = simulate(p), simulate(p)
        np.testing.assert_array_equal(a.trajectory.points, b.trajectory.points)
        assert a.to_dict() == b.to_dict()

    def test_explicit_context(self):
        ctx = SimulationContext(ball_start=(0.0, 0.0), hole_position=(5.0, 0.0),
                                world_units_per_foot=1.0, boundary_radius=20.0)
        out = simulate(putt(hole=5.0), config=CALIBRATED, context=ctx)
        assert out.success, out.reason
        assert out.final_position[0] > 4.5
        assert abs(out.final_position[2]) < 1e-9

    def test_invalid_input(self):
        with pytest.raises(InvalidInput):
            simulate(putt(percent=120.0))
        with pytest.raises(InvalidDistance):
            simulate(putt(hole=-1.0, power_distance=5.0))

    def test_aim_right_ends_right(self):
        out = simulate(putt(hole=20.0, power_distance=10.0, aim_angle_degrees=5.0))
        assert out.final_position[0] > 0.0

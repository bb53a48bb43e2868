"""
Physics Engine Tests - scale mapping, input validation and the roll integrator.

Integrator tests run on the canonical green from the synchronizer:
ball at (0, 4), hole straight down -z.
"""

import sys
import os
import logging
import math
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from physics import (
    DEFAULT_CONFIG, InvalidDistance, InvalidInput, MAX_STEPS, PuttIntegrator,
    PuttingConfig, PuttingInput, ScaleBand, SimulationContext, Termination, Trajectory,
    world_units_per_foot,
)
from sync import DistanceSynchronizer


# ── Helpers ──────────────────────────────────────────────

def make_putt(hole=10.0, power_distance=None, percent=100.0, **kw) -> PuttingInput:
    return PuttingInput(power_distance_feet=hole if power_distance is None else power_distance,
                        hole_distance_feet=hole, power_percent=percent, **kw)


def roll(putt: PuttingInput, config: PuttingConfig = DEFAULT_CONFIG, capture=None):
    context = DistanceSynchronizer().context_for(putt.hole_distance_feet)
    return PuttIntegrator(config).integrate(putt, context, capture=capture)


# ── Scale Mapper ─────────────────────────────────────────

class TestScaleMapper:

    @pytest.mark.parametrize("feet, expected", [
        (0.5, 1.0), (10.0, 1.0), (10.01, 0.8), (25.0, 0.8), (40.0, 0.6),
        (50.0, 0.6), (75.0, 0.4), (100.0, 0.4), (150.0, 0.25), (1e6, 0.25),
    ])
    def test_bands(self, feet, expected):
        assert world_units_per_foot(feet) == expected

    @pytest.mark.parametrize("feet", [0.0, -3.0, float("nan"), float("inf")])
    def test_rejects_bad_distance(self, feet):
        with pytest.raises(InvalidDistance):
            world_units_per_foot(feet)

    def test_invalid_distance_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            world_units_per_foot(0.0)

    def test_custom_table_catch_all(self):
        table = (ScaleBand(5.0, 2.0), ScaleBand(math.inf, 0.5))
        assert world_units_per_foot(4.0, table) == 2.0
        assert world_units_per_foot(400.0, table) == 0.5

    def test_scale_always_positive(self):
        for feet in np.linspace(0.1, 300.0, 97):
            assert world_units_per_foot(float(feet)) > 0


# ── Input validation ─────────────────────────────────────

class TestPuttingInput:

    def test_valid_input_returns_self(self):
        putt = make_putt()
        assert putt.validate() is putt

    @pytest.mark.parametrize("kw", [
        {"percent": 101.0},
        {"percent": -1.0},
        {"aim_angle_degrees": 45.5},
        {"aim_angle_degrees": -60.0},
        {"green_speed": 0.0},
        {"power_distance": -1.0},
        {"slope_up_down": float("nan")},
        {"slope_left_right": float("inf")},
    ])
    def test_out_of_range_rejected(self, kw):
        with pytest.raises(InvalidInput):
            make_putt(**kw).validate()

    def test_zero_hole_distance(self):
        with pytest.raises(InvalidDistance):
            make_putt(hole=0.0, power_distance=10.0).validate()

    def test_integrate_validates_before_rolling(self):
        with pytest.raises(InvalidInput):
            roll(make_putt(percent=150.0))


# ── Config ───────────────────────────────────────────────

class TestPuttingConfig:

    @pytest.mark.parametrize("kw", [
        {"friction_coefficient": 0.0},
        {"friction_coefficient": 1.2},
        {"fixed_timestep": 0.0},
        {"max_steps": 0},
        {"slope_kick_min": 2.0, "slope_kick_max": 1.0},
    ])
    def test_invalid_config(self, kw):
        with pytest.raises(ValueError):
            PuttingConfig(**kw).validate()

    def test_canonical_ignores_green_speed(self):
        assert DEFAULT_CONFIG.effective_friction(6.0) == DEFAULT_CONFIG.friction_coefficient
        assert DEFAULT_CONFIG.effective_friction(14.0) == DEFAULT_CONFIG.friction_coefficient

    def test_green_speed_factor(self):
        cfg = PuttingConfig(green_speed_factor=0.002)
        assert cfg.effective_friction(12.0) > cfg.effective_friction(10.0) > cfg.effective_friction(8.0)
        assert cfg.effective_friction(10.0) == pytest.approx(cfg.friction_coefficient)

    def test_effective_friction_capped_at_one(self):
        cfg = PuttingConfig(green_speed_factor=0.01)
        assert cfg.effective_friction(100.0) == 1.0

    def test_slope_kick_clamped(self):
        assert DEFAULT_CONFIG.slope_kick(0.0) == 1.0
        assert DEFAULT_CONFIG.slope_kick(10.0) == pytest.approx(0.7)
        assert DEFAULT_CONFIG.slope_kick(100.0) == DEFAULT_CONFIG.slope_kick_min
        assert DEFAULT_CONFIG.slope_kick(-100.0) == DEFAULT_CONFIG.slope_kick_max


# ── Context ──────────────────────────────────────────────

class TestSimulationContext:

    def test_rejects_non_positive_scale(self):
        with pytest.raises(InvalidDistance):
            SimulationContext((0.0, 4.0), (0.0, -6.0), 0.0, 12.0)

    def test_rejects_non_positive_boundary(self):
        with pytest.raises(InvalidInput):
            SimulationContext((0.0, 4.0), (0.0, -6.0), 1.0, 0.0)

    def test_target_line_points_at_hole(self):
        ctx = SimulationContext((0.0, 4.0), (0.0, -6.0), 1.0, 12.0)
        np.testing.assert_allclose(ctx.target_line(), [0.0, -1.0])

    def test_off_green(self):
        ctx = SimulationContext((0.0, 4.0), (0.0, -6.0), 1.0, 12.0)
        assert not ctx.is_off_green(np.array([0.0, -11.9]))
        assert ctx.is_off_green(np.array([0.0, -12.1]))


# ── Trajectory ───────────────────────────────────────────

class TestTrajectory:

    def test_read_only(self):
        traj = Trajectory([[0.0, 0.0, 4.0], [0.0, 0.0, 3.5]])
        with pytest.raises(ValueError):
            traj.points[0, 0] = 1.0

    def test_needs_start_point(self):
        with pytest.raises(ValueError):
            Trajectory([])

    def test_accessors(self):
        traj = Trajectory([[0.0, 0.0, 4.0], [0.0, 0.2, 3.0], [0.0, 0.0, 2.0]])
        assert len(traj) == 3
        np.testing.assert_array_equal(traj.start, [0.0, 0.0, 4.0])
        np.testing.assert_array_equal(traj.end, [0.0, 0.0, 2.0])
        assert traj.max_height == pytest.approx(0.2)
        assert traj.termination is Termination.STOPPED


# ── Integrator ───────────────────────────────────────────

class TestIntegrator:

    def test_first_point_is_start(self):
        traj, _ = roll(make_putt())
        np.testing.assert_array_equal(traj.start, [0.0, 0.0, 4.0])

    def test_initial_speed(self):
        putt = make_putt(hole=20.0, power_distance=20.0, percent=50.0)
        ctx = DistanceSynchronizer().context_for(20.0)
        state = PuttIntegrator().initial_state(putt, ctx)
        # 10 ft intended * 0.8 u/ft * base 2.0
        assert state.speed == pytest.approx(16.0)
        np.testing.assert_allclose(state.velocity / state.speed, [0.0, -1.0], atol=1e-12)

    def test_aim_direction(self):
        putt = make_putt(aim_angle_degrees=30.0)
        ctx = DistanceSynchronizer().context_for(10.0)
        state = PuttIntegrator().initial_state(putt, ctx)
        direction = state.velocity / state.speed
        np.testing.assert_allclose(direction, [math.sin(math.radians(30)), -math.cos(math.radians(30))])

    def test_straight_roll_monotone_steps(self):
        traj, state = roll(make_putt(hole=20.0, power_distance=10.0))
        z = traj.points[:, 2]
        assert np.all(np.diff(z) < 0), "flat straight putt must move toward the hole every step"
        np.testing.assert_array_equal(traj.points[:, 0], 0.0)
        assert state.step == len(traj) - 1

    def test_flat_roll_matches_geometric_series(self):
        traj, _ = roll(make_putt(hole=20.0, power_distance=10.0))
        # v0 * dt / (1 - f), minus the tail below the stop threshold
        v0 = 10.0 * 0.8 * 2.0
        expected = v0 * (1.0 / 60.0) / 0.02
        travelled = traj.start[2] - traj.end[2]
        assert expected - 0.1 < travelled < expected

    def test_stops_below_speed_epsilon(self):
        traj, state = roll(make_putt(hole=20.0, power_distance=10.0))
        assert traj.termination is Termination.STOPPED
        assert state.speed < DEFAULT_CONFIG.min_speed_epsilon

    def test_zero_power_single_point(self):
        traj, _ = roll(make_putt(percent=0.0))
        assert len(traj) == 1
        assert traj.termination is Termination.STOPPED

    def test_capture_predicate_halts(self):
        calls = []

        def capture(position, speed):
            calls.append(float(position[1]))
            return position[1] < 0.0

        traj, _ = roll(make_putt(), capture=capture)
        assert traj.termination is Termination.CAPTURED
        assert traj.capture_index == len(traj) - 1
        assert traj.end[2] < 0.0
        assert calls[0] == 4.0

    def test_off_green(self):
        traj, _ = roll(make_putt(power_distance=30.0))
        assert traj.termination is Termination.OFF_GREEN
        assert math.hypot(traj.end[0], traj.end[2]) > 12.0

    def test_step_limit_is_soft(self, caplog):
        cfg = PuttingConfig(max_steps=10)
        with caplog.at_level(logging.WARNING, logger="physics"):
            traj, _ = roll(make_putt(), config=cfg)
        assert len(traj) == 11
        assert traj.termination is Termination.STEP_LIMIT
        assert any("did not settle" in r.message for r in caplog.records)

    def test_always_terminates_within_max_steps(self):
        for slope in (-20.0, 0.0, 10.0, 20.0):
            traj, _ = roll(make_putt(slope_left_right=slope, slope_up_down=-slope))
            assert len(traj) <= MAX_STEPS + 1

    def test_right_break_moves_positive_x(self):
        traj, _ = roll(make_putt(percent=50.0, slope_left_right=4.0))
        assert traj.end[0] > 0.0
        traj, _ = roll(make_putt(percent=50.0, slope_left_right=-4.0))
        assert traj.end[0] < 0.0

    def test_ground_roll_height_is_zero(self):
        traj, _ = roll(make_putt(slope_left_right=3.0))
        assert traj.max_height == 0.0

    def test_bit_identical_repeats(self):
        putt = make_putt(hole=14.0, percent=83.0, aim_angle_degrees=-2.5,
                         slope_up_down=3.0, slope_left_right=-1.5)
        a, sa = roll(putt)
        b, sb = roll(putt)
        np.testing.assert_array_equal(a.points, b.points)
        assert a.termination is b.termination
        np.testing.assert_array_equal(sa.velocity, sb.velocity)

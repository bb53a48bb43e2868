"""
Outcome Aggregator Tests - accuracy, roll distance, time-to-hole, JSON shape.
"""

import sys
import os
import json
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from capture import HoleCaptureEvaluator, select_tier
from outcome import accuracy_for, aggregate
from physics import FIXED_TIMESTEP, SimulationContext, Termination, Trajectory

CTX = SimulationContext(ball_start=(0.0, 4.0), hole_position=(0.0, -6.0),
                        world_units_per_foot=1.0, boundary_radius=12.0)


def outcome_for(points, capture_index=None, termination=Termination.STOPPED,
                final_speed=0.0, context=CTX):
    traj = Trajectory(points, capture_index, termination)
    ev = HoleCaptureEvaluator(select_tier(10.0), context.hole_position,
                              context.world_units_per_foot, FIXED_TIMESTEP)
    return aggregate(traj, ev.evaluate(traj, final_speed), context, FIXED_TIMESTEP)


class TestAccuracy:

    @pytest.mark.parametrize("miss, expected", [
        (0.0, 100.0), (0.5, 75.0), (1.0, 50.0), (2.0, 0.0), (7.0, 0.0),
    ])
    def test_falloff(self, miss, expected):
        assert accuracy_for(False, miss) == pytest.approx(expected)

    def test_success_is_perfect(self):
        assert accuracy_for(True, 0.3) == 100.0


class TestAggregate:

    def test_miss_short(self):
        out = outcome_for([[0.0, 0.0, 4.0], [0.0, 0.0, 3.0], [0.0, 0.0, -5.0]])
        assert not out.success
        assert out.accuracy == pytest.approx(50.0)
        assert out.roll_distance_feet == pytest.approx(9.0)
        assert out.time_to_hole_seconds == pytest.approx(2 * FIXED_TIMESTEP)
        assert out.final_position == (0.0, 0.0, -5.0)
        assert out.max_height == 0.0
        assert out.tier_label == "medium"

    def test_captured_stops_clock_at_capture(self):
        out = outcome_for([[0.0, 0.0, 4.0], [0.0, 0.0, -1.0], [0.0, 0.0, -5.9]],
                          capture_index=2, termination=Termination.CAPTURED)
        assert out.success
        assert out.accuracy == 100.0
        assert out.time_to_hole_seconds == pytest.approx(2 * FIXED_TIMESTEP)
        assert out.roll_distance_feet == pytest.approx(10.0)
        assert out.final_position == (0.0, 0.0, -6.0), "a made putt finishes in the cup"
        assert not out.degraded

    def test_roll_distance_uses_scale(self):
        ctx = SimulationContext((0.0, 4.0), (0.0, -12.0), 0.8, 19.2)
        out = outcome_for([[0.0, 0.0, 4.0], [3.0, 0.0, 0.0]], context=ctx)
        assert out.roll_distance_feet == pytest.approx(5.0 / 0.8)

    def test_step_limited_is_degraded(self):
        out = outcome_for([[0.0, 0.0, 4.0], [0.0, 0.0, 2.0]], termination=Termination.STEP_LIMIT)
        assert out.degraded
        assert out.termination is Termination.STEP_LIMIT

    def test_to_dict_is_json(self):
        out = outcome_for([[0.0, 0.0, 4.0], [0.0, 0.0, -5.0]])
        data = json.loads(json.dumps(out.to_dict()))
        assert data["success"] is False
        assert data["termination"] == "stopped"
        assert data["steps"] == 2
        assert data["trajectory"][0] == [0.0, 0.0, 4.0]
        assert "trajectory" not in out.to_dict(include_trajectory=False)

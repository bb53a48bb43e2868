"""
Distance Synchronizer
Single authority for canonical ball/hole world positions. Renderers ask it
where things go instead of recomputing hole placement themselves, and it
reports drift when their observed positions disagree.
"""

import logging
import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from physics import (
    DEFAULT_SCALE_TABLE, ScaleBand, SimulationContext, world_units_per_foot,
)
from capture import DEFAULT_TIERS, PrecisionTier, select_tier

logger = logging.getLogger(__name__)

FEET_PER_YARD: float = 3.0

# Canonical layout: the ball stays at z = BALL_WORLD_Z, the hole sits down -z.
BALL_WORLD_Z: float = 4.0
BALL_WORLD_HEIGHT: float = 0.08          # render height of the ball centre
HOLE_WORLD_HEIGHT: float = 0.01

SYNC_ERROR_TOLERANCE_FEET: float = 0.5   # logical vs visual distance
POSITION_TOLERANCE_UNITS: float = 0.1    # observed vs canonical position
MAX_PUTTING_YARDS: float = 50.0

MIN_GREEN_RADIUS: float = 8.0            # world units
GREEN_BOUNDARY_MARGIN: float = 1.2

Vec3 = Tuple[float, float, float]


def _ground_distance(a: Vec3, b: Vec3) -> float:
    return math.hypot(a[0] - b[0], a[2] - b[2])


def _as_vec3(v) -> Vec3:
    x, y, z = (float(c) for c in v)
    return (x, y, z)


@dataclass(frozen=True)
class DistanceState:
    ball_position_yards: float
    hole_position_yards: float
    remaining_yards: float
    remaining_feet: float
    world_units_per_foot: float
    ball_world_position: Vec3        # canonical
    hole_world_position: Vec3        # canonical
    observed_ball_position: Vec3
    observed_hole_position: Vec3
    visual_distance_feet: float
    sync_error: float
    is_valid: bool
    correction_applied: bool
    precision_level: str
    detection_radius_feet: float
    speed_threshold_feet_per_step: float

    def to_dict(self) -> dict:
        return {
            "ball_position_yards":  self.ball_position_yards,
            "hole_position_yards":  self.hole_position_yards,
            "remaining_yards":      round(self.remaining_yards, 4),
            "remaining_feet":       round(self.remaining_feet, 4),
            "world_units_per_foot": self.world_units_per_foot,
            "ball_world_position":  [round(v, 5) for v in self.ball_world_position],
            "hole_world_position":  [round(v, 5) for v in self.hole_world_position],
            "visual_distance_feet": round(self.visual_distance_feet, 4),
            "sync_error":           round(self.sync_error, 4),
            "is_valid":             self.is_valid,
            "correction_applied":   self.correction_applied,
            "precision_level":      self.precision_level,
            "detection_radius_feet": self.detection_radius_feet,
            "speed_threshold_feet_per_step": self.speed_threshold_feet_per_step,
        }


@dataclass(frozen=True)
class RemainingDistance:
    remaining_feet: float
    remaining_yards: float
    display_value: float
    display_unit: str


@dataclass(frozen=True)
class DistanceReport:
    is_accurate: bool
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DistanceDisplay:
    primary: str
    secondary: str
    precision: str
    difficulty: str


_DIFFICULTY = {
    "very_close": "Tap-in",
    "close": "Challenging",
    "medium": "Moderate",
    "long": "Distance Control",
}


class DistanceSynchronizer:
    """Reconciles logical (feet/yards) distances with world-space positions."""

    def __init__(self, scale_table: Sequence[ScaleBand] = DEFAULT_SCALE_TABLE,
                 tiers: Sequence[PrecisionTier] = DEFAULT_TIERS):
        self.scale_table = tuple(scale_table)
        self.tiers = tuple(tiers)

    def scale_for(self, distance_feet: float) -> float:
        return world_units_per_foot(distance_feet, self.scale_table)

    def canonical_positions(self, remaining_feet: float) -> Tuple[Vec3, Vec3]:
        """Ball and hole world positions for a putt of this length."""
        scale = self.scale_for(remaining_feet)
        ball = (0.0, BALL_WORLD_HEIGHT, BALL_WORLD_Z)
        hole = (0.0, HOLE_WORLD_HEIGHT, BALL_WORLD_Z - remaining_feet * scale)
        return ball, hole

    def context_for(self, hole_distance_feet: float,
                    boundary_radius: Optional[float] = None) -> SimulationContext:
        """Canonical SimulationContext for the integrator."""
        scale = self.scale_for(hole_distance_feet)
        ball, hole = self.canonical_positions(hole_distance_feet)
        if boundary_radius is None:
            depth = hole_distance_feet * scale
            boundary_radius = GREEN_BOUNDARY_MARGIN * max(MIN_GREEN_RADIUS, depth)
        return SimulationContext(
            ball_start=(ball[0], ball[2]),
            hole_position=(hole[0], hole[2]),
            world_units_per_foot=scale,
            boundary_radius=float(boundary_radius),
        )

    def distance_state(self, ball_position_yards: float, hole_position_yards: float,
                       observed_ball=None, observed_hole=None) -> DistanceState:
        """
        Logical distances plus canonical positions, checked against whatever
        positions the caller is currently rendering.

        Args:
            ball_position_yards: Ball distance from the tee.
            hole_position_yards: Hole distance from the tee.
            observed_ball: Ball [x, y, z] the renderer is using, if any.
            observed_hole: Hole [x, y, z] the renderer is using, if any.

        Raises:
            InvalidDistance: ball and hole coincide.
        """
        remaining_yards = abs(float(hole_position_yards) - float(ball_position_yards))
        remaining_feet = remaining_yards * FEET_PER_YARD
        scale = self.scale_for(remaining_feet)
        ball, hole = self.canonical_positions(remaining_feet)

        seen_ball = _as_vec3(observed_ball) if observed_ball is not None else ball
        seen_hole = _as_vec3(observed_hole) if observed_hole is not None else hole

        visual_feet = _ground_distance(seen_ball, seen_hole) / scale
        sync_error = abs(visual_feet - remaining_feet)

        ball_diff = float(np.linalg.norm(np.subtract(seen_ball, ball)))
        hole_diff = float(np.linalg.norm(np.subtract(seen_hole, hole)))
        correction = ball_diff > POSITION_TOLERANCE_UNITS or hole_diff > POSITION_TOLERANCE_UNITS
        if correction:
            logger.info("position sync: ball off by %.3f u, hole off by %.3f u "
                        "(%.2f ft logical error)", ball_diff, hole_diff, sync_error)

        tier = select_tier(remaining_feet, self.tiers)
        return DistanceState(
            ball_position_yards=float(ball_position_yards),
            hole_position_yards=float(hole_position_yards),
            remaining_yards=remaining_yards,
            remaining_feet=remaining_feet,
            world_units_per_foot=scale,
            ball_world_position=ball,
            hole_world_position=hole,
            observed_ball_position=seen_ball,
            observed_hole_position=seen_hole,
            visual_distance_feet=visual_feet,
            sync_error=sync_error,
            is_valid=sync_error <= SYNC_ERROR_TOLERANCE_FEET,
            correction_applied=correction,
            precision_level=tier.label,
            detection_radius_feet=tier.detection_radius_feet,
            speed_threshold_feet_per_step=tier.speed_threshold_feet_per_step,
        )

    def remaining_from_world(self, ball_world, hole_world,
                             world_units_per_foot: float) -> RemainingDistance:
        """Remaining distance measured from world positions, with a display unit."""
        feet = _ground_distance(_as_vec3(ball_world), _as_vec3(hole_world)) / world_units_per_foot
        yards = feet / FEET_PER_YARD
        if feet < 12:
            value, unit = round(feet, 1), "ft"
        elif yards < 10:
            value, unit = float(round(feet)), "ft"
        else:
            value, unit = round(yards, 1), "yd"
        return RemainingDistance(feet, yards, value, unit)

    def validate(self, state: DistanceState) -> DistanceReport:
        issues, recs = [], []
        if not state.is_valid:
            issues.append(f"Position sync error: {state.sync_error:.2f} feet difference")
            recs.append("Place ball and hole at the synchronizer's canonical positions")
        if state.remaining_yards > MAX_PUTTING_YARDS:
            issues.append("Distance too long for putting mode")
            recs.append(f"Switch to swing mode for distances > {MAX_PUTTING_YARDS:.0f} yards")
        expected = select_tier(state.remaining_feet, self.tiers)
        if abs(state.detection_radius_feet - expected.detection_radius_feet) > 0.01:
            issues.append("Detection radius not matching distance-based precision requirements")
            recs.append("Update detection radius based on distance")
        return DistanceReport(not issues, issues, recs)

    def display(self, state: DistanceState) -> DistanceDisplay:
        feet, yards = state.remaining_feet, state.remaining_yards
        if feet < 10:
            primary, secondary = f"{feet:.1f} ft", f"{yards:.2f} yd"
        elif feet < 30:
            primary, secondary = f"{round(feet)} ft", f"{yards:.1f} yd"
        else:
            primary, secondary = f"{yards:.1f} yd", f"{feet:.0f} ft"
        tier = select_tier(feet, self.tiers)
        return DistanceDisplay(primary, secondary, tier.description,
                               _DIFFICULTY.get(tier.label, "Distance Control"))

    def log_analysis(self, state: DistanceState) -> None:
        logger.debug("logical %.1f yd -> %.1f yd (%.2f ft remaining)",
                     state.ball_position_yards, state.hole_position_yards, state.remaining_feet)
        logger.debug("visual %.2f ft | scale %.2f u/ft | sync %s (error %.2f ft)",
                     state.visual_distance_feet, state.world_units_per_foot,
                     "OK" if state.is_valid else "ERROR", state.sync_error)
        logger.debug("precision %s (radius %.3f ft, speed %.3f ft/step)", state.precision_level,
                     state.detection_radius_feet, state.speed_threshold_feet_per_step)

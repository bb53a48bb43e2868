"""
Hole Capture Evaluator
Distance-banded precision tiers and the per-step "did it drop" test.
"""

import logging
import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from physics import Trajectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrecisionTier:
    max_distance_feet: float
    detection_radius_feet: float
    speed_threshold_feet_per_step: float
    label: str
    description: str = ""


# Ordered strict -> lenient, evaluated top-down.
DEFAULT_TIERS: Tuple[PrecisionTier, ...] = (
    PrecisionTier(3.0, 0.25, 0.50, "very_close", "Tap-in range - precision critical"),
    PrecisionTier(8.0, 0.30, 0.60, "close", "Close range - high precision required"),
    PrecisionTier(15.0, 0.35, 0.70, "medium", "Medium range - standard precision"),
    PrecisionTier(30.0, 0.40, 0.90, "long", "Long range - focus on distance control"),
)


def most_lenient(tiers: Sequence[PrecisionTier]) -> PrecisionTier:
    return max(tiers, key=lambda t: (t.detection_radius_feet, t.speed_threshold_feet_per_step))


def select_tier(distance_feet: float,
                tiers: Sequence[PrecisionTier] = DEFAULT_TIERS) -> PrecisionTier:
    """First tier whose range covers the distance; past the table, the most lenient one."""
    if not tiers:
        raise ValueError("precision tier table is empty")
    for tier in tiers:
        if distance_feet <= tier.max_distance_feet:
            return tier
    fallback = most_lenient(tiers)
    logger.debug("%.1f ft is beyond every precision tier; using '%s'", distance_feet, fallback.label)
    return fallback


@dataclass(frozen=True)
class CaptureResult:
    success: bool
    capture_index: Optional[int]
    tier: PrecisionTier
    distance_to_hole_feet: float
    speed_feet_per_step: float
    precision_score: float
    reason: str


class HoleCaptureEvaluator:
    """
    Capture test for one putt: within the tier's radius AND slow enough.

    Positions and speeds arrive in world units; thresholds are in feet, so
    everything is converted with the context scale before comparing.
    """

    def __init__(self, tier: PrecisionTier, hole_position, world_units_per_foot: float,
                 timestep: float):
        self.tier = tier
        self.hole = np.array(hole_position, dtype=float)
        self.world_units_per_foot = float(world_units_per_foot)
        self.timestep = float(timestep)

    def distance_feet(self, position) -> float:
        p = np.asarray(position, dtype=float)
        return float(np.linalg.norm(p[:2] - self.hole)) / self.world_units_per_foot

    def speed_feet_per_step(self, speed: float) -> float:
        return speed * self.timestep / self.world_units_per_foot

    def check(self, distance_feet: float, speed_feet_per_step: float) -> bool:
        return (distance_feet <= self.tier.detection_radius_feet and
                speed_feet_per_step <= self.tier.speed_threshold_feet_per_step)

    def __call__(self, position, speed: float) -> bool:
        return self.check(self.distance_feet(position), self.speed_feet_per_step(speed))

    def precision_score(self, distance_feet: float, speed_feet_per_step: float) -> float:
        d_score = max(0.0, 100.0 - distance_feet / self.tier.detection_radius_feet * 100.0)
        s_score = max(0.0, 100.0 - speed_feet_per_step / self.tier.speed_threshold_feet_per_step * 100.0)
        return (d_score + s_score) / 2.0

    def explain(self, distance_feet: float, speed_feet_per_step: float) -> str:
        r = self.tier.detection_radius_feet
        t = self.tier.speed_threshold_feet_per_step
        near = distance_feet <= r
        slow = speed_feet_per_step <= t
        if near and slow:
            return f"Ball dropped in hole ({distance_feet:.3f} <= {r:.3f} ft, speed {speed_feet_per_step:.3f})"
        if not near and not slow:
            return (f"Missed - too far ({distance_feet:.3f} > {r:.3f} ft) "
                    f"and too fast ({speed_feet_per_step:.3f} > {t:.3f})")
        if not near:
            return f"Missed - too far from hole ({distance_feet:.3f} > {r:.3f} ft)"
        return f"Rimmed out - too fast ({speed_feet_per_step:.3f} > {t:.3f})"

    def evaluate(self, trajectory: Trajectory, final_speed: float = 0.0) -> CaptureResult:
        """
        Resolve success for a sealed trajectory.

        A step captured during integration wins. Otherwise the final point is
        re-tested with the final speed, which covers step-limited runs whose
        last point was never checked.
        """
        # integration halts on capture, so the final speed is the speed at the
        # captured point as well as at the last point
        index = trajectory.capture_index
        point = trajectory[index] if index is not None else trajectory.end
        dist = self.distance_feet(point[[0, 2]])
        speed_fps = self.speed_feet_per_step(final_speed)
        if index is None and self.check(dist, speed_fps):
            index = len(trajectory) - 1

        return CaptureResult(
            success=index is not None,
            capture_index=index,
            tier=self.tier,
            distance_to_hole_feet=dist,
            speed_feet_per_step=speed_fps,
            precision_score=self.precision_score(dist, speed_fps),
            reason=self.explain(dist, speed_fps),
        )


# ──────────────────────────────────────────────
# Putt recommendations
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class PuttRecommendation:
    recommended_power: int
    power_min: float
    power_max: float
    aim_tolerance_degrees: float
    success_probability: int
    tips: List[str] = field(default_factory=list)


# label -> (base power, power per foot, power cap, success %, tips)
_ADVICE = {
    "very_close": (15.0, 3.0, 35.0, 95, ["Tap-in putt - use very gentle power",
                                          "Focus on smooth stroke"]),
    "close": (25.0, 2.5, 50.0, 75, ["Close putt - moderate power, focus on line"]),
    "medium": (35.0, 2.0, 70.0, 45, ["Medium putt - firm stroke, good pace"]),
    "long": (50.0, 1.5, 85.0, 20, ["Long putt - focus on distance control",
                                   "Get it close for easy next putt"]),
}


def recommend_putt(distance_feet: float,
                   tiers: Sequence[PrecisionTier] = DEFAULT_TIERS) -> PuttRecommendation:
    """Suggested power window and aim tolerance for a putt of this length."""
    tier = select_tier(distance_feet, tiers)
    base, per_foot, cap, probability, tips = _ADVICE.get(
        tier.label, (20.0, 2.5, math.inf, 85, []))
    power = min(cap, base + distance_feet * per_foot)
    return PuttRecommendation(
        recommended_power=int(round(power)),
        power_min=max(10.0, power * 0.85),
        power_max=min(95.0, power * 1.15),
        aim_tolerance_degrees=max(0.5, min(5.0, distance_feet * 0.2)),
        success_probability=probability,
        tips=list(tips),
    )

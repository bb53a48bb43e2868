"""
Outcome Aggregator
Reduces a sealed trajectory + capture verdict into the putt result record.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from physics import SimulationContext, Termination, Trajectory
from capture import CaptureResult

# Accuracy drops to zero over this many feet of miss.
ACCURACY_FALLOFF_FEET: float = 2.0


def accuracy_for(success: bool, miss_feet: float) -> float:
    if success:
        return 100.0
    return max(0.0, 100.0 - (miss_feet / ACCURACY_FALLOFF_FEET) * 100.0)


@dataclass(frozen=True)
class PuttingOutcome:
    success: bool
    accuracy: float
    roll_distance_feet: float
    time_to_hole_seconds: float
    final_position: Tuple[float, float, float]
    max_height: float
    trajectory: Trajectory
    capture_index: Optional[int]
    distance_to_hole_feet: float
    speed_at_hole_feet_per_step: float
    precision_score: float
    reason: str
    tier_label: str
    termination: Termination

    @property
    def degraded(self) -> bool:
        """True when the step cap cut the roll short."""
        return self.termination is Termination.STEP_LIMIT

    def to_dict(self, include_trajectory: bool = True) -> dict:
        out = {
            "success":              self.success,
            "accuracy":             round(self.accuracy, 4),
            "roll_distance_feet":   round(self.roll_distance_feet, 4),
            "time_to_hole_seconds": round(self.time_to_hole_seconds, 4),
            "final_position":       [round(float(v), 5) for v in self.final_position],
            "max_height":           round(self.max_height, 5),
            "capture_index":        self.capture_index,
            "distance_to_hole_feet": round(self.distance_to_hole_feet, 4),
            "speed_at_hole":        round(self.speed_at_hole_feet_per_step, 4),
            "precision_score":      round(self.precision_score, 2),
            "reason":               self.reason,
            "tier":                 self.tier_label,
            "termination":          self.termination.value,
            "degraded":             self.degraded,
            "steps":                len(self.trajectory),
        }
        if include_trajectory:
            out["trajectory"] = [[round(float(v), 5) for v in p] for p in self.trajectory]
        return out


def aggregate(trajectory: Trajectory, capture: CaptureResult,
              context: SimulationContext, timestep: float) -> PuttingOutcome:
    """Accuracy, roll distance (ft), time-to-hole and max height for one putt."""
    scale = context.world_units_per_foot
    start = trajectory.start
    if capture.success:
        # dropped: the ball finishes in the cup, whichever step caught it
        caught = trajectory[capture.capture_index]
        end = np.array([context.hole_position[0], caught[1], context.hole_position[1]])
    else:
        end = trajectory.end

    roll_units = float(np.hypot(end[0] - start[0], end[2] - start[2]))
    steps = capture.capture_index if capture.capture_index is not None else len(trajectory) - 1

    return PuttingOutcome(
        success=capture.success,
        accuracy=accuracy_for(capture.success, capture.distance_to_hole_feet),
        roll_distance_feet=roll_units / scale,
        time_to_hole_seconds=steps * timestep,
        final_position=(float(end[0]), float(end[1]), float(end[2])),
        max_height=trajectory.max_height,
        trajectory=trajectory,
        capture_index=capture.capture_index,
        distance_to_hole_feet=capture.distance_to_hole_feet,
        speed_at_hole_feet_per_step=capture.speed_feet_per_step,
        precision_score=capture.precision_score,
        reason=capture.reason,
        tier_label=capture.tier.label,
        termination=trajectory.termination,
    )

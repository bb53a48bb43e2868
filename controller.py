"""
PuttingController - Layer 2 (Game Logic)

Owns the per-attempt state machine, the active coefficient preset and the
playback cursor. Communicates with Layer 3 (server.py / a renderer) via:
  - pending_events : rendering commands (setup_green, putt_result, …)
  - status_msg     : one-line human-readable status

Layer 3 calls:
  ctrl.attempt(putt)        : simulate one putt (IDLE -> SIMULATING -> CAPTURED|MISSED)
  ctrl.acknowledge()        : outcome consumed, back to IDLE
  ctrl.playback.advance(dt) : pre-computed points to draw this frame
"""

import enum
import logging
import math
import os
from typing import List, Optional, Sequence

import numpy as np

from physics import (
    DEFAULT_SCALE_TABLE, FIXED_TIMESTEP, InvalidInput, PuttingConfig,
    PuttingInput, REFERENCE_GREEN_SPEED, ScaleBand, SimulationInProgress, Trajectory,
)
from capture import DEFAULT_TIERS, PrecisionTier
from engine import simulate
from outcome import PuttingOutcome
from presets import CANONICAL, get_preset, tune
from sync import DistanceSynchronizer

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    IDLE = "idle"
    SIMULATING = "simulating"
    CAPTURED = "captured"
    MISSED = "missed"


# ──────────────────────────────────────────────────────────────────────────────
# Playback
# ──────────────────────────────────────────────────────────────────────────────

class TrajectoryPlayback:
    """
    Replays a sealed trajectory against wall-clock time.

    Cancelling only stops consumption; the trajectory itself was finished
    before playback began.
    """

    def __init__(self, trajectory: Trajectory, timestep: float = FIXED_TIMESTEP,
                 rate: float = 1.0):
        if timestep <= 0 or rate <= 0:
            raise ValueError("timestep and rate must be > 0")
        self.trajectory = trajectory
        self.timestep = timestep
        self.rate = rate
        self.elapsed = 0.0
        self.index = 0          # next point to hand out
        self.cancelled = False

    @property
    def done(self) -> bool:
        return self.cancelled or self.index >= len(self.trajectory)

    @property
    def current(self) -> np.ndarray:
        """Last point handed out (the start point before the first advance)."""
        return self.trajectory[max(0, self.index - 1)]

    def advance(self, dt: float) -> List[np.ndarray]:
        """Points whose timestamps fall inside the elapsed window."""
        if dt < 0:
            raise ValueError("dt must be >= 0")
        if self.done:
            return []
        self.elapsed += dt * self.rate
        last = min(len(self.trajectory) - 1, int(math.floor(self.elapsed / self.timestep + 1e-9)))
        pts = [p for p in self.trajectory[self.index:last + 1]]
        self.index = max(self.index, last + 1)
        return pts

    def cancel(self) -> None:
        self.cancelled = True


# ──────────────────────────────────────────────────────────────────────────────
# Controller
# ──────────────────────────────────────────────────────────────────────────────

class PuttingController:
    """Layer 2: attempt state machine + engine orchestration."""

    def __init__(self, config: PuttingConfig = CANONICAL,
                 tiers: Sequence[PrecisionTier] = DEFAULT_TIERS,
                 scale_table: Sequence[ScaleBand] = DEFAULT_SCALE_TABLE):
        self.config = config.validate()
        self.tiers = tuple(tiers)
        self.scale_table = tuple(scale_table)
        self.synchronizer = DistanceSynchronizer(self.scale_table, self.tiers)

        self.phase = Phase.IDLE
        self.last_putt: Optional[PuttingInput] = None
        self.last_outcome: Optional[PuttingOutcome] = None
        self.playback: Optional[TrajectoryPlayback] = None

        # Script state
        self._last_script: dict = {}
        self._last_script_path = ""

        self.status_msg = ""
        self.pending_events: list = []

    # ──────────────────────────────────────────────────────────────────────────
    # Attempt lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def attempt(self, putt: PuttingInput) -> PuttingOutcome:
        """
        Simulate one putt and move to CAPTURED or MISSED.

        An un-acknowledged previous result is acknowledged implicitly.

        Raises:
            SimulationInProgress: a putt is already simulating.
            InvalidInput: bad putt parameters (phase returns to IDLE).
        """
        if self.phase is Phase.SIMULATING:
            raise SimulationInProgress("a putt is already being simulated")
        if self.phase is not Phase.IDLE:
            self.acknowledge()

        if self.playback is not None:
            self.playback.cancel()
        self.phase = Phase.SIMULATING
        self.status_msg = "Simulating..."
        try:
            outcome = simulate(putt, tiers=self.tiers, scale_table=self.scale_table,
                               config=self.config)
        except Exception:
            self.phase = Phase.IDLE
            self.status_msg = "Putt rejected."
            raise

        self.last_putt = putt
        self.last_outcome = outcome
        self.phase = Phase.CAPTURED if outcome.success else Phase.MISSED
        self.playback = TrajectoryPlayback(outcome.trajectory, self.config.fixed_timestep)

        if outcome.success:
            self.status_msg = f"In the hole! ({outcome.roll_distance_feet:.1f} ft)"
        else:
            self.status_msg = (f"Missed by {outcome.distance_to_hole_feet:.1f} ft "
                               f"- {outcome.reason}")
        if outcome.degraded:
            self.status_msg += " [step cap]"
        self.pending_events.append({"type": "putt_result",
                                    "outcome": outcome.to_dict(include_trajectory=False)})
        logger.info("putt %.1f ft @ %.0f%% -> %s", putt.hole_distance_feet,
                    putt.power_percent, self.phase.value)
        return outcome

    def acknowledge(self) -> Optional[PuttingOutcome]:
        """Caller has the outcome; return to IDLE."""
        if self.phase is Phase.SIMULATING:
            raise SimulationInProgress("cannot acknowledge while simulating")
        self.phase = Phase.IDLE
        return self.last_outcome

    # ──────────────────────────────────────────────────────────────────────────
    # Green setup
    # ──────────────────────────────────────────────────────────────────────────

    def setup_green(self, hole_distance_feet: float, green_speed: float = REFERENCE_GREEN_SPEED,
                    slope_up_down: float = 0.0, slope_left_right: float = 0.0) -> dict:
        """Canonical ball/hole placement for a renderer; no simulation."""
        ball, hole = self.synchronizer.canonical_positions(hole_distance_feet)
        context = self.synchronizer.context_for(hole_distance_feet)
        event = {
            "type": "setup_green",
            "ball": list(ball),
            "hole": list(hole),
            "world_units_per_foot": context.world_units_per_foot,
            "boundary_radius": round(context.boundary_radius, 5),
            "green_speed": green_speed,
            "slope_up_down": slope_up_down,
            "slope_left_right": slope_left_right,
        }
        self.pending_events.append(event)
        self.status_msg = f"Green: {hole_distance_feet:.1f} ft putt."
        return event

    # ──────────────────────────────────────────────────────────────────────────
    # Presets / params
    # ──────────────────────────────────────────────────────────────────────────

    def load_preset(self, name: str) -> PuttingConfig:
        self.config = get_preset(name)
        self.pending_events.append({"type": "refresh_params"})
        self.status_msg = f"Preset: {self.config.name} (v{self.config.version})"
        return self.config

    def set_param(self, attr: str, value: float) -> PuttingConfig:
        """Replace the active config with one parameter changed (clamped)."""
        self.config = tune(self.config, attr, value)
        self.pending_events.append({"type": "refresh_params", "params": [attr]})
        self.status_msg = f"params: {attr}={getattr(self.config, attr):.4g}"
        logger.debug(self.status_msg)
        return self.config

    def reset_params(self) -> PuttingConfig:
        return self.load_preset(self.config.name)

    # ──────────────────────────────────────────────────────────────────────────
    # Headless simulation
    # ──────────────────────────────────────────────────────────────────────────

    def simulate_putt(
        self,
        hole_distance_feet: float,
        power_percent: float,
        *,
        power_distance_feet: Optional[float] = None,
        aim_angle_degrees: float = 0.0,
        green_speed: float = REFERENCE_GREEN_SPEED,
        slope_up_down: float = 0.0,
        slope_left_right: float = 0.0,
        include_trajectory: bool = False,
    ) -> dict:
        """Headless putt with the active config.

        Non-destructive: does NOT touch ``phase``, ``last_outcome`` or the
        playback cursor.

        Args:
            hole_distance_feet: Distance to the hole.
            power_percent:      Stroke strength, 0–100.
            power_distance_feet: Full-power carry; defaults to the hole distance.
            include_trajectory: Add the ``[x, y, z]`` point list to the result.

        Returns:
            ``PuttingOutcome.to_dict()`` plus ``preset`` (name, version).
        """
        putt = PuttingInput(
            power_distance_feet=(hole_distance_feet if power_distance_feet is None
                                 else power_distance_feet),
            hole_distance_feet=hole_distance_feet,
            power_percent=power_percent,
            aim_angle_degrees=aim_angle_degrees,
            green_speed=green_speed,
            slope_up_down=slope_up_down,
            slope_left_right=slope_left_right,
        )
        outcome = simulate(putt, tiers=self.tiers, scale_table=self.scale_table,
                           config=self.config)
        result = outcome.to_dict(include_trajectory=include_trajectory)
        result["preset"] = {"name": self.config.name, "version": self.config.version}
        return result

    # ──────────────────────────────────────────────────────────────────────────
    # Script system
    # ──────────────────────────────────────────────────────────────────────────

    def execute_script(self, script: dict) -> Optional[PuttingOutcome]:
        """
        Run a putt script dict: ``green`` (required), optional ``preset`` and
        optional ``putt``. Without a ``putt`` section only the green is set up.
        """
        green = script.get("green")
        if not green:
            raise InvalidInput("script needs a 'green' section")
        self._last_script = script

        if "preset" in script:
            self.load_preset(script["preset"])

        hole = float(green["hole_distance_feet"])
        self.setup_green(hole,
                         green_speed=float(green.get("green_speed", REFERENCE_GREEN_SPEED)),
                         slope_up_down=float(green.get("slope_up_down", 0.0)),
                         slope_left_right=float(green.get("slope_left_right", 0.0)))

        stroke = script.get("putt")
        if stroke is None:
            return None

        putt = PuttingInput(
            power_distance_feet=float(stroke.get("power_distance_feet", hole)),
            hole_distance_feet=hole,
            power_percent=float(stroke["power_percent"]),
            aim_angle_degrees=float(stroke.get("aim_angle_degrees", 0.0)),
            green_speed=float(green.get("green_speed", REFERENCE_GREEN_SPEED)),
            slope_up_down=float(green.get("slope_up_down", 0.0)),
            slope_left_right=float(green.get("slope_left_right", 0.0)),
        )
        return self.attempt(putt)

    def load_script_file(self, path: str) -> Optional[PuttingOutcome]:
        """Load and execute a putt script from a .py file defining SCRIPT."""
        import importlib.util
        abs_path = os.path.abspath(path)
        if not os.path.exists(abs_path):
            self.status_msg = f"Script not found: {abs_path}"
            return None
        spec = importlib.util.spec_from_file_location("_user_putt_script", abs_path)
        mod = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(mod)
        except Exception as exc:
            logger.warning("script %s failed to load: %s", abs_path, exc)
            self.status_msg = f"Script error: {exc}"
            return None
        script = getattr(mod, "SCRIPT", None)
        if script is None:
            self.status_msg = f"No SCRIPT variable in {os.path.basename(abs_path)}"
            return None
        self._last_script_path = abs_path
        return self.execute_script(script)

    def reload_script(self) -> Optional[PuttingOutcome]:
        if self._last_script_path:
            return self.load_script_file(self._last_script_path)
        if self._last_script:
            return self.execute_script(self._last_script)
        self.status_msg = "No script loaded yet. Create putt_script.py or call load_script_file(path)."
        return None

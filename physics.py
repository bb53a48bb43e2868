"""
Putting Physics Engine
Scale mapping, ground-roll integration (friction decay + slope break).
"""

import enum
import logging
import math
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Constants (world units, seconds)
# ──────────────────────────────────────────────
FIXED_TIMESTEP: float = 1.0 / 60.0       # s per integration step
FRICTION_COEFFICIENT: float = 0.98       # fraction of velocity kept per step
BASE_SPEED_MULTIPLIER: float = 2.0       # initial speed per unit of intended distance
SLOPE_CURVE_FACTOR: float = 0.12         # lateral accel (ft/s^2) per unit of left/right slope
SLOPE_SPEED_FACTOR: float = 0.005        # continuous decel (1/s) per unit of up/down slope
SLOPE_KICK_FACTOR: float = 0.03          # initial-speed change per unit of up/down slope
SLOPE_KICK_MIN: float = 0.5
SLOPE_KICK_MAX: float = 2.0
REFERENCE_GREEN_SPEED: float = 10.0      # stimpmeter reading with no friction adjustment

# Numerical thresholds (world units / s)
MIN_SPEED_EPSILON: float = 0.05
MIN_CURVE_EPSILON: float = 0.01
MAX_STEPS: int = 600                     # 10 s at 60 Hz

# Input ranges
POWER_PERCENT_RANGE: Tuple[float, float] = (0.0, 100.0)
AIM_ANGLE_RANGE: Tuple[float, float] = (-45.0, 45.0)


# ──────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────
class PuttingError(Exception):
    """Base class for putting engine errors."""


class InvalidInput(PuttingError, ValueError):
    """Putt parameters outside their documented range. Never clamped."""


class InvalidDistance(InvalidInput):
    """Non-positive (or non-finite) hole distance."""


class SimulationInProgress(PuttingError, RuntimeError):
    """A putt was started while another one is still simulating."""


class Termination(enum.Enum):
    STOPPED = "stopped"
    CAPTURED = "captured"
    OFF_GREEN = "off_green"
    STEP_LIMIT = "step_limit"


# ──────────────────────────────────────────────
# Scale Mapper
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class ScaleBand:
    max_distance_feet: float
    world_units_per_foot: float


# Evaluated top-down; the last row is the catch-all.
DEFAULT_SCALE_TABLE: Tuple[ScaleBand, ...] = (
    ScaleBand(10.0, 1.0),
    ScaleBand(25.0, 0.8),
    ScaleBand(50.0, 0.6),
    ScaleBand(100.0, 0.4),
    ScaleBand(math.inf, 0.25),
)


def world_units_per_foot(hole_distance_feet: float,
                         table: Sequence[ScaleBand] = DEFAULT_SCALE_TABLE) -> float:
    """
    Map a real hole distance to the simulation/rendering scale.

    Long putts get a smaller scale so total scene depth stays inside a fixed
    camera frustum; physics never rescales mid-putt.

    Raises:
        InvalidDistance: distance is not a positive finite number.
    """
    d = float(hole_distance_feet)
    if not math.isfinite(d) or d <= 0.0:
        raise InvalidDistance(f"hole distance must be > 0 ft, got {hole_distance_feet!r}")
    if not table:
        raise ValueError("scale table is empty")
    for band in table:
        if d <= band.max_distance_feet:
            return band.world_units_per_foot
    return table[-1].world_units_per_foot


# ──────────────────────────────────────────────
# Data model
# ──────────────────────────────────────────────
def _check_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value!r}")


@dataclass(frozen=True)
class PuttingInput:
    """One putt's user inputs and green parameters."""
    power_distance_feet: float
    hole_distance_feet: float
    power_percent: float
    aim_angle_degrees: float = 0.0
    green_speed: float = REFERENCE_GREEN_SPEED
    slope_up_down: float = 0.0       # + uphill
    slope_left_right: float = 0.0    # + breaks right

    def validate(self) -> "PuttingInput":
        for name in ("power_distance_feet", "hole_distance_feet", "power_percent",
                     "aim_angle_degrees", "green_speed", "slope_up_down", "slope_left_right"):
            _check_finite(name, float(getattr(self, name)))

        if self.hole_distance_feet <= 0:
            raise InvalidDistance(
                f"hole_distance_feet must be > 0, got {self.hole_distance_feet}")
        if self.power_distance_feet < 0:
            raise InvalidInput(
                f"power_distance_feet must be >= 0, got {self.power_distance_feet}")
        lo, hi = POWER_PERCENT_RANGE
        if not lo <= self.power_percent <= hi:
            raise InvalidInput(f"power_percent must be in [{lo}, {hi}], got {self.power_percent}")
        lo, hi = AIM_ANGLE_RANGE
        if not lo <= self.aim_angle_degrees <= hi:
            raise InvalidInput(
                f"aim_angle_degrees must be in [{lo}, {hi}], got {self.aim_angle_degrees}")
        if self.green_speed <= 0:
            raise InvalidInput(f"green_speed must be > 0, got {self.green_speed}")
        return self


@dataclass(frozen=True)
class PuttingConfig:
    """Named, versioned set of integrator coefficients."""
    name: str = "canonical"
    version: int = 2
    friction_coefficient: float = FRICTION_COEFFICIENT
    slope_curve_factor: float = SLOPE_CURVE_FACTOR
    slope_speed_factor: float = SLOPE_SPEED_FACTOR
    base_speed_multiplier: float = BASE_SPEED_MULTIPLIER
    slope_kick_factor: float = SLOPE_KICK_FACTOR
    slope_kick_min: float = SLOPE_KICK_MIN
    slope_kick_max: float = SLOPE_KICK_MAX
    min_speed_epsilon: float = MIN_SPEED_EPSILON
    min_curve_epsilon: float = MIN_CURVE_EPSILON
    max_steps: int = MAX_STEPS
    fixed_timestep: float = FIXED_TIMESTEP
    green_speed_factor: float = 0.0
    reference_green_speed: float = REFERENCE_GREEN_SPEED

    def validate(self) -> "PuttingConfig":
        if not 0.0 < self.friction_coefficient <= 1.0:
            raise ValueError(
                f"{self.name}: friction_coefficient must be in (0, 1], got {self.friction_coefficient}")
        if not self.fixed_timestep > 0.0:
            raise ValueError(f"{self.name}: fixed_timestep must be > 0")
        if int(self.max_steps) < 1:
            raise ValueError(f"{self.name}: max_steps must be >= 1")
        if self.base_speed_multiplier < 0.0:
            raise ValueError(f"{self.name}: base_speed_multiplier must be >= 0")
        if not 0.0 < self.slope_kick_min <= self.slope_kick_max:
            raise ValueError(f"{self.name}: need 0 < slope_kick_min <= slope_kick_max")
        return self

    def effective_friction(self, green_speed: float) -> float:
        """Per-step retention, nudged up on fast greens when green_speed_factor > 0."""
        f = self.friction_coefficient * (
            1.0 + (green_speed - self.reference_green_speed) * self.green_speed_factor)
        return min(1.0, max(0.0, f))

    def slope_kick(self, slope_up_down: float) -> float:
        """Initial-speed multiplier: uphill slows the stroke, downhill speeds it."""
        m = 1.0 - slope_up_down * self.slope_kick_factor
        return max(self.slope_kick_min, min(self.slope_kick_max, m))


DEFAULT_CONFIG = PuttingConfig()


@dataclass(frozen=True)
class SimulationContext:
    """Everything positional the integrator needs, passed explicitly."""
    ball_start: Tuple[float, float]
    hole_position: Tuple[float, float]
    world_units_per_foot: float
    boundary_radius: float
    boundary_center: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        if not self.world_units_per_foot > 0:
            raise InvalidDistance(
                f"world_units_per_foot must be > 0, got {self.world_units_per_foot}")
        if not self.boundary_radius > 0:
            raise InvalidInput(f"boundary_radius must be > 0, got {self.boundary_radius}")

    def target_line(self) -> np.ndarray:
        """Unit vector from ball to hole in the x-z plane."""
        d = np.array(self.hole_position, dtype=float) - np.array(self.ball_start, dtype=float)
        n = float(np.linalg.norm(d))
        if n < 1e-12:
            return np.array([0.0, -1.0])
        return d / n

    def is_off_green(self, position: np.ndarray) -> bool:
        dx = float(position[0]) - self.boundary_center[0]
        dz = float(position[1]) - self.boundary_center[1]
        return math.hypot(dx, dz) > self.boundary_radius


@dataclass
class SimulationState:
    """Ball state for one in-progress integration."""
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    step: int = 0

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))


class Trajectory:
    """Sealed, read-only ball path from one putt: rows of [x, y, z]."""

    __slots__ = ("_points", "capture_index", "termination")

    def __init__(self, points, capture_index: Optional[int] = None,
                 termination: Termination = Termination.STOPPED):
        pts = np.array(points, dtype=float).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("a trajectory needs at least its start point")
        pts.flags.writeable = False
        self._points = pts
        self.capture_index = capture_index
        self.termination = termination

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def start(self) -> np.ndarray:
        return self._points[0]

    @property
    def end(self) -> np.ndarray:
        return self._points[-1]

    @property
    def max_height(self) -> float:
        return float(self._points[:, 1].max())

    def __len__(self) -> int:
        return len(self._points)

    def __getitem__(self, idx):
        return self._points[idx]

    def __iter__(self):
        return iter(self._points)

    def __repr__(self) -> str:
        return (f"Trajectory(n={len(self)}, termination={self.termination.name}, "
                f"capture_index={self.capture_index})")


# Per-step capture check: (position [x, z], speed in world units / s) -> dropped?
CapturePredicate = Callable[[np.ndarray, float], bool]


# ──────────────────────────────────────────────
# Trajectory Integrator
# ──────────────────────────────────────────────
class PuttIntegrator:
    """Explicit-Euler ground roll with exponential friction and slope break."""

    def __init__(self, config: PuttingConfig = DEFAULT_CONFIG):
        self.config = config.validate()

    def initial_state(self, putt: PuttingInput, context: SimulationContext) -> SimulationState:
        """Launch velocity from power, aim and the uphill/downhill kick."""
        cfg = self.config
        intended_feet = putt.power_distance_feet * putt.power_percent / 100.0
        intended_units = intended_feet * context.world_units_per_foot
        initial_speed = (intended_units * cfg.base_speed_multiplier
                         * cfg.slope_kick(putt.slope_up_down))

        line = context.target_line()
        right = np.array([-line[1], line[0]])
        aim = math.radians(putt.aim_angle_degrees)
        direction = math.cos(aim) * line + math.sin(aim) * right

        return SimulationState(position=np.array(context.ball_start, dtype=float),
                               velocity=direction * initial_speed)

    def advance(self, state: SimulationState, putt: PuttingInput,
                context: SimulationContext) -> None:
        """Move one fixed step, then decay and bend the velocity."""
        cfg = self.config
        dt = cfg.fixed_timestep
        speed = state.speed

        state.position = state.position + state.velocity * dt
        state.step += 1

        state.velocity = state.velocity * cfg.effective_friction(putt.green_speed)

        if speed > cfg.min_curve_epsilon:
            if putt.slope_left_right != 0.0:
                line = context.target_line()
                right = np.array([-line[1], line[0]])
                accel = putt.slope_left_right * cfg.slope_curve_factor * context.world_units_per_foot
                state.velocity = state.velocity + right * (accel * dt)
            if putt.slope_up_down != 0.0:
                effect = -putt.slope_up_down * cfg.slope_speed_factor
                state.velocity = state.velocity + state.velocity * (effect * dt)

    def integrate(self, putt: PuttingInput, context: SimulationContext,
                  capture: Optional[CapturePredicate] = None) -> Tuple[Trajectory, SimulationState]:
        """
        Roll the ball until it drops, stops, leaves the green or hits max_steps.

        Args:
            putt: Validated putt inputs.
            context: Start, hole, scale and green boundary.
            capture: Optional per-step drop predicate; the first point it
                accepts ends the trajectory.

        Returns:
            (sealed Trajectory, final SimulationState)
        """
        putt.validate()
        cfg = self.config
        state = self.initial_state(putt, context)

        points = [(state.position[0], 0.0, state.position[1])]
        capture_index = None
        termination = Termination.STEP_LIMIT

        for _ in range(int(cfg.max_steps)):
            speed = state.speed
            if capture is not None and capture(state.position, speed):
                capture_index = state.step
                termination = Termination.CAPTURED
                break
            if speed < cfg.min_speed_epsilon:
                termination = Termination.STOPPED
                break
            if context.is_off_green(state.position):
                termination = Termination.OFF_GREEN
                break

            self.advance(state, putt, context)
            points.append((state.position[0], 0.0, state.position[1]))

        if termination is Termination.STEP_LIMIT:
            logger.warning("putt did not settle within %d steps (speed %.4f u/s); "
                           "returning capped trajectory", cfg.max_steps, state.speed)

        logger.debug("integrated %d steps -> %s", state.step, termination.name)
        return Trajectory(points, capture_index, termination), state

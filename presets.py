"""
Putting Presets
Named, versioned coefficient sets plus ready-made putt scenarios that set up
a green and (optionally) run the simulation.
"""

import logging
from dataclasses import replace
from typing import Dict, List

from physics import (
    DEFAULT_CONFIG, FIXED_TIMESTEP, FRICTION_COEFFICIENT, InvalidInput, PuttingConfig,
    PuttingInput,
)
from engine import simulate
from sync import DistanceSynchronizer

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Coefficient presets
# ──────────────────────────────────────────────
# v2: stronger break and slope drag, the current tuning.
CANONICAL = DEFAULT_CONFIG

# v1: the first release's gentle break.
CLASSIC = PuttingConfig(
    name="classic", version=1,
    slope_curve_factor=0.025,
    slope_speed_factor=0.001,
)

# Launch speed chosen so a flat roll travels the intended distance:
# sum of v0 * f^n * dt over all steps = v0 * dt / (1 - f).
CALIBRATED = replace(
    CANONICAL, name="calibrated",
    base_speed_multiplier=(1.0 - FRICTION_COEFFICIENT) / FIXED_TIMESTEP,
)

# Stimpmeter-aware variant: friction eases on fast greens, stronger kick.
STIMP_AWARE = PuttingConfig(
    name="stimp_aware", version=2,
    friction_coefficient=0.985,
    green_speed_factor=0.002,
    slope_kick_factor=0.08,
    slope_kick_min=0.3,
    slope_kick_max=2.5,
)

PRESETS: Dict[str, PuttingConfig] = {
    cfg.name: cfg for cfg in (CANONICAL, CLASSIC, CALIBRATED, STIMP_AWARE)
}


def get_preset(name: str) -> PuttingConfig:
    try:
        return PRESETS[name]
    except KeyError:
        raise InvalidInput(
            f"unknown preset '{name}' (choose from {', '.join(sorted(PRESETS))})") from None


def list_presets() -> List[dict]:
    return [{"name": cfg.name, "version": cfg.version,
             "friction_coefficient": cfg.friction_coefficient,
             "slope_curve_factor": cfg.slope_curve_factor,
             "slope_speed_factor": cfg.slope_speed_factor,
             "base_speed_multiplier": round(cfg.base_speed_multiplier, 6),
             "green_speed_factor": cfg.green_speed_factor}
            for cfg in PRESETS.values()]


# ──────────────────────────────────────────────
# Tunable parameters: (attr, label, min, max, step)
# ──────────────────────────────────────────────
CONFIG_PARAMS = [
    ("friction_coefficient",  "Friction",        0.90,  1.0,   0.001),
    ("slope_curve_factor",    "Break",           0.0,   0.5,   0.005),
    ("slope_speed_factor",    "Slope Drag",      0.0,   0.05,  0.001),
    ("base_speed_multiplier", "Launch Speed",    0.5,   4.0,   0.1),
    ("slope_kick_factor",     "Slope Kick",      0.0,   0.2,   0.005),
    ("green_speed_factor",    "Stimp Response",  0.0,   0.01,  0.0005),
    ("max_steps",             "Step Cap",        60,    3600,  60),
]

_PARAM_RANGES = {attr: (mn, mx) for attr, _label, mn, mx, _step in CONFIG_PARAMS}


def tune(config: PuttingConfig, attr: str, value: float) -> PuttingConfig:
    """New config with one tunable parameter set, clamped to its range."""
    if attr not in _PARAM_RANGES:
        raise InvalidInput(f"'{attr}' is not a tunable parameter")
    mn, mx = _PARAM_RANGES[attr]
    v = max(mn, min(mx, float(value)))
    if attr == "max_steps":
        v = int(round(v))
    return replace(config, **{attr: v})


def params_table(config: PuttingConfig) -> List[dict]:
    """CONFIG_PARAMS with the config's current values, for UIs."""
    return [{"attr": attr, "label": label, "value": round(float(getattr(config, attr)), 6),
             "min": mn, "max": mx, "step": step}
            for attr, label, mn, mx, step in CONFIG_PARAMS]


# ──────────────────────────────────────────────
# Scenario presets
# ──────────────────────────────────────────────
class PuttPreset:
    """Each scenario builds the putt + canonical green, then simulates unless run=False."""

    @staticmethod
    def _build(putt: PuttingInput, config: PuttingConfig, run: bool) -> dict:
        putt.validate()
        context = DistanceSynchronizer().context_for(putt.hole_distance_feet)
        outcome = simulate(putt, config=config, context=context) if run else None
        if outcome is not None:
            logger.debug("preset putt %.1f ft -> %s", putt.hole_distance_feet,
                         "made" if outcome.success else f"missed by {outcome.distance_to_hole_feet:.2f} ft")
        return {"putt": putt, "context": context, "config": config, "outcome": outcome}

    @staticmethod
    def scenario_a_ten_footer(run=True, config: PuttingConfig = CANONICAL) -> dict:
        """Flat 10 ft putt at full power: should drop."""
        putt = PuttingInput(power_distance_feet=10.0, hole_distance_feet=10.0,
                            power_percent=100.0)
        return PuttPreset._build(putt, config, run)

    @staticmethod
    def scenario_b_half_power(run=True, config: PuttingConfig = CANONICAL) -> dict:
        """Same green, half power: comes up short or runs past, never drops."""
        putt = PuttingInput(power_distance_feet=10.0, hole_distance_feet=10.0,
                            power_percent=50.0)
        return PuttPreset._build(putt, config, run)

    @staticmethod
    def scenario_c_right_break(run=True, config: PuttingConfig = CANONICAL,
                               slope_left_right: float = 10.0) -> dict:
        """Side slope pushes the ball toward +x."""
        putt = PuttingInput(power_distance_feet=10.0, hole_distance_feet=10.0,
                            power_percent=50.0, slope_left_right=slope_left_right)
        return PuttPreset._build(putt, config, run)

    @staticmethod
    def scenario_d_uphill(run=True, config: PuttingConfig = CANONICAL,
                          slope_up_down: float = 15.0) -> dict:
        """Steep uphill: rolls noticeably shorter than on the flat."""
        putt = PuttingInput(power_distance_feet=10.0, hole_distance_feet=10.0,
                            power_percent=100.0, slope_up_down=slope_up_down)
        return PuttPreset._build(putt, config, run)

    @staticmethod
    def scenario_tap(run=True, config: PuttingConfig = CANONICAL,
                     hole_distance_feet: float = 10.0) -> dict:
        """Zero-power stroke: the ball never leaves its start point."""
        putt = PuttingInput(power_distance_feet=10.0, hole_distance_feet=hole_distance_feet,
                            power_percent=0.0)
        return PuttPreset._build(putt, config, run)


SCENARIOS = {
    "A": (PuttPreset.scenario_a_ten_footer, "A: Flat 10 ft"),
    "B": (PuttPreset.scenario_b_half_power, "B: Half power"),
    "C": (PuttPreset.scenario_c_right_break, "C: Right break"),
    "D": (PuttPreset.scenario_d_uphill,      "D: Uphill"),
    "T": (PuttPreset.scenario_tap,           "T: Tap"),
}

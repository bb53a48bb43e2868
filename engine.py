"""
Putting Engine
In-process entry point: inputs + green parameters in, PuttingOutcome out.
No state survives between calls.
"""

import logging
from typing import Optional, Sequence

from physics import (
    DEFAULT_CONFIG, DEFAULT_SCALE_TABLE, PuttIntegrator, PuttingConfig, PuttingInput,
    ScaleBand, SimulationContext,
)
from capture import DEFAULT_TIERS, HoleCaptureEvaluator, PrecisionTier, select_tier
from outcome import PuttingOutcome, aggregate
from sync import DistanceSynchronizer

logger = logging.getLogger(__name__)


def simulate(putt: PuttingInput,
             tiers: Sequence[PrecisionTier] = DEFAULT_TIERS,
             scale_table: Sequence[ScaleBand] = DEFAULT_SCALE_TABLE,
             config: PuttingConfig = DEFAULT_CONFIG,
             context: Optional[SimulationContext] = None) -> PuttingOutcome:
    """
    Run one putt to completion.

    Args:
        putt: User inputs and green parameters.
        tiers: Precision tier table, strict to lenient.
        scale_table: Distance -> world-units-per-foot bands.
        config: Integrator coefficients.
        context: Positions and green boundary; the synchronizer's canonical
            layout when omitted.

    Raises:
        InvalidInput: any input out of range (InvalidDistance for the hole).
    """
    putt.validate()
    config.validate()
    if context is None:
        context = DistanceSynchronizer(scale_table, tiers).context_for(putt.hole_distance_feet)

    tier = select_tier(putt.hole_distance_feet, tiers)
    evaluator = HoleCaptureEvaluator(tier, context.hole_position,
                                     context.world_units_per_foot, config.fixed_timestep)

    trajectory, final_state = PuttIntegrator(config).integrate(putt, context, capture=evaluator)
    result = evaluator.evaluate(trajectory, final_state.speed)
    outcome = aggregate(trajectory, result, context, config.fixed_timestep)

    logger.debug("[%s v%d] %.1f ft putt @ %.0f%%: %s (%s, %d pts)",
                 config.name, config.version, putt.hole_distance_feet, putt.power_percent,
                 "made" if outcome.success else "missed", outcome.termination.value,
                 len(trajectory))
    return outcome

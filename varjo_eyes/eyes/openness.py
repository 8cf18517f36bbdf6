"""Splits the single SDK openness value into openness, squeeze and widen.

The three outputs are exclusive: while one of them sits strictly between 0
and 1 the others are pinned, so only one band needs any maths. Every
strategy returns either an OpennessUpdate or None, where None means the
eye's lid outputs must be left as they are this cycle.
"""

from dataclasses import dataclass

from varjo_eyes.config import ConditioningConfig, OpennessStrategy
from varjo_eyes.tracking.sample import GazeEyeStatus


@dataclass(frozen=True)
class OpennessUpdate:
    openness: float
    squeeze: float = 0.0
    widen: float = 0.0


# Openness ceiling per eye status for the Hybrid strategy
HYBRID_CEILINGS = {
    GazeEyeStatus.COMPENSATED: 0.75,
    GazeEyeStatus.VISIBLE: 0.5,
    GazeEyeStatus.INVALID: 0.25,
}


def split_openness(raw_openness: float, config: ConditioningConfig) -> OpennessUpdate:
    """Map raw openness onto the squeeze, openness and widen bands."""
    squeeze_t = config.squeeze_threshold
    widen_t = config.widen_threshold

    if squeeze_t > 0.0 and raw_openness <= squeeze_t:
        return OpennessUpdate(0.0, squeeze=1.0 - raw_openness / squeeze_t)
    if widen_t < 1.0 and raw_openness >= widen_t:
        return OpennessUpdate(1.0, widen=(raw_openness - widen_t) / (1.0 - widen_t))
    return OpennessUpdate((raw_openness - squeeze_t) / config.openness_range)


def restrict_speed(update: OpennessUpdate, current_openness: float,
                   max_open_speed: float, unreliable: bool) -> OpennessUpdate | None:
    """Drop updates that open the lid faster than max_open_speed while unreliable.

    Closing is never limited.
    """
    if unreliable and update.openness > current_openness + max_open_speed:
        return None
    return update


def cap_openness(update: OpennessUpdate, ceiling: float | None) -> OpennessUpdate:
    """Clamp openness to ceiling, discarding widen when the cap applies."""
    if ceiling is None or update.openness <= ceiling:
        return update
    return OpennessUpdate(ceiling, squeeze=update.squeeze, widen=0.0)


def _bool_openness(current, raw, status, timeout_cycles, config):
    return OpennessUpdate(1.0 if status >= GazeEyeStatus.COMPENSATED else 0.0)


def _stepped_openness(current, raw, status, timeout_cycles, config):
    return OpennessUpdate(int(status) / 3.0)


def _raw_openness(current, raw, status, timeout_cycles, config):
    return split_openness(raw, config)


def _restricted_speed_openness(current, raw, status, timeout_cycles, config):
    unreliable = status <= GazeEyeStatus.VISIBLE or timeout_cycles != 0
    return restrict_speed(split_openness(raw, config), current,
                          config.max_open_speed, unreliable)


def _hybrid_openness(current, raw, status, timeout_cycles, config):
    return cap_openness(split_openness(raw, config), HYBRID_CEILINGS.get(status))


_STRATEGIES = {
    OpennessStrategy.BOOL: _bool_openness,
    OpennessStrategy.STEPPED: _stepped_openness,
    OpennessStrategy.RAW: _raw_openness,
    OpennessStrategy.RESTRICTED_SPEED: _restricted_speed_openness,
    OpennessStrategy.HYBRID: _hybrid_openness,
}


def decompose(current_openness: float, raw_openness: float, status: GazeEyeStatus,
              timeout_cycles: int, config: ConditioningConfig) -> OpennessUpdate | None:
    """Run the configured strategy for one eye.

    Returns None when the eye's lid outputs should not change this cycle.
    """
    strategy = _STRATEGIES[config.openness_strategy]
    return strategy(current_openness, raw_openness, status, timeout_cycles, config)

from dataclasses import dataclass

from varjo_eyes.tracking.sample import GazeEyeStatus


@dataclass
class EyeConditioningState:
    """Per-eye state carried from one cycle to the next."""

    # Qualifying cycles still to wait before tracking resumes
    timeout_cycles: int = 0

    # Verdict of the current cycle
    is_tracking: bool = False

    # Gaze at the last cycle where both eyes were tracked
    reference_gaze: tuple = (0.0, 0.0)

    last_gaze: tuple = (0.0, 0.0)
    last_openness: float = 0.0


def minimum_status(picky_tracking: bool) -> GazeEyeStatus:
    """Lowest eye status that counts as tracked."""
    return GazeEyeStatus.TRACKED if picky_tracking else GazeEyeStatus.COMPENSATED


def update_tracking(state: EyeConditioningState, status: GazeEyeStatus,
                    min_status: GazeEyeStatus, stabilizing_cycles: int) -> bool:
    """Advance the debounce window of one eye and store this cycle's verdict.

    A drop below min_status is seen immediately and re-arms the window with
    stabilizing_cycles. Qualifying cycles then drain it; tracking resumes on
    the cycle that drains the last count, so a window of N holds the eye for
    the drop cycle plus N - 1 qualifying cycles.
    """
    if status >= min_status:
        if state.timeout_cycles > 0:
            state.timeout_cycles -= 1
        state.is_tracking = state.timeout_cycles == 0
    else:
        state.timeout_cycles = stabilizing_cycles
        state.is_tracking = False
    return state.is_tracking

import logging
from enum import Enum, auto

from varjo_eyes.config import ConditioningConfig
from varjo_eyes.eyes.expressions import ExpressionSet
from varjo_eyes.eyes.openness import decompose
from varjo_eyes.tracking.hysteresis import (
    EyeConditioningState,
    minimum_status,
    update_tracking,
)
from varjo_eyes.tracking.sample import EyeSample, Sample
from varjo_eyes.utils.math_helpers import vec_add, vec_sub

log = logging.getLogger("varjo-eyes")


class GazeMode(Enum):
    BOTH = auto()
    LEFT_ONLY = auto()
    RIGHT_ONLY = auto()
    NONE = auto()


class FrameConditioner:
    """Turns one Sample per cycle into an ExpressionSet.

    Owns the per-eye conditioning state and the output set. Callers only
    ever receive copies of the output, and a config handed to configure()
    takes effect at the start of the next cycle.
    """

    def __init__(self, config: ConditioningConfig = None):
        self._cfg = config or ConditioningConfig()
        self._pending_cfg = None

        self._left = EyeConditioningState()
        self._right = EyeConditioningState()

        self._output = ExpressionSet()
        self._mode = GazeMode.NONE
        self._cycles = 0

    @property
    def config(self) -> ConditioningConfig:
        return self._cfg

    @property
    def gaze_mode(self) -> GazeMode:
        return self._mode

    @property
    def cycles(self) -> int:
        return self._cycles

    def eye_state(self, is_left: bool) -> EyeConditioningState:
        return self._left if is_left else self._right

    @property
    def output(self) -> ExpressionSet:
        """Snapshot of the current output set."""
        return self._output.copy()

    def configure(self, config: ConditioningConfig):
        """Queue a new config; it replaces the active one before the next cycle."""
        self._pending_cfg = config

    def update(self, sample: Sample | None) -> ExpressionSet:
        """Run one conditioning cycle and return a snapshot of the output.

        A missing sample means acquisition failed: nothing changes.
        """
        if self._pending_cfg is not None:
            self._cfg = self._pending_cfg
            self._pending_cfg = None
            log.info(f"Conditioner now using {self._cfg.openness_strategy.value} openness")

        if sample is None:
            return self.output

        cfg = self._cfg
        min_status = minimum_status(cfg.picky_tracking)

        for state, eye, name in ((self._left, sample.left, "left"),
                                 (self._right, sample.right, "right")):
            was_tracking = state.is_tracking
            if update_tracking(state, eye.status, min_status,
                               cfg.stabilizing_cycles) != was_tracking:
                log.debug(f"{name} eye tracking {'regained' if state.is_tracking else 'lost'}"
                          f" (status {eye.status.name})")

        self._resolve_gaze(sample)

        self._update_lids(True, self._left, sample.left)
        self._update_lids(False, self._right, sample.right)

        self._cycles += 1
        return self.output

    def _resolve_gaze(self, sample: Sample):
        left, right = self._left, self._right

        if left.is_tracking and right.is_tracking:
            self._mode = GazeMode.BOTH
            self._write_gaze(True, sample.left.gaze, sample.left.pupil_diameter)
            self._write_gaze(False, sample.right.gaze, sample.right.pupil_diameter)
            left.reference_gaze = sample.left.gaze
            right.reference_gaze = sample.right.gaze
        elif left.is_tracking:
            self._mode = GazeMode.LEFT_ONLY
            self._follow(sample.left, left, right, tracked_is_left=True)
        elif right.is_tracking:
            self._mode = GazeMode.RIGHT_ONLY
            self._follow(sample.right, right, left, tracked_is_left=False)
        else:
            self._mode = GazeMode.NONE

    def _follow(self, tracked_eye: EyeSample, tracked: EyeConditioningState,
                untracked: EyeConditioningState, tracked_is_left: bool):
        """Write the tracked eye directly and, if enabled, drag the other one along."""
        self._write_gaze(tracked_is_left, tracked_eye.gaze, tracked_eye.pupil_diameter)

        if not self._cfg.untracked_eye_follow_tracked:
            return

        # Apply the tracked eye's movement since the last dual-tracked cycle
        delta = vec_sub(tracked_eye.gaze, tracked.reference_gaze)
        self._write_gaze(not tracked_is_left, vec_add(delta, untracked.reference_gaze),
                         tracked_eye.pupil_diameter)

    def _write_gaze(self, is_left: bool, gaze: tuple, pupil_diameter: float):
        out = self._output.eye(is_left)
        out.gaze = gaze
        out.pupil_diameter = pupil_diameter
        self.eye_state(is_left).last_gaze = gaze

    def _update_lids(self, is_left: bool, state: EyeConditioningState, eye: EyeSample):
        update = decompose(state.last_openness, eye.openness, eye.status,
                           state.timeout_cycles, self._cfg)
        if update is None:
            return

        self._output.eye(is_left).openness = update.openness
        self._output.set_lid_weights(is_left, update.widen, update.squeeze)
        state.last_openness = update.openness

from dataclasses import dataclass, field, replace

from varjo_eyes.eyes.eye_state import EyeState

# Shapes driven by the widen weight and by the squeeze weight. The brow
# shapes duplicate the eye shapes, both sides mapped the same way.
WIDEN_SHAPES = ("EyeWide", "BrowInnerUp", "BrowOuterUp")
SQUEEZE_SHAPES = ("EyeSquint", "BrowPinch", "BrowLowerer")


def shape_name(shape: str, is_left: bool) -> str:
    return f"{shape}{'Left' if is_left else 'Right'}"


def _all_shapes() -> dict:
    return {
        shape_name(shape, is_left): 0.0
        for is_left in (True, False)
        for shape in WIDEN_SHAPES + SQUEEZE_SHAPES
    }


@dataclass
class ExpressionSet:
    """Everything sent to the avatar for one cycle."""

    left: EyeState = field(default_factory=EyeState)
    right: EyeState = field(default_factory=EyeState)
    shapes: dict = field(default_factory=_all_shapes)

    def eye(self, is_left: bool) -> EyeState:
        return self.left if is_left else self.right

    def set_lid_weights(self, is_left: bool, widen: float, squeeze: float):
        """Write the six mirrored shape weights of one eye."""
        for shape in WIDEN_SHAPES:
            self.shapes[shape_name(shape, is_left)] = widen
        for shape in SQUEEZE_SHAPES:
            self.shapes[shape_name(shape, is_left)] = squeeze

    def copy(self) -> "ExpressionSet":
        """Independent copy that shares no mutable state with this set."""
        return ExpressionSet(left=replace(self.left), right=replace(self.right),
                             shapes=dict(self.shapes))

    def to_dict(self) -> dict:
        def eye(state: EyeState) -> dict:
            return {
                "gaze": list(state.gaze),
                "openness": state.openness,
                "pupil_diameter": state.pupil_diameter,
            }

        return {"left": eye(self.left), "right": eye(self.right),
                "shapes": dict(self.shapes)}

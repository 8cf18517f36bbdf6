from dataclasses import dataclass


@dataclass
class EyeState:
    """Application-facing output for one eye."""

    # Gaze direction, x/y of the forward ray
    gaze: tuple = (0.0, 0.0)

    # Lid openness: 0.0 = closed, 1.0 = fully open
    openness: float = 0.0

    pupil_diameter: float = 0.0

from dataclasses import dataclass
from enum import IntEnum


class GazeEyeStatus(IntEnum):
    """Per-eye tracking confidence reported by the headset, lowest first."""

    INVALID = 0
    VISIBLE = 1
    COMPENSATED = 2
    TRACKED = 3

    @classmethod
    def parse(cls, value) -> "GazeEyeStatus":
        """Accept a member, its integer value or its (case-insensitive) name."""
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"unknown eye status: {value!r}") from None
        return cls(int(value))


@dataclass(frozen=True)
class EyeSample:
    """One eye of a single hardware read."""

    # Forward direction of the gaze ray projected to x/y
    gaze: tuple = (0.0, 0.0)

    # Raw lid openness from the SDK, 0.0 = closed, 1.0 = wide open
    openness: float = 0.0

    pupil_diameter: float = 0.0
    status: GazeEyeStatus = GazeEyeStatus.INVALID


@dataclass(frozen=True)
class Sample:
    """Both eyes of a single hardware read. Consumed once by the conditioner."""

    left: EyeSample
    right: EyeSample
    frame_number: int = 0
    capture_time: int = 0

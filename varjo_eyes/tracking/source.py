"""Sample sources feeding the conditioning loop.

The headset SDK binding lives outside this package; anything that can hand
over one complete Sample per cycle (or None when a read failed) can drive
the runner.
"""

import json
import logging
import math
from pathlib import Path

from varjo_eyes.tracking.sample import EyeSample, GazeEyeStatus, Sample
from varjo_eyes.utils.math_helpers import clamp

log = logging.getLogger("varjo-eyes")


class SampleSource:
    """Base class for per-cycle sample providers."""

    exhausted = False

    def start(self):
        pass

    def read(self) -> Sample | None:
        """Return this cycle's sample, or None if no data could be read."""
        raise NotImplementedError

    def stop(self):
        pass


def _finite(value, key: str) -> float:
    parsed = float(value)
    if not math.isfinite(parsed):
        raise ValueError(f"{key} must be a finite number, got {value!r}")
    return parsed


def _parse_eye(data: dict) -> EyeSample:
    gaze = data.get("gaze", (0.0, 0.0))
    if len(gaze) < 2:
        raise ValueError(f"gaze needs two components, got {gaze!r}")
    return EyeSample(
        gaze=(_finite(gaze[0], "gaze"), _finite(gaze[1], "gaze")),
        openness=clamp(_finite(data.get("openness", 0.0), "openness"), 0.0, 1.0),
        pupil_diameter=_finite(data.get("pupil_diameter", 0.0), "pupil_diameter"),
        status=GazeEyeStatus.parse(data.get("status", GazeEyeStatus.INVALID)),
    )


def parse_sample(line: str) -> Sample:
    """Parse one recording line. Raises ValueError on malformed input."""
    data = json.loads(line)
    if not isinstance(data, dict) or "left" not in data or "right" not in data:
        raise ValueError("sample needs both a left and a right eye")
    return Sample(
        left=_parse_eye(data["left"]),
        right=_parse_eye(data["right"]),
        frame_number=int(data.get("frame", 0)),
        capture_time=int(data.get("capture_time", 0)),
    )


def format_sample(sample: Sample) -> str:
    """Inverse of parse_sample, used when writing recordings."""
    def eye(e: EyeSample) -> dict:
        return {
            "gaze": list(e.gaze),
            "openness": e.openness,
            "pupil_diameter": e.pupil_diameter,
            "status": e.status.name.lower(),
        }

    return json.dumps({
        "frame": sample.frame_number,
        "capture_time": sample.capture_time,
        "left": eye(sample.left),
        "right": eye(sample.right),
    })


class ReplaySource(SampleSource):
    """Plays back a JSON-lines recording, one sample per read()."""

    def __init__(self, path: str, loop: bool = False):
        self._path = Path(path)
        self._loop = loop
        self._file = None
        self.exhausted = False

    def start(self):
        self._file = open(self._path)
        self.exhausted = False
        log.info(f"Replaying samples from {self._path}")

    def read(self) -> Sample | None:
        if self._file is None or self.exhausted:
            return None

        line = self._next_line()
        if line is None:
            return None

        try:
            return parse_sample(line)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            log.warning(f"Skipping unreadable sample: {e}")
            return None

    def _next_line(self) -> str | None:
        """Next non-blank line, rewinding once at the end when looping."""
        rewound = False
        while True:
            line = self._file.readline()
            if not line:
                if not self._loop or rewound:
                    self.exhausted = True
                    log.info("Reached end of recording")
                    return None
                self._file.seek(0)
                rewound = True
                continue
            line = line.strip()
            if line:
                return line

    def stop(self):
        if self._file is not None:
            self._file.close()
            self._file = None

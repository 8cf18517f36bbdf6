#!/usr/bin/env python3
"""Writes a synthetic sample recording for testing on a desktop (no headset needed)."""

import argparse
import math
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from varjo_eyes.tracking.sample import EyeSample, GazeEyeStatus, Sample
from varjo_eyes.tracking.source import format_sample


def _openness(t: float) -> float:
    """Mostly open lids with a blink every 3 s and a wide-eyed moment at 7 s."""
    phase = t % 3.0
    if phase < 0.15:
        return abs(phase - 0.075) / 0.075 * 0.7
    if 7.0 <= t < 7.5:
        return 0.97
    return 0.7


def make_sample(frame: int, rate: int) -> Sample:
    t = frame / rate
    gaze = (0.3 * math.sin(t * 0.8), 0.1 * math.cos(t * 0.5))
    openness = _openness(t)

    left_status = right_status = GazeEyeStatus.TRACKED
    # Both eyes degrade during a blink, like the SDK reports
    if openness < 0.2:
        left_status = right_status = GazeEyeStatus.VISIBLE
    # Left eye dropout between 4 s and 5 s
    if 4.0 <= t < 5.0:
        left_status = GazeEyeStatus.INVALID
    # Flaky tracking between 9 s and 10 s
    if 9.0 <= t < 10.0 and frame % 7 == 0:
        right_status = GazeEyeStatus.COMPENSATED if frame % 2 else GazeEyeStatus.VISIBLE

    return Sample(
        left=EyeSample(gaze=(gaze[0] + 0.02, gaze[1]), openness=openness,
                       pupil_diameter=3.2, status=left_status),
        right=EyeSample(gaze=(gaze[0] - 0.02, gaze[1]), openness=openness,
                        pupil_diameter=3.3, status=right_status),
        frame_number=frame,
        capture_time=int(t * 1e9),
    )


def main():
    parser = argparse.ArgumentParser(description="Write a synthetic sample recording")
    parser.add_argument("output", help="Output JSON-lines file")
    parser.add_argument("--seconds", type=float, default=12.0)
    parser.add_argument("--rate", type=int, default=100, help="Samples per second")
    args = parser.parse_args()

    frames = int(args.seconds * args.rate)
    with open(args.output, "w") as f:
        for frame in range(frames):
            f.write(format_sample(make_sample(frame, args.rate)) + "\n")

    print(f"Saved {frames} samples to {args.output}")


if __name__ == "__main__":
    main()

import json
import logging

import pytest

from varjo_eyes.tracking.sample import EyeSample, GazeEyeStatus, Sample
from varjo_eyes.tracking.source import ReplaySource, format_sample, parse_sample

LINE = json.dumps({
    "frame": 7,
    "left": {"gaze": [0.1, -0.2], "openness": 1.4, "pupil_diameter": 3.1, "status": "tracked"},
    "right": {"gaze": [0.0, 0.0], "openness": 0.5, "pupil_diameter": 3.3, "status": 1},
})


def test_parse_sample():
    sample = parse_sample(LINE)
    assert sample.frame_number == 7
    assert sample.left.gaze == (0.1, -0.2)
    assert sample.left.openness == 1.0
    assert sample.left.status is GazeEyeStatus.TRACKED
    assert sample.right.status is GazeEyeStatus.VISIBLE


@pytest.mark.parametrize("line", [
    "not json",
    json.dumps({"left": {}}),
    json.dumps({"left": {"status": "blinking"}, "right": {}}),
    json.dumps({"left": {"gaze": [1.0]}, "right": {}}),
])
def test_parse_sample_rejects_malformed_lines(line):
    with pytest.raises(ValueError):
        parse_sample(line)


def test_format_sample_is_readable_by_parse_sample():
    sample = Sample(
        left=EyeSample(gaze=(0.2, 0.1), openness=0.6, pupil_diameter=3.0,
                       status=GazeEyeStatus.COMPENSATED),
        right=EyeSample(status=GazeEyeStatus.INVALID),
        frame_number=3,
    )
    assert parse_sample(format_sample(sample)) == sample


def test_replay_reads_until_exhausted(tmp_path, caplog):
    path = tmp_path / "rec.jsonl"
    path.write_text(LINE + "\n" + "garbage\n" + LINE + "\n")
    source = ReplaySource(str(path))
    source.start()

    assert source.read().frame_number == 7
    with caplog.at_level(logging.WARNING, logger="varjo-eyes"):
        assert source.read() is None
    assert "unreadable" in caplog.text
    assert source.exhausted is False
    assert source.read() is not None
    assert source.read() is None
    assert source.exhausted is True
    source.stop()


def test_replay_loops(tmp_path):
    path = tmp_path / "rec.jsonl"
    path.write_text(LINE + "\n")
    source = ReplaySource(str(path), loop=True)
    source.start()
    for _ in range(3):
        assert source.read() is not None
    assert source.exhausted is False
    source.stop()


@pytest.mark.parametrize("field,value", [
    ("openness", "NaN"),
    ("pupil_diameter", "Infinity"),
])
def test_parse_sample_rejects_non_finite_numbers(field, value):
    data = json.loads(LINE)
    data["left"][field] = float(value)
    with pytest.raises(ValueError):
        parse_sample(json.dumps(data))


def test_replay_skips_blank_lines(tmp_path):
    path = tmp_path / "rec.jsonl"
    path.write_text(LINE + "\n\n   \n" + LINE + "\n\n")
    source = ReplaySource(str(path))
    source.start()

    assert source.read() is not None
    assert source.read() is not None
    assert source.read() is None
    assert source.exhausted is True
    source.stop()


def test_looping_blank_recording_ends(tmp_path):
    path = tmp_path / "rec.jsonl"
    path.write_text("\n\n")
    source = ReplaySource(str(path), loop=True)
    source.start()
    assert source.read() is None
    assert source.exhausted is True
    source.stop()

import json
import logging
import os

import pytest

from varjo_eyes.config import OpennessStrategy
from varjo_eyes.debug.web_server import DebugState
import varjo_eyes.main as main_module
from varjo_eyes.main import JsonLinesSink, VarjoEyes, main
from varjo_eyes.tracking.sample import EyeSample, GazeEyeStatus, Sample
from varjo_eyes.tracking.source import SampleSource, format_sample


class ScriptedSource(SampleSource):
    def __init__(self, samples, on_read=None):
        self._samples = list(samples)
        self._on_read = on_read
        self.reads = 0

    def read(self):
        if not self._samples:
            self.exhausted = True
            return None
        self.reads += 1
        if self._on_read:
            self._on_read(self.reads)
        return self._samples.pop(0)


def tracked(openness):
    eye = EyeSample(gaze=(0.1, 0.0), openness=openness, pupil_diameter=3.0,
                    status=GazeEyeStatus.TRACKED)
    return Sample(left=eye, right=eye)


def test_loop_feeds_every_sample_to_sinks(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("eye_lids:\n  strategy: RawFloat\n")
    seen = []

    eyes = VarjoEyes(ScriptedSource([tracked(0.05), tracked(0.5), tracked(0.95)]),
                     config_path=str(config), sinks=[seen.append])
    eyes.start()

    assert eyes.conditioner.config.openness_strategy is OpennessStrategy.RAW
    assert [s.left.openness for s in seen] == pytest.approx([0.0, 0.35 / 0.75, 1.0])
    assert eyes.conditioner.cycles == 3


def test_main_replays_recording(tmp_path):
    recording = tmp_path / "rec.jsonl"
    recording.write_text("\n".join(format_sample(tracked(0.95)) for _ in range(2)) + "\n")
    dump = tmp_path / "out.jsonl"

    assert main(["--config", str(tmp_path / "missing.yaml"),
                 "--replay", str(recording), "--dump", str(dump)]) == 0

    lines = [json.loads(line) for line in dump.read_text().splitlines()]
    assert len(lines) == 2
    assert lines[-1]["left"]["openness"] == 1.0
    assert lines[-1]["shapes"]["EyeWideRight"] > 0


def test_main_writes_config(tmp_path):
    path = tmp_path / "config.yaml"
    assert main(["--config", str(path), "--write-config"]) == 0
    assert "strategy: RestrictedSpeed" in path.read_text()


def test_debug_state_snapshots(tmp_path):
    eyes = VarjoEyes(ScriptedSource([]), config_path=str(tmp_path / "none.yaml"))
    expressions = eyes.conditioner.update(tracked(0.5))

    state = DebugState()
    state.update_cycle(expressions, eyes.conditioner)
    state.update_stats(100.0, 2)
    expressions.left.openness = 0.0

    assert state.expressions_json()["left"]["openness"] > 0
    assert state.state_json()["gaze_mode"] == "BOTH"
    assert state.state_json()["eyes"]["left"]["is_tracking"] is True
    assert state.state_json()["failed_reads"] == 2
    assert state.config_json()["openness_strategy"] == "RestrictedSpeed"
    json.dumps(state.state_json())
    json.dumps(state.config_json())


def test_json_lines_sink(tmp_path):
    eyes = VarjoEyes(ScriptedSource([]), config_path=str(tmp_path / "none.yaml"))
    sink = JsonLinesSink(str(tmp_path / "out.jsonl"))
    sink(eyes.conditioner.update(tracked(0.5)))
    sink.close()
    assert json.loads((tmp_path / "out.jsonl").read_text())["right"]["pupil_diameter"] == 3.0


def rewrite_config(path, text):
    path.write_text(text)
    st = os.stat(path)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 2_000_000_000))


def test_config_change_applies_on_next_cycle(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module, "CONFIG_POLL_INTERVAL", 0.0)
    config = tmp_path / "config.yaml"
    config.write_text("eye_lids:\n  strategy: RawFloat\n")

    def on_read(n):
        if n == 3:
            rewrite_config(config, "eye_lids:\n  strategy: Bool\n")

    seen = []
    eyes = VarjoEyes(ScriptedSource([tracked(0.5)] * 6, on_read),
                     config_path=str(config), sinks=[seen.append])
    eyes.start()

    raw = pytest.approx(0.35 / 0.75)
    assert [s.left.openness for s in seen] == [raw, raw, raw, 1.0, 1.0, 1.0]
    assert eyes.conditioner.config.openness_strategy is OpennessStrategy.BOOL


def test_broken_reload_keeps_loop_running(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module, "CONFIG_POLL_INTERVAL", 0.0)
    config = tmp_path / "config.yaml"
    config.write_text("eye_lids:\n  strategy: Hybrid\n")

    def on_read(n):
        if n == 3:
            rewrite_config(config, "eye_lids:\n  strategy: Hybrid\ngaze: oops\n")
        if n == 6:
            rewrite_config(config, "eye_lids:\n  max_open_speed: .nan\n")

    eyes = VarjoEyes(ScriptedSource([tracked(0.5)] * 20, on_read), config_path=str(config))
    eyes.start()

    assert eyes.failed is False
    assert eyes.conditioner.cycles == 20
    assert eyes.conditioner.config.max_open_speed == 0.1


def test_reload_applies_log_level(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module, "CONFIG_POLL_INTERVAL", 0.0)
    config = tmp_path / "config.yaml"
    config.write_text("logging:\n  level: INFO\n")
    log = logging.getLogger("varjo-eyes")
    previous = log.level

    def on_read(n):
        if n == 1:
            rewrite_config(config, "logging:\n  level: ERROR\n")

    try:
        eyes = VarjoEyes(ScriptedSource([tracked(0.5)] * 3, on_read), config_path=str(config))
        eyes.start()
        assert log.level == logging.ERROR
    finally:
        log.setLevel(previous)


def test_main_reports_missing_recording(tmp_path, caplog):
    with caplog.at_level(logging.ERROR, logger="varjo-eyes"):
        code = main(["--config", str(tmp_path / "missing.yaml"),
                     "--replay", str(tmp_path / "nope.jsonl")])
    assert code == 1
    assert "nope.jsonl" in caplog.text

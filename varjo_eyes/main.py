#!/usr/bin/env python3
"""Varjo Eyes - Main entry point and conditioning loop."""

import argparse
import json
import logging
import os
import signal
import sys
import time

from varjo_eyes.config import ConfigProvider, write_default_config
from varjo_eyes.eyes.conditioner import FrameConditioner
from varjo_eyes.tracking.source import ReplaySource, SampleSource

log = logging.getLogger("varjo-eyes")

# Back-off after a failed read before polling the source again
FAILURE_BACKOFF = 0.25

# How often the config file is checked for changes
CONFIG_POLL_INTERVAL = 1.0


class JsonLinesSink:
    """Appends every cycle's output set to a JSON-lines file."""

    def __init__(self, path: str):
        self._file = open(path, "w")

    def __call__(self, expressions):
        self._file.write(json.dumps(expressions.to_dict()) + "\n")

    def close(self):
        self._file.close()


class VarjoEyes:
    def __init__(self, source: SampleSource, config_path: str = "config.yaml",
                 debug: bool = False, sinks=None):
        self._provider = ConfigProvider(config_path)
        self.config = self._provider.config
        self._source = source
        self._debug = debug
        self._sinks = list(sinks or [])
        self._running = False
        self.failed = False

        self.conditioner = FrameConditioner(self.config.conditioning)

        # Debug state (only used if --debug)
        self._debug_state = None
        self._failed_reads = 0

    def start(self):
        self._running = True

        # Set up logging
        logging.basicConfig(
            level=getattr(logging, self.config.log_level),
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

        if self._debug:
            from varjo_eyes.debug.web_server import DebugState, start_debug_server
            self._debug_state = DebugState()
            start_debug_server(self._debug_state, self.config.debug.web_port)
            log.info(f"Debug server at http://0.0.0.0:{self.config.debug.web_port}")

        cycle_count = 0
        rate_timer = time.monotonic()
        config_timer = time.monotonic()

        try:
            self._source.start()
            log.info(f"Entering conditioning loop at {1.0 / self.config.module.read_delay:.0f} Hz")

            while self._running:
                now = time.monotonic()

                if now - config_timer >= CONFIG_POLL_INTERVAL:
                    config_timer = now
                    self._poll_config()

                sample = self._source.read()
                if sample is None:
                    if self._source.exhausted:
                        break
                    self._failed_reads += 1
                    log.warning("There seems to be an issue with getting tracking data. "
                                f"Will try again in {FAILURE_BACKOFF * 1000:.0f}ms.")
                    time.sleep(FAILURE_BACKOFF)
                    continue

                expressions = self.conditioner.update(sample)
                for sink in self._sinks:
                    sink(expressions)
                if self._debug_state:
                    self._debug_state.update_cycle(expressions, self.conditioner)

                cycle_count += 1
                if now - rate_timer >= 1.0:
                    rate = cycle_count / (now - rate_timer)
                    cycle_count = 0
                    rate_timer = now
                    if self._debug_state:
                        self._debug_state.update_stats(rate, self._failed_reads)

                # Fixed-interval polling
                elapsed = time.monotonic() - now
                sleep_time = self.config.module.read_delay - elapsed
                if sleep_time > 0:
                    time.sleep(sleep_time)

        except KeyboardInterrupt:
            log.info("Interrupted")
        except OSError as e:
            self.failed = True
            log.error(f"I/O error in conditioning loop: {e}")
        except Exception as e:
            self.failed = True
            log.error(f"Conditioning loop error: {e}", exc_info=True)
        finally:
            self._running = False
            self._source.stop()
            log.info(f"Stopped after {self.conditioner.cycles} cycles")

    def _poll_config(self):
        if self._provider.poll():
            self.config = self._provider.config
            self.conditioner.configure(self.config.conditioning)
            log.setLevel(getattr(logging, self.config.log_level))

    def stop(self):
        self._running = False


def main(argv=None):
    parser = argparse.ArgumentParser(description="Varjo eye tracking conditioner")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    parser.add_argument("--replay", help="JSON-lines sample recording to play back")
    parser.add_argument("--loop", action="store_true", help="Restart the recording at its end")
    parser.add_argument("--dump", help="Write every output set to this JSON-lines file")
    parser.add_argument("--debug", action="store_true", help="Enable debug web server")
    parser.add_argument("--write-config", action="store_true",
                        help="Write a default config file if none exists and exit")
    args = parser.parse_args(argv)

    if args.write_config:
        if os.path.exists(args.config):
            print(f"{args.config} already exists, leaving it untouched")
            return 0
        if not write_default_config(args.config):
            return 1
        print(f"Wrote {args.config}")
        return 0

    if not args.replay:
        parser.error("no sample source given, use --replay")

    sinks = []
    dump = JsonLinesSink(args.dump) if args.dump else None
    if dump:
        sinks.append(dump)

    eyes = VarjoEyes(ReplaySource(args.replay, loop=args.loop),
                     config_path=args.config, debug=args.debug, sinks=sinks)

    # Handle SIGTERM gracefully
    signal.signal(signal.SIGTERM, lambda *_: eyes.stop())

    try:
        eyes.start()
    finally:
        if dump:
            dump.close()
    return 1 if eyes.failed else 0


if __name__ == "__main__":
    sys.exit(main())

import logging
import math
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

log = logging.getLogger("varjo-eyes")


class ConfigError(ValueError):
    """Raised when a configuration value breaks one of its invariants."""


class OpennessStrategy(Enum):
    BOOL = "Bool"
    STEPPED = "Stepped"
    RAW = "RawFloat"
    RESTRICTED_SPEED = "RestrictedSpeed"
    HYBRID = "Hybrid"

    @classmethod
    def parse(cls, name: str) -> "OpennessStrategy":
        """Look up a strategy by its config name, ignoring case. "Raw" is an alias of "RawFloat"."""
        key = str(name).strip().lower()
        if key == "raw":
            return cls.RAW
        for strategy in cls:
            if strategy.value.lower() == key:
                return strategy
        raise ConfigError(f"{name} is not a valid eye lid strategy")


@dataclass(frozen=True)
class ConditioningConfig:
    """Tunables consumed by the frame conditioner. Validated on construction."""

    squeeze_threshold: float = 0.15
    widen_threshold: float = 0.90
    max_open_speed: float = 0.1
    stabilizing_cycles: int = 0
    openness_strategy: OpennessStrategy = OpennessStrategy.RESTRICTED_SPEED
    picky_tracking: bool = False
    untracked_eye_follow_tracked: bool = False

    # Derived from the thresholds, never set directly
    openness_range: float = field(init=False, repr=False)

    def __post_init__(self):
        if not 0.0 <= self.squeeze_threshold < 1.0:
            raise ConfigError("squeeze_threshold must be within [0, 1)")
        if not 0.0 < self.widen_threshold <= 1.0:
            raise ConfigError("widen_threshold must be within (0, 1]")
        if self.squeeze_threshold >= self.widen_threshold:
            raise ConfigError("squeeze_threshold must be below widen_threshold")
        if not 0.0 <= self.max_open_speed <= 1.0:
            raise ConfigError("max_open_speed must be within [0, 1]")
        if self.stabilizing_cycles < 0:
            raise ConfigError("stabilizing_cycles may not be negative")
        if not isinstance(self.openness_strategy, OpennessStrategy):
            raise ConfigError(f"unknown openness strategy: {self.openness_strategy!r}")
        object.__setattr__(self, "openness_range",
                           self.widen_threshold - self.squeeze_threshold)


@dataclass
class ModuleConfig:
    double_time: bool = False

    @property
    def read_delay(self) -> float:
        """Seconds between two polls of the sample source (100 Hz, or 200 Hz in double time)."""
        return 0.005 if self.double_time else 0.010


@dataclass
class DebugConfig:
    web_port: int = 8080


@dataclass
class AppConfig:
    module: ModuleConfig = field(default_factory=ModuleConfig)
    conditioning: ConditioningConfig = field(default_factory=ConditioningConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)
    log_level: str = "INFO"


def _as_bool(value, key: str, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    log.warning(f"{value!r} is not a valid boolean for {key}, using {default}")
    return default


def _as_unit_float(value, key: str, default: float) -> float:
    """Parse a float in [0, 1], warning and returning the default otherwise."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        log.warning(f"{value!r} is not a valid float for {key}")
        return default
    if math.isnan(parsed):
        log.warning(f"{key} may not be NaN")
        return default
    if parsed < 0.0 or parsed > 1.0:
        log.warning(f"{key} may not be <0 or >1")
        return default
    return parsed


_EYE_LID_KEYS = ("strategy", "squeeze_threshold", "widen_threshold", "max_open_speed")
_GAZE_KEYS = ("stabilizing_cycles", "picky_tracking", "untracked_eye_follow_tracked")


def _section(data: dict, name: str) -> dict:
    """Return a top-level section, or an empty one if it is missing or not a mapping."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        log.warning(f"Section {name} must be a mapping, using defaults for it")
        return {}
    return section


def _parse_conditioning(eye_lids: dict, gaze: dict) -> ConditioningConfig:
    defaults = ConditioningConfig()
    kwargs = {}

    for key in eye_lids:
        if key not in _EYE_LID_KEYS:
            log.warning(f"Unknown key eye_lids.{key} found with value {eye_lids[key]!r}")
    for key in gaze:
        if key not in _GAZE_KEYS:
            log.warning(f"Unknown key gaze.{key} found with value {gaze[key]!r}")

    if "strategy" in eye_lids:
        try:
            kwargs["openness_strategy"] = OpennessStrategy.parse(eye_lids["strategy"])
        except ConfigError as e:
            log.warning(f"{e}, keeping {defaults.openness_strategy.value}")

    squeeze = _as_unit_float(eye_lids.get("squeeze_threshold", defaults.squeeze_threshold),
                             "squeeze_threshold", defaults.squeeze_threshold)
    widen = _as_unit_float(eye_lids.get("widen_threshold", defaults.widen_threshold),
                           "widen_threshold", defaults.widen_threshold)
    if squeeze < widen:
        kwargs["squeeze_threshold"] = squeeze
        kwargs["widen_threshold"] = widen
    else:
        log.warning("squeeze_threshold must be below widen_threshold, keeping default thresholds")

    if "max_open_speed" in eye_lids:
        kwargs["max_open_speed"] = _as_unit_float(
            eye_lids["max_open_speed"], "max_open_speed", defaults.max_open_speed)

    if "stabilizing_cycles" in gaze:
        value = gaze["stabilizing_cycles"]
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            kwargs["stabilizing_cycles"] = value
        else:
            log.warning(f"{value!r} not a valid value for stabilizing_cycles")

    for key in ("picky_tracking", "untracked_eye_follow_tracked"):
        if key in gaze:
            kwargs[key] = _as_bool(gaze[key], key, getattr(defaults, key))

    try:
        return ConditioningConfig(**kwargs)
    except ConfigError as e:
        log.warning(f"Rejected eye_lids/gaze settings, using defaults: {e}")
        return defaults


def parse_config(data: dict) -> AppConfig:
    """Build an AppConfig from already-parsed YAML, falling back to defaults per key."""
    config = AppConfig()

    if "module" in data:
        m = _section(data, "module")
        config.module = ModuleConfig(
            double_time=_as_bool(m.get("double_time", config.module.double_time),
                                 "double_time", config.module.double_time),
        )

    config.conditioning = _parse_conditioning(_section(data, "eye_lids"),
                                              _section(data, "gaze"))

    if "debug" in data:
        port = _section(data, "debug").get("web_port", config.debug.web_port)
        if isinstance(port, int) and not isinstance(port, bool) and 0 < port < 65536:
            config.debug = DebugConfig(web_port=port)
        else:
            log.warning(f"{port!r} not a valid value for web_port")

    if "logging" in data:
        level = str(_section(data, "logging").get("level", config.log_level)).upper()
        if level in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            config.log_level = level
        else:
            log.warning(f"{level} is not a valid log level")

    return config


def load_config(path: str = "config.yaml") -> AppConfig:
    """Load config from YAML file, falling back to defaults for missing keys."""
    config_path = Path(path)

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        log.warning(f"Error while parsing config file, continuing with defaults: {e}")
        return AppConfig()

    if not isinstance(data, dict):
        log.warning("Config file is not a mapping, continuing with defaults")
        return AppConfig()

    try:
        return parse_config(data)
    except (ConfigError, TypeError, ValueError) as e:
        log.warning(f"Invalid config file, continuing with defaults: {e}")
        return AppConfig()


_DEFAULT_CONFIG_TEXT = """\
# varjo-eyes configuration

module:
  # Poll the headset at 200 Hz instead of 100 Hz.
  # Only increases CPU time on runtimes that deliver gaze at 100 Hz.
  double_time: {double_time}

eye_lids:
  # How openness is calculated: Bool, Stepped, RawFloat, RestrictedSpeed or Hybrid
  #   Bool            lids are fully open or fully closed based on the eye status
  #   Stepped         openness follows the eye status (open, 1/3, 2/3 closed, closed)
  #   RawFloat        SDK openness split with the thresholds below, no filtering
  #   RestrictedSpeed like RawFloat, but opening speed is capped by max_open_speed
  #                   while the eye status is unreliable
  #   Hybrid          eye status caps openness (3/4, 1/2, 1/4), refined downwards by the SDK value
  strategy: {strategy}

  # Only used by float based strategies. squeeze_threshold must stay below widen_threshold.
  # Set squeeze to 0 or widen to 1 to disable that extra range.
  squeeze_threshold: {squeeze}
  widen_threshold: {widen}

  # Only used by RestrictedSpeed. 0 keeps lids from opening while tracking is unreliable.
  max_open_speed: {speed}

gaze:
  # Consecutive good cycles needed before gaze tracking resumes after a drop.
  # One cycle is 10 ms, or 5 ms with double_time. High values can freeze the gaze.
  stabilizing_cycles: {cycles}

  # Require the "tracked" status instead of "compensated" to accept an eye.
  picky_tracking: {picky}

  # Move a lost eye along with the tracked one instead of holding it.
  untracked_eye_follow_tracked: {follow}

debug:
  web_port: {port}

logging:
  level: {level}
"""


def write_default_config(path: str = "config.yaml", config: AppConfig = None) -> bool:
    """Write a commented config file. Returns False if it could not be written."""
    config = config or AppConfig()
    c = config.conditioning
    text = _DEFAULT_CONFIG_TEXT.format(
        double_time=str(config.module.double_time).lower(),
        strategy=c.openness_strategy.value,
        squeeze=c.squeeze_threshold,
        widen=c.widen_threshold,
        speed=c.max_open_speed,
        cycles=c.stabilizing_cycles,
        picky=str(c.picky_tracking).lower(),
        follow=str(c.untracked_eye_follow_tracked).lower(),
        port=config.debug.web_port,
        level=config.log_level,
    )
    try:
        with open(path, "w") as f:
            f.write(text)
    except OSError as e:
        log.warning(f"Could not write config file: {e}")
        return False
    return True


class ConfigProvider:
    """Owns the active AppConfig and swaps it as a whole on reload."""

    def __init__(self, path: str = "config.yaml"):
        self._path = Path(path)
        self._mtime = self._stat()
        self._config = load_config(path)

    @property
    def config(self) -> AppConfig:
        return self._config

    def _stat(self):
        try:
            return os.stat(self._path).st_mtime_ns
        except OSError:
            return None

    def reload(self) -> bool:
        """Re-read the file. Keeps the current config if the file is missing or unparsable."""
        self._mtime = self._stat()
        if self._mtime is None:
            log.warning(f"Config file {self._path} disappeared, keeping current config")
            return False

        try:
            with open(self._path) as f:
                data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            log.warning(f"Could not reload config, keeping current config: {e}")
            return False

        if not isinstance(data, dict):
            log.warning("Config file is not a mapping, keeping current config")
            return False

        try:
            config = parse_config(data)
        except (ConfigError, TypeError, ValueError) as e:
            log.warning(f"Invalid config, keeping current config: {e}")
            return False

        self._config = config
        log.info(f"Reloaded config from {self._path}")
        return True

    def poll(self) -> bool:
        """Reload if the file changed on disk. Returns True when a new config was loaded."""
        mtime = self._stat()
        if mtime is None or mtime == self._mtime:
            return False
        return self.reload()

"""
Motion Coach configuration.

Every value can be overridden with an environment variable of the same name
prefixed with MOTION_COACH_ (e.g. MOTION_COACH_TOLERANCE=0.08).
"""

import os
import sys

from loguru import logger

_PREFIX = "MOTION_COACH_"


def _env(name: str, default: str) -> str:
    return os.environ.get(_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    return _env(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Files
# =============================================================================
PATTERN_PATH = _env("PATTERN_PATH", "recordedJoints.csv")
DEVIATION_EXPORT_PATH = _env("DEVIATION_EXPORT_PATH", "ValidationResults.txt")

# =============================================================================
# Validation
# =============================================================================
TOLERANCE = float(_env("TOLERANCE", "0.05"))  # meters, per axis
APPLY_SCALE = _env_bool("APPLY_SCALE", True)

# =============================================================================
# Session timing (seconds)
# =============================================================================
COUNTDOWN_SECONDS = float(_env("COUNTDOWN_SECONDS", "5"))
RECORDING_SECONDS = float(_env("RECORDING_SECONDS", "15"))

# =============================================================================
# Video body source
# =============================================================================
MODEL_PATH = _env(
    "MODEL_PATH",
    os.path.join(os.path.dirname(__file__), "pose_landmarker_lite.task"),
)
MIN_TRACKED_VISIBILITY = float(_env("MIN_TRACKED_VISIBILITY", "0.5"))
MIN_INFERRED_VISIBILITY = float(_env("MIN_INFERRED_VISIBILITY", "0.15"))

# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL = _env("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())

from statistics import mean
from typing import Iterable, Optional

import numpy as np

from joints import SCALE_SEGMENT, corresponding_joint
from models import Frame, JointCheck, LiveBody, Pattern, Position3

DEFAULT_TOLERANCE = 0.05  # 5 cm per axis


def _segment_lengths(frames: Iterable[Frame], segment=SCALE_SEGMENT) -> list[float]:
    """Length of the reference segment in every frame that has both joints."""
    origin, distal = segment
    lengths = []
    for frame in frames:
        if origin in frame.joints and distal in frame.joints:
            a = frame.joints[origin].to_array()
            b = frame.joints[distal].to_array()
            lengths.append(float(np.linalg.norm(b - a)))
    return lengths


def estimate_scale(pattern: Pattern, live_frames: Iterable[Frame]) -> float:
    """Ratio between the live subject's and the pattern subject's upper arm.

    Returns 1.0 when the pattern has no usable segment, and 0.0 when the live
    frames have none. statistics.mean is exact, so identical lengths on both
    sides give exactly 1.0.
    """
    pattern_lengths = _segment_lengths(pattern)
    pattern_avg = mean(pattern_lengths) if pattern_lengths else 0.0
    if pattern_avg == 0:
        return 1.0

    live_lengths = _segment_lengths(live_frames)
    live_avg = mean(live_lengths) if live_lengths else 0.0
    return live_avg / pattern_avg


def scale_pattern(pattern: Pattern, factor: float) -> Pattern:
    return tuple(frame.scaled(factor) for frame in pattern)


class PlaybackCursor:
    """Round-robin selection of the pattern frame to compare against.

    Elapsed time is ignored: every call returns the next frame and wraps
    around at the end of the pattern.
    """

    def __init__(self, pattern: Pattern):
        self.pattern = pattern
        self.index = 0

    def next_frame(self) -> Optional[Frame]:
        if not self.pattern:
            return None
        frame = self.pattern[self.index]
        self.index = (self.index + 1) % len(self.pattern)
        return frame

    def reset(self) -> None:
        self.index = 0


def _exceeds(live: Position3, expected: Position3, tolerance: float) -> bool:
    diff = np.abs(live.to_array() - expected.to_array())
    return bool(np.any(diff > tolerance))


class VectorValidator:
    def __init__(self, tolerance: float = DEFAULT_TOLERANCE):
        self.tolerance = tolerance

    def validate(self, body: LiveBody, pattern_frame: Frame) -> list[JointCheck]:
        """Compare every pattern bone against the same bone on the live body.

        Bones whose joints are not tracked on the live body are skipped.
        """
        live = body.tracked_positions()
        checks = []
        for joint, pattern_vec in pattern_frame.bone_vectors.items():
            distal = corresponding_joint(joint)
            if distal == joint:
                continue
            if joint not in live or distal not in live:
                continue
            live_vec = live[distal] - live[joint]
            checks.append(
                JointCheck(
                    joint=joint,
                    live_vector=live_vec,
                    pattern_vector=pattern_vec,
                    guidance=pattern_vec - live_vec,
                    deviated=_exceeds(live_vec, pattern_vec, self.tolerance),
                )
            )
        return checks
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from loguru import logger

from models import DeviationRecord, ExerciseSummary, utcnow


class InvalidSessionError(ValueError):
    pass


def _percent(frames: int, errors: float) -> float:
    return max(0.0, min(100.0, 100.0 * (frames - errors) / frames))


def build_summary(session, end: Optional[datetime] = None) -> ExerciseSummary:
    """Reduce a finished session into its scored report.

    A live frame can flag several joints, and each flag counts against the
    overall score, so the overall score may be lower than every joint score.
    """
    frames = session.frame_count
    if frames <= 0:
        raise InvalidSessionError("session has no processed frames")

    end = end or utcnow()
    duration = (end - session.started_at).total_seconds() / 60.0

    errors = Counter(record.joint for record in session.deviations)
    joints = set(session.checked_joints) | set(errors)
    joint_scores = {
        joint.value: _percent(frames, errors[joint])
        for joint in sorted(joints, key=lambda j: j.value)
    }
    total_errors = sum(errors.values())

    summary = ExerciseSummary(
        date=end.isoformat(),
        exercise_duration_minutes=duration,
        score_percentage=_percent(frames, total_errors),
        joint_scores=joint_scores,
    )
    logger.info(
        "Summary frames={} errors={} score={:.1f}%",
        frames,
        total_errors,
        summary.score_percentage,
    )
    return summary


def export_deviations(records: Iterable[DeviationRecord], path: str) -> int:
    """Write one human readable line per deviation, replacing the file."""
    lines = [r.describe() for r in records]
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")
    logger.info("Validation results saved to {} ({} lines)", path, len(lines))
    return len(lines)

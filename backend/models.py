from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from joints import JointId, TrackingState, derive_bone_vectors


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Position3(BaseModel):
    """A point (or displacement) in camera space, in meters."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    @classmethod
    def from_array(cls, arr) -> "Position3":
        return cls(x=float(arr[0]), y=float(arr[1]), z=float(arr[2]))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def __sub__(self, other: "Position3") -> "Position3":
        return Position3(x=self.x - other.x, y=self.y - other.y, z=self.z - other.z)

    def __add__(self, other: "Position3") -> "Position3":
        return Position3(x=self.x + other.x, y=self.y + other.y, z=self.z + other.z)

    def scaled(self, factor: float) -> "Position3":
        return Position3(x=self.x * factor, y=self.y * factor, z=self.z * factor)

    def length(self) -> float:
        return float(np.linalg.norm(self.to_array()))


class Frame(BaseModel):
    """One sampled instant of a recorded pattern.

    Bone vectors are derived from `joints` once, at construction. Both
    mappings are read-only, so rescaling produces a new Frame.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    joints: Mapping[JointId, Position3]

    _bone_vectors: Mapping[JointId, Position3] = PrivateAttr()

    @field_validator("joints")
    @classmethod
    def _read_only(cls, v: Mapping[JointId, Position3]) -> Mapping[JointId, Position3]:
        return MappingProxyType(dict(v))

    def model_post_init(self, context: Any) -> None:
        self._bone_vectors = MappingProxyType(derive_bone_vectors(self.joints))

    @property
    def bone_vectors(self) -> Mapping[JointId, Position3]:
        return self._bone_vectors

    def scaled(self, factor: float) -> "Frame":
        return Frame(
            timestamp=self.timestamp,
            joints={j: p.scaled(factor) for j, p in self.joints.items()},
        )


# Pattern frames in capture order
Pattern = tuple[Frame, ...]


class TrackedJoint(BaseModel):
    position: Position3
    tracking_state: TrackingState = TrackingState.TRACKED


class LiveBody(BaseModel):
    """A live body snapshot as delivered by the capture source."""

    timestamp: datetime = Field(default_factory=utcnow)
    joints: dict[JointId, TrackedJoint]

    def tracked_positions(self) -> dict[JointId, Position3]:
        return {
            joint: tj.position
            for joint, tj in self.joints.items()
            if tj.tracking_state != TrackingState.NOT_TRACKED
        }

    def to_frame(self) -> Frame:
        return Frame(timestamp=self.timestamp, joints=self.tracked_positions())


class JointCheck(BaseModel):
    joint: JointId
    live_vector: Position3
    pattern_vector: Position3
    guidance: Position3  # pattern - live, points towards the expected bone
    deviated: bool


class DeviationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    joint: JointId
    live_vector: Position3
    pattern_vector: Position3
    frame_index: int
    timestamp: datetime

    def describe(self) -> str:
        u, p = self.live_vector, self.pattern_vector
        return (
            f"JointType: {self.joint.value}, "
            f"UserVector: ({u.x}, {u.y}, {u.z}), "
            f"PatternVector: ({p.x}, {p.y}, {p.z})"
        )


class ExerciseSummary(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str
    exercise_duration_minutes: float = Field(alias="exerciseDurationMinutes")
    score_percentage: float = Field(ge=0.0, le=100.0, alias="scorePercentage")
    joint_scores: dict[str, float] = Field(alias="jointScores")

    @field_validator("joint_scores")
    @classmethod
    def _scores_in_range(cls, v: dict[str, float]) -> dict[str, float]:
        for joint, score in v.items():
            if not 0.0 <= score <= 100.0:
                raise ValueError(f"score for {joint} out of range: {score}")
        return v


class FrameFeedback(BaseModel):
    phase: str
    frame_index: int
    checks: list[JointCheck] = []


class SessionStatus(BaseModel):
    phase: str
    message: str = ""
    frames_processed: int = 0
    deviations: int = 0
    pattern_frames: int = 0


class RecordingRequest(BaseModel):
    countdown_seconds: Optional[float] = None
    duration_seconds: Optional[float] = None


class ExerciseRequest(BaseModel):
    countdown_seconds: Optional[float] = None


class JobStatus(BaseModel):
    job_id: str
    status: str  # pending, processing, complete, cancelled, error
    message: str = ""

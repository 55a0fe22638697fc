from types import SimpleNamespace

from body_source import LANDMARK_JOINTS, landmarks_to_body, tracking_state
from joints import JointId, TrackingState
from models import Position3


def landmarks(visibility=0.9):
    return [
        SimpleNamespace(x=float(i), y=float(i) / 2, z=0.0, visibility=visibility)
        for i in range(33)
    ]


def test_tracking_state_thresholds():
    assert tracking_state(0.9) == TrackingState.TRACKED
    assert tracking_state(0.3) == TrackingState.INFERRED
    assert tracking_state(0.05) == TrackingState.NOT_TRACKED


def test_landmarks_to_body(t0):
    body = landmarks_to_body(landmarks(), t0)

    assert body.timestamp == t0
    assert body.joints[JointId.SHOULDER_RIGHT].position == Position3(x=12.0, y=6.0, z=0.0)
    assert body.joints[JointId.SPINE_BASE].position == Position3(x=23.5, y=11.75, z=0.0)
    assert len(body.joints) == len(LANDMARK_JOINTS) + 2


def test_low_visibility_joints_are_not_tracked(t0):
    lms = landmarks()
    lms[14] = SimpleNamespace(x=1.0, y=1.0, z=1.0, visibility=0.0)

    body = landmarks_to_body(lms, t0)

    assert JointId.ELBOW_RIGHT not in body.tracked_positions()
    assert JointId.SHOULDER_RIGHT not in body.to_frame().bone_vectors

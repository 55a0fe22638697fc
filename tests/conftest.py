from datetime import datetime, timedelta, timezone

import pytest

from joints import JointId, TrackingState
from models import LiveBody, Position3, TrackedJoint

T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


def body(positions, at=T0, states=None):
    """Build a LiveBody from {JointId: (x, y, z)}."""
    states = states or {}
    return LiveBody(
        timestamp=at,
        joints={
            j: TrackedJoint(
                position=Position3(x=p[0], y=p[1], z=p[2]),
                tracking_state=states.get(j, TrackingState.TRACKED),
            )
            for j, p in positions.items()
        },
    )


def arm(elbow=(1.0, 0.0, 0.0), shoulder=(0.0, 0.0, 0.0)):
    return {JointId.SHOULDER_RIGHT: shoulder, JointId.ELBOW_RIGHT: elbow}


TWO_FRAME_LOG = """\
ShoulderRight;0;0;0;2024-05-01T09:00:00
ElbowRight;1;0;0;2024-05-01T09:00:00
#
ShoulderRight;0;0;0;2024-05-01T09:00:01
ElbowRight;1;0;0;2024-05-01T09:00:01
#
"""


@pytest.fixture
def make_body():
    return body


@pytest.fixture
def make_arm():
    return arm


@pytest.fixture
def pattern_file(tmp_path):
    path = tmp_path / "recordedJoints.csv"
    path.write_text(TWO_FRAME_LOG)
    return path


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def seconds():
    return lambda n: T0 + timedelta(seconds=n)

from enum import Enum


class JointId(str, Enum):
    SPINE_BASE = "SpineBase"
    SPINE_MID = "SpineMid"
    NECK = "Neck"
    HEAD = "Head"
    SHOULDER_LEFT = "ShoulderLeft"
    ELBOW_LEFT = "ElbowLeft"
    WRIST_LEFT = "WristLeft"
    HAND_LEFT = "HandLeft"
    SHOULDER_RIGHT = "ShoulderRight"
    ELBOW_RIGHT = "ElbowRight"
    WRIST_RIGHT = "WristRight"
    HAND_RIGHT = "HandRight"
    HIP_LEFT = "HipLeft"
    KNEE_LEFT = "KneeLeft"
    ANKLE_LEFT = "AnkleLeft"
    FOOT_LEFT = "FootLeft"
    HIP_RIGHT = "HipRight"
    KNEE_RIGHT = "KneeRight"
    ANKLE_RIGHT = "AnkleRight"
    FOOT_RIGHT = "FootRight"
    SPINE_SHOULDER = "SpineShoulder"
    HAND_TIP_LEFT = "HandTipLeft"
    THUMB_LEFT = "ThumbLeft"
    HAND_TIP_RIGHT = "HandTipRight"
    THUMB_RIGHT = "ThumbRight"


class TrackingState(str, Enum):
    NOT_TRACKED = "NotTracked"
    INFERRED = "Inferred"
    TRACKED = "Tracked"


# Bone segments: origin joint -> distal joint
BONE_CHAIN: dict[JointId, JointId] = {
    JointId.SHOULDER_RIGHT: JointId.ELBOW_RIGHT,
    JointId.ELBOW_RIGHT: JointId.WRIST_RIGHT,
    JointId.WRIST_RIGHT: JointId.HAND_RIGHT,
    JointId.SHOULDER_LEFT: JointId.ELBOW_LEFT,
    JointId.ELBOW_LEFT: JointId.WRIST_LEFT,
    JointId.WRIST_LEFT: JointId.HAND_LEFT,
    JointId.HIP_RIGHT: JointId.KNEE_RIGHT,
    JointId.KNEE_RIGHT: JointId.ANKLE_RIGHT,
    JointId.ANKLE_RIGHT: JointId.FOOT_RIGHT,
    JointId.HIP_LEFT: JointId.KNEE_LEFT,
    JointId.KNEE_LEFT: JointId.ANKLE_LEFT,
    JointId.ANKLE_LEFT: JointId.FOOT_LEFT,
}

# Segment used to compare body proportions between two subjects
SCALE_SEGMENT = (JointId.SHOULDER_RIGHT, JointId.ELBOW_RIGHT)


def corresponding_joint(joint: JointId) -> JointId:
    """Return the distal joint of the bone starting at `joint`.

    Joints without a bone map to themselves; callers skip those.
    """
    return BONE_CHAIN.get(joint, joint)


def derive_bone_vectors(joint_positions: dict) -> dict:
    """Compute distal - origin for every bone whose two joints are present."""
    vectors = {}
    for origin, distal in BONE_CHAIN.items():
        if origin in joint_positions and distal in joint_positions:
            vectors[origin] = joint_positions[distal] - joint_positions[origin]
    return vectors

from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

import numpy as np

import config
from joints import JointId, TrackingState
from models import LiveBody, Position3, TrackedJoint

# MediaPipe Pose landmark index -> joint
LANDMARK_JOINTS = {
    0: JointId.HEAD,
    11: JointId.SHOULDER_LEFT,
    12: JointId.SHOULDER_RIGHT,
    13: JointId.ELBOW_LEFT,
    14: JointId.ELBOW_RIGHT,
    15: JointId.WRIST_LEFT,
    16: JointId.WRIST_RIGHT,
    19: JointId.HAND_LEFT,
    20: JointId.HAND_RIGHT,
    21: JointId.THUMB_LEFT,
    22: JointId.THUMB_RIGHT,
    23: JointId.HIP_LEFT,
    24: JointId.HIP_RIGHT,
    25: JointId.KNEE_LEFT,
    26: JointId.KNEE_RIGHT,
    27: JointId.ANKLE_LEFT,
    28: JointId.ANKLE_RIGHT,
    31: JointId.FOOT_LEFT,
    32: JointId.FOOT_RIGHT,
}

# Joints with no landmark of their own: midpoint of two landmarks
MIDPOINT_JOINTS = {
    JointId.SPINE_SHOULDER: (11, 12),
    JointId.SPINE_BASE: (23, 24),
}


def tracking_state(visibility: float) -> TrackingState:
    if visibility >= config.MIN_TRACKED_VISIBILITY:
        return TrackingState.TRACKED
    if visibility >= config.MIN_INFERRED_VISIBILITY:
        return TrackingState.INFERRED
    return TrackingState.NOT_TRACKED


def _visibility(lm) -> float:
    v = getattr(lm, "visibility", None)
    return 1.0 if v is None else float(v)


def landmarks_to_body(landmarks, timestamp: datetime) -> LiveBody:
    """Convert one person's pose landmarks into a LiveBody.

    `landmarks` is the 33-entry MediaPipe list (anything with x, y, z and
    visibility attributes).
    """
    joints: dict[JointId, TrackedJoint] = {}
    for idx, joint in LANDMARK_JOINTS.items():
        lm = landmarks[idx]
        joints[joint] = TrackedJoint(
            position=Position3(x=lm.x, y=lm.y, z=lm.z),
            tracking_state=tracking_state(_visibility(lm)),
        )

    for joint, (a, b) in MIDPOINT_JOINTS.items():
        la, lb = landmarks[a], landmarks[b]
        mid = (np.array([la.x, la.y, la.z]) + np.array([lb.x, lb.y, lb.z])) / 2.0
        joints[joint] = TrackedJoint(
            position=Position3.from_array(mid),
            tracking_state=tracking_state(min(_visibility(la), _visibility(lb))),
        )

    return LiveBody(timestamp=timestamp, joints=joints)


def extract_bodies(
    video_path: str,
    start: Optional[datetime] = None,
) -> Iterator[LiveBody]:
    """Yield one LiveBody per video frame where a person is detected.

    World landmarks are used so positions are in meters, like the
    validation tolerance.
    """
    import cv2
    import mediapipe as mp

    PoseLandmarker = mp.tasks.vision.PoseLandmarker
    PoseLandmarkerOptions = mp.tasks.vision.PoseLandmarkerOptions
    RunningMode = mp.tasks.vision.RunningMode
    BaseOptions = mp.tasks.BaseOptions

    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise ValueError(f"Cannot open video: {video_path}")

    fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
    start = start or datetime.now(timezone.utc)

    options = PoseLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=config.MODEL_PATH),
        running_mode=RunningMode.VIDEO,
        num_poses=1,
        min_pose_detection_confidence=0.5,
        min_tracking_confidence=0.5,
    )

    try:
        with PoseLandmarker.create_from_options(options) as landmarker:
            frame_num = 0
            while True:
                ret, frame = cap.read()
                if not ret:
                    break

                rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
                timestamp_ms = int(frame_num * 1000 / fps)

                result = landmarker.detect_for_video(mp_image, timestamp_ms)

                if result.pose_world_landmarks:
                    stamp = start + timedelta(milliseconds=timestamp_ms)
                    yield landmarks_to_body(result.pose_world_landmarks[0], stamp)

                frame_num += 1
    finally:
        cap.release()

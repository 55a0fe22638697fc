import pytest
from fastapi.testclient import TestClient

import main
from session import SessionController


def arm_payload(elbow_x=1.0, ts="2024-05-01T10:00:00+00:00"):
    return {
        "timestamp": ts,
        "joints": {
            "ShoulderRight": {"position": {"x": 0.0, "y": 0.0, "z": 0.0}},
            "ElbowRight": {"position": {"x": elbow_x, "y": 0.0, "z": 0.0}, "tracking_state": "Inferred"},
            "WristRight": {"position": {"x": 9.0, "y": 9.0, "z": 9.0}, "tracking_state": "NotTracked"},
        },
    }


@pytest.fixture
def client(monkeypatch, tmp_path, pattern_file):
    ctrl = SessionController(
        pattern_path=str(pattern_file),
        export_path=str(tmp_path / "ValidationResults.txt"),
    )
    monkeypatch.setattr(main, "controller", ctrl)
    return TestClient(main.app)


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_exercise_round_trip(client):
    r = client.post("/api/exercise/start", json={"countdown_seconds": 0})
    assert r.status_code == 200
    assert r.json()["phase"] == "exercising"
    assert r.json()["pattern_frames"] == 2

    for _ in range(3):
        r = client.post("/api/frames", json=arm_payload())
        assert r.status_code == 200
    feedback = client.post("/api/frames", json=arm_payload(elbow_x=1.5)).json()
    assert feedback["checks"][0]["deviated"] is True
    assert feedback["checks"][0]["guidance"]["x"] == pytest.approx(-0.5)

    r = client.post("/api/exercise/stop")
    assert r.status_code == 200
    summary = r.json()
    assert set(summary) == {"date", "exerciseDurationMinutes", "scorePercentage", "jointScores"}
    assert summary["scorePercentage"] == 75.0
    assert summary["jointScores"] == {"ShoulderRight": 75.0}


def test_stop_without_frames_conflicts(client):
    client.post("/api/exercise/start", json={"countdown_seconds": 30})
    assert client.get("/api/status").json()["phase"] == "countdown"

    r = client.post("/api/exercise/stop")

    assert r.status_code == 409


def test_start_twice_conflicts(client):
    client.post("/api/exercise/start", json={"countdown_seconds": 0})
    assert client.post("/api/exercise/start", json={"countdown_seconds": 0}).status_code == 409
    assert client.post("/api/recording/start", json={"countdown_seconds": 0}).status_code == 409


def test_missing_pattern(client, pattern_file):
    pattern_file.unlink()
    assert client.post("/api/exercise/start", json={"countdown_seconds": 0}).status_code == 404


def test_corrupt_pattern(client, pattern_file):
    pattern_file.write_text("ShoulderRight;x;0;0;2024-05-01T09:00:00\n")
    assert client.post("/api/exercise/start", json={"countdown_seconds": 0}).status_code == 422


def test_recording_appends_tracked_joints(client, pattern_file):
    before = pattern_file.read_text()
    r = client.post("/api/recording/start", json={"countdown_seconds": 0, "duration_seconds": 0})
    assert r.json()["phase"] == "recording"

    client.post("/api/frames", json=arm_payload(elbow_x=0.75))
    r = client.post("/api/recording/stop")

    assert r.json()["phase"] == "idle"
    text = pattern_file.read_text()
    assert text.startswith(before)
    added = text[len(before):].splitlines()
    assert added[0].startswith("ShoulderRight;0.0;0.0;0.0;")
    assert added[1].startswith("ElbowRight;0.75;0.0;0.0;")
    assert added[2] == "#"


def test_unknown_job(client):
    assert client.get("/api/jobs/nope").status_code == 404


class InlineThread:
    """Runs the job in the calling thread."""

    def __init__(self, target, args=()):
        self.target = target
        self.args = args

    def start(self):
        self.target(*self.args)


def test_video_job_records_pattern(client, monkeypatch, pattern_file, make_body, make_arm):
    before = len(pattern_file.read_text().splitlines())

    def bodies(path):
        for _ in range(3):
            yield make_body(make_arm((0.5, 0.0, 0.0)))

    monkeypatch.setattr(main, "extract_bodies", bodies)
    monkeypatch.setattr(main.threading, "Thread", InlineThread)

    r = client.post("/api/pattern/video", files={"video": ("clip.mp4", b"data")})
    job = client.get(f"/api/jobs/{r.json()['job_id']}").json()

    assert job["status"] == "complete"
    assert job["message"] == "Recorded 3 frames"
    assert client.get("/api/status").json()["phase"] == "idle"
    assert len(pattern_file.read_text().splitlines()) == before + 9


def test_video_job_stops_when_recording_is_taken_over(client, monkeypatch, pattern_file, make_body, make_arm):
    def bodies(path):
        yield make_body(make_arm((0.5, 0.0, 0.0)))
        # Someone stops the recording and starts exercising mid-video
        main.controller.stop_recording()
        main.controller.start_exercise(countdown=0)
        for _ in range(5):
            yield make_body(make_arm((9.0, 0.0, 0.0)))

    monkeypatch.setattr(main, "extract_bodies", bodies)
    monkeypatch.setattr(main.threading, "Thread", InlineThread)

    r = client.post("/api/pattern/video", files={"video": ("clip.mp4", b"data")})
    job = client.get(f"/api/jobs/{r.json()['job_id']}").json()

    assert job["status"] == "cancelled"
    status = client.get("/api/status").json()
    assert status["phase"] == "exercising"
    assert status["frames_processed"] == 0
    assert status["deviations"] == 0


def test_live_frames_do_not_mix_into_video_pattern(client, monkeypatch, pattern_file, make_body, make_arm):
    def bodies(path):
        yield make_body(make_arm((0.5, 0.0, 0.0)))
        main.controller.submit_frame(make_body(make_arm((9.0, 0.0, 0.0))))
        yield make_body(make_arm((0.5, 0.0, 0.0)))

    monkeypatch.setattr(main, "extract_bodies", bodies)
    monkeypatch.setattr(main.threading, "Thread", InlineThread)

    client.post("/api/pattern/video", files={"video": ("clip.mp4", b"data")})

    assert "9.0" not in pattern_file.read_text()


def test_video_upload_while_busy_conflicts(client):
    client.post("/api/exercise/start", json={"countdown_seconds": 0})
    r = client.post("/api/pattern/video", files={"video": ("clip.mp4", b"data")})
    assert r.status_code == 409

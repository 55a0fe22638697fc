import os
import uuid
import tempfile
import threading
from typing import Optional

from fastapi import FastAPI, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

import config
from body_source import extract_bodies
from models import (
    ExerciseRequest,
    ExerciseSummary,
    FrameFeedback,
    JobStatus,
    LiveBody,
    RecordingRequest,
    SessionStatus,
)
from pattern_store import ParseError, PatternWriter
from session import PhaseError, SessionController
from summary import InvalidSessionError

config.configure_logging()

app = FastAPI(title="Motion Coach API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

controller = SessionController()

# In-memory job store
jobs: dict[str, dict] = {}


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/status", response_model=SessionStatus)
def get_status():
    return controller.status()


@app.post("/api/recording/start", response_model=SessionStatus)
def start_recording(payload: Optional[RecordingRequest] = None):
    payload = payload or RecordingRequest()
    countdown = payload.countdown_seconds
    duration = payload.duration_seconds
    try:
        controller.start_recording(
            countdown=config.COUNTDOWN_SECONDS if countdown is None else countdown,
            duration=config.RECORDING_SECONDS if duration is None else duration,
        )
    except PhaseError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return controller.status()


@app.post("/api/recording/stop", response_model=SessionStatus)
def stop_recording():
    try:
        controller.stop_recording()
    except PhaseError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return controller.status()


@app.post("/api/exercise/start", response_model=SessionStatus)
def start_exercise(payload: Optional[ExerciseRequest] = None):
    payload = payload or ExerciseRequest()
    countdown = payload.countdown_seconds
    try:
        controller.start_exercise(
            countdown=config.COUNTDOWN_SECONDS if countdown is None else countdown,
        )
    except PhaseError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="No recorded pattern")
    except ParseError as e:
        logger.error("Pattern load failed: {}", e)
        raise HTTPException(status_code=422, detail=f"Corrupt pattern: {e}")
    return controller.status()


@app.post("/api/exercise/stop", response_model=ExerciseSummary)
def stop_exercise():
    try:
        return controller.stop_exercise()
    except PhaseError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidSessionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/api/frames", response_model=FrameFeedback)
def submit_frame(body: LiveBody):
    return controller.submit_frame(body)


@app.post("/api/pattern/video")
async def record_pattern_from_video(video: UploadFile = File(...)):
    try:
        writer = controller.start_recording(countdown=0, duration=0, exclusive=True)
    except PhaseError as e:
        raise HTTPException(status_code=409, detail=str(e))

    job_id = str(uuid.uuid4())
    jobs[job_id] = {"status": "pending", "message": "Queued"}

    # Save upload to a temp file
    tmp_dir = tempfile.mkdtemp()
    video_path = os.path.join(tmp_dir, f"pattern_{video.filename}")
    with open(video_path, "wb") as f:
        f.write(await video.read())

    # Process in background thread
    thread = threading.Thread(target=_process_job, args=(job_id, video_path, controller, writer))
    thread.start()

    return {"job_id": job_id}


def _process_job(job_id: str, video_path: str, ctrl: SessionController, writer: PatternWriter):
    try:
        jobs[job_id]["status"] = "processing"
        jobs[job_id]["message"] = "Extracting poses from pattern video..."

        for body in extract_bodies(video_path):
            if not ctrl.record_frame(body, writer):
                jobs[job_id]["status"] = "cancelled"
                jobs[job_id]["message"] = f"Recording stopped after {writer.frames_written} frames"
                return

        written = ctrl.stop_recording(writer)
        if not written:
            raise ValueError("No person detected in pattern video")

        jobs[job_id]["status"] = "complete"
        jobs[job_id]["message"] = f"Recorded {written} frames"
    except Exception as e:
        logger.exception("Pattern job {} failed", job_id)
        jobs[job_id]["status"] = "error"
        jobs[job_id]["message"] = str(e)
        try:
            ctrl.stop_recording(writer)
        except PhaseError:
            pass
    finally:
        try:
            os.remove(video_path)
        except OSError:
            pass


@app.get("/api/jobs/{job_id}")
def get_job(job_id: str):
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    job = jobs[job_id]
    return JobStatus(job_id=job_id, status=job["status"], message=job["message"])

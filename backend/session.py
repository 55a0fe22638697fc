"""
Exercise session state and the recording/exercise phase controller.

A SessionController owns at most one ExerciseSession at a time. Countdowns and
the fixed recording window run on threading.Timer so frames keep flowing while
they tick; frames delivered during a countdown are accepted but not validated.
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from loguru import logger

import config
from comparator import PlaybackCursor, VectorValidator, estimate_scale, scale_pattern
from joints import JointId
from models import (
    DeviationRecord,
    ExerciseSummary,
    FrameFeedback,
    JointCheck,
    LiveBody,
    Pattern,
    SessionStatus,
    utcnow,
)
from pattern_store import PatternWriter, read_pattern
from summary import build_summary, export_deviations


class Phase(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    RECORDING = "recording"
    EXERCISING = "exercising"
    STOPPED = "stopped"


class PhaseError(RuntimeError):
    pass


class ExerciseSession:
    """Mutable per-exercise state: frame counter, deviation log and cursor."""

    def __init__(
        self,
        pattern: Pattern,
        started_at: Optional[datetime] = None,
        tolerance: float = config.TOLERANCE,
        apply_scale: bool = config.APPLY_SCALE,
    ):
        self.started_at = started_at or utcnow()
        self.pattern = pattern
        self.cursor = PlaybackCursor(pattern)
        self.validator = VectorValidator(tolerance)
        self.apply_scale = apply_scale
        self.scale: Optional[float] = None
        self.frame_count = 0
        self.deviations: list[DeviationRecord] = []
        self.checked_joints: set[JointId] = set()

    def calibrate(self, bodies: list[LiveBody]) -> float:
        """Estimate the body scale once and rescale the pattern with it.

        A zero scale means the live subject has no usable reference segment;
        the pattern is then left unscaled.
        """
        scale = estimate_scale(self.pattern, [b.to_frame() for b in bodies])
        self.scale = scale
        if scale == 0:
            logger.warning("Scale unavailable (no live reference segment), pattern left unscaled")
        elif scale != 1.0:
            index = self.cursor.index
            self.pattern = scale_pattern(self.pattern, scale)
            self.cursor = PlaybackCursor(self.pattern)
            self.cursor.index = index
            logger.info("Pattern scaled by {:.3f}", scale)
        return scale

    def process_frame(self, body: LiveBody) -> list[JointCheck]:
        if self.apply_scale and self.scale is None:
            self.calibrate([body])

        self.frame_count += 1
        pattern_frame = self.cursor.next_frame()
        if pattern_frame is None:
            return []

        checks = self.validator.validate(body, pattern_frame)
        for check in checks:
            self.checked_joints.add(check.joint)
            if check.deviated:
                self.deviations.append(
                    DeviationRecord(
                        joint=check.joint,
                        live_vector=check.live_vector,
                        pattern_vector=check.pattern_vector,
                        frame_index=self.frame_count,
                        timestamp=body.timestamp,
                    )
                )
        return checks


class SessionController:
    def __init__(
        self,
        pattern_path: str = config.PATTERN_PATH,
        export_path: Optional[str] = config.DEVIATION_EXPORT_PATH,
        tolerance: float = config.TOLERANCE,
        apply_scale: bool = config.APPLY_SCALE,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.pattern_path = pattern_path
        self.export_path = export_path
        self.tolerance = tolerance
        self.apply_scale = apply_scale
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._timers: list[threading.Timer] = []
        self._generation = 0

        self.phase = Phase.IDLE
        self.message = ""
        self.writer: Optional[PatternWriter] = None
        self._exclusive = False
        self.session: Optional[ExerciseSession] = None
        self._pattern: Pattern = ()

    # ------------------------------------------------------------------ timers

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        generation = self._generation

        def fire():
            with self._lock:
                if generation != self._generation:
                    return
                callback()

        timer = self._timer_factory(delay, fire)
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def _cancel_timers(self) -> None:
        self._generation += 1
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    def _set_phase(self, phase: Phase, message: str) -> None:
        self.phase = phase
        self.message = message
        logger.info("Phase -> {}: {}", phase.value, message)

    def _require_free(self) -> None:
        if self.phase in (Phase.COUNTDOWN, Phase.RECORDING, Phase.EXERCISING):
            raise PhaseError(f"busy: {self.phase.value}")

    # --------------------------------------------------------------- recording

    def start_recording(
        self,
        countdown: float = config.COUNTDOWN_SECONDS,
        duration: float = config.RECORDING_SECONDS,
        exclusive: bool = False,
    ) -> PatternWriter:
        """Record live frames into the pattern log after a countdown.

        With a positive `duration` the recording stops by itself. An
        `exclusive` recording ignores submit_frame; its owner feeds it through
        record_frame with the returned writer.
        """
        with self._lock:
            self._require_free()
            self._cancel_timers()
            self.session = None
            self.writer = PatternWriter(self.pattern_path)
            self._exclusive = exclusive

            def begin():
                self._set_phase(Phase.RECORDING, "Recording started!")
                if duration > 0:
                    self._schedule(duration, self.stop_recording)

            if countdown > 0:
                self._set_phase(Phase.COUNTDOWN, f"Recording will start in {countdown:g} seconds")
                self._schedule(countdown, begin)
            else:
                begin()
            return self.writer

    def _owns(self, writer: Optional[PatternWriter]) -> bool:
        return (
            self.writer is not None
            and self.phase in (Phase.COUNTDOWN, Phase.RECORDING)
            and (writer is None or writer is self.writer)
        )

    def stop_recording(self, writer: Optional[PatternWriter] = None) -> int:
        """Stop the current recording, or only the one `writer` belongs to."""
        with self._lock:
            if not self._owns(writer):
                raise PhaseError("not recording")
            self._cancel_timers()
            written = self.writer.frames_written
            self._set_phase(Phase.IDLE, f"Recording stopped! ({written} frames)")
            self.writer = None
            self._exclusive = False
            return written

    def record_frame(self, body: LiveBody, writer: PatternWriter) -> bool:
        """Append `body` to the recording `writer` belongs to.

        Returns False once that recording is over.
        """
        with self._lock:
            if not self._owns(writer) or self.phase != Phase.RECORDING:
                return False
            writer.append(body)
            return True

    # ---------------------------------------------------------------- exercise

    def start_exercise(self, countdown: float = config.COUNTDOWN_SECONDS) -> int:
        """Load the pattern and start validating after a countdown.

        Pattern load failures propagate before any phase change.
        Returns the number of pattern frames.
        """
        with self._lock:
            self._require_free()
            pattern = read_pattern(self.pattern_path)
            if not pattern:
                logger.warning("Pattern {} is empty, nothing will be validated", self.pattern_path)
            self._cancel_timers()
            self._pattern = pattern
            self.writer = None
            self.session = None

            def begin():
                self.session = ExerciseSession(
                    pattern,
                    tolerance=self.tolerance,
                    apply_scale=self.apply_scale,
                )
                self._set_phase(Phase.EXERCISING, "Exercise started")

            if countdown > 0:
                self._set_phase(Phase.COUNTDOWN, f"Exercise will start in {countdown:g} seconds")
                self._schedule(countdown, begin)
            else:
                begin()
            return len(pattern)

    def stop_exercise(self, end: Optional[datetime] = None) -> ExerciseSummary:
        """Stop validating and build the summary from the log as it stands."""
        with self._lock:
            if self.phase == Phase.RECORDING or (self.phase == Phase.COUNTDOWN and self.writer):
                raise PhaseError("recording in progress")
            if self.phase not in (Phase.COUNTDOWN, Phase.EXERCISING):
                raise PhaseError("no exercise in progress")
            self._cancel_timers()
            self._set_phase(Phase.STOPPED, "Exercise ended")

            session = self.session
            if session is not None and self.export_path:
                export_deviations(session.deviations, self.export_path)
            return build_summary(session or ExerciseSession(self._pattern), end)

    # ------------------------------------------------------------------ frames

    def submit_frame(self, body: LiveBody) -> FrameFeedback:
        with self._lock:
            if self.phase == Phase.RECORDING and self.writer is not None and not self._exclusive:
                self.writer.append(body)
                return FrameFeedback(phase=self.phase.value, frame_index=self.writer.frames_written)

            if self.phase == Phase.EXERCISING and self.session is not None:
                checks = self.session.process_frame(body)
                return FrameFeedback(
                    phase=self.phase.value,
                    frame_index=self.session.frame_count,
                    checks=checks,
                )

            return FrameFeedback(phase=self.phase.value, frame_index=0)

    def status(self) -> SessionStatus:
        with self._lock:
            session = self.session
            return SessionStatus(
                phase=self.phase.value,
                message=self.message,
                frames_processed=session.frame_count if session else 0,
                deviations=len(session.deviations) if session else 0,
                pattern_frames=len(self._pattern),
            )
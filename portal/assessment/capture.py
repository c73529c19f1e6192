"""Server side of audio capture.

The browser records with MediaRecorder and posts time-sliced chunks. They
are spooled to disk under ``<spool_root>/<user_id>/<scenario_id>/`` until the
applicant stops, previews and submits. The spool directory belongs to exactly
one session and every way out of a session (stop, discard, failed start,
successful submit, teardown) removes what it no longer needs. Sessions left
in RECORDING or CAPTURED for longer than ``max_age`` are dropped the next
time they are read, and ``sweep_spool`` clears the ones nobody comes back to.

    IDLE -> RECORDING -> CAPTURED -> SUBMITTING -> IDLE
                                         |
                                       ERROR -> CAPTURED

Selecting an audio file from disk lands in CAPTURED directly and replaces a
live capture, and vice versa.
"""
import enum
import json
import logging
import os
import shutil
import time
from dataclasses import dataclass
from typing import Optional

from werkzeug.utils import secure_filename

from .errors import PermissionDenied, ValidationError

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 50 * 1024 * 1024
# a SUBMITTING session older than this was abandoned by a dead request
SUBMIT_STALE_AFTER = 300
# RECORDING / CAPTURED / ERROR sessions untouched for longer than this are expired
SPOOL_MAX_AGE = 6 * 60 * 60

_STATE_FILE = "state.json"
_CHUNK_PREFIX = "chunk-"
_CAPTURE_PREFIX = "capture."
_LIVE_FORMAT = "webm"
_LIVE_CONTENT_TYPE = "audio/webm"
_DEFAULT_FILE_FORMAT = "mp3"


class RecordingState(enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CAPTURED = "captured"
    SUBMITTING = "submitting"
    ERROR = "error"


_EXPIRING_STATES = {RecordingState.RECORDING.value, RecordingState.CAPTURED.value, RecordingState.ERROR.value}


@dataclass
class CapturedAudio:
    data: bytes
    content_type: str
    file_format: str
    source: str  # "live" or "file"
    duration: Optional[float] = None
    filename: Optional[str] = None

    @property
    def size(self):
        return len(self.data)


def validate_audio(content_type, size, max_bytes=MAX_AUDIO_BYTES):
    if not (content_type or "").lower().startswith("audio/"):
        raise ValidationError("Please select an audio file (MP3, WAV, etc.)")
    if size > max_bytes:
        raise ValidationError(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")


def _stream_size(stream):
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


class RecordingSession:
    """One applicant's capture for one scenario, persisted across requests."""

    def __init__(self, spool_root, user_id, scenario_id, clock=time.time, max_bytes=MAX_AUDIO_BYTES,
                 max_age=SPOOL_MAX_AGE):
        self.path = os.path.join(spool_root, str(user_id), str(scenario_id))
        self.user_id = user_id
        self.scenario_id = scenario_id
        self.clock = clock
        self.max_bytes = max_bytes
        self.max_age = max_age
        self._meta = self._read_meta()

    # -- persistence -------------------------------------------------------

    def _read_meta(self):
        try:
            with open(os.path.join(self.path, _STATE_FILE)) as f:
                meta = json.load(f)
        except FileNotFoundError:
            return {"state": RecordingState.IDLE.value}
        except (OSError, ValueError):
            logger.warning("unreadable recording state in %s, starting over", self.path)
            self._remove_spool()
            return {"state": RecordingState.IDLE.value}

        if (meta.get("state") == RecordingState.SUBMITTING.value
                and self.clock() - meta.get("submit_started", 0) > SUBMIT_STALE_AFTER):
            logger.warning("stale submission for user=%s scenario=%s", self.user_id, self.scenario_id)
            meta["state"] = RecordingState.CAPTURED.value

        if (meta.get("state") in _EXPIRING_STATES
                and self.clock() - meta.get("updated_at", 0) > self.max_age):
            logger.info("expired %s recording for user=%s scenario=%s",
                        meta["state"], self.user_id, self.scenario_id)
            self._remove_spool()
            return {"state": RecordingState.IDLE.value}
        return meta

    def _write_meta(self):
        self._meta["updated_at"] = self.clock()
        tmp = os.path.join(self.path, _STATE_FILE + ".tmp")
        with open(tmp, "w") as f:
            json.dump(self._meta, f)
        os.replace(tmp, os.path.join(self.path, _STATE_FILE))

    def _transition(self, state, **fields):
        self._meta.update(fields)
        self._meta["state"] = state.value
        self._write_meta()

    def _remove_spool(self):
        shutil.rmtree(self.path, ignore_errors=True)

    def _clear(self, prefix):
        if not os.path.isdir(self.path):
            return
        for name in os.listdir(self.path):
            if name.startswith(prefix):
                os.remove(os.path.join(self.path, name))

    @property
    def state(self):
        return RecordingState(self._meta.get("state", RecordingState.IDLE.value))

    @property
    def source(self):
        return self._meta.get("source")

    @property
    def content_type(self):
        return self._meta.get("content_type")

    @property
    def duration(self):
        started, stopped = self._meta.get("started_at"), self._meta.get("stopped_at")
        if started is None:
            return None
        return max(0.0, (stopped if stopped is not None else self.clock()) - started)

    def _require(self, *states, message):
        if self.state not in states:
            raise ValidationError(message)

    # -- live recording ----------------------------------------------------

    def start(self):
        self._require(RecordingState.IDLE, RecordingState.CAPTURED, RecordingState.ERROR,
                      message="A recording is already in progress.")
        self._remove_spool()
        try:
            os.makedirs(self.path, exist_ok=True)
            self._meta = {"chunks": 0, "bytes": 0}
            self._transition(RecordingState.RECORDING, source="live", started_at=self.clock())
        except OSError as e:
            self._remove_spool()
            self._meta = {"state": RecordingState.IDLE.value}
            raise PermissionDenied("Recording is not available right now. Please try again.", detail=str(e)) from e

    def append(self, chunk):
        self._require(RecordingState.RECORDING, message="No recording is in progress.")
        if not chunk:
            return self._meta["chunks"]
        total = self._meta.get("bytes", 0) + len(chunk)
        if total > self.max_bytes:
            self.discard()
            raise ValidationError(
                f"Recording exceeds the {self.max_bytes // (1024 * 1024)}MB limit. Please record a shorter answer."
            )
        n = self._meta.get("chunks", 0)
        with open(os.path.join(self.path, f"{_CHUNK_PREFIX}{n:06d}"), "wb") as f:
            f.write(chunk)
        self._meta["chunks"] = n + 1
        self._meta["bytes"] = total
        self._write_meta()
        return n + 1

    def stop(self):
        """Join the spooled chunks into the playable capture."""
        self._require(RecordingState.RECORDING, message="No recording is in progress.")
        chunk_names = sorted(n for n in os.listdir(self.path) if n.startswith(_CHUNK_PREFIX))
        if not chunk_names:
            self.discard()
            raise ValidationError("No audio was captured. Please try recording again.")

        # MediaRecorder timeslices are byte-wise continuations of one stream
        target = os.path.join(self.path, _CAPTURE_PREFIX + _LIVE_FORMAT)
        with open(target, "wb") as out:
            for name in chunk_names:
                with open(os.path.join(self.path, name), "rb") as f:
                    shutil.copyfileobj(f, out)
        self._clear(_CHUNK_PREFIX)
        self._transition(
            RecordingState.CAPTURED,
            stopped_at=self.clock(),
            file_format=_LIVE_FORMAT,
            content_type=_LIVE_CONTENT_TYPE,
            filename=None,
        )
        return self.duration

    # -- uploaded file -----------------------------------------------------

    def use_file(self, stream, filename, content_type):
        """Take an audio file from disk instead of a live recording.

        Invalid files raise ``ValidationError`` and leave the session as it was.
        """
        self._require(RecordingState.IDLE, RecordingState.CAPTURED, RecordingState.ERROR,
                      message="Please stop the current recording first.")
        validate_audio(content_type, _stream_size(stream), self.max_bytes)

        safe = secure_filename(filename or "") or "upload"
        ext = safe.rsplit(".", 1)[-1].lower() if "." in safe else _DEFAULT_FILE_FORMAT
        self._remove_spool()
        os.makedirs(self.path, exist_ok=True)
        stream.seek(0)
        with open(os.path.join(self.path, _CAPTURE_PREFIX + ext), "wb") as out:
            shutil.copyfileobj(stream, out)
        self._meta = {}
        self._transition(
            RecordingState.CAPTURED,
            source="file",
            file_format=ext,
            content_type=content_type,
            filename=safe,
        )

    def captured(self):
        self._require(RecordingState.CAPTURED, RecordingState.SUBMITTING,
                      message="There is no recording to submit.")
        path = os.path.join(self.path, _CAPTURE_PREFIX + self._meta["file_format"])
        with open(path, "rb") as f:
            data = f.read()
        return CapturedAudio(
            data=data,
            content_type=self._meta["content_type"],
            file_format=self._meta["file_format"],
            source=self._meta["source"],
            duration=self.duration if self._meta["source"] == "live" else None,
            filename=self._meta.get("filename"),
        )

    def capture_path(self):
        if self.state not in (RecordingState.CAPTURED, RecordingState.SUBMITTING):
            return None
        return os.path.join(self.path, _CAPTURE_PREFIX + self._meta["file_format"])

    # -- submission --------------------------------------------------------

    def begin_submit(self):
        if self.state == RecordingState.SUBMITTING:
            raise ValidationError("Your recording is already being submitted.")
        self._require(RecordingState.CAPTURED, message="There is no recording to submit.")
        captured = self.captured()
        self._transition(RecordingState.SUBMITTING, submit_started=self.clock())
        return captured

    def submit_failed(self, message=None):
        """Back to CAPTURED so the applicant can retry without re-recording."""
        self._require(RecordingState.SUBMITTING, message="No submission is in progress.")
        self._transition(RecordingState.ERROR, error=message)
        self._transition(RecordingState.CAPTURED, submit_started=None)

    def submit_succeeded(self):
        self._require(RecordingState.SUBMITTING, message="No submission is in progress.")
        self._remove_spool()
        self._meta = {"state": RecordingState.IDLE.value}

    # -- teardown ----------------------------------------------------------

    def discard(self):
        if self.state == RecordingState.SUBMITTING:
            raise ValidationError("Your recording is being submitted.")
        self._remove_spool()
        self._meta = {"state": RecordingState.IDLE.value}

    def teardown(self):
        self._remove_spool()
        self._meta = {"state": RecordingState.IDLE.value}

    def to_dict(self):
        return {
            "state": self.state.value,
            "source": self.source,
            "duration": self.duration,
            "filename": self._meta.get("filename"),
            "error": self._meta.get("error"),
        }


def remove_user_spool(spool_root, user_id):
    """Drop every capture an applicant still has spooled (logout, completion)."""
    path = os.path.join(spool_root, str(user_id))
    if os.path.isdir(path):
        shutil.rmtree(path, ignore_errors=True)
        logger.info("removed recording spool for user=%s", user_id)


def sweep_spool(spool_root, max_age=SPOOL_MAX_AGE, clock=time.time):
    """Remove abandoned sessions under ``spool_root``; returns how many were removed.

    Sessions expire through the same rule ``RecordingSession`` applies when it
    reads its state. Directories without a state file are removed once their
    modification time is older than ``max_age``.
    """
    if not os.path.isdir(spool_root):
        return 0
    removed = 0
    for user_dir in os.listdir(spool_root):
        user_path = os.path.join(spool_root, user_dir)
        if not os.path.isdir(user_path):
            continue
        for scenario_dir in os.listdir(user_path):
            path = os.path.join(user_path, scenario_dir)
            if not os.path.isdir(path):
                continue
            if os.path.exists(os.path.join(path, _STATE_FILE)):
                RecordingSession(spool_root, user_dir, scenario_dir, clock=clock, max_age=max_age)
            elif clock() - os.path.getmtime(path) > max_age:
                shutil.rmtree(path, ignore_errors=True)
            if not os.path.exists(path):
                removed += 1
        if not os.listdir(user_path):
            os.rmdir(user_path)
    if removed:
        logger.info("swept %d abandoned recording session(s) from %s", removed, spool_root)
    return removed

import io
import os

import pytest

from portal.assessment import RecordingSession, RecordingState, ValidationError
from portal.assessment.capture import SPOOL_MAX_AGE, SUBMIT_STALE_AFTER, remove_user_spool, sweep_spool


class FakeClock:
    def __init__(self, now=500.0):
        self.now = now

    def __call__(self):
        return self.now


class HugeStream:
    """Seekable stream that reports a size without holding the bytes."""

    def __init__(self, size):
        self.size = size
        self.pos = 0

    def tell(self):
        return self.pos

    def seek(self, offset, whence=0):
        self.pos = self.size + offset if whence == os.SEEK_END else offset
        return self.pos

    def read(self, n=-1):
        raise AssertionError("oversized upload must not be read")


def _session(tmp_path, clock=None, scenario_id=3):
    return RecordingSession(str(tmp_path), 7, scenario_id, clock=clock or FakeClock())


def test_live_recording_joins_chunks(tmp_path):
    clock = FakeClock()
    rec = _session(tmp_path, clock)
    rec.start()
    assert rec.state == RecordingState.RECORDING
    rec.append(b"abc")
    rec.append(b"def")
    clock.now += 8.5
    assert rec.stop() == pytest.approx(8.5)

    captured = rec.captured()
    assert captured.data == b"abcdef"
    assert captured.source == "live"
    assert captured.file_format == "webm"
    assert captured.duration == pytest.approx(8.5)
    assert not [n for n in os.listdir(rec.path) if n.startswith("chunk-")]


def test_state_survives_between_requests(tmp_path):
    rec = _session(tmp_path)
    rec.start()
    rec.append(b"123")
    again = _session(tmp_path)
    assert again.state == RecordingState.RECORDING
    again.append(b"456")
    again.stop()
    assert _session(tmp_path).captured().data == b"123456"


def test_oversized_file_rejected_without_state_change(tmp_path):
    rec = _session(tmp_path)
    with pytest.raises(ValidationError) as exc:
        rec.use_file(HugeStream(80 * 1024 * 1024), "long.mp3", "audio/mpeg")
    assert exc.value.user_message == "File size exceeds 50MB limit"
    assert rec.state == RecordingState.IDLE
    assert not os.path.exists(rec.path)


def test_non_audio_file_rejected(tmp_path):
    rec = _session(tmp_path)
    with pytest.raises(ValidationError) as exc:
        rec.use_file(io.BytesIO(b"%PDF-1.4"), "cv.pdf", "application/pdf")
    assert exc.value.user_message == "Please select an audio file (MP3, WAV, etc.)"
    assert rec.state == RecordingState.IDLE


def test_invalid_file_keeps_existing_capture(tmp_path):
    rec = _session(tmp_path)
    rec.start()
    rec.append(b"voice")
    rec.stop()
    with pytest.raises(ValidationError):
        rec.use_file(io.BytesIO(b"text"), "notes.txt", "text/plain")
    assert rec.state == RecordingState.CAPTURED
    assert rec.captured().data == b"voice"


def test_selected_file_replaces_live_capture(tmp_path):
    rec = _session(tmp_path)
    rec.start()
    rec.append(b"voice")
    rec.stop()
    rec.use_file(io.BytesIO(b"ID3-data"), "My Answer.MP3", "audio/mpeg")

    captured = rec.captured()
    assert captured.source == "file"
    assert captured.file_format == "mp3"
    assert captured.data == b"ID3-data"
    assert captured.duration is None
    assert not os.path.exists(os.path.join(rec.path, "capture.webm"))


def test_failed_submit_returns_to_captured(tmp_path):
    rec = _session(tmp_path)
    rec.start()
    rec.append(b"voice")
    rec.stop()

    captured = rec.begin_submit()
    assert rec.state == RecordingState.SUBMITTING
    with pytest.raises(ValidationError):
        rec.begin_submit()

    rec.submit_failed("Your response could not be saved. Please try again.")
    assert rec.state == RecordingState.CAPTURED
    assert rec.to_dict()["error"] == "Your response could not be saved. Please try again."

    # retry without re-recording
    assert rec.begin_submit().data == captured.data
    rec.submit_succeeded()
    assert rec.state == RecordingState.IDLE
    assert not os.path.exists(rec.path)


def test_discard_and_teardown_remove_spool(tmp_path):
    rec = _session(tmp_path)
    rec.start()
    rec.append(b"x")
    rec.discard()
    assert rec.state == RecordingState.IDLE
    assert not os.path.exists(rec.path)

    rec.start()
    rec.append(b"y")
    rec.teardown()
    assert not os.path.exists(rec.path)
    assert _session(tmp_path).state == RecordingState.IDLE


def test_stop_without_audio(tmp_path):
    rec = _session(tmp_path)
    rec.start()
    with pytest.raises(ValidationError):
        rec.stop()
    assert rec.state == RecordingState.IDLE
    assert not os.path.exists(rec.path)


def test_chunks_only_accepted_while_recording(tmp_path):
    rec = _session(tmp_path)
    with pytest.raises(ValidationError):
        rec.append(b"x")
    rec.start()
    with pytest.raises(ValidationError):
        rec.start()


def test_live_recording_size_limit(tmp_path):
    rec = RecordingSession(str(tmp_path), 7, 3, clock=FakeClock(), max_bytes=10)
    rec.start()
    rec.append(b"12345")
    with pytest.raises(ValidationError):
        rec.append(b"678901")
    assert rec.state == RecordingState.IDLE
    assert not os.path.exists(rec.path)


def test_stale_submission_is_recovered(tmp_path):
    clock = FakeClock()
    rec = _session(tmp_path, clock)
    rec.start()
    rec.append(b"voice")
    rec.stop()
    rec.begin_submit()

    clock.now += SUBMIT_STALE_AFTER + 1
    assert _session(tmp_path, clock).state == RecordingState.CAPTURED


def test_sessions_are_per_scenario(tmp_path):
    a = _session(tmp_path, scenario_id=1)
    b = _session(tmp_path, scenario_id=2)
    a.start()
    a.append(b"a")
    assert b.state == RecordingState.IDLE
    b.teardown()
    assert _session(tmp_path, scenario_id=1).state == RecordingState.RECORDING


def test_content_type_comes_from_state_not_the_capture(tmp_path, monkeypatch):
    rec = _session(tmp_path)
    assert rec.content_type is None
    rec.use_file(io.BytesIO(b"ID3-audio"), "answer.mp3", "audio/mpeg")

    def no_read(self):
        raise AssertionError("capture must not be read for its content type")
    monkeypatch.setattr(RecordingSession, "captured", no_read)
    assert _session(tmp_path).content_type == "audio/mpeg"


@pytest.mark.parametrize("finish", ["recording", "captured"])
def test_abandoned_session_expires(tmp_path, finish):
    clock = FakeClock()
    rec = _session(tmp_path, clock)
    rec.start()
    rec.append(b"voice")
    if finish == "captured":
        rec.stop()

    clock.now += SPOOL_MAX_AGE - 1
    assert _session(tmp_path, clock).state.value == finish

    clock.now += 2
    assert _session(tmp_path, clock).state == RecordingState.IDLE
    assert not os.path.exists(rec.path)


def test_appending_keeps_session_alive(tmp_path):
    clock = FakeClock()
    rec = _session(tmp_path, clock)
    rec.start()
    for _ in range(3):
        clock.now += SPOOL_MAX_AGE - 10
        rec = _session(tmp_path, clock)
        rec.append(b"x")
    assert _session(tmp_path, clock).state == RecordingState.RECORDING


def test_sweep_removes_only_abandoned_sessions(tmp_path):
    clock = FakeClock()
    old = RecordingSession(str(tmp_path), 7, 1, clock=clock)
    old.start()

    clock.now += SPOOL_MAX_AGE + 1
    fresh = RecordingSession(str(tmp_path), 7, 2, clock=clock)
    fresh.start()
    submitting = RecordingSession(str(tmp_path), 8, 1, clock=clock)
    submitting.use_file(io.BytesIO(b"ID3"), "a.mp3", "audio/mpeg")
    submitting.begin_submit()

    assert sweep_spool(str(tmp_path), clock=clock) == 1
    assert not os.path.exists(old.path)
    assert os.path.exists(fresh.path)
    assert os.path.exists(submitting.path)


def test_sweep_drops_directories_without_state(tmp_path):
    stray = tmp_path / "9" / "4"
    stray.mkdir(parents=True)
    old = os.path.getmtime(stray)
    assert sweep_spool(str(tmp_path), clock=lambda: old + 10) == 0
    assert sweep_spool(str(tmp_path), clock=lambda: old + SPOOL_MAX_AGE + 1) == 1
    assert not (tmp_path / "9").exists()
    assert sweep_spool(str(tmp_path / "missing")) == 0


def test_remove_user_spool(tmp_path):
    for scenario_id in (1, 2):
        RecordingSession(str(tmp_path), 7, scenario_id).start()
    RecordingSession(str(tmp_path), 8, 1).start()

    remove_user_spool(str(tmp_path), 7)
    assert not (tmp_path / "7").exists()
    assert (tmp_path / "8" / "1").is_dir()
    remove_user_spool(str(tmp_path), 7)

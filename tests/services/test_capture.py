"""Tests for FileAudioCapture."""

from pathlib import Path

import pytest

from memorytap.memory import DeviceUnavailable
from memorytap.services.capture import CaptureHandle, FileAudioCapture


class TestFileAudioCapture:
    def test_reads_recording(self, tmp_path: Path):
        recording = tmp_path / "note.webm"
        recording.write_bytes(b"voice" * 400)
        capture = FileAudioCapture(recording)

        handle = capture.start_capture()
        artifact = capture.stop_capture(handle)

        assert isinstance(handle, CaptureHandle)
        assert artifact.data == b"voice" * 400
        assert artifact.content_type == "audio/webm"
        assert artifact.size == 2000

    def test_content_type_guessed(self, tmp_path: Path):
        assert FileAudioCapture(tmp_path / "note.wav").content_type in ("audio/x-wav", "audio/wav")
        assert FileAudioCapture(tmp_path / "note.xyz123").content_type == "application/octet-stream"

    def test_explicit_content_type(self, tmp_path: Path):
        capture = FileAudioCapture(tmp_path / "note", content_type="audio/ogg")
        assert capture.content_type == "audio/ogg"

    def test_missing_file_is_unavailable(self, tmp_path: Path):
        """A missing recording behaves like a denied microphone."""
        with pytest.raises(DeviceUnavailable):
            FileAudioCapture(tmp_path / "missing.webm").start_capture()

    def test_file_removed_before_stop(self, tmp_path: Path):
        recording = tmp_path / "note.webm"
        recording.write_bytes(b"voice")
        capture = FileAudioCapture(recording)
        handle = capture.start_capture()
        recording.unlink()

        with pytest.raises(DeviceUnavailable):
            capture.stop_capture(handle)

    def test_handles_are_unique(self):
        assert CaptureHandle().id != CaptureHandle().id

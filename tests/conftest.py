# tests/conftest.py
"""
Pytest configuration and shared fixtures for MockMate device check tests
"""
import pytest
import sys
import time
import asyncio
import threading
from pathlib import Path
from unittest.mock import patch

import numpy as np

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mockmate.config.device_config import DeviceCheckSettings
from mockmate.models.device_check_schemas import InterviewConfig
from mockmate.services.media_devices import (
    AudioTrack,
    MediaAcquisition,
    MediaAccessError,
    MediaDevices,
    VideoTrack,
)


# --- Fake media platform ---

class FakeVideoTrack(VideoTrack):
    def __init__(self, devices, label="fake-camera"):
        super().__init__(label)
        self._devices = devices

    def read_frame(self):
        if not self.live:
            return None
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        frame[:, :, 2] = 200  # BGR red
        return frame

    def _release(self):
        self._devices.release("video")


class FakeAudioTrack(AudioTrack):
    def __init__(self, devices, signal, label="fake-mic"):
        super().__init__(label, sample_rate=48000)
        self._devices = devices
        self._signal = signal

    def read_samples(self, count):
        if self._signal is None:
            return np.zeros(count, dtype=np.float32)
        return np.resize(self._signal, count).astype(np.float32)

    def _release(self):
        self._devices.release("audio")


class FakeMediaDevices(MediaDevices):
    """
    In-memory media platform with single-use devices: acquiring a device that is
    still held by a live track fails with NotReadableError, like a busy webcam.
    With exclusive=False a device can be opened any number of times.
    """

    def __init__(self, online=True, camera_error=None, mic_error=None, combined_error=None,
                 playback_error=None, play_delay=0.0, acquire_delay=0.0, signal="noise", exclusive=True):
        self.online = online
        self.camera_error = camera_error
        self.mic_error = mic_error
        self.combined_error = combined_error
        self.playback_error = playback_error
        self.play_delay = play_delay
        self.acquire_delay = acquire_delay
        self.exclusive = exclusive
        if signal == "noise":
            signal = np.random.default_rng(0).uniform(-1, 1, 4096)
        self.signal = signal
        self.calls = []
        self.played = []
        self.busy = set()
        self.acquired_tracks = []
        self._lock = threading.Lock()

    def release(self, kind):
        with self._lock:
            self.busy.discard(kind)

    def _claim(self, kind, error):
        if error is not None:
            raise error
        with self._lock:
            if self.exclusive and kind in self.busy:
                raise MediaAccessError("NotReadableError", f"{kind} device already in use")
            self.busy.add(kind)

    def get_user_media(self, video=False, audio=False):
        self.calls.append({"video": bool(video), "audio": bool(audio)})
        if self.acquire_delay:
            time.sleep(self.acquire_delay)
        if video and audio and self.combined_error is not None:
            raise self.combined_error

        tracks = []
        try:
            if video:
                self._claim("video", self.camera_error)
                tracks.append(FakeVideoTrack(self))
            if audio:
                self._claim("audio", self.mic_error)
                tracks.append(FakeAudioTrack(self, self.signal))
        except Exception:
            for track in tracks:
                track.stop()
            raise
        self.acquired_tracks.extend(tracks)
        return MediaAcquisition(tracks)

    def is_online(self):
        return self.online

    def play_audio(self, samples, sample_rate):
        self.played.append((len(samples), sample_rate))
        if self.play_delay:
            time.sleep(self.play_delay)
        if self.playback_error is not None:
            raise self.playback_error


# --- Fixtures ---

@pytest.fixture
def make_fake_devices():
    """Factory for FakeMediaDevices with per-test failure injection"""
    return FakeMediaDevices


@pytest.fixture
def fake_devices():
    return FakeMediaDevices()


@pytest.fixture
def fast_settings():
    """Settings without UX delays so probes resolve immediately"""
    return DeviceCheckSettings(
        network_settle_delay=0,
        initial_media_delay=0,
        level_sample_interval=0.001,
    )


@pytest.fixture
def sample_interview_config():
    """Sample interview configuration"""
    return InterviewConfig(
        candidate_name="John Doe",
        job_role="Software Engineer",
        experience_level="Senior",
        interview_type="technical",
        duration=30,
    )


@pytest.fixture
def mock_env_vars():
    """Mock environment variables"""
    env_vars = {
        'MOCKMATE_CAMERA_INDEX': '1',
        'MOCKMATE_MIC_DEVICE': 'USB Microphone',
        'MOCKMATE_SAMPLE_RATE': '44100',
        'MOCKMATE_NETWORK_SETTLE_DELAY': '0.25',
    }
    with patch.dict('os.environ', env_vars, clear=False):
        yield env_vars


@pytest.fixture
def disable_logging(caplog):
    """Disable logging for cleaner test output"""
    import logging
    caplog.set_level(logging.CRITICAL)


# Helper functions for tests
async def wait_for_controller_tasks(controller):
    """Wait until every task launched by the controller has finished."""
    while controller._tasks:
        await asyncio.gather(*(handle.wait() for handle in list(controller._tasks)))
        await asyncio.sleep(0)


@pytest.fixture
def wait_for_tasks():
    return wait_for_controller_tasks


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on their location"""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

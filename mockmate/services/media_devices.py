# mockmate/services/media_devices.py
"""
Media Devices - local camera, microphone, speaker and connectivity access
Tracks are grouped into one MediaAcquisition handle owned by the device check controller.
"""
import logging
import socket
import threading
from collections import deque
from itertools import islice
from typing import Dict, List, Optional, Union

import cv2
import numpy as np
import sounddevice as sd

from mockmate.config.audio_config import AudioDeviceConfig
from mockmate.config.device_config import DeviceCheckSettings
from mockmate.models.device_check_schemas import MediaErrorCategory

logger = logging.getLogger(__name__)


# --- Error classification ---

ERROR_CATEGORY_BY_NAME: Dict[str, MediaErrorCategory] = {
    "NotAllowedError": MediaErrorCategory.PERMISSION_DENIED,
    "PermissionDeniedError": MediaErrorCategory.PERMISSION_DENIED,
    "SecurityError": MediaErrorCategory.PERMISSION_DENIED,
    "NotFoundError": MediaErrorCategory.DEVICE_NOT_FOUND,
    "DevicesNotFoundError": MediaErrorCategory.DEVICE_NOT_FOUND,
    "OverconstrainedError": MediaErrorCategory.DEVICE_NOT_FOUND,
    "NotReadableError": MediaErrorCategory.DEVICE_IN_USE,
    "TrackStartError": MediaErrorCategory.DEVICE_IN_USE,
    "AbortError": MediaErrorCategory.DEVICE_IN_USE,
}

ERROR_MESSAGES: Dict[MediaErrorCategory, str] = {
    MediaErrorCategory.PERMISSION_DENIED: "Permission denied",
    MediaErrorCategory.DEVICE_NOT_FOUND: "Device not found",
    MediaErrorCategory.DEVICE_IN_USE: "Device in use",
    MediaErrorCategory.UNKNOWN: "Access failed",
    MediaErrorCategory.OFFLINE: "No connection detected",
    MediaErrorCategory.PLAYBACK_FAILED: "Audio playback failed",
}


class MediaAccessError(Exception):
    """Raised when a capture device cannot be acquired. `name` follows the getUserMedia error names."""

    def __init__(self, name: str, message: str = ""):
        self.name = name
        super().__init__(message or name)


def classify_media_error(error: BaseException) -> MediaErrorCategory:
    """Map an acquisition failure to its category. Unknown names map to UNKNOWN."""
    name = getattr(error, "name", None) or type(error).__name__
    return ERROR_CATEGORY_BY_NAME.get(name, MediaErrorCategory.UNKNOWN)


def describe_media_error(category: MediaErrorCategory) -> str:
    return ERROR_MESSAGES[category]


# --- Tracks ---

class MediaTrack:
    """A single live capture track. stop() is idempotent."""

    kind = ""

    def __init__(self, label: str = ""):
        self.label = label
        self.ready_state = "live"

    @property
    def live(self) -> bool:
        return self.ready_state == "live"

    def stop(self):
        if not self.live:
            return
        self.ready_state = "ended"
        try:
            self._release()
        except Exception as e:
            logger.error(f"Error releasing {self.kind} track '{self.label}': {e}", exc_info=True)
        logger.debug(f"Stopped {self.kind} track '{self.label}'")

    def _release(self):
        pass

    def __repr__(self):
        return f"<{type(self).__name__} {self.kind} '{self.label}' {self.ready_state}>"


class VideoTrack(MediaTrack):
    kind = "video"

    def read_frame(self) -> Optional[np.ndarray]:
        """Latest BGR frame, or None when the track has no frame."""
        return None


class AudioTrack(MediaTrack):
    kind = "audio"

    def __init__(self, label: str = "", sample_rate: int = DeviceCheckSettings.DEFAULT_SAMPLE_RATE):
        super().__init__(label)
        self.sample_rate = sample_rate

    def read_samples(self, count: int) -> np.ndarray:
        """Most recent `count` mono float32 samples, zero padded at the front."""
        return np.zeros(count, dtype=np.float32)


class CameraTrack(VideoTrack):
    """Video track backed by an OpenCV capture device."""

    def __init__(self, capture: "cv2.VideoCapture", label: str):
        super().__init__(label)
        self._capture = capture
        self._lock = threading.Lock()

    def read_frame(self) -> Optional[np.ndarray]:
        if not self.live:
            return None
        with self._lock:
            ok, frame = self._capture.read()
        return frame if ok else None

    def _release(self):
        with self._lock:
            self._capture.release()


class MicrophoneTrack(AudioTrack):
    """Audio track backed by a running sounddevice InputStream."""

    BUFFER_SECONDS = 1

    def __init__(self, device: Optional[int], sample_rate: int, label: str):
        super().__init__(label, sample_rate)
        self._buffer: deque = deque(maxlen=sample_rate * self.BUFFER_SECONDS)
        self._lock = threading.Lock()
        self._stream = sd.InputStream(
            samplerate=sample_rate,
            device=device,
            channels=1,
            dtype='float32',
            callback=self._audio_callback,
        )
        self._stream.start()

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status):
        if status:
            logger.debug(f"Input status: {status}")
        with self._lock:
            self._buffer.extend(indata[:, 0])

    def read_samples(self, count: int) -> np.ndarray:
        with self._lock:
            newest_first = np.fromiter(islice(reversed(self._buffer), count), dtype=np.float32)
        samples = newest_first[::-1]
        if samples.size < count:
            samples = np.concatenate([np.zeros(count - samples.size, dtype=np.float32), samples])
        return samples

    def _release(self):
        self._stream.stop()
        self._stream.close()


# --- Acquisition handle ---

class MediaAcquisition:
    """The set of capture tracks currently held. Tracks can be added per device."""

    def __init__(self, tracks: Optional[List[MediaTrack]] = None):
        self._tracks: List[MediaTrack] = list(tracks or [])

    def get_tracks(self) -> List[MediaTrack]:
        return list(self._tracks)

    def get_audio_tracks(self) -> List[AudioTrack]:
        return [t for t in self._tracks if t.kind == "audio"]

    def get_video_tracks(self) -> List[VideoTrack]:
        return [t for t in self._tracks if t.kind == "video"]

    def add_track(self, track: MediaTrack):
        if track not in self._tracks:
            self._tracks.append(track)

    def remove_track(self, track: MediaTrack):
        if track in self._tracks:
            self._tracks.remove(track)

    @property
    def active(self) -> bool:
        return any(t.live for t in self._tracks)

    def stop(self):
        """Stop every track held by this handle."""
        for track in self._tracks:
            track.stop()

    def __repr__(self):
        return f"<MediaAcquisition tracks={self._tracks}>"


# --- Platform boundary ---

class MediaDevices:
    """Interface to the capture/playback platform. Calls may block."""

    def get_user_media(self, video: Union[bool, dict] = False, audio: bool = False) -> MediaAcquisition:
        raise NotImplementedError

    def is_online(self) -> bool:
        raise NotImplementedError

    def play_audio(self, samples: np.ndarray, sample_rate: int) -> None:
        raise NotImplementedError


class SystemMediaDevices(MediaDevices):
    """Local hardware: OpenCV for the camera, sounddevice for microphone and speakers."""

    def __init__(self, settings: Optional[DeviceCheckSettings] = None):
        self.settings = settings or DeviceCheckSettings.from_env()

    def get_user_media(self, video: Union[bool, dict] = False, audio: bool = False) -> MediaAcquisition:
        """
        Acquire the requested devices together. Either every requested track is returned,
        or nothing is held and MediaAccessError is raised.
        """
        if not video and not audio:
            raise MediaAccessError("TypeError", "At least one of audio and video must be requested")

        acquisition = MediaAcquisition()
        try:
            if video:
                acquisition.add_track(self._open_camera(video if isinstance(video, dict) else {}))
            if audio:
                acquisition.add_track(self._open_microphone())
        except Exception:
            acquisition.stop()
            raise
        return acquisition

    def _open_camera(self, constraints: dict) -> CameraTrack:
        index = self.settings.camera_index
        logger.info(f"📷 Opening camera {index}...")
        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise MediaAccessError("NotFoundError", f"Cannot open camera {index}")

        width = constraints.get("width", {}).get("ideal")
        height = constraints.get("height", {}).get("ideal")
        if width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        if height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        # A camera held by another process usually opens but delivers no frames
        ok, _ = capture.read()
        if not ok:
            capture.release()
            raise MediaAccessError("NotReadableError", f"Camera {index} opened but returned no frame")

        logger.info(f"✅ Camera {index} ready")
        return CameraTrack(capture, label=f"camera:{index}")

    def _open_microphone(self) -> MicrophoneTrack:
        if not AudioDeviceConfig.has_device("input"):
            raise MediaAccessError("NotFoundError", "No audio input devices")

        device = AudioDeviceConfig.resolve_device(self.settings.mic_device, "input")
        if not AudioDeviceConfig.verify_sample_rate_support(device, self.settings.sample_rate, "input"):
            raise MediaAccessError("OverconstrainedError", f"Microphone does not support {self.settings.sample_rate}Hz")
        logger.info(f"🎤 Opening microphone {device if device is not None else '(default)'}...")
        try:
            track = MicrophoneTrack(device, self.settings.sample_rate, label=f"mic:{device if device is not None else 'default'}")
        except sd.PortAudioError as e:
            raise MediaAccessError(self._portaudio_error_name(e), str(e)) from e
        logger.info("✅ Microphone ready")
        return track

    @staticmethod
    def _portaudio_error_name(error: Exception) -> str:
        text = str(error).lower()
        if "unavailable" in text or "busy" in text:
            return "NotReadableError"
        if "invalid device" in text or "no default" in text or "invalid number of channels" in text:
            return "NotFoundError"
        if "permission" in text or "not permitted" in text:
            return "NotAllowedError"
        if "invalid sample rate" in text:
            return "OverconstrainedError"
        return "UnknownError"

    def is_online(self) -> bool:
        host, port = self.settings.connectivity_host, self.settings.connectivity_port
        try:
            with socket.create_connection((host, port), timeout=self.settings.connectivity_timeout):
                return True
        except OSError as e:
            logger.warning(f"🌐 Connectivity check to {host}:{port} failed: {e}")
            return False

    def play_audio(self, samples: np.ndarray, sample_rate: int) -> None:
        """Play mono samples on the output device and block until done."""
        output_device = AudioDeviceConfig.resolve_device(self.settings.output_device, "output")
        buffer = np.asarray(samples, dtype=np.float32)
        position = 0
        finished = threading.Event()

        def playback_callback(outdata: np.ndarray, frames: int, time_info, status):
            nonlocal position
            if status: logger.warning(f"Playback status: {status}")
            chunk = buffer[position:position + frames]
            outdata[:len(chunk)] = chunk.reshape(-1, 1)
            outdata[len(chunk):] = 0
            position += len(chunk)
            if position >= len(buffer):
                raise sd.CallbackStop

        stream = sd.OutputStream(
            samplerate=sample_rate,
            device=output_device,
            channels=1,
            dtype='float32',
            callback=playback_callback,
            finished_callback=finished.set
        )
        logger.info(f"🔊 Playing {len(buffer) / sample_rate:.2f}s test audio on device {output_device}...")
        with stream:
            # A stalled device never fires finished_callback
            if not finished.wait(timeout=len(buffer) / sample_rate + 2.0):
                stream.abort()
                raise RuntimeError("Playback did not finish")
        logger.info("✅ Playback finished.")

# mockmate/services/audio_meter.py
"""
Microphone level metering.

AudioLevelMeter plays the role of an audio-processing context with an analyser
attached to the microphone track: it takes the most recent `fft_size` samples,
applies a Blackman window, smooths the magnitude spectrum over time and maps it
to byte-scaled decibels exactly like a Web Audio AnalyserNode
(getByteFrequencyData). The displayed level is the mean of those bytes scaled
by 1.5 and capped at 100.
"""
import logging
from typing import Optional

import numpy as np

from mockmate.services.media_devices import AudioTrack

logger = logging.getLogger(__name__)

DEFAULT_FFT_SIZE = 256
DEFAULT_SMOOTHING = 0.8
DEFAULT_MIN_DB = -100.0
DEFAULT_MAX_DB = -30.0
LEVEL_GAIN = 1.5
MAX_LEVEL = 100.0


def blackman_window(size: int) -> np.ndarray:
    n = np.arange(size)
    return 0.42 - 0.5 * np.cos(2 * np.pi * n / size) + 0.08 * np.cos(4 * np.pi * n / size)


def level_from_frequency_data(data: np.ndarray) -> float:
    """Mean byte magnitude scaled to a 0-100 meter value."""
    if data.size == 0:
        return 0.0
    average = float(np.mean(data))
    return float(min(MAX_LEVEL, max(0.0, average * LEVEL_GAIN)))


class AudioLevelMeter:
    """Analyser over one audio track. Closed meters always report 0."""

    def __init__(
        self,
        track: AudioTrack,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing: float = DEFAULT_SMOOTHING,
        min_db: float = DEFAULT_MIN_DB,
        max_db: float = DEFAULT_MAX_DB,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if min_db >= max_db:
            raise ValueError("min_db must be lower than max_db")
        self.track = track
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db
        self.state = "running"
        self._window = blackman_window(fft_size)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def closed(self) -> bool:
        return self.state == "closed"

    def get_byte_frequency_data(self, samples: Optional[np.ndarray] = None) -> np.ndarray:
        """Byte-scaled (0-255) spectrum of the latest block."""
        if samples is None:
            samples = self.track.read_samples(self.fft_size)
        block = np.asarray(samples, dtype=np.float64)[-self.fft_size:]
        if block.size < self.fft_size:
            block = np.concatenate([np.zeros(self.fft_size - block.size), block])

        spectrum = np.fft.rfft(block * self._window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1 - self.smoothing) * magnitude

        with np.errstate(divide='ignore'):
            decibels = 20 * np.log10(self._smoothed)
        scaled = (255 / (self.max_db - self.min_db)) * (decibels - self.min_db)
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)

    def sample_level(self) -> float:
        if self.closed:
            return 0.0
        return level_from_frequency_data(self.get_byte_frequency_data())

    def close(self):
        if self.closed:
            return
        self.state = "closed"
        self._smoothed[:] = 0
        logger.debug(f"Closed audio meter for track '{self.track.label}'")

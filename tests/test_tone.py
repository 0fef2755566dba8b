# tests/test_tone.py
import numpy as np
import pytest

# --- Setup Path ---
import sys, os
script_dir = os.path.dirname(__file__)
project_root = os.path.abspath(os.path.join(script_dir, '..'))
sys.path.insert(0, project_root)
# --- End Path Setup ---

from mockmate.services.tone import synthesize_tone


class TestSynthesizeTone:

    def test_length_matches_duration(self):
        assert len(synthesize_tone(48000)) == 24000
        assert len(synthesize_tone(44100)) == 22050

    def test_dtype(self):
        assert synthesize_tone(48000).dtype == np.float32

    def test_starts_near_start_gain(self):
        tone = synthesize_tone(48000)
        assert np.max(np.abs(tone)) <= 0.1 + 1e-6
        # First quarter period of a 440 Hz sine is ~27 samples
        assert np.max(np.abs(tone[:60])) > 0.09

    def test_fades_to_end_gain(self):
        tone = synthesize_tone(48000)
        assert np.max(np.abs(tone[-200:])) < 0.0012

    def test_envelope_is_monotonic(self):
        tone = synthesize_tone(48000)
        # Peak per 10 ms block
        peaks = np.abs(tone).reshape(-1, 480).max(axis=1)
        assert np.all(np.diff(peaks) < 0)

    def test_frequency(self):
        sample_rate = 48000
        tone = synthesize_tone(sample_rate, start_gain=0.1, end_gain=0.1)
        spectrum = np.abs(np.fft.rfft(tone))
        peak_hz = np.argmax(spectrum) * sample_rate / len(tone)
        assert peak_hz == pytest.approx(440, abs=2)

    @pytest.mark.parametrize("kwargs", [
        {"sample_rate": 0},
        {"sample_rate": 48000, "duration": 0},
        {"sample_rate": 48000, "end_gain": 0},
        {"sample_rate": 48000, "start_gain": -0.1},
    ])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            synthesize_tone(**kwargs)

# mockmate/services/tone.py
"""Speaker test tone: a short sine with an exponential fade."""
import numpy as np

TEST_TONE_FREQUENCY = 440.0
TEST_TONE_DURATION = 0.5
TEST_TONE_START_GAIN = 0.1
TEST_TONE_END_GAIN = 0.001


def synthesize_tone(
    sample_rate: int,
    frequency: float = TEST_TONE_FREQUENCY,
    duration: float = TEST_TONE_DURATION,
    start_gain: float = TEST_TONE_START_GAIN,
    end_gain: float = TEST_TONE_END_GAIN,
) -> np.ndarray:
    """
    Mono float32 samples of a sine at `frequency` whose gain ramps
    exponentially from `start_gain` to `end_gain` over `duration` seconds.
    """
    if sample_rate <= 0 or duration <= 0:
        raise ValueError("sample_rate and duration must be positive")
    if start_gain <= 0 or end_gain <= 0:
        raise ValueError("exponential ramp gains must be positive")

    count = int(round(sample_rate * duration))
    t = np.arange(count) / sample_rate
    envelope = start_gain * (end_gain / start_gain) ** (t / duration)
    return (envelope * np.sin(2 * np.pi * frequency * t)).astype(np.float32)

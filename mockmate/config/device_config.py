# mockmate/config/device_config.py
"""
Device Check Settings
Timing and device selection for the pre-interview system check, read from the environment.
"""
import logging
import os
from typing import Optional, Union

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Invalid value for {name}: {raw!r}. Using default {default}.")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ Invalid value for {name}: {raw!r}. Using default {default}.")
        return default


def _env_device(name: str) -> Optional[Union[int, str]]:
    """Device selectors may be a PortAudio index or a name fragment."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    raw = raw.strip()
    return int(raw) if raw.isdigit() else raw


class DeviceCheckSettings:
    """Settings for one device check controller."""

    DEFAULT_CAMERA_INDEX = 0
    DEFAULT_SAMPLE_RATE = 48000
    DEFAULT_CONNECTIVITY_HOST = "8.8.8.8"
    DEFAULT_CONNECTIVITY_PORT = 53
    DEFAULT_CONNECTIVITY_TIMEOUT = 3.0
    DEFAULT_NETWORK_SETTLE_DELAY = 1.0  # avoids status flicker on fast connectivity checks
    DEFAULT_INITIAL_MEDIA_DELAY = 0.5
    DEFAULT_LEVEL_SAMPLE_INTERVAL = 1 / 60  # one sample per display frame

    def __init__(
        self,
        camera_index: int = DEFAULT_CAMERA_INDEX,
        mic_device: Optional[Union[int, str]] = None,
        output_device: Optional[Union[int, str]] = None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        connectivity_host: str = DEFAULT_CONNECTIVITY_HOST,
        connectivity_port: int = DEFAULT_CONNECTIVITY_PORT,
        connectivity_timeout: float = DEFAULT_CONNECTIVITY_TIMEOUT,
        network_settle_delay: float = DEFAULT_NETWORK_SETTLE_DELAY,
        initial_media_delay: float = DEFAULT_INITIAL_MEDIA_DELAY,
        level_sample_interval: float = DEFAULT_LEVEL_SAMPLE_INTERVAL,
    ):
        self.camera_index = camera_index
        self.mic_device = mic_device
        self.output_device = output_device
        self.sample_rate = sample_rate
        self.connectivity_host = connectivity_host
        self.connectivity_port = connectivity_port
        self.connectivity_timeout = connectivity_timeout
        self.network_settle_delay = network_settle_delay
        self.initial_media_delay = initial_media_delay
        self.level_sample_interval = level_sample_interval

    @classmethod
    def from_env(cls) -> "DeviceCheckSettings":
        settings = cls(
            camera_index=_env_int("MOCKMATE_CAMERA_INDEX", cls.DEFAULT_CAMERA_INDEX),
            mic_device=_env_device("MOCKMATE_MIC_DEVICE"),
            output_device=_env_device("MOCKMATE_OUTPUT_DEVICE"),
            sample_rate=_env_int("MOCKMATE_SAMPLE_RATE", cls.DEFAULT_SAMPLE_RATE),
            connectivity_host=os.getenv("MOCKMATE_CONNECTIVITY_HOST", cls.DEFAULT_CONNECTIVITY_HOST),
            connectivity_port=_env_int("MOCKMATE_CONNECTIVITY_PORT", cls.DEFAULT_CONNECTIVITY_PORT),
            connectivity_timeout=_env_float("MOCKMATE_CONNECTIVITY_TIMEOUT", cls.DEFAULT_CONNECTIVITY_TIMEOUT),
            network_settle_delay=_env_float("MOCKMATE_NETWORK_SETTLE_DELAY", cls.DEFAULT_NETWORK_SETTLE_DELAY),
            initial_media_delay=_env_float("MOCKMATE_INITIAL_MEDIA_DELAY", cls.DEFAULT_INITIAL_MEDIA_DELAY),
            level_sample_interval=_env_float("MOCKMATE_LEVEL_SAMPLE_INTERVAL", cls.DEFAULT_LEVEL_SAMPLE_INTERVAL),
        )
        logger.info(
            f"⚙️ Device check settings: camera={settings.camera_index}, mic={settings.mic_device}, "
            f"output={settings.output_device}, rate={settings.sample_rate}Hz"
        )
        return settings

# mockmate/config/audio_config.py
"""
Audio Device Discovery
Resolves microphone and speaker selections against the PortAudio device list.
"""
import logging
import sounddevice as sd
from typing import Optional, Union, Any, cast

logger = logging.getLogger(__name__)


class AudioDeviceConfig:
    """Lookup helpers for local audio input/output devices."""

    @staticmethod
    def list_all_audio_devices():
        """List all available audio devices with details."""
        try:
            devices: sd.DeviceList = cast(sd.DeviceList, sd.query_devices())

            logger.info("\n" + "="*60)
            logger.info("AVAILABLE AUDIO DEVICES:")
            logger.info("="*60)

            for idx, device_untyped in enumerate(devices):
                device: dict[str, Any] = device_untyped

                device_type = []
                if device['max_input_channels'] > 0:
                    device_type.append("INPUT")
                if device['max_output_channels'] > 0:
                    device_type.append("OUTPUT")

                logger.info(f"\n[{idx}] {device['name']}")
                logger.info(f"    Type: {' & '.join(device_type)}")
                logger.info(f"    Sample Rate: {device['default_samplerate']} Hz")

            logger.info("\n" + "="*60)

            return devices
        except Exception as e:
            logger.error(f"Error listing audio devices: {e}")
            return []

    @staticmethod
    def find_device_by_name(name_patterns: list, device_type: str = "both") -> Optional[int]:
        """
        Find audio device by name pattern.

        Args:
            name_patterns: List of name patterns to search for
            device_type: "input", "output", or "both"

        Returns:
            Device index if found, None otherwise
        """
        try:
            devices: sd.DeviceList = cast(sd.DeviceList, sd.query_devices())

            for idx, device_untyped in enumerate(devices):
                device: dict[str, Any] = device_untyped
                device_name = device['name'].lower()

                is_input = device['max_input_channels'] > 0
                is_output = device['max_output_channels'] > 0

                if device_type == "input" and not is_input:
                    continue
                if device_type == "output" and not is_output:
                    continue

                for pattern in name_patterns:
                    if pattern.lower() in device_name:
                        logger.info(f"Found {device_type} device: [{idx}] {device['name']}")
                        return idx

            logger.warning(f"No {device_type} device found matching patterns: {name_patterns}")
            return None

        except Exception as e:
            logger.error(f"Error finding device: {e}")
            return None

    @classmethod
    def resolve_device(cls, selector: Optional[Union[int, str]], device_type: str) -> Optional[int]:
        """
        Turn a configured selector into a device index.

        None means "system default" and is passed through. Integers are used as-is.
        Strings are matched against device names; an unmatched name also falls back
        to the system default so a stale .env does not block the check.
        """
        if selector is None or isinstance(selector, int):
            return selector
        return cls.find_device_by_name([selector], device_type=device_type)

    @staticmethod
    def has_device(device_type: str) -> bool:
        """True when at least one device of the given direction exists."""
        key = 'max_input_channels' if device_type == "input" else 'max_output_channels'
        try:
            devices = sd.query_devices()
        except Exception as e:
            logger.error(f"Error querying audio devices: {e}")
            return False
        return any(device[key] > 0 for device in devices)

    @staticmethod
    def verify_sample_rate_support(device_idx: Optional[int], target_rate: int = 48000, device_type: str = "input") -> bool:
        """
        Verify if a device supports a specific sample rate.

        Args:
            device_idx: Device index (None for the default device)
            target_rate: Target sample rate
            device_type: "input" or "output"

        Returns:
            True if supported
        """
        try:
            if device_type == "input":
                sd.check_input_settings(device=device_idx, samplerate=target_rate)
            else:
                sd.check_output_settings(device=device_idx, samplerate=target_rate)
            logger.info(f"✅ Device {device_idx} supports {target_rate}Hz")
            return True
        except Exception as e:
            logger.warning(f"⚠️ Device {device_idx} may not support {target_rate}Hz: {e}")
            return False


if __name__ == "__main__":
    AudioDeviceConfig.list_all_audio_devices()
